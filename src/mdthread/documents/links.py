"""Link text parsing and subpath (heading / block) resolution."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from .model import DocumentMetadata, Heading

_WHITESPACE_PATTERN = re.compile(r"\s+")

SubpathKind = Literal["heading", "block"]


@dataclass(slots=True, frozen=True)
class SubpathMatch:
    """Offsets of the slice a ``#Heading`` or ``#^block`` subpath selects.

    ``end_offset`` is ``None`` when the slice runs to the end of the file.
    """

    kind: SubpathKind
    start_offset: int
    end_offset: int | None

    def slice(self, text: str) -> str:
        return text[self.start_offset : self.end_offset]


def parse_link(link_text: str) -> tuple[str, str]:
    """Split ``target#subpath|alias`` into ``(target, subpath)``."""

    target = link_text.split("|", 1)[0].strip()
    path, _, subpath = target.partition("#")
    return path.strip(), subpath.strip()


def resolve_subpath(metadata: DocumentMetadata, subpath: str) -> SubpathMatch | None:
    """Resolve ``subpath`` against the headings and blocks of ``metadata``."""

    subpath = subpath.strip().lstrip("#")
    if not subpath:
        return None
    if subpath.startswith("^"):
        block = metadata.block(subpath[1:])
        if block is None:
            return None
        return SubpathMatch("block", block.start_offset, block.end_offset)

    names = [_normalize(part) for part in subpath.split("#") if part.strip()]
    headings = metadata.headings
    index = -1
    scope_level = 0
    for name in names:
        index = _find_heading(headings, name, start=index + 1, scope_level=scope_level)
        if index < 0:
            return None
        scope_level = headings[index].level
    matched = headings[index]
    end_offset = None
    for following in headings[index + 1 :]:
        if following.level <= matched.level:
            end_offset = following.start_offset
            break
    return SubpathMatch("heading", matched.start_offset, end_offset)


def _find_heading(headings: tuple[Heading, ...], name: str, *, start: int, scope_level: int) -> int:
    for index in range(start, len(headings)):
        heading = headings[index]
        if scope_level and heading.level <= scope_level:
            # left the parent's subtree
            return -1
        if _normalize(heading.text) == name:
            return index
    return -1


def _normalize(value: str) -> str:
    return _WHITESPACE_PATTERN.sub(" ", value).strip().casefold()


__all__ = ["SubpathMatch", "parse_link", "resolve_subpath"]
