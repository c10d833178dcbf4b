"""Dataclasses describing a parsed markdown document and its surrounding vault."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from ..core.ranges import EditorPosition


@dataclass(slots=True, frozen=True)
class Heading:
    """ATX heading with both line and offset coordinates.

    ``end_offset`` points just past the last character of the heading line,
    so the section body starts at ``end_offset + 1``.
    """

    level: int
    text: str
    start_line: int
    end_line: int
    start_offset: int
    end_offset: int


@dataclass(slots=True, frozen=True)
class EmbedRef:
    """Inline transclusion such as ``![[target]]`` spanning ``[start_offset, end_offset)``."""

    link_target: str
    start_offset: int
    end_offset: int
    display: str | None = None


@dataclass(slots=True, frozen=True)
class BlockRef:
    """Paragraph or list item addressable through a trailing ``^block-id``."""

    block_id: str
    start_line: int
    end_line: int
    start_offset: int
    end_offset: int


@dataclass(slots=True, frozen=True)
class DocumentMetadata:
    """Structural index of one markdown file (the "file cache entry")."""

    headings: tuple[Heading, ...] = ()
    embeds: tuple[EmbedRef, ...] = ()
    blocks: tuple[BlockRef, ...] = ()

    def block(self, block_id: str) -> BlockRef | None:
        wanted = block_id.lower()
        for block in self.blocks:
            if block.block_id.lower() == wanted:
                return block
        return None


@dataclass(slots=True, frozen=True)
class VaultFile:
    """Handle to a resource inside the vault, addressed by a POSIX relative path."""

    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".").lower()


@dataclass(slots=True)
class TextBuffer:
    """Read-only view over document text offering editor-style coordinates."""

    text: str
    _line_starts: list[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        starts = [0]
        for index, char in enumerate(self.text):
            if char == "\n":
                starts.append(index + 1)
        self._line_starts = starts

    @property
    def last_line(self) -> int:
        return len(self._line_starts) - 1

    def line(self, number: int) -> str:
        """Return line ``number`` without its trailing newline."""

        if number < 0 or number > self.last_line:
            raise IndexError(f"Line {number} is outside the document (0..{self.last_line})")
        start = self._line_starts[number]
        if number < self.last_line:
            return self.text[start : self._line_starts[number + 1] - 1]
        return self.text[start:]

    def line_start(self, number: int) -> int:
        """Return the offset of the first character on line ``number`` (clamped)."""

        if number > self.last_line:
            return len(self.text)
        return self._line_starts[max(0, number)]

    def line_end(self, number: int) -> EditorPosition:
        """Return the position just past the last character on ``number``."""

        return EditorPosition(number, len(self.line(number)))

    def offset_to_pos(self, offset: int) -> EditorPosition:
        offset = max(0, min(offset, len(self.text)))
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return EditorPosition(line, offset - self._line_starts[line])

    def pos_to_offset(self, position: EditorPosition) -> int:
        if position.line > self.last_line:
            return len(self.text)
        line = max(0, position.line)
        ch = max(0, min(position.ch, len(self.line(line))))
        return self._line_starts[line] + ch

    def get_range(self, start: EditorPosition, end: EditorPosition) -> str:
        return self.text[self.pos_to_offset(start) : self.pos_to_offset(end)]


__all__ = ["Heading", "EmbedRef", "BlockRef", "DocumentMetadata", "VaultFile", "TextBuffer"]
