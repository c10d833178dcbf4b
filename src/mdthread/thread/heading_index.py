"""Locate the chain of headings enclosing a cursor and the span each one owns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..core.ranges import EditorPosition, TextRange
from ..documents.model import Heading, TextBuffer


@dataclass(slots=True, frozen=True)
class HeadingRange:
    """Content span owned by a heading.

    ``content`` excludes the heading line itself and the single separator
    character preceding the next heading. ``range_end`` is the editor position
    where a reply to this heading should be written.
    """

    content: TextRange
    range_end: EditorPosition

    @property
    def content_start(self) -> int:
        return self.content.start

    @property
    def content_end(self) -> int:
        return self.content.end


def get_enclosing_path(headings: Sequence[Heading], cursor_line: int) -> list[int]:
    """Return indices of the headings enclosing ``cursor_line``, root first.

    Scans backwards: the last heading starting at or before the cursor becomes
    the innermost entry, then each earlier heading that is both above and
    strictly shallower than the current one is prepended. The result is the
    nearest enclosing heading at each decreasing level, so a level-4 heading
    may sit directly beneath a level-1 heading.
    """

    path: list[int] = []
    current: Heading | None = None
    for index in range(len(headings) - 1, -1, -1):
        heading = headings[index]
        if current is None:
            if heading.start_line <= cursor_line:
                path.insert(0, index)
                current = heading
        elif heading.start_line < current.start_line and heading.level < current.level:
            path.insert(0, index)
            current = heading
    return path


def get_range_for_heading(headings: Sequence[Heading], index: int, buffer: TextBuffer) -> HeadingRange:
    """Return the content span and reply position for ``headings[index]``."""

    heading = headings[index]
    document_length = len(buffer.text)
    content_start = min(heading.end_offset + 1, document_length)
    next_heading = headings[index + 1] if index + 1 < len(headings) else None
    if next_heading is not None:
        end_line = max(0, next_heading.start_line - 1)
        range_end = buffer.line_end(end_line)
        content_end = next_heading.start_offset - 1
    else:
        range_end = buffer.line_end(buffer.last_line)
        content_end = document_length
    content_end = max(content_start, content_end)
    return HeadingRange(content=TextRange(content_start, content_end), range_end=range_end)


__all__ = ["HeadingRange", "get_enclosing_path", "get_range_for_heading"]
