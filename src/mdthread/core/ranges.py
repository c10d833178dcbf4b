"""Offset spans and editor positions shared by the document and thread packages."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class TextRange:
    """Half-open ``[start, end)`` span expressed as absolute document offsets."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid text range [{self.start}, {self.end})")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, start: int, end: int) -> bool:
        """Return ``True`` when ``[start, end]`` lies entirely inside this range.        """

        return self.start <= start and end <= self.end


@dataclass(slots=True, frozen=True, order=True)
class EditorPosition:
    """Zero-based ``line``/``ch`` pair used by editors to place the caret."""

    line: int
    ch: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "ch": self.ch}


__all__ = ["TextRange", "EditorPosition"]
