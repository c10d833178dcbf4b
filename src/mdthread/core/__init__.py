"""Core value types shared by the document and thread packages."""

from .ranges import EditorPosition, TextRange

__all__ = ["EditorPosition", "TextRange"]
