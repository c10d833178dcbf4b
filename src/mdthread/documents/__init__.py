"""Markdown document model, metadata extraction and link handling."""

from .links import SubpathMatch, parse_link, resolve_subpath
from .model import BlockRef, DocumentMetadata, EmbedRef, Heading, TextBuffer, VaultFile
from .parser import parse_metadata

__all__ = [
    "BlockRef",
    "DocumentMetadata",
    "EmbedRef",
    "Heading",
    "SubpathMatch",
    "TextBuffer",
    "VaultFile",
    "parse_link",
    "parse_metadata",
    "resolve_subpath",
]
