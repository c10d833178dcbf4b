"""Contracts for the collaborators the conversation builders depend on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..documents.model import DocumentMetadata, VaultFile


@dataclass(slots=True, frozen=True)
class RasterizedImage:
    """Encoded, size-bounded image ready to embed in a request."""

    data_url: str
    mime_type: str
    width: int
    height: int


@runtime_checkable
class MetadataProvider(Protocol):
    """Structural index lookup for markdown files."""

    def get_file_cache(self, path: str) -> DocumentMetadata | None:
        """Return the metadata for ``path`` or ``None`` when it cannot be built."""
        ...


@runtime_checkable
class LinkResolver(Protocol):
    """Resolves link text to vault resources."""

    def resolve_link(self, link_path: str, source_path: str) -> VaultFile | None:
        """Resolve ``link_path`` (without subpath) as seen from ``source_path``."""
        ...

    def get_file(self, path: str) -> VaultFile | None:
        """Return the handle for an exact vault path."""
        ...


@runtime_checkable
class ContentReader(Protocol):
    """Reads resource contents; both calls are suspension points."""

    async def read_text(self, file: VaultFile) -> str:
        ...

    async def read_bytes(self, file: VaultFile) -> bytes:
        ...


@runtime_checkable
class ImageRasterizer(Protocol):
    """Loads an image and downsizes it so its longest edge fits ``max_edge``."""

    async def rasterize_bounded(self, file: VaultFile, max_edge: int) -> RasterizedImage:
        """Raise :class:`~mdthread.thread.errors.RasterizeError` on failure."""
        ...


@dataclass(slots=True)
class VaultServices:
    """Bundle of collaborators handed to the builders for a single request."""

    metadata: MetadataProvider
    links: LinkResolver
    reader: ContentReader
    rasterizer: ImageRasterizer


__all__ = [
    "RasterizedImage",
    "MetadataProvider",
    "LinkResolver",
    "ContentReader",
    "ImageRasterizer",
    "VaultServices",
]
