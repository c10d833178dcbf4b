"""Shared test helpers and stub collaborators.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field

from mdthread.documents.model import DocumentMetadata, VaultFile
from mdthread.documents.parser import parse_metadata
from mdthread.thread.errors import RasterizeError
from mdthread.thread.services import RasterizedImage, VaultServices


class MemoryVault:
    """In-memory metadata, link and reader collaborator.

    ``files`` maps vault paths to either text (notes) or bytes (attachments).
    Reads are counted per path so tests can assert on re-reads.
    """

    def __init__(self, files: dict[str, str | bytes] | None = None) -> None:
        self.files: dict[str, str | bytes] = dict(files or {})
        self.reads: dict[str, int] = {}
        self.missing_metadata: set[str] = set()

    def get_file_cache(self, path: str) -> DocumentMetadata | None:
        content = self.files.get(path)
        if path in self.missing_metadata or not isinstance(content, str):
            return None
        return parse_metadata(content)

    def get_file(self, path: str) -> VaultFile | None:
        return VaultFile(path) if path in self.files else None

    def resolve_link(self, link_path: str, source_path: str) -> VaultFile | None:
        candidates = [link_path]
        if "." not in posixpath.basename(link_path):
            candidates.append(link_path + ".md")
        for candidate in candidates:
            relative = posixpath.join(posixpath.dirname(source_path), candidate)
            for option in (relative, candidate):
                if option in self.files:
                    return VaultFile(option)
        return None

    async def read_text(self, file: VaultFile) -> str:
        self.reads[file.path] = self.reads.get(file.path, 0) + 1
        content = self.files.get(file.path)
        if content is None:
            raise FileNotFoundError(file.path)
        return content if isinstance(content, str) else content.decode("utf-8")

    async def read_bytes(self, file: VaultFile) -> bytes:
        self.reads[file.path] = self.reads.get(file.path, 0) + 1
        content = self.files.get(file.path)
        if content is None:
            raise FileNotFoundError(file.path)
        return content if isinstance(content, bytes) else content.encode("utf-8")


@dataclass
class StubRasterizer:
    """Rasterizer that returns a fixed payload and fails for ``broken`` paths."""

    broken: set[str] = field(default_factory=set)
    calls: list[tuple[str, int]] = field(default_factory=list)

    async def rasterize_bounded(self, file: VaultFile, max_edge: int) -> RasterizedImage:
        self.calls.append((file.path, max_edge))
        if file.path in self.broken:
            raise RasterizeError(message=f"Could not decode {file.path}")
        return RasterizedImage(
            data_url=f"data:image/webp;base64,{file.basename}",
            mime_type="image/webp",
            width=max_edge,
            height=max_edge // 2,
        )


def make_services(vault: MemoryVault, rasterizer: StubRasterizer | None = None) -> VaultServices:
    return VaultServices(
        metadata=vault,
        links=vault,
        reader=vault,
        rasterizer=rasterizer or StubRasterizer(),
    )
