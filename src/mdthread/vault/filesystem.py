"""Collaborators backed by a directory of markdown notes and attachments."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from pathlib import Path, PurePosixPath

from ..documents.model import DocumentMetadata, VaultFile
from ..documents.parser import parse_metadata
from ..thread.services import ImageRasterizer, VaultServices
from ..utils import file_io

LOGGER = logging.getLogger(__name__)
_MARKDOWN_SUFFIX = ".md"


class FileVault:
    """Resolve links, read files and build metadata for notes under ``root``.

    Implements the metadata, link and reader collaborators. Every call reads
    from disk; nothing is cached between requests.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def services(self, rasterizer: ImageRasterizer | None = None) -> VaultServices:
        """Return a :class:`VaultServices` bundle using this vault."""

        if rasterizer is None:
            from .rasterizer import QtImageRasterizer

            rasterizer = QtImageRasterizer(self)
        return VaultServices(metadata=self, links=self, reader=self, rasterizer=rasterizer)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def absolute_path(self, file: VaultFile | str) -> Path:
        relative = file.path if isinstance(file, VaultFile) else file
        return self._root.joinpath(*PurePosixPath(relative).parts)

    def relative_path(self, path: Path | str) -> str:
        """Return the vault path for an absolute or working-directory path."""

        return Path(path).expanduser().resolve().relative_to(self._root).as_posix()

    def get_file(self, path: str) -> VaultFile | None:
        normalized = _normalize(path)
        if normalized is None:
            return None
        if self.absolute_path(normalized).is_file():
            return VaultFile(normalized)
        return None

    # ------------------------------------------------------------------
    # Link resolution
    # ------------------------------------------------------------------
    def resolve_link(self, link_path: str, source_path: str) -> VaultFile | None:
        """Resolve ``link_path`` the way Obsidian does for embeds.

        Tries the linking note's folder, then the vault root, then the
        shortest vault path whose tail matches the link.
        """

        candidates = [link_path]
        if not PurePosixPath(link_path).suffix:
            candidates.append(link_path + _MARKDOWN_SUFFIX)
        source_dir = posixpath.dirname(source_path)
        for candidate in candidates:
            if candidate.startswith("/"):
                found = self.get_file(candidate.lstrip("/"))
            else:
                found = self.get_file(posixpath.join(source_dir, candidate)) or self.get_file(candidate)
            if found is not None:
                return found
        for candidate in candidates:
            found = self._find_by_tail(candidate)
            if found is not None:
                return found
        return None

    def _find_by_tail(self, tail: str) -> VaultFile | None:
        wanted = PurePosixPath(tail.lstrip("/"))
        if not wanted.name:
            return None
        matches: list[str] = []
        for path in self._root.rglob(wanted.name):
            if not path.is_file():
                continue
            relative = path.relative_to(self._root).as_posix()
            if relative == wanted.as_posix() or relative.endswith("/" + wanted.as_posix()):
                matches.append(relative)
        if not matches:
            return None
        matches.sort(key=lambda value: (value.count("/"), len(value), value))
        return VaultFile(matches[0])

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    def get_file_cache(self, path: str) -> DocumentMetadata | None:
        file = self.get_file(path)
        if file is None or file.extension != _MARKDOWN_SUFFIX.lstrip("."):
            return None
        try:
            text = file_io.read_text(self.absolute_path(file))
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Could not index %s: %s", file.path, exc)
            return None
        return parse_metadata(text)

    # ------------------------------------------------------------------
    # Content reader
    # ------------------------------------------------------------------
    async def read_text(self, file: VaultFile) -> str:
        return await asyncio.to_thread(file_io.read_text, self.absolute_path(file))

    async def read_bytes(self, file: VaultFile) -> bytes:
        return await asyncio.to_thread(self.absolute_path(file).read_bytes)


def _normalize(path: str) -> str | None:
    """Collapse ``..``/``.`` segments; return ``None`` when the path escapes the vault."""

    cleaned = posixpath.normpath(path.replace("\\", "/").lstrip("/"))
    if cleaned in {"", "."} or cleaned == ".." or cleaned.startswith("../"):
        return None
    return cleaned


__all__ = ["FileVault"]
