"""Tests for :mod:`mdthread.vault.filesystem`."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdthread.documents.model import VaultFile
from mdthread.thread.assembler import build_thread
from mdthread.thread.messages import TextPart
from mdthread.vault.filesystem import FileVault
from tests.helpers import StubRasterizer


def _write(root: Path, relative: str, content: str | bytes) -> Path:
    target = root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        target.write_bytes(content)
    else:
        target.write_text(content, encoding="utf-8")
    return target


def test_resolve_link_prefers_source_folder_then_root(tmp_path: Path) -> None:
    _write(tmp_path, "notes/ref.md", "local")
    _write(tmp_path, "ref.md", "root")
    vault = FileVault(tmp_path)

    assert vault.resolve_link("ref", "notes/chat.md") == VaultFile("notes/ref.md")
    assert vault.resolve_link("ref", "chat.md") == VaultFile("ref.md")
    assert vault.resolve_link("/ref.md", "notes/chat.md") == VaultFile("ref.md")


def test_resolve_link_falls_back_to_shortest_match_by_name(tmp_path: Path) -> None:
    _write(tmp_path, "attachments/deep/pic.png", b"a")
    _write(tmp_path, "attachments/pic.png", b"b")
    vault = FileVault(tmp_path)

    assert vault.resolve_link("pic.png", "notes/chat.md") == VaultFile("attachments/pic.png")
    assert vault.resolve_link("deep/pic.png", "notes/chat.md") == VaultFile("attachments/deep/pic.png")
    assert vault.resolve_link("nothing.png", "chat.md") is None


def test_paths_cannot_escape_the_vault(tmp_path: Path) -> None:
    root = tmp_path / "vault"
    root.mkdir()
    _write(tmp_path, "secret.md", "nope")
    vault = FileVault(root)

    assert vault.get_file("../secret.md") is None
    assert vault.resolve_link("../secret", "chat.md") is None


def test_file_cache_only_for_markdown_notes(tmp_path: Path) -> None:
    _write(tmp_path, "chat.md", "# Title\r\nbody ![[pic.png]]\r\n")
    _write(tmp_path, "pic.png", b"\x89PNG")
    vault = FileVault(tmp_path)

    metadata = vault.get_file_cache("chat.md")

    assert metadata is not None
    assert [heading.text for heading in metadata.headings] == ["Title"]
    assert [embed.link_target for embed in metadata.embeds] == ["pic.png"]
    assert vault.get_file_cache("pic.png") is None
    assert vault.get_file_cache("absent.md") is None


@pytest.mark.asyncio
async def test_reader_normalizes_newlines_consistently_with_metadata(tmp_path: Path) -> None:
    _write(tmp_path, "chat.md", "# Q\r\nHello\r\n")
    vault = FileVault(tmp_path)

    text = await vault.read_text(VaultFile("chat.md"))

    assert text == "# Q\nHello\n"
    assert await vault.read_bytes(VaultFile("chat.md")) == b"# Q\r\nHello\r\n"


@pytest.mark.asyncio
async def test_thread_over_real_files_transcludes_heading_subpath(tmp_path: Path) -> None:
    note = "# Question\nUse this context:\n![[refs/Background#Details]]\nThen answer."
    _write(tmp_path, "chat.md", note)
    _write(tmp_path, "refs/Background.md", "# Summary\nshort\n## Details\nthe details\n# Other\nskip")
    vault = FileVault(tmp_path)
    services = vault.services(StubRasterizer())

    result = await build_thread("chat.md", note, 3, "sys", services)

    assert result.messages[1].content == (
        TextPart("Use this context:"),
        TextPart("## Details\nthe details"),
        TextPart("Then answer."),
    )


def test_relative_path_of_note(tmp_path: Path) -> None:
    target = _write(tmp_path, "a/b.md", "x")
    vault = FileVault(tmp_path)

    assert vault.relative_path(target) == "a/b.md"
    with pytest.raises(ValueError):
        vault.relative_path(tmp_path.parent / "elsewhere.md")


@pytest.mark.asyncio
async def test_undecodable_transcluded_note_is_skipped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    note = "# Question\nbefore\n![[bad]]\nafter"
    _write(tmp_path, "chat.md", note)
    _write(tmp_path, "bad.md", b"\xef\xbb\xbfok \xff\xfe broken")
    services = FileVault(tmp_path).services(StubRasterizer())

    result = await build_thread("chat.md", note, 3, "sys", services)

    assert result.messages[1].content == (TextPart("before"), TextPart("after"))
    assert "Skipping embed 'bad'" in caplog.text
