"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers import MemoryVault, StubRasterizer, make_services

_ENV_NAMES = (
    "MDTHREAD_API_HOST",
    "MDTHREAD_API_KEY",
    "MDTHREAD_MODEL",
    "MDTHREAD_SYSTEM_PROMPT_FILE",
    "MDTHREAD_IMAGE_MODE",
    "MDTHREAD_MAX_IMAGE_EDGE",
    "MDTHREAD_DEBUG_LOGGING",
    "MDTHREAD_SETTINGS_PATH",
)


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MDTHREAD_LOG_DIR", str(tmp_path / "logs"))
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def rasterizer() -> StubRasterizer:
    return StubRasterizer()


@pytest.fixture
def vault() -> MemoryVault:
    return MemoryVault()


@pytest.fixture
def services(vault: MemoryVault, rasterizer: StubRasterizer):
    return make_services(vault, rasterizer)
