"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..utils import file_io

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "DEFAULT_SYSTEM_PROMPT",
    "IMAGE_MODE_CHOICES",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".mdthread"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 2
_API_KEY_FIELD = "api_key_ciphertext"
_SECRET_PREFIX = "fernet"
_ENV_OVERRIDES: Mapping[str, str] = {
    "MDTHREAD_API_HOST": "api_host",
    "MDTHREAD_API_KEY": "api_key",
    "MDTHREAD_MODEL": "model",
    "MDTHREAD_SYSTEM_PROMPT_FILE": "system_prompt_file",
    "MDTHREAD_IMAGE_MODE": "image_mode",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "MDTHREAD_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "MDTHREAD_MAX_IMAGE_EDGE": "max_image_edge",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_DEFAULT_MAX_IMAGE_EDGE = 1568
IMAGE_MODE_CHOICES: tuple[str, ...] = ("bounded", "raw")

DEFAULT_SYSTEM_PROMPT = """You are an AI assistant, outputting into a markdown document. You have access to and can interpret fenced codeblocks and MathJax notation. When responding:

1. Use markdown formatting for text styling and organization, but avoid using # headings as your output could be streaming into a deeply nested part of the markdown document.
2. Use fenced codeblocks with language specification for any code snippets.
3. Employ MathJax notation (enclosed in $$ for block-level or $ for inline) for mathematical expressions.
4. If referencing other parts of the document, use internal linking syntax [[like this]].
5. Maintain a helpful, friendly, and knowledgeable tone.

Your responses should be clear, concise, and tailored to the user's needs within the context of a note-taking and knowledge management environment."""


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    api_host: str = "https://api.openai.com"
    api_key: str = ""
    model: str = "anthropic/claude-3.5-sonnet"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    system_prompt_file: str | None = None
    max_image_edge: int = _DEFAULT_MAX_IMAGE_EDGE
    image_mode: str = "bounded"
    debug_logging: bool = False

    @property
    def base_url(self) -> str:
        """OpenAI-compatible base URL derived from ``api_host``."""

        return f"{self.api_host.rstrip('/')}/v1"


class SecretVault:
    """Fernet encryption for secrets kept in the settings file.

    The key is stored beside the settings file and generated on first use.
    Tokens carry a ``fernet:`` prefix naming the backend.
    """

    def __init__(self, key_path: Path | None = None) -> None:
        self._key_path = key_path or _DEFAULT_SETTINGS_PATH.with_suffix(".key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{_SECRET_PREFIX}:{token}"

    def decrypt(self, token: str) -> str:
        if not token:
            return ""
        prefix, sep, payload = token.partition(":")
        if not sep or prefix != _SECRET_PREFIX:
            raise ValueError(f"Unsupported secret token format {prefix!r}")
        try:
            raw = self._get_fernet().decrypt(payload.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError(f"Secret cannot be decrypted with {self._key_path}") from exc
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        if self._key_path.exists():
            return self._key_path.read_bytes().strip()
        key = Fernet.generate_key()
        # mkstemp-backed writes leave the key readable by the owner only
        file_io.write_text(self._key_path, key.decode("ascii"))
        LOGGER.info("Created settings encryption key at %s", self._key_path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        """Return the secret vault encrypting the API key."""

        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            api_key, migrate = self._decrypt_api_key(payload.get(_API_KEY_FIELD), payload.get("api_key"))
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if api_key:
                settings = replace(settings, api_key=api_key)
            if migrate:
                LOGGER.info("Encrypting plaintext API key found in %s", self._path)
                try:
                    self.save(settings)
                except OSError as exc:
                    LOGGER.warning("Could not rewrite %s with an encrypted API key: %s", self._path, exc)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        settings = self._apply_env_overrides(settings)
        return _validate(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes; the API key is stored encrypted."""

        data = asdict(settings)
        api_key = data.pop("api_key", "") or ""
        if api_key:
            data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        data["version"] = _SETTINGS_VERSION
        file_io.write_text(self._path, json.dumps(data, indent=2, sort_keys=True))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _decrypt_api_key(self, ciphertext: Any, plaintext: Any) -> tuple[str, bool]:
        if isinstance(ciphertext, str) and ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt the stored API key: %s", exc)
                return "", False
        if isinstance(plaintext, str) and plaintext:
            return plaintext, True
        return "", False

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def redact_secret(value: str | None) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - {"api_key"}
    return {key: value for key, value in payload.items() if key in allowed}


def _validate(settings: Settings) -> Settings:
    updates: Dict[str, Any] = {}
    if settings.image_mode not in IMAGE_MODE_CHOICES:
        LOGGER.warning("Unknown image_mode %r; using 'bounded'", settings.image_mode)
        updates["image_mode"] = "bounded"
    try:
        edge = int(settings.max_image_edge)
    except (TypeError, ValueError):
        edge = _DEFAULT_MAX_IMAGE_EDGE
    if edge < 1:
        edge = _DEFAULT_MAX_IMAGE_EDGE
    if edge != settings.max_image_edge:
        updates["max_image_edge"] = edge
    return replace(settings, **updates) if updates else settings
