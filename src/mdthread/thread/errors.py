"""Error taxonomy for conversation assembly.

Structural failures (:class:`NoHeadingsFound`, :class:`MetadataUnavailable`)
abort the whole build. Per-embed failures (:class:`EmbedResolutionFailure`,
:class:`RasterizeError`) are always recovered by skipping that one embed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for machine-readable error codes."""

    NO_HEADINGS_FOUND = "no_headings_found"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    EMBED_UNRESOLVED = "embed_unresolved"
    RASTERIZE_FAILED = "rasterize_failed"


@dataclass
class ThreadError(Exception):
    """Base exception for every failure raised while building a conversation.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    recoverable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class NoHeadingsFound(ThreadError):
    """The cursor is not inside any heading-delimited section."""

    error_code: str = field(default=ErrorCode.NO_HEADINGS_FOUND)
    message: str = field(default="No headings found")
    details: dict[str, Any] = field(default_factory=dict)

    recoverable: ClassVar[bool] = True


@dataclass
class MetadataUnavailable(ThreadError):
    """The structural index of the source document could not be obtained."""

    error_code: str = field(default=ErrorCode.METADATA_UNAVAILABLE)
    message: str = field(default="Document metadata is unavailable")
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_path(cls, path: str) -> "MetadataUnavailable":
        return cls(message=f"Metadata for {path!r} is unavailable", details={"path": path})


@dataclass
class EmbedResolutionFailure(ThreadError):
    """A single embed could not be turned into a content part."""

    error_code: str = field(default=ErrorCode.EMBED_UNRESOLVED)
    message: str = field(default="Embed could not be resolved")
    details: dict[str, Any] = field(default_factory=dict)

    recoverable: ClassVar[bool] = True


@dataclass
class RasterizeError(EmbedResolutionFailure):
    """An image resource could not be decoded, scaled or re-encoded."""

    error_code: str = field(default=ErrorCode.RASTERIZE_FAILED)
    message: str = field(default="Image could not be rasterized")
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ErrorCode",
    "ThreadError",
    "NoHeadingsFound",
    "MetadataUnavailable",
    "EmbedResolutionFailure",
    "RasterizeError",
]
