"""Conversation assembly from nested-heading markdown notes."""

from .assembler import (
    ThreadResult,
    build_range_content_parts,
    build_selection_thread,
    build_system_prompt,
    build_thread,
    classify_role,
)
from .content_parts import DEFAULT_MAX_EDGE, ImageMode, build_parts
from .errors import EmbedResolutionFailure, MetadataUnavailable, NoHeadingsFound, RasterizeError, ThreadError
from .heading_index import HeadingRange, get_enclosing_path, get_range_for_heading
from .messages import ContentPart, ImageBufferPart, ImagePart, Message, TextPart
from .range_resolver import EmbedSpan, TextSpan, split_range
from .services import RasterizedImage, VaultServices

__all__ = [
    "ContentPart",
    "DEFAULT_MAX_EDGE",
    "EmbedResolutionFailure",
    "EmbedSpan",
    "HeadingRange",
    "ImageBufferPart",
    "ImageMode",
    "ImagePart",
    "Message",
    "MetadataUnavailable",
    "NoHeadingsFound",
    "RasterizeError",
    "RasterizedImage",
    "TextPart",
    "TextSpan",
    "ThreadError",
    "ThreadResult",
    "VaultServices",
    "build_parts",
    "build_range_content_parts",
    "build_selection_thread",
    "build_system_prompt",
    "build_thread",
    "classify_role",
    "get_enclosing_path",
    "get_range_for_heading",
    "split_range",
]
