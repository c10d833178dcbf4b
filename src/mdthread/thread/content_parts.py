"""Turn a document span into ordered chat content parts, resolving embeds."""

from __future__ import annotations

import enum
import logging
from typing import Sequence

from ..documents.links import parse_link, resolve_subpath
from ..documents.model import EmbedRef, VaultFile
from .errors import EmbedResolutionFailure
from .messages import ContentPart, ImageBufferPart, ImagePart, TextPart
from .range_resolver import TextSpan, split_range
from .services import VaultServices

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_EDGE = 1568
IMAGE_EXTENSIONS: frozenset[str] = frozenset({"png", "jpg", "jpeg", "gif", "webp"})
MARKDOWN_EXTENSIONS: frozenset[str] = frozenset({"md"})


class ImageMode(str, enum.Enum):
    """How image embeds are turned into content parts."""

    BOUNDED = "bounded"
    RAW = "raw"


def is_image_file(file: VaultFile) -> bool:
    return file.extension in IMAGE_EXTENSIONS


def is_markdown_file(file: VaultFile) -> bool:
    return file.extension in MARKDOWN_EXTENSIONS


def image_mime_type(file: VaultFile) -> str:
    extension = file.extension
    return "image/jpeg" if extension == "jpg" else f"image/{extension}"


async def build_parts(
    text: str,
    start_offset: int,
    end_offset: int,
    embeds: Sequence[EmbedRef],
    source_path: str,
    services: VaultServices,
    *,
    image_mode: ImageMode = ImageMode.BOUNDED,
    max_edge: int = DEFAULT_MAX_EDGE,
) -> list[ContentPart]:
    """Build the content parts for ``text[start_offset:end_offset]``.

    Text between embeds becomes trimmed :class:`TextPart` entries. Each embed
    is resolved one at a time, in document order; an embed that cannot be
    resolved is skipped and never aborts the build.
    """

    parts: list[ContentPart] = []
    for span in split_range(text, start_offset, end_offset, embeds):
        if isinstance(span, TextSpan):
            parts.append(TextPart(span.text))
            continue
        embed = span.embed
        try:
            part = await resolve_embed(
                embed,
                source_path,
                services,
                image_mode=image_mode,
                max_edge=max_edge,
            )
        except EmbedResolutionFailure as exc:
            LOGGER.warning("Skipping embed %r in %s: %s", embed.link_target, source_path, exc)
            continue
        if part is not None:
            parts.append(part)
    return parts


async def resolve_embed(
    embed: EmbedRef,
    source_path: str,
    services: VaultServices,
    *,
    image_mode: ImageMode = ImageMode.BOUNDED,
    max_edge: int = DEFAULT_MAX_EDGE,
) -> ContentPart | None:
    """Resolve one embed to a content part.

    Returns ``None`` for links that do not resolve and for unsupported
    resource types. Raises :class:`EmbedResolutionFailure` when a resolved
    resource cannot be read or decoded.
    """

    link_path, subpath = parse_link(embed.link_target)
    target = services.links.resolve_link(link_path, source_path) if link_path else services.links.get_file(source_path)
    if target is None:
        LOGGER.debug("Embed %r does not resolve from %s", embed.link_target, source_path)
        return None
    if is_markdown_file(target):
        return await _transclude_markdown(target, subpath, services)
    if is_image_file(target):
        if image_mode is ImageMode.RAW:
            return await _read_image_buffer(target, services)
        return await _rasterize_image(target, services, max_edge)
    if image_mode is ImageMode.RAW:
        LOGGER.info("Unsupported embed type %r for %s", target.extension, target.path)
    else:
        LOGGER.debug("Ignoring embed of unsupported type %s", target.path)
    return None


async def _transclude_markdown(target: VaultFile, subpath: str, services: VaultServices) -> TextPart | None:
    # one level only: embeds inside the transcluded text stay as literal syntax
    try:
        body = await services.reader.read_text(target)
    except (OSError, UnicodeDecodeError) as exc:
        raise EmbedResolutionFailure(
            message=f"Could not read {target.path}: {exc}", details={"path": target.path}
        ) from exc
    if subpath:
        metadata = services.metadata.get_file_cache(target.path)
        if metadata is None:
            raise EmbedResolutionFailure(
                message=f"No metadata for transcluded file {target.path}", details={"path": target.path}
            )
        match = resolve_subpath(metadata, subpath)
        if match is None:
            raise EmbedResolutionFailure(
                message=f"Subpath #{subpath} not found in {target.path}",
                details={"path": target.path, "subpath": subpath},
            )
        body = match.slice(body)
    body = body.strip()
    return TextPart(body) if body else None


async def _rasterize_image(target: VaultFile, services: VaultServices, max_edge: int) -> ImagePart:
    try:
        image = await services.rasterizer.rasterize_bounded(target, max_edge)
    except OSError as exc:
        raise EmbedResolutionFailure(
            message=f"Could not load image {target.path}: {exc}", details={"path": target.path}
        ) from exc
    LOGGER.debug("Encoded %s at %dx%d", target.path, image.width, image.height)
    return ImagePart(data_url=image.data_url, mime_type=image.mime_type, width=image.width, height=image.height)


async def _read_image_buffer(target: VaultFile, services: VaultServices) -> ImageBufferPart:
    try:
        data = await services.reader.read_bytes(target)
    except OSError as exc:
        raise EmbedResolutionFailure(
            message=f"Could not read image {target.path}: {exc}", details={"path": target.path}
        ) from exc
    return ImageBufferPart(data=data, mime_type=image_mime_type(target), name=target.name)


__all__ = [
    "DEFAULT_MAX_EDGE",
    "IMAGE_EXTENSIONS",
    "ImageMode",
    "build_parts",
    "image_mime_type",
    "is_image_file",
    "is_markdown_file",
    "resolve_embed",
]
