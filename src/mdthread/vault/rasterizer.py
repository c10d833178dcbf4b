"""Bounded image encoding built on Qt's image stack."""

from __future__ import annotations

import asyncio
import base64
import logging

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, Qt
from PySide6.QtGui import QImage, QImageWriter

from ..documents.model import VaultFile
from ..thread.errors import RasterizeError
from ..thread.services import ContentReader, RasterizedImage

LOGGER = logging.getLogger(__name__)

_PREFERRED_FORMATS: tuple[tuple[str, str], ...] = (("WEBP", "image/webp"), ("PNG", "image/png"))


def bounded_size(width: int, height: int, max_edge: int) -> tuple[int, int]:
    """Scale ``(width, height)`` so the longest edge is at most ``max_edge``.

    Aspect ratio is preserved and both dimensions are rounded to whole pixels.
    """

    longest = max(width, height)
    if longest <= max_edge:
        return width, height
    factor = max_edge / longest
    return max(1, round(width * factor)), max(1, round(height * factor))


def encode_bounded(data: bytes, max_edge: int, *, label: str = "image") -> RasterizedImage:
    """Decode ``data``, downscale it to ``max_edge`` and re-encode it as a data URL."""

    if max_edge < 1:
        raise ValueError("max_edge must be a positive pixel count")
    image = QImage()
    if not image.loadFromData(data):
        raise RasterizeError(message=f"Could not decode {label}", details={"resource": label})
    width, height = bounded_size(image.width(), image.height(), max_edge)
    if (width, height) != (image.width(), image.height()):
        LOGGER.debug("Resizing %s from %dx%d to %dx%d", label, image.width(), image.height(), width, height)
        image = image.scaled(
            width,
            height,
            Qt.AspectRatioMode.IgnoreAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
    payload, mime_type = _encode(image, label)
    encoded = base64.b64encode(payload).decode("ascii")
    return RasterizedImage(
        data_url=f"data:{mime_type};base64,{encoded}",
        mime_type=mime_type,
        width=image.width(),
        height=image.height(),
    )


def _encode(image: QImage, label: str) -> tuple[bytes, str]:
    supported = {bytes(fmt.data()).decode("ascii").upper() for fmt in QImageWriter.supportedImageFormats()}
    for format_name, mime_type in _PREFERRED_FORMATS:
        if format_name not in supported:
            continue
        array = QByteArray()
        buffer = QBuffer(array)
        buffer.open(QIODevice.OpenModeFlag.WriteOnly)
        saved = image.save(buffer, format_name)
        buffer.close()
        if saved:
            return bytes(array.data()), mime_type
        LOGGER.debug("Qt could not write %s as %s", label, format_name)
    raise RasterizeError(message=f"Could not encode {label}", details={"resource": label})


class QtImageRasterizer:
    """Image rasterizer collaborator that reads through a :class:`ContentReader`."""

    def __init__(self, reader: ContentReader) -> None:
        self._reader = reader

    async def rasterize_bounded(self, file: VaultFile, max_edge: int) -> RasterizedImage:
        data = await self._reader.read_bytes(file)
        return await asyncio.to_thread(encode_bounded, data, max_edge, label=file.path)


__all__ = ["QtImageRasterizer", "bounded_size", "encode_bounded"]
