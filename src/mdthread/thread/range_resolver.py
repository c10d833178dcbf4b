"""Partition a document span into literal text and embed references."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from ..core.ranges import TextRange
from ..documents.model import EmbedRef

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TextSpan:
    """Trimmed literal text found between embeds."""

    text: str
    start: int
    end: int


@dataclass(slots=True, frozen=True)
class EmbedSpan:
    embed: EmbedRef


RangeSpan = Union[TextSpan, EmbedSpan]


def embeds_within(start_offset: int, end_offset: int, embeds: Iterable[EmbedRef]) -> list[EmbedRef]:
    """Return embeds lying entirely inside ``[start_offset, end_offset]``, sorted by position.

    Embeds straddling either boundary are dropped, not clipped.
    """

    bounds = TextRange(start_offset, end_offset)
    inside = [embed for embed in embeds if bounds.contains(embed.start_offset, embed.end_offset)]
    inside.sort(key=lambda embed: (embed.start_offset, embed.end_offset))
    return inside


def split_range(
    text: str,
    start_offset: int,
    end_offset: int,
    embeds: Sequence[EmbedRef],
) -> list[RangeSpan]:
    """Split ``text[start_offset:end_offset]`` into text spans and embed spans.

    Input embeds may arrive in any order; output is always document order.
    Empty text spans (after trimming) are omitted.
    """

    spans: list[RangeSpan] = []
    cursor = start_offset
    for embed in embeds_within(start_offset, end_offset, embeds):
        if embed.start_offset < cursor:
            LOGGER.debug("Skipping overlapping embed %r at %d", embed.link_target, embed.start_offset)
            continue
        _append_text(spans, text, cursor, embed.start_offset)
        spans.append(EmbedSpan(embed))
        cursor = embed.end_offset
    _append_text(spans, text, cursor, end_offset)
    return spans


def _append_text(spans: list[RangeSpan], text: str, start: int, end: int) -> None:
    if end <= start:
        return
    chunk = text[start:end].strip()
    if chunk:
        spans.append(TextSpan(chunk, start, end))


__all__ = ["TextSpan", "EmbedSpan", "RangeSpan", "embeds_within", "split_range"]
