"""Markdown metadata extraction: headings, embeds and block identifiers."""

from __future__ import annotations

import logging
import re
from typing import Iterable
from urllib.parse import unquote

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .model import BlockRef, DocumentMetadata, EmbedRef, Heading, TextBuffer

LOGGER = logging.getLogger(__name__)

_WIKI_EMBED_PATTERN = re.compile(r"!\[\[(?P<target>[^\[\]\n]+?)\]\]")
_MARKDOWN_EMBED_PATTERN = re.compile(
    r"!\[(?P<alt>[^\]\n]*)\]\(\s*(?:<(?P<angled>[^>\n]+)>|(?P<bare>[^)\s]+))(?:\s+\"[^\"\n]*\")?\s*\)"
)
_INLINE_CODE_PATTERN = re.compile(r"(?P<fence>`+)(?:(?!(?P=fence)).)+?(?P=fence)")
_BLOCK_ID_PATTERN = re.compile(r"(?:^|\s)\^(?P<id>[A-Za-z0-9-]+)\s*$")
_URL_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
_FRONTMATTER_FENCE = "---"

_PARSER: MarkdownIt | None = None


def _get_parser() -> MarkdownIt:
    global _PARSER
    if _PARSER is None:
        _PARSER = MarkdownIt("commonmark")
    return _PARSER


def parse_metadata(text: str) -> DocumentMetadata:
    """Return the structural index for markdown ``text``."""

    buffer = TextBuffer(text)
    masked = _mask_frontmatter(text)
    tokens = _get_parser().parse(masked)
    code_lines = set(_code_lines(tokens))
    headings = tuple(_extract_headings(tokens, buffer))
    embeds = tuple(_extract_embeds(masked, buffer, code_lines))
    blocks = tuple(_extract_blocks(tokens, buffer))
    LOGGER.debug(
        "Parsed markdown metadata: %d headings, %d embeds, %d blocks",
        len(headings),
        len(embeds),
        len(blocks),
    )
    return DocumentMetadata(headings=headings, embeds=embeds, blocks=blocks)


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------
def _mask_frontmatter(text: str) -> str:
    """Blank out a leading YAML front matter block while keeping offsets stable."""

    lines = text.split("\n")
    if not lines or lines[0].rstrip("\r") != _FRONTMATTER_FENCE:
        return text
    for index in range(1, len(lines)):
        if lines[index].rstrip("\r") == _FRONTMATTER_FENCE:
            masked = [" " * len(line) for line in lines[: index + 1]]
            return "\n".join(masked + lines[index + 1 :])
    return text


# ---------------------------------------------------------------------------
# Token walkers
# ---------------------------------------------------------------------------
def _code_lines(tokens: Iterable[Token]) -> Iterable[int]:
    for token in tokens:
        if token.type in {"fence", "code_block", "html_block"} and token.map:
            yield from range(token.map[0], token.map[1])


def _extract_headings(tokens: list[Token], buffer: TextBuffer) -> Iterable[Heading]:
    for index, token in enumerate(tokens):
        if token.type != "heading_open" or not token.map:
            continue
        if not token.markup.startswith("#"):
            # setext headings are not part of the conversation structure
            continue
        inline = tokens[index + 1] if index + 1 < len(tokens) else None
        title = inline.content.strip() if inline is not None else ""
        line_number = token.map[0]
        line = buffer.line(line_number).rstrip("\r")
        start_offset = buffer.line_start(line_number)
        yield Heading(
            level=len(token.markup),
            text=title,
            start_line=line_number,
            end_line=line_number,
            start_offset=start_offset,
            end_offset=start_offset + len(line),
        )


def _extract_blocks(tokens: list[Token], buffer: TextBuffer) -> Iterable[BlockRef]:
    list_items: list[list[int]] = []
    for index, token in enumerate(tokens):
        if token.type == "list_item_open" and token.map:
            list_items.append(list(token.map))
            continue
        if token.type == "list_item_close":
            if list_items:
                list_items.pop()
            continue
        if token.type != "paragraph_open" or not token.map:
            continue
        inline = tokens[index + 1] if index + 1 < len(tokens) else None
        if inline is None:
            continue
        match = _BLOCK_ID_PATTERN.search(inline.content)
        if match is None:
            continue
        start_line, stop_line = list_items[-1] if list_items else token.map
        end_line = max(start_line, stop_line - 1)
        while end_line > start_line and not buffer.line(end_line).strip():
            end_line -= 1
        yield BlockRef(
            block_id=match.group("id"),
            start_line=start_line,
            end_line=end_line,
            start_offset=buffer.line_start(start_line),
            end_offset=buffer.line_start(end_line) + len(buffer.line(end_line).rstrip("\r")),
        )


# ---------------------------------------------------------------------------
# Embeds
# ---------------------------------------------------------------------------
def _extract_embeds(text: str, buffer: TextBuffer, code_lines: set[int]) -> Iterable[EmbedRef]:
    inline_code = [match.span() for match in _INLINE_CODE_PATTERN.finditer(text)]
    found: list[EmbedRef] = []
    for match in _WIKI_EMBED_PATTERN.finditer(text):
        if _is_code(match.start(), buffer, code_lines, inline_code):
            continue
        target, _, alias = match.group("target").partition("|")
        target = target.strip()
        if not target:
            continue
        found.append(EmbedRef(target, match.start(), match.end(), alias.strip() or None))
    for match in _MARKDOWN_EMBED_PATTERN.finditer(text):
        if _is_code(match.start(), buffer, code_lines, inline_code):
            continue
        raw_target = match.group("angled") or match.group("bare") or ""
        if not raw_target or _URL_SCHEME_PATTERN.match(raw_target):
            continue
        found.append(EmbedRef(unquote(raw_target), match.start(), match.end(), match.group("alt") or None))
    found.sort(key=lambda embed: embed.start_offset)
    return found


def _is_code(
    offset: int,
    buffer: TextBuffer,
    code_lines: set[int],
    inline_code: list[tuple[int, int]],
) -> bool:
    if buffer.offset_to_pos(offset).line in code_lines:
        return True
    return any(start <= offset < end for start, end in inline_code)


__all__ = ["parse_metadata"]
