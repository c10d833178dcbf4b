"""Assemble chat-completion conversations from a nested-heading markdown note.

Each heading on the path from the document root to the cursor becomes one
turn. Headings whose text starts with ``AI`` or ``ASSISTANT`` (any case) are
assistant turns carried as flat strings; every other heading is a user turn
whose body is resolved into text and image parts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from openai.types.chat import ChatCompletionMessageParam

from ..core.ranges import EditorPosition
from ..documents.model import DocumentMetadata, Heading, TextBuffer
from .content_parts import DEFAULT_MAX_EDGE, ImageMode, build_parts, is_markdown_file
from .errors import MetadataUnavailable, NoHeadingsFound
from .heading_index import get_enclosing_path, get_range_for_heading
from .messages import ContentPart, Message, TextPart, to_params
from .services import VaultServices

LOGGER = logging.getLogger(__name__)

ASSISTANT_PREFIXES: tuple[str, ...] = ("AI", "ASSISTANT")
REPLY_HEADING_TEXT = "AI"
FOLLOW_UP_HEADING_TEXT = "User"


def classify_role(heading_text: str) -> Literal["user", "assistant"]:
    """Return ``assistant`` when the upper-cased heading starts with an assistant prefix.

    This is a plain prefix test: ``"Aiden's question"`` is an assistant turn.
    """

    return "assistant" if heading_text.upper().startswith(ASSISTANT_PREFIXES) else "user"


@dataclass(slots=True, frozen=True)
class ThreadResult:
    """Conversation built for the cursor plus where the reply belongs."""

    messages: tuple[Message, ...]
    last_heading: Heading
    range_end: EditorPosition

    def to_params(self) -> list[ChatCompletionMessageParam]:
        return to_params(list(self.messages))

    def reply_heading(self) -> str:
        """Heading inserted at ``range_end`` before streaming the reply."""

        return f"\n\n{'#' * (self.last_heading.level + 1)} {REPLY_HEADING_TEXT}\n"

    def follow_up_heading(self) -> str:
        """Heading appended after the streamed reply for the next user turn."""

        return f"\n\n{'#' * (self.last_heading.level + 2)} {FOLLOW_UP_HEADING_TEXT}\n"


def require_metadata(path: str, services: VaultServices) -> DocumentMetadata:
    metadata = services.metadata.get_file_cache(path)
    if metadata is None:
        raise MetadataUnavailable.for_path(path)
    return metadata


async def build_thread(
    path: str,
    text: str,
    cursor_line: int,
    system_message: str,
    services: VaultServices,
    *,
    metadata: DocumentMetadata | None = None,
    max_edge: int = DEFAULT_MAX_EDGE,
) -> ThreadResult:
    """Build the conversation for the heading path enclosing ``cursor_line``.

    Args:
        path: Vault path of the note, used to resolve relative embeds.
        text: Current note text; heading and embed offsets refer to it.
        cursor_line: Zero-based line of the caret.
        system_message: Content of the leading system turn.
        services: Collaborators for metadata, links, reading and images.
        metadata: Pre-computed structure of ``text``; looked up when omitted.
        max_edge: Longest image edge, in pixels, for embedded images.

    Raises:
        MetadataUnavailable: The note's structure could not be obtained.
        NoHeadingsFound: No heading starts at or above ``cursor_line``.
    """

    if metadata is None:
        metadata = require_metadata(path, services)
    headings = metadata.headings
    heading_path = get_enclosing_path(headings, cursor_line)
    if not heading_path:
        raise NoHeadingsFound(details={"path": path, "cursor_line": cursor_line})

    buffer = TextBuffer(text)
    messages: list[Message] = [Message.system(system_message)]
    range_end = EditorPosition(0, 0)
    for index in heading_path:
        heading = headings[index]
        heading_range = get_range_for_heading(headings, index, buffer)
        range_end = heading_range.range_end
        if classify_role(heading.text) == "assistant":
            body = buffer.get_range(EditorPosition(heading.end_line + 1, 0), range_end)
            messages.append(Message.assistant(body))
            continue
        parts = await build_parts(
            text,
            heading_range.content_start,
            heading_range.content_end,
            metadata.embeds,
            path,
            services,
            image_mode=ImageMode.BOUNDED,
            max_edge=max_edge,
        )
        messages.append(Message.user(parts))

    last_heading = headings[heading_path[-1]]
    LOGGER.debug(
        "Built thread for %s: %d messages, reply at line %d",
        path,
        len(messages),
        range_end.line,
    )
    return ThreadResult(messages=tuple(messages), last_heading=last_heading, range_end=range_end)


async def build_range_content_parts(
    start_offset: int | None,
    end_offset: int | None,
    path: str,
    services: VaultServices,
    *,
    text: str | None = None,
    image_mode: ImageMode = ImageMode.BOUNDED,
    max_edge: int = DEFAULT_MAX_EDGE,
) -> list[ContentPart]:
    """Resolve ``[start_offset, end_offset)`` of a note into content parts.

    ``None`` bounds select the whole document. When ``text`` is omitted the
    note is read through the reader collaborator.
    """

    metadata = require_metadata(path, services)
    if text is None:
        file = services.links.get_file(path)
        if file is None:
            raise MetadataUnavailable.for_path(path)
        text = await services.reader.read_text(file)
    start = 0 if start_offset is None else start_offset
    end = len(text) if end_offset is None else end_offset
    return await build_parts(
        text,
        start,
        end,
        metadata.embeds,
        path,
        services,
        image_mode=image_mode,
        max_edge=max_edge,
    )


async def build_selection_thread(
    path: str,
    text: str,
    start_offset: int,
    end_offset: int,
    system_message: str,
    services: VaultServices,
    *,
    image_mode: ImageMode = ImageMode.BOUNDED,
    max_edge: int = DEFAULT_MAX_EDGE,
) -> list[Message]:
    """Build ``[system, user]`` where the user turn is the selected span."""

    parts = await build_range_content_parts(
        start_offset,
        end_offset,
        path,
        services,
        text=text,
        image_mode=image_mode,
        max_edge=max_edge,
    )
    return [Message.system(system_message), Message.user(parts)]


async def build_system_prompt(
    system_prompt: str,
    system_prompt_file: str | None,
    services: VaultServices,
) -> str:
    """Return the system prompt, transcluding ``system_prompt_file`` when configured.

    Markdown prompt files have their embeds resolved; any other file is read
    as plain text. A file that cannot be found or read leaves the configured
    prompt in place.
    """

    if not system_prompt_file:
        return system_prompt
    file = services.links.get_file(system_prompt_file) or services.links.resolve_link(system_prompt_file, "")
    if file is None:
        LOGGER.warning("System prompt file %r not found; using the configured prompt", system_prompt_file)
        return system_prompt
    if not is_markdown_file(file):
        try:
            return (await services.reader.read_text(file)).strip()
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Could not read system prompt file %s: %s", file.path, exc)
            return system_prompt
    try:
        parts = await build_range_content_parts(None, None, file.path, services)
    except MetadataUnavailable as exc:
        LOGGER.warning("System prompt file %s is unusable: %s", file.path, exc)
        return system_prompt
    texts = [part.text for part in parts if isinstance(part, TextPart)]
    if len(texts) != len(parts):
        LOGGER.info("Dropped %d non-text parts from system prompt %s", len(parts) - len(texts), file.path)
    return "\n\n".join(texts)


__all__ = [
    "ASSISTANT_PREFIXES",
    "ThreadResult",
    "build_range_content_parts",
    "build_selection_thread",
    "build_system_prompt",
    "build_thread",
    "classify_role",
    "require_metadata",
]
