"""Message and content-part types produced by the conversation builders."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Literal, Union

from openai.types.chat import (
    ChatCompletionAssistantMessageParam,
    ChatCompletionContentPartImageParam,
    ChatCompletionContentPartParam,
    ChatCompletionContentPartTextParam,
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)

MessageRole = Literal["system", "user", "assistant"]


@dataclass(slots=True, frozen=True)
class TextPart:
    text: str

    def to_param(self) -> ChatCompletionContentPartTextParam:
        return {"type": "text", "text": self.text}


@dataclass(slots=True, frozen=True)
class ImagePart:
    """Size-bounded image encoded as a data URL."""

    data_url: str
    mime_type: str
    width: int
    height: int

    def to_param(self) -> ChatCompletionContentPartImageParam:
        return {"type": "image_url", "image_url": {"url": self.data_url}}


@dataclass(slots=True, frozen=True)
class ImageBufferPart:
    """Unmodified image bytes for upload-style APIs."""

    data: bytes
    mime_type: str
    name: str

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def as_file(self) -> tuple[str, bytes, str]:
        """Return the ``(filename, content, content_type)`` tuple the OpenAI SDK uploads."""

        return (self.name, self.data, self.mime_type)

    def to_param(self) -> ChatCompletionContentPartImageParam:
        return {"type": "image_url", "image_url": {"url": self.data_url}}


ContentPart = Union[TextPart, ImagePart, ImageBufferPart]


@dataclass(slots=True, frozen=True)
class Message:
    """A single conversation turn.

    System and assistant turns always carry a flat string; user turns carry an
    ordered tuple of content parts. The constructors below keep it that way.
    """

    role: MessageRole
    content: Union[str, tuple[ContentPart, ...]]

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls("system", text)

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls("assistant", text)

    @classmethod
    def user(cls, parts: list[ContentPart] | tuple[ContentPart, ...]) -> "Message":
        return cls("user", tuple(parts))

    @property
    def parts(self) -> tuple[ContentPart, ...]:
        if isinstance(self.content, str):
            return (TextPart(self.content),)
        return self.content

    @property
    def text(self) -> str:
        """Return the textual content, joining text parts with blank lines."""

        if isinstance(self.content, str):
            return self.content
        return "\n\n".join(part.text for part in self.content if isinstance(part, TextPart))

    def to_param(self) -> ChatCompletionMessageParam:
        if self.role == "system":
            system: ChatCompletionSystemMessageParam = {"role": "system", "content": self.text}
            return system
        if self.role == "assistant":
            assistant: ChatCompletionAssistantMessageParam = {"role": "assistant", "content": self.text}
            return assistant
        parts: list[ChatCompletionContentPartParam] = [part.to_param() for part in self.parts]
        user: ChatCompletionUserMessageParam = {"role": "user", "content": parts}
        return user


def to_params(messages: list[Message]) -> list[ChatCompletionMessageParam]:
    return [message.to_param() for message in messages]


__all__ = [
    "MessageRole",
    "TextPart",
    "ImagePart",
    "ImageBufferPart",
    "ContentPart",
    "Message",
    "to_params",
]
