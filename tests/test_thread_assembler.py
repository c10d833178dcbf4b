"""Tests for :mod:`mdthread.thread.assembler`."""

from __future__ import annotations

import pytest

from mdthread.core.ranges import EditorPosition
from mdthread.thread.assembler import (
    build_range_content_parts,
    build_selection_thread,
    build_system_prompt,
    build_thread,
    classify_role,
)
from mdthread.thread.content_parts import ImageMode
from mdthread.thread.errors import MetadataUnavailable, NoHeadingsFound
from mdthread.thread.messages import ImageBufferPart, ImagePart, Message, TextPart
from tests.helpers import MemoryVault, StubRasterizer, make_services

CONVERSATION = "# Q\nHello\n\n## AI\nHi there\n\n### Q2\nBye"


@pytest.mark.parametrize(
    "heading",
    ["AI: follow-up", "ai quick check", "Assistant notes", "Aiden's question", "AI-generated", "ASSISTANT"],
)
def test_assistant_prefixes_are_case_insensitive_and_loose(heading: str) -> None:
    assert classify_role(heading) == "assistant"


@pytest.mark.parametrize("heading", ["Q", "User", "Question for AI", "", "Said the assistant"])
def test_other_headings_are_user_turns(heading: str) -> None:
    assert classify_role(heading) == "user"


@pytest.mark.asyncio
async def test_end_to_end_conversation_for_cursor_on_last_line() -> None:
    vault = MemoryVault({"chat.md": CONVERSATION})

    result = await build_thread("chat.md", CONVERSATION, 7, "be helpful", make_services(vault))

    assert [message.role for message in result.messages] == ["system", "user", "assistant", "user"]
    system, first, reply, last = result.messages
    assert system == Message.system("be helpful")
    assert first.content == (TextPart("Hello"),)
    # assistant turns are the literal lines up to the reply position
    assert reply.content == "Hi there\n"
    assert reply.content.strip() == "Hi there"
    assert last.content == (TextPart("Bye"),)
    assert result.last_heading.text == "Q2"
    assert result.range_end == EditorPosition(7, 3)


@pytest.mark.asyncio
async def test_cursor_in_middle_section_stops_at_its_heading() -> None:
    vault = MemoryVault({"chat.md": CONVERSATION})

    result = await build_thread("chat.md", CONVERSATION, 4, "sys", make_services(vault))

    assert [message.role for message in result.messages] == ["system", "user", "assistant"]
    assert result.last_heading.text == "AI"
    assert result.range_end == EditorPosition(5, 0)


@pytest.mark.asyncio
async def test_sibling_sections_are_not_part_of_the_thread() -> None:
    text = "# Topic\nroot\n## First\nfirst q\n## Second\nsecond q\n"
    vault = MemoryVault({"t.md": text})

    result = await build_thread("t.md", text, 5, "sys", make_services(vault))

    assert [message.text for message in result.messages[1:]] == ["root", "second q"]


@pytest.mark.asyncio
async def test_assistant_embeds_stay_as_raw_markdown() -> None:
    text = "# Q\nshow me\n## AI\nHere: ![[cat.png]]\n### Q2\nthanks ![[cat.png]]"
    vault = MemoryVault({"t.md": text, "cat.png": b"png"})
    rasterizer = StubRasterizer()

    result = await build_thread("t.md", text, 5, "sys", make_services(vault, rasterizer))

    assert result.messages[2].content == "Here: ![[cat.png]]"
    user_parts = result.messages[3].content
    assert isinstance(user_parts, tuple)
    assert [type(part) for part in user_parts] == [TextPart, ImagePart]
    assert rasterizer.calls == [("cat.png", 1568)]


@pytest.mark.asyncio
async def test_cursor_above_first_heading_raises_no_headings_found() -> None:
    text = "preamble\n# Heading\nbody"
    vault = MemoryVault({"t.md": text})

    with pytest.raises(NoHeadingsFound) as excinfo:
        await build_thread("t.md", text, 0, "sys", make_services(vault))

    assert excinfo.value.recoverable
    assert excinfo.value.to_dict()["error"] == "no_headings_found"


@pytest.mark.asyncio
async def test_missing_metadata_is_fatal() -> None:
    vault = MemoryVault({"t.md": CONVERSATION})
    vault.missing_metadata.add("t.md")

    with pytest.raises(MetadataUnavailable):
        await build_thread("t.md", CONVERSATION, 7, "sys", make_services(vault))
    with pytest.raises(MetadataUnavailable):
        await build_range_content_parts(None, None, "t.md", make_services(vault))


@pytest.mark.asyncio
async def test_reply_scaffolding_nests_under_last_heading() -> None:
    vault = MemoryVault({"chat.md": CONVERSATION})

    result = await build_thread("chat.md", CONVERSATION, 7, "sys", make_services(vault))

    assert result.reply_heading() == "\n\n#### AI\n"
    assert result.follow_up_heading() == "\n\n##### User\n"


@pytest.mark.asyncio
async def test_to_params_produces_openai_message_dicts() -> None:
    text = "# Q\nlook ![[cat.png]]"
    vault = MemoryVault({"t.md": text, "cat.png": b"png"})

    result = await build_thread("t.md", text, 1, "sys", make_services(vault))

    assert result.to_params() == [
        {"role": "system", "content": "sys"},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "look"},
                {"type": "image_url", "image_url": {"url": "data:image/webp;base64,cat"}},
            ],
        },
    ]


@pytest.mark.asyncio
async def test_whole_document_range_reads_note_when_text_omitted() -> None:
    vault = MemoryVault({"prompt.md": "Be terse.\n![[style]]", "style.md": "Use lists."})

    parts = await build_range_content_parts(None, None, "prompt.md", make_services(vault))

    assert parts == [TextPart("Be terse."), TextPart("Use lists.")]
    assert vault.reads["prompt.md"] == 1


@pytest.mark.asyncio
async def test_selection_thread_wraps_selected_span() -> None:
    text = "# Notes\nignore this\nkeep ![[pic.jpg]] this\n"
    vault = MemoryVault({"n.md": text, "pic.jpg": b"jpg-bytes"})
    start = text.index("keep")
    end = len(text)

    messages = await build_selection_thread(
        "n.md", text, start, end, "sys", make_services(vault), image_mode=ImageMode.RAW
    )

    assert messages[0] == Message.system("sys")
    assert messages[1].content == (
        TextPart("keep"),
        ImageBufferPart(data=b"jpg-bytes", mime_type="image/jpeg", name="pic.jpg"),
        TextPart("this"),
    )


@pytest.mark.asyncio
async def test_system_prompt_file_is_transcluded_and_images_dropped() -> None:
    vault = MemoryVault(
        {
            "prompts/system.md": "You are terse.\n![[logo.png]]\n![[rules]]",
            "prompts/rules.md": "Never use headings.",
            "prompts/logo.png": b"png",
        }
    )
    services = make_services(vault)

    prompt = await build_system_prompt("fallback", "prompts/system.md", services)

    assert prompt == "You are terse.\n\nNever use headings."
    assert await build_system_prompt("fallback", None, services) == "fallback"
    assert await build_system_prompt("fallback", "missing.md", services) == "fallback"


@pytest.mark.asyncio
async def test_system_prompt_from_non_markdown_files() -> None:
    vault = MemoryVault(
        {
            "prompt.txt": "  Plain prompt with ![[ignored.png]]\n",
            "broken.txt": b"\xff\xfe",
            "note.md": "x",
        }
    )
    vault.missing_metadata.add("note.md")
    services = make_services(vault, StubRasterizer())

    assert await build_system_prompt("fallback", "prompt.txt", services) == "Plain prompt with ![[ignored.png]]"
    assert await build_system_prompt("fallback", "broken.txt", services) == "fallback"
    assert await build_system_prompt("fallback", "note.md", services) == "fallback"
