"""Tests for summarize / ask."""

from unittest.mock import AsyncMock

import pytest

from jarvis.assistant import (
    ASK_USAGE_TEXT,
    NOT_CONFIGURED_TEXT,
    NOTHING_TO_SUMMARIZE_TEXT,
    Assistant,
    render_transcript,
)
from jarvis.buffer import MessageBuffer
from jarvis.llm.provider import ChatResponse, LLMEmptyResponseError


def _provider(text: str = "**Summary**"):
    provider = AsyncMock()
    provider.chat = AsyncMock(return_value=ChatResponse(content=text, model="gemini-test"))
    return provider


class TestSummarize:

    @pytest.mark.asyncio
    async def test_not_configured(self):
        assistant = Assistant(None, MessageBuffer())
        assert await assistant.summarize("g", 10) == NOT_CONFIGURED_TEXT

    @pytest.mark.asyncio
    async def test_nothing_buffered(self):
        provider = _provider()
        assistant = Assistant(provider, MessageBuffer())
        assert await assistant.summarize("g", 10) == NOTHING_TO_SUMMARIZE_TEXT
        provider.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_last_k_and_formats(self):
        buf = MessageBuffer(capacity=100)
        for i in range(10):
            buf.record("g", "ana", f"line {i}", timestamp=1_700_000_000 + i)
        provider = _provider("**Summary**")
        assistant = Assistant(provider, buf, temperature=0.2, max_tokens=256)

        result = await assistant.summarize("g", 3)

        assert result == "*Summary*"
        messages = provider.chat.await_args.args[0]
        assert messages[0].role == "system"
        transcript = messages[1].content
        assert "line 7" in transcript and "line 9" in transcript
        assert "line 6" not in transcript
        assert provider.chat.await_args.kwargs == {"temperature": 0.2, "max_tokens": 256}

    @pytest.mark.asyncio
    async def test_k_clamped_to_capacity(self):
        buf = MessageBuffer(capacity=5)
        for i in range(5):
            buf.record("g", "ana", f"line {i}")
        provider = _provider()
        await Assistant(provider, buf).summarize("g", 1000)
        assert provider.chat.await_args.args[0][1].content.count("ana:") == 5

    @pytest.mark.asyncio
    async def test_llm_errors_propagate(self):
        buf = MessageBuffer()
        buf.record("g", "ana", "hi")
        provider = _provider()
        provider.chat.side_effect = LLMEmptyResponseError("empty")
        with pytest.raises(LLMEmptyResponseError):
            await Assistant(provider, buf).summarize("g", 5)


class TestAsk:

    @pytest.mark.asyncio
    async def test_empty_question(self):
        assert await Assistant(_provider(), MessageBuffer()).ask("  ") == ASK_USAGE_TEXT

    @pytest.mark.asyncio
    async def test_not_configured(self):
        assert await Assistant(None, MessageBuffer()).ask("why?") == NOT_CONFIGURED_TEXT

    @pytest.mark.asyncio
    async def test_context_included(self):
        provider = _provider("because")
        answer = await Assistant(provider, MessageBuffer()).ask("why?", context="sky is blue")
        assert answer == "because"
        prompt = provider.chat.await_args.args[0][1].content
        assert "sky is blue" in prompt and "why?" in prompt


def test_render_transcript_format():
    buf = MessageBuffer()
    buf.record("g", "ana", "hello", timestamp=1_700_000_000)
    line = render_transcript(buf.recent("g", 1))
    assert line.endswith("] ana: hello")
    assert line.startswith("[")
