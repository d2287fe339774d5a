"""Tests for the Gemini API provider (HTTP mocked with httpx.MockTransport)."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from jarvis.llm.gemini import GeminiProvider, _extract_retry_delay, _format_messages, _is_retryable_error
from jarvis.llm.provider import (
    ChatMessage,
    LLMAuthError,
    LLMBadRequestError,
    LLMEmptyResponseError,
    LLMRateLimitError,
)

_RealAsyncClient = httpx.AsyncClient


def _mock_client(handler):
    """Patch target that builds real AsyncClients on a mock transport."""
    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return _RealAsyncClient(*args, **kwargs)
    return factory


def _ok(text="Hello!"):
    return httpx.Response(200, json={
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 3},
    })


MESSAGES = [
    ChatMessage(role="system", content="be brief"),
    ChatMessage(role="user", content="hi"),
]


class TestHelpers:

    def test_format_messages(self):
        system, contents = _format_messages(MESSAGES + [ChatMessage(role="assistant", content="yo")])
        assert system == "be brief"
        assert contents == [
            {"role": "user", "parts": [{"text": "hi"}]},
            {"role": "model", "parts": [{"text": "yo"}]},
        ]

    def test_retryable(self):
        assert _is_retryable_error(429, "")
        assert _is_retryable_error(503, "")
        assert not _is_retryable_error(400, "bad")
        assert _is_retryable_error(400, "RESOURCE_EXHAUSTED")

    def test_retry_delay(self):
        assert _extract_retry_delay("", {"retry-after": "2"}) == 2000
        assert _extract_retry_delay('{"retryDelay": "1.5s"}', {}) == 1500
        assert _extract_retry_delay("nothing", {}) is None

    def test_requires_key(self):
        with pytest.raises(ValueError):
            GeminiProvider(api_key="")


class TestChat:

    @pytest.mark.asyncio
    async def test_request_shape_and_response(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return _ok()

        provider = GeminiProvider(api_key="k123", chat_model="gemini-test")
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)):
            resp = await provider.chat(MESSAGES, temperature=0.3, max_tokens=100)

        assert resp.content == "Hello!"
        assert resp.input_tokens == 12 and resp.output_tokens == 3
        assert "models/gemini-test:generateContent" in seen["url"]
        assert "key=k123" in seen["url"]
        assert seen["body"]["systemInstruction"] == {"parts": [{"text": "be brief"}]}
        assert seen["body"]["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 100}

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(503, text="overloaded")
            return _ok("done")

        provider = GeminiProvider(api_key="k")
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)), \
             patch("jarvis.llm.gemini.asyncio.sleep", new_callable=AsyncMock) as sleep:
            resp = await provider.chat(MESSAGES)

        assert resp.content == "done"
        assert len(calls) == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self):
        provider = GeminiProvider(api_key="k")
        handler = lambda request: httpx.Response(429, text="quota")
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)), \
             patch("jarvis.llm.gemini.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(LLMRateLimitError):
                await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_huge_server_delay_fails_fast(self):
        provider = GeminiProvider(api_key="k")
        handler = lambda request: httpx.Response(429, headers={"retry-after": "3600"}, text="quota")
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)), \
             patch("jarvis.llm.gemini.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(LLMRateLimitError):
                await provider.chat(MESSAGES)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_error(self):
        provider = GeminiProvider(api_key="bad")
        handler = lambda request: httpx.Response(403, text="denied")
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)):
            with pytest.raises(LLMAuthError):
                await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_bad_request(self):
        provider = GeminiProvider(api_key="k")
        handler = lambda request: httpx.Response(400, text="invalid argument")
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)):
            with pytest.raises(LLMBadRequestError):
                await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_empty_candidates(self):
        provider = GeminiProvider(api_key="k")
        handler = lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)):
            with pytest.raises(LLMEmptyResponseError):
                await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_thoughts_and_blank_parts_skipped(self):
        provider = GeminiProvider(api_key="k")
        handler = lambda request: httpx.Response(200, json={"candidates": [{"content": {"parts": [
            {"text": "thinking...", "thought": True},
            {"text": "   "},
            {"text": "answer"},
        ]}}]})
        with patch("jarvis.llm.gemini.httpx.AsyncClient", _mock_client(handler)):
            resp = await provider.chat(MESSAGES)
        assert resp.content == "answer"
