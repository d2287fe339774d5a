"""Google Gemini provider via the Gemini API (API key).

Single-turn text generation only: the assistant commands send a system
prompt plus one user turn and read back the text parts.
"""

import asyncio
import logging
import re
from typing import Optional

import httpx

from .provider import (
    LLMProvider,
    ChatMessage,
    ChatResponse,
    LLMRateLimitError,
    LLMAuthError,
    LLMBadRequestError,
    LLMEmptyResponseError,
)

logger = logging.getLogger("jarvis.llm.gemini")

_GEMINI_API = "https://generativelanguage.googleapis.com/v1beta"

_MAX_RETRIES = 3
_BASE_DELAY_MS = 1_000
_MAX_RETRY_DELAY_MS = 60_000

_RETRYABLE_PATTERN = re.compile(
    r"resource.?exhausted|overloaded|unavailable|try again later", re.IGNORECASE,
)
_RETRY_DELAY_RE = re.compile(r'"retryDelay"\s*:\s*"(\d+(?:\.\d+)?)s"')


def _is_retryable_error(status: int, error_text: str) -> bool:
    """429 and 5xx are retryable. 400 Bad Request is not."""
    if status in (429, 500, 502, 503, 504):
        return True
    return bool(_RETRYABLE_PATTERN.search(error_text))


def _extract_retry_delay(error_text: str, headers) -> Optional[int]:
    """Server-requested delay in ms, from Retry-After or the error body."""
    retry_after = headers.get("retry-after") if headers else None
    if retry_after:
        try:
            return int(float(retry_after) * 1000)
        except ValueError:
            pass
    m = _RETRY_DELAY_RE.search(error_text or "")
    if m:
        return int(float(m.group(1)) * 1000)
    return None


def _format_messages(messages: list[ChatMessage]) -> tuple[str, list[dict]]:
    """Split into (system text, Gemini contents)."""
    system_parts = []
    contents = []
    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
            continue
        role = "model" if msg.role == "assistant" else "user"
        if not msg.content:
            continue
        contents.append({"role": role, "parts": [{"text": msg.content}]})
    return "\n\n".join(system_parts), contents


class GeminiProvider(LLMProvider):

    def __init__(
        self,
        api_key: str,
        chat_model: str = "gemini-2.0-flash",
        timeout: float = 60.0,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.chat_model = chat_model
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "google"

    async def chat(
        self,
        messages: list[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        model = model or self.chat_model
        system_text, contents = _format_messages(messages)

        body: dict = {"contents": contents}
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}

        gen_config: dict = {}
        if temperature is not None:
            gen_config["temperature"] = temperature
        if max_tokens:
            gen_config["maxOutputTokens"] = max_tokens
        if gen_config:
            body["generationConfig"] = gen_config

        url = f"{_GEMINI_API}/models/{model}:generateContent"
        data = await self._post(url, body)

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise LLMEmptyResponseError(f"Gemini returned no candidates for {model}: {feedback}")

        parts = candidates[0].get("content", {}).get("parts", [])
        text_parts = [
            p["text"] for p in parts
            if "text" in p and not p.get("thought") and p["text"].strip()
        ]
        if not text_parts:
            raise LLMEmptyResponseError(f"Gemini returned an empty response for {model}")

        usage = data.get("usageMetadata", {})
        return ChatResponse(
            content="".join(text_parts),
            model=model,
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
        )

    async def _post(self, url: str, body: dict) -> dict:
        """POST with retry on 429/5xx. Final failures are mapped to LLM errors."""
        for attempt in range(_MAX_RETRIES + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(url, json=body, params={"key": self.api_key})
                    resp.raise_for_status()
                    return resp.json()

            except httpx.HTTPStatusError as e:
                error_text = e.response.text
                status = e.response.status_code

                if attempt < _MAX_RETRIES and _is_retryable_error(status, error_text):
                    server_delay = _extract_retry_delay(error_text, e.response.headers)
                    if server_delay and server_delay > _MAX_RETRY_DELAY_MS:
                        raise LLMRateLimitError(
                            f"Rate limited ({status}). Server requested "
                            f"{server_delay // 1000}s wait (max {_MAX_RETRY_DELAY_MS // 1000}s)."
                        ) from e
                    delay_ms = server_delay or _BASE_DELAY_MS * (2 ** attempt)
                    logger.warning(
                        f"Gemini {status}, retrying in {delay_ms}ms "
                        f"(attempt {attempt + 1}/{_MAX_RETRIES + 1})"
                    )
                    await asyncio.sleep(delay_ms / 1000)
                    continue

                if status == 429:
                    raise LLMRateLimitError(f"Rate limited (429) after {attempt + 1} attempts.") from e
                elif status in (401, 403):
                    raise LLMAuthError(f"Authentication failed ({status}): {error_text[:200]}") from e
                elif status == 400:
                    logger.error(f"Gemini 400 Bad Request: {error_text[:2000]}")
                    raise LLMBadRequestError(f"Bad request (400): {error_text[:500]}") from e
                else:
                    raise

            except (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout) as e:
                if attempt < _MAX_RETRIES:
                    delay_ms = _BASE_DELAY_MS * (2 ** attempt)
                    logger.warning(f"Gemini network error: {e}, retrying in {delay_ms}ms")
                    await asyncio.sleep(delay_ms / 1000)
                    continue
                raise

        raise LLMRateLimitError(f"Gemini request failed after {_MAX_RETRIES + 1} attempts")
