"""LLM-backed chat helpers: summarize recent messages, answer a question."""

import logging
from datetime import datetime
from typing import Optional

from .buffer import MessageBuffer, BufferedMessage
from .formatting import markdown_to_whatsapp
from .llm.provider import LLMProvider, ChatMessage

logger = logging.getLogger("jarvis.assistant")

NOT_CONFIGURED_TEXT = "The assistant is not configured. Ask the owner to set a Gemini API key."
NOTHING_TO_SUMMARIZE_TEXT = "Nothing to summarize yet."
ASK_USAGE_TEXT = "Usage: ask <question>"

_SUMMARY_PROMPT = (
    "You summarize WhatsApp group conversations. Write a short summary of the "
    "transcript: the main topics, any decisions, and open questions. Mention "
    "people by the names shown. Keep it under 12 lines."
)

_ASK_PROMPT = (
    "You are Jarvis, a helpful assistant inside a WhatsApp chat. Answer "
    "concisely. Plain text or simple markdown only."
)


def render_transcript(messages: list[BufferedMessage]) -> str:
    lines = []
    for m in messages:
        ts = datetime.fromtimestamp(m.timestamp).strftime("%H:%M")
        lines.append(f"[{ts}] {m.sender}: {m.text}")
    return "\n".join(lines)


class Assistant:

    def __init__(
        self,
        provider: Optional[LLMProvider],
        buffer: MessageBuffer,
        temperature: float = 0.7,
        max_tokens: Optional[int] = 1024,
    ):
        self.provider = provider
        self.buffer = buffer
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    async def summarize(self, scope: str, k: int) -> str:
        """Summarize the last `k` buffered messages of a scope."""
        if not self.enabled:
            return NOT_CONFIGURED_TEXT

        k = max(1, min(k, self.buffer.capacity))
        messages = self.buffer.recent(scope, k)
        if not messages:
            return NOTHING_TO_SUMMARIZE_TEXT

        logger.info(f"Summarizing {len(messages)} message(s) in {scope}")
        response = await self.provider.chat(
            [
                ChatMessage(role="system", content=_SUMMARY_PROMPT),
                ChatMessage(role="user", content=render_transcript(messages)),
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return markdown_to_whatsapp(response.content.strip())

    async def ask(self, question: str, context: Optional[str] = None) -> str:
        """Single-turn answer. `context` is quoted text the question refers to."""
        question = (question or "").strip()
        if not question:
            return ASK_USAGE_TEXT
        if not self.enabled:
            return NOT_CONFIGURED_TEXT

        prompt = question
        if context:
            prompt = f"Context:\n{context}\n\nQuestion: {question}"

        response = await self.provider.chat(
            [
                ChatMessage(role="system", content=_ASK_PROMPT),
                ChatMessage(role="user", content=prompt),
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        logger.debug(f"ask: {response.input_tokens} in / {response.output_tokens} out")
        return markdown_to_whatsapp(response.content.strip())
