"""Exception hierarchy and user-facing error classification."""

import asyncio

import httpx

from .llm.provider import LLMRateLimitError, LLMAuthError, LLMBadRequestError, LLMEmptyResponseError


class JarvisError(Exception):
    """Base class for all Jarvis errors."""
    pass


# ── Store ─────────────────────────────────────────────────

class StoreError(JarvisError):
    """Membership store failure."""
    pass


class SubgroupNotFound(StoreError):
    """Subgroup name absent (or empty, for display purposes) in a scope."""

    def __init__(self, scope: str, name: str):
        super().__init__(f"Subgroup '{name}' not found in {scope}")
        self.scope = scope
        self.name = name


class SubgroupExists(StoreError):
    """Subgroup name already present in a scope."""

    def __init__(self, scope: str, name: str):
        super().__init__(f"Subgroup '{name}' already exists in {scope}")
        self.scope = scope
        self.name = name


class StoreCorrupted(StoreError):
    """Store document on disk cannot be parsed; refusing to overwrite it."""
    pass


# ── Permissions ───────────────────────────────────────────

class Unauthorized(JarvisError):
    """Actor may not perform the requested action.

    `reason` is the text to show the actor; empty means deny silently.
    """

    def __init__(self, action: str, reason: str = ""):
        super().__init__(f"Not allowed: {action}")
        self.action = action
        self.reason = reason


# ── Transport ─────────────────────────────────────────────

class BridgeError(JarvisError):
    """Any failure talking to the WhatsApp gateway."""
    pass


class BridgeNotConnected(BridgeError):
    pass


class BridgeCommandError(BridgeError):
    """Gateway answered a request with ok=false."""

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code


# ── Media ─────────────────────────────────────────────────

class StickerError(JarvisError):
    """Image could not be turned into a sticker."""
    pass


def classify_error(e: Exception) -> str:
    """Classify any exception into a short plain-text reply for the chat."""
    if isinstance(e, SubgroupNotFound):
        return f"Subgroup '{e.name}' does not exist."
    if isinstance(e, SubgroupExists):
        return f"Subgroup '{e.name}' already exists."
    if isinstance(e, StoreCorrupted):
        return "The subgroup store is damaged. Ask the owner to check it."
    if isinstance(e, Unauthorized):
        return e.reason or "Only admins can use this command!"
    if isinstance(e, StickerError):
        return "Couldn't turn that into a sticker. Send or quote an image."

    if isinstance(e, LLMRateLimitError):
        return "Rate limited. Please wait a moment and try again."
    if isinstance(e, LLMAuthError):
        return "Authentication error. Owner may need to check the API key."
    if isinstance(e, LLMBadRequestError):
        return "The LLM rejected the request."
    if isinstance(e, LLMEmptyResponseError):
        return "Sorry, I couldn't generate a response."

    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        if code == 429:
            return "Rate limited. Please wait a moment and try again."
        if code in (401, 403):
            return "Authentication error. Owner may need to check the API key."
        if 500 <= code < 600:
            return "LLM provider is having server issues. Please try again later."
        return f"LLM provider returned HTTP {code}. Please try again later."
    if isinstance(e, httpx.ConnectError):
        return "Cannot connect to the LLM provider. Please try again."
    if isinstance(e, (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout, httpx.ConnectTimeout)):
        return "Request timed out. Please try again."

    if isinstance(e, BridgeError):
        return "WhatsApp connection problem. Please try again."
    if isinstance(e, asyncio.TimeoutError):
        return "Request timed out. Please try again."

    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
