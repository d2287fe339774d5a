"""Jarvis configuration management."""

import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .identity import normalize

logger = logging.getLogger("jarvis.config")

MIN_BATCH_DELAY = 0.4


class JarvisSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Gateway (Baileys bridge)
    bridge_url: str = Field(default="ws://localhost:3001", description="WhatsApp bridge WebSocket URL")
    bridge_token: Optional[str] = Field(default=None, description="Shared secret sent with every request")
    request_timeout: float = Field(default=15.0, description="Seconds to wait for a bridge response")
    reconnect_initial: float = Field(default=1.0, description="First reconnect delay (seconds)")
    reconnect_max: float = Field(default=30.0, description="Reconnect delay cap (seconds)")

    # Storage
    store_path: str = Field(default="~/.jarvis/subgroups.json", description="Subgroup store JSON file")

    # Access: comma-separated phone numbers or JIDs
    owners: str = Field(default="", description="Owner identifiers, comma-separated")

    # Command surface
    command_prefix: str = Field(default="!", description="Text command prefix")
    mirror_prefix: str = Field(default="@jarvis", description="Prefix that makes the bot echo text")

    # Tagging
    batch_size: int = Field(default=20, ge=1, description="Mentions per message")
    batch_delay: float = Field(default=0.5, description="Seconds between batches (min 0.4)")

    # Caches
    buffer_capacity: int = Field(default=200, ge=1, description="Messages kept per chat for summarize")
    buffer_max_scopes: int = Field(default=256, ge=1, description="Chats kept in the summarize buffer")
    sent_cache_capacity: int = Field(default=500, ge=1, description="Sent payloads kept for gateway retries")

    # LLM
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API key")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Gemini model name")
    llm_temperature: float = Field(default=0.7, description="Sampling temperature")
    llm_max_tokens: int = Field(default=1024, description="Max output tokens")

    # Runtime
    log_file: str = Field(default="~/jarvis.log", description="Log file path")
    debug: bool = Field(default=False, description="Debug mode")

    model_config = {"env_prefix": "JARVIS_", "env_file": ".env", "extra": "ignore"}

    @field_validator("batch_delay")
    @classmethod
    def _clamp_batch_delay(cls, v: float) -> float:
        return max(MIN_BATCH_DELAY, v)

    @field_validator("command_prefix", "mirror_prefix")
    @classmethod
    def _non_empty_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("prefix must not be empty")
        return v

    @property
    def owner_ids(self) -> list[str]:
        """Configured owners, canonical keys, duplicates dropped."""
        keys = [normalize(o) for o in self.owners.split(",")]
        return list(dict.fromkeys(k for k in keys if k))


def load_settings() -> JarvisSettings:
    """Load settings from environment."""
    settings = JarvisSettings()

    if not settings.owner_ids:
        logger.warning(
            "No owners configured (JARVIS_OWNERS). Direct-message commands "
            "will be ignored for everyone."
        )
    if not settings.gemini_api_key:
        logger.warning("No Gemini API key configured. 'summarize' and 'ask' are disabled.")

    url = settings.bridge_url
    if url and "localhost" not in url and "127.0.0.1" not in url and not settings.bridge_token:
        logger.warning(
            "⚠️ BRIDGE IS NOT LOCALHOST AND HAS NO TOKEN — anyone who can reach "
            "it can read and send messages as this account."
        )

    return settings
