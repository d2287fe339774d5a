"""Shared utilities for Jarvis CLI commands."""

from rich.console import Console

from jarvis.config import JarvisSettings, load_settings
from jarvis.store import MembershipStore

console = Console()


def _get_settings() -> JarvisSettings:
    return load_settings()


def _get_store(settings: JarvisSettings | None = None) -> MembershipStore:
    """Store at the configured path."""
    settings = settings or _get_settings()
    return MembershipStore(settings.store_path)
