"""Jarvis — Main entry point."""

import asyncio
import logging
import os
from typing import Optional

from .assistant import Assistant
from .bot import JarvisBot
from .buffer import MessageBuffer, SentMessageCache
from .channels import WhatsAppBridge
from .config import JarvisSettings, load_settings
from .llm import GeminiProvider
from .store import MembershipStore

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("jarvis")


def setup_logging(log_file: str = "~/jarvis.log", debug: bool = False):
    """Console + file logging. Safe to call more than once."""
    path = os.path.expanduser(log_file)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format=_log_format,
        handlers=[
            logging.StreamHandler(),                       # stderr (console)
            logging.FileHandler(path, encoding="utf-8"),   # ~/jarvis.log
        ],
    )
    if debug:
        logging.getLogger("jarvis").setLevel(logging.DEBUG)


def build_bot(settings: JarvisSettings, bridge: WhatsAppBridge) -> JarvisBot:
    buffer = MessageBuffer(settings.buffer_capacity, settings.buffer_max_scopes)
    provider: Optional[GeminiProvider] = None
    if settings.gemini_api_key:
        provider = GeminiProvider(api_key=settings.gemini_api_key, chat_model=settings.gemini_model)
    assistant = Assistant(
        provider,
        buffer,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    return JarvisBot(
        settings=settings,
        transport=bridge,
        store=MembershipStore(settings.store_path),
        assistant=assistant,
        buffer=buffer,
    )


async def run(debug: bool = False):
    """Main run loop."""
    settings = load_settings()
    setup_logging(settings.log_file, debug=debug or settings.debug)
    if debug:
        settings.debug = True

    bridge = WhatsAppBridge(settings, SentMessageCache(settings.sent_cache_capacity))
    bot = build_bot(settings, bridge)
    bridge.set_handler(bot.handle)

    logger.info(f"Jarvis is running (store: {bot.store.path}). Press Ctrl+C to stop.")
    try:
        await bridge.run()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        await bridge.stop()


def main():
    """Entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
