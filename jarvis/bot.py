"""JarvisBot — turns inbound chat messages into command invocations."""

import logging
from typing import Optional

from .assistant import Assistant
from .buffer import MessageBuffer
from .commands import CommandContext, CommandRegistry, build_registry, parse_command
from .config import JarvisSettings
from .dispatch import TagDispatcher
from .errors import Unauthorized, classify_error
from .identity import local_part
from .models import InboundMessage, OutboundMessage, Roster
from .permissions import check_direct, require
from .store import MembershipStore

logger = logging.getLogger("jarvis.bot")

GROUP_ONLY_TEXT = "This command only works in groups."


class JarvisBot:
    """Command pipeline. One instance per process.

    `transport` is the WhatsApp bridge (or a test double) and must provide:
        async send(scope_id, OutboundMessage) -> bool
        async get_roster(scope_id) -> Optional[Roster]
        async download_media(chat_id, message_id) -> Optional[bytes]
        own_id -> Optional[str]
    """

    def __init__(
        self,
        settings: JarvisSettings,
        transport,
        store: MembershipStore,
        assistant: Optional[Assistant] = None,
        buffer: Optional[MessageBuffer] = None,
        registry: Optional[CommandRegistry] = None,
        dispatcher: Optional[TagDispatcher] = None,
    ):
        self.settings = settings
        self.transport = transport
        self.store = store
        if buffer is None:
            buffer = MessageBuffer(settings.buffer_capacity, settings.buffer_max_scopes)
        self.buffer = buffer
        self.assistant = assistant or Assistant(None, self.buffer)
        self.registry = registry or build_registry()
        self.dispatcher = dispatcher or TagDispatcher(
            send=transport.send,
            own_id=lambda: transport.own_id,
            batch_size=settings.batch_size,
            batch_delay=settings.batch_delay,
        )
        self._owners = settings.owner_ids

    def _record(self, message: InboundMessage):
        text = message.text.strip()
        if not text or text.startswith(self.settings.command_prefix):
            return
        sender = message.push_name or local_part(message.sender_id)
        self.buffer.record(message.scope_id, sender, text, message.timestamp or None)

    async def _reply(self, message: InboundMessage, text: str):
        try:
            await self.transport.send(
                message.scope_id,
                OutboundMessage(text=text, quoted_message_id=message.message_id),
            )
        except Exception as e:
            logger.error(f"Reply to {message.scope_id} failed: {e}")

    async def _fetch_roster(self, scope_id: str) -> Optional[Roster]:
        try:
            return await self.transport.get_roster(scope_id)
        except Exception as e:
            logger.warning(f"Roster fetch failed for {scope_id}: {e}")
            return None

    async def handle(self, message: InboundMessage):
        """Process one inbound message end to end. Never raises."""
        if message.from_me:
            return

        if not message.is_group and not check_direct(message.sender_id, self._owners):
            return

        self._record(message)

        parsed = parse_command(
            message.text,
            prefix=self.settings.command_prefix,
            mirror_prefix=self.settings.mirror_prefix,
        )
        if parsed is None:
            return

        match = self.registry.resolve(parsed)
        if match is None:
            logger.debug(f"Unknown command '{parsed.keyword}' in {message.scope_id}")
            await self._reply(
                message,
                f"Unknown command '{parsed.keyword}'. Send {self.settings.command_prefix}help for the list.",
            )
            return
        command, args, rest = match

        if command.group_only and not message.is_group:
            await self._reply(message, GROUP_ONLY_TEXT)
            return

        roster = None
        if message.is_group and command.needs_roster:
            roster = await self._fetch_roster(message.scope_id)

        ctx = CommandContext(bot=self, message=message, roster=roster, args=args, rest=rest)
        action = command.resolve_action(ctx)

        try:
            require(message.sender_id, message.is_group, action, roster, self._owners)
        except Unauthorized as e:
            if e.reason:
                await self._reply(message, classify_error(e))
            return

        logger.info(f"Running '{command.name}' in {message.scope_id}")
        try:
            await command.handler(ctx)
        except Exception as e:
            logger.error(f"Command '{command.name}' failed: {e}", exc_info=True)
            await self._reply(message, classify_error(e))
