"""Command registry — keyword → handler table."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..formatting import split_message
from ..models import InboundMessage, OutboundMessage, Roster
from ..permissions import Action

if TYPE_CHECKING:
    from ..bot import JarvisBot

logger = logging.getLogger("jarvis.commands.registry")

MIRROR_KEYWORD = "mirror"
SHORTCUT_PREFIX = "tag"
SHORTCUT_TARGET = "group tag"


@dataclass
class ParsedCommand:
    keyword: str
    args: list[str]
    rest: str           # raw argument text after the keyword


def _drop_first_token(text: str) -> str:
    parts = text.split(None, 1)
    return parts[1] if len(parts) > 1 else ""


def parse_command(text: str, prefix: str = "!", mirror_prefix: str = "@jarvis") -> Optional[ParsedCommand]:
    """Split a chat line into keyword + arguments, or None if it isn't a command."""
    text = (text or "").strip()
    if not text:
        return None

    if mirror_prefix and text.lower().startswith(mirror_prefix.lower()):
        rest = text[len(mirror_prefix):].strip()
        return ParsedCommand(MIRROR_KEYWORD, rest.split(), rest)

    if not prefix or not text.startswith(prefix):
        return None

    body = text[len(prefix):].strip()
    if not body:
        return None
    tokens = body.split()
    return ParsedCommand(tokens[0].lower(), tokens[1:], _drop_first_token(body))


@dataclass
class CommandContext:
    """Everything a handler needs for one invocation."""
    bot: "JarvisBot"
    message: InboundMessage
    roster: Optional[Roster]
    args: list[str] = field(default_factory=list)
    rest: str = ""

    @property
    def scope(self) -> str:
        """Store scope for this chat (group JID or global)."""
        return self.message.scope_key

    async def reply(self, text: str, mentions: Optional[list[str]] = None) -> bool:
        """Send text back to the chat, quoting the command message."""
        ok = True
        for chunk in split_message(text):
            sent = await self.bot.transport.send(
                self.message.scope_id,
                OutboundMessage(
                    text=chunk,
                    mentions=mentions or [],
                    quoted_message_id=self.message.message_id,
                ),
            )
            ok = ok and sent
        return ok


Handler = Callable[[CommandContext], Awaitable[None]]


@dataclass
class Command:
    name: str
    handler: Handler
    action: Action
    usage: str = ""
    description: str = ""
    group_only: bool = False
    needs_roster: bool = True
    hidden: bool = False
    category: str = "General"
    action_for: Optional[Callable[[CommandContext], Action]] = None

    def resolve_action(self, ctx: CommandContext) -> Action:
        if self.action_for is not None:
            return self.action_for(ctx)
        return self.action


class CommandRegistry:
    """Manages the chat command table."""

    def __init__(self):
        self._commands: dict[str, Command] = {}

    def register(self, command: Command):
        key = command.name.lower()
        if key in self._commands:
            logger.warning(f"Command '{key}' registered twice, replacing")
        self._commands[key] = command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name.lower())

    def list_commands(self, include_hidden: bool = False) -> list[Command]:
        return [c for c in self._commands.values() if include_hidden or not c.hidden]

    def resolve(self, parsed: ParsedCommand) -> Optional[tuple[Command, list[str], str]]:
        """Find the command for a parsed line.

        Two-word keys ("group add") win over one-word ones. `tag<name>` falls
        back to the subgroup tag command when no exact keyword exists.
        """
        keyword = parsed.keyword
        if parsed.args:
            sub = self._commands.get(f"{keyword} {parsed.args[0].lower()}")
            if sub:
                return sub, parsed.args[1:], _drop_first_token(parsed.rest)

        cmd = self._commands.get(keyword)
        if cmd:
            return cmd, parsed.args, parsed.rest

        if keyword.startswith(SHORTCUT_PREFIX) and len(keyword) > len(SHORTCUT_PREFIX):
            target = self._commands.get(SHORTCUT_TARGET)
            if target:
                name = keyword[len(SHORTCUT_PREFIX):]
                return target, [name] + parsed.args, f"{name} {parsed.rest}".strip()

        return None
