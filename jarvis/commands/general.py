"""General commands: tagall, help, mirror, summarize, ask, sticker."""

import asyncio
import logging
from collections import OrderedDict

from ..errors import StickerError
from ..models import OutboundMessage
from ..permissions import Action
from ..stickers import make_sticker
from .registry import Command, CommandContext, CommandRegistry

logger = logging.getLogger("jarvis.commands.general")

DEFAULT_SUMMARY_SIZE = 50


async def cmd_tagall(ctx: CommandContext):
    if ctx.roster is None:
        await ctx.reply("Couldn't fetch the group members. Please try again.")
        return
    members = [p.id for p in ctx.roster.participants]
    await ctx.bot.dispatcher.dispatch(
        ctx.message.scope_id,
        members,
        ctx.roster,
        quoted_message_id=ctx.message.message_id,
        crown_admins=True,
    )


async def cmd_help(ctx: CommandContext):
    prefix = ctx.bot.settings.command_prefix
    mirror = ctx.bot.settings.mirror_prefix

    by_category: "OrderedDict[str, list[Command]]" = OrderedDict()
    for cmd in ctx.bot.registry.list_commands():
        by_category.setdefault(cmd.category, []).append(cmd)

    lines = ["*Jarvis commands*"]
    for category, commands in by_category.items():
        lines.append("")
        lines.append(f"*{category}*")
        for cmd in commands:
            lines.append(f"{prefix}{cmd.usage or cmd.name} — {cmd.description}")
    lines.append("")
    lines.append(f"{mirror} <text> — repeat <text>")
    await ctx.reply("\n".join(lines))


async def cmd_mirror(ctx: CommandContext):
    text = ctx.rest.strip()
    if not text:
        return
    await ctx.reply(text)


async def cmd_summarize(ctx: CommandContext):
    k = DEFAULT_SUMMARY_SIZE
    if ctx.args:
        try:
            k = int(ctx.args[0])
        except ValueError:
            await ctx.reply("Usage: summarize [number of messages]")
            return
        if k < 1:
            await ctx.reply("Usage: summarize [number of messages]")
            return
    summary = await ctx.bot.assistant.summarize(ctx.message.scope_id, k)
    await ctx.reply(summary)


async def cmd_ask(ctx: CommandContext):
    context = ctx.message.quoted.text if ctx.message.quoted else None
    answer = await ctx.bot.assistant.ask(ctx.rest, context=context or None)
    await ctx.reply(answer)


async def cmd_sticker(ctx: CommandContext):
    message = ctx.message
    if message.has_image:
        source_id = message.message_id
    elif message.quoted and message.quoted.has_image:
        source_id = message.quoted.message_id
    else:
        await ctx.reply("Send an image with the caption sticker, or quote one.")
        return

    data = await ctx.bot.transport.download_media(message.scope_id, source_id)
    if not data:
        raise StickerError(f"Could not download media {source_id}")

    sticker = await asyncio.to_thread(make_sticker, data)
    await ctx.bot.transport.send(
        message.scope_id,
        OutboundMessage(sticker=sticker, quoted_message_id=message.message_id),
    )


def register(registry: CommandRegistry):
    """Register general commands."""
    registry.register(Command(
        name="tagall", handler=cmd_tagall, action=Action.TAG_ALL,
        usage="tagall", description="Mention everyone in the group (admin)",
        group_only=True, category="Tagging",
    ))
    registry.register(Command(
        name="summarize", handler=cmd_summarize, action=Action.SUMMARIZE,
        usage="summarize [k]", description=f"Summarize the last k messages (default {DEFAULT_SUMMARY_SIZE})",
        needs_roster=False, category="Assistant",
    ))
    registry.register(Command(
        name="ask", handler=cmd_ask, action=Action.ASK,
        usage="ask <question>", description="Ask the assistant",
        needs_roster=False, category="Assistant",
    ))
    registry.register(Command(
        name="sticker", handler=cmd_sticker, action=Action.STICKER,
        usage="sticker", description="Turn an attached or quoted image into a sticker",
        needs_roster=False, category="Media",
    ))
    registry.register(Command(
        name="help", handler=cmd_help, action=Action.HELP,
        usage="help", description="Show this list",
        needs_roster=False,
    ))
    registry.register(Command(
        name="mirror", handler=cmd_mirror, action=Action.MIRROR,
        usage="mirror <text>", description="Repeat text",
        needs_roster=False, hidden=True,
    ))
