"""Subgroup commands: group create/add/remove/delete/list/show/tag."""

import logging
from typing import Optional

from ..errors import SubgroupNotFound
from ..identity import local_part, normalize, to_user_jid
from ..mentions import points_at_someone, targets
from ..models import GLOBAL_SCOPE, Roster
from ..permissions import Action
from .registry import Command, CommandContext, CommandRegistry

logger = logging.getLogger("jarvis.commands.groups")

UNRESOLVED_TEXT = "Couldn't match those people to members of this group."


def _member_id(identifier: str, roster: Optional[Roster]) -> str:
    """Stored form of a participant: the roster's id when known, else full address."""
    if roster:
        p = roster.find(identifier)
        if p:
            return p.id
    return to_user_jid(identifier)


def _name_arg(ctx: CommandContext) -> Optional[str]:
    return ctx.args[0].lower() if ctx.args else None


def _after_name(ctx: CommandContext) -> str:
    parts = ctx.rest.split(None, 1)
    return parts[1] if len(parts) > 1 else ""


def _add_targets(ctx: CommandContext) -> list[str]:
    found = targets(ctx.message, ctx.roster, _after_name(ctx))
    return [_member_id(i, ctx.roster) for i in found]


def _add_action(ctx: CommandContext) -> Action:
    """Adding only yourself is open to everyone; adding others is privileged."""
    sender_key = normalize(ctx.message.sender_id)
    others = [i for i in _add_targets(ctx) if normalize(i) != sender_key]
    return Action.ADD_MEMBERS if others else Action.ADD_SELF


def _format_members(members: list[str]) -> str:
    return "\n".join(f"• {local_part(m)}" for m in members)


async def cmd_create(ctx: CommandContext):
    name = _name_arg(ctx)
    if not name:
        await ctx.reply("Usage: group create <name>")
        return
    await ctx.bot.store.create(ctx.scope, name)
    await ctx.reply(f"Subgroup '{name}' created.")


async def cmd_add(ctx: CommandContext):
    name = _name_arg(ctx)
    if not name:
        await ctx.reply("Usage: group add <name> [@members | numbers]")
        return

    ids = _add_targets(ctx)
    if not ids and points_at_someone(ctx.message):
        await ctx.reply(UNRESOLVED_TEXT)
        return
    if not ids:
        ids = [_member_id(ctx.message.sender_id, ctx.roster)]

    try:
        added = await ctx.bot.store.add(ctx.scope, name, ids)
    except SubgroupNotFound:
        await ctx.reply(f"Subgroup '{name}' does not exist. Ask an admin to create it first.")
        return

    if added:
        await ctx.reply(f"Added {len(added)} member(s) to '{name}'.")
    else:
        await ctx.reply(f"Already in '{name}'.")


async def cmd_remove(ctx: CommandContext):
    name = _name_arg(ctx)
    if not name:
        await ctx.reply("Usage: group remove <name> <@members | numbers>")
        return

    ids = _add_targets(ctx)
    if not ids and points_at_someone(ctx.message):
        await ctx.reply(UNRESOLVED_TEXT)
        return
    if not ids:
        await ctx.reply("Mention, quote or type the numbers to remove.")
        return

    removed = await ctx.bot.store.remove(ctx.scope, name, ids)
    if removed:
        await ctx.reply(f"Removed {len(removed)} member(s) from '{name}'.")
    else:
        await ctx.reply(f"None of them were in '{name}'.")


async def cmd_delete(ctx: CommandContext):
    name = _name_arg(ctx)
    if not name:
        await ctx.reply("Usage: group delete <name>")
        return
    await ctx.bot.store.delete(ctx.scope, name)
    await ctx.reply(f"Subgroup '{name}' deleted.")


async def cmd_list(ctx: CommandContext):
    store = ctx.bot.store
    lines = []

    local = await store.list(ctx.scope)
    for name, count in local:
        lines.append(f"• {name} ({count})")

    if ctx.scope != GLOBAL_SCOPE:
        shared = [(n, c) for n, c in await store.list(GLOBAL_SCOPE) if n not in dict(local)]
        if shared:
            lines.append("")
            lines.append("*Global*")
            lines.extend(f"• {name} ({count})" for name, count in shared)

    if not lines:
        await ctx.reply("No subgroups yet. Create one with group create <name>.")
        return
    await ctx.reply("*Subgroups*\n" + "\n".join(lines))


async def cmd_show(ctx: CommandContext):
    name = _name_arg(ctx)
    if not name:
        await ctx.reply("Usage: group show <name>")
        return
    found_scope, members = await ctx.bot.store.lookup(ctx.scope, name)
    suffix = " (global)" if found_scope != ctx.scope else ""
    await ctx.reply(f"*{name}*{suffix} — {len(members)} member(s)\n{_format_members(members)}")


async def cmd_tag(ctx: CommandContext):
    name = _name_arg(ctx)
    if not name:
        await ctx.reply("Usage: group tag <name>  (or tag<name>)")
        return
    _, members = await ctx.bot.store.lookup(ctx.scope, name)
    await ctx.bot.dispatcher.dispatch(
        ctx.message.scope_id,
        members,
        ctx.roster,
        quoted_message_id=ctx.message.message_id,
        header=f"📢 {name}",
    )


def register(registry: CommandRegistry):
    """Register subgroup commands."""
    category = "Subgroups"
    registry.register(Command(
        name="group create", handler=cmd_create, action=Action.CREATE,
        usage="group create <name>", description="Create an empty subgroup (admin)",
        category=category,
    ))
    registry.register(Command(
        name="group add", handler=cmd_add, action=Action.ADD_MEMBERS, action_for=_add_action,
        usage="group add <name> [members]", description="Join a subgroup, or add others (admin)",
        category=category,
    ))
    registry.register(Command(
        name="group remove", handler=cmd_remove, action=Action.REMOVE,
        usage="group remove <name> <members>", description="Remove members (admin)",
        category=category,
    ))
    registry.register(Command(
        name="group delete", handler=cmd_delete, action=Action.DELETE,
        usage="group delete <name>", description="Delete a subgroup (admin)",
        category=category,
    ))
    registry.register(Command(
        name="group list", handler=cmd_list, action=Action.LIST,
        usage="group list", description="List subgroups",
        needs_roster=False, category=category,
    ))
    registry.register(Command(
        name="group show", handler=cmd_show, action=Action.SHOW,
        usage="group show <name>", description="Show subgroup members",
        needs_roster=False, category=category,
    ))
    registry.register(Command(
        name="group tag", handler=cmd_tag, action=Action.TAG_SUBGROUP,
        usage="group tag <name> | tag<name>", description="Mention everyone in a subgroup (admin)",
        group_only=True, category=category,
    ))
