"""Permission gate — who may run what, where.

Direct messages: owners only, for every command. Anyone else is ignored
(logged) before the command is even parsed.

Groups: privileged actions need an owner or a group admin/superadmin
according to a freshly fetched roster. Everything else is open. No roster
(fetch failed) means deny.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .errors import Unauthorized
from .identity import normalize
from .models import Roster

logger = logging.getLogger("jarvis.permissions")


class Action(str, Enum):
    TAG_ALL = "tag_all"
    TAG_SUBGROUP = "tag_subgroup"
    CREATE = "create"
    DELETE = "delete"
    REMOVE = "remove"
    ADD_MEMBERS = "add_members"
    ADD_SELF = "add_self"
    LIST = "list"
    SHOW = "show"
    HELP = "help"
    SUMMARIZE = "summarize"
    ASK = "ask"
    STICKER = "sticker"
    MIRROR = "mirror"


PRIVILEGED_ACTIONS = frozenset({
    Action.TAG_ALL,
    Action.TAG_SUBGROUP,
    Action.CREATE,
    Action.DELETE,
    Action.REMOVE,
    Action.ADD_MEMBERS,
})

DENIED_TEXT = "Only admins can use this command!"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def owner_keys(owners: Iterable[str]) -> frozenset[str]:
    """Canonical keys of the configured owner identifiers."""
    return frozenset(k for k in (normalize(o) for o in owners) if k)


def is_owner(actor: str, owners: Iterable[str]) -> bool:
    key = normalize(actor)
    return bool(key) and key in owner_keys(owners)


def check_direct(actor: str, owners: Iterable[str]) -> Decision:
    """DM gate, applied before any parsing."""
    if is_owner(actor, owners):
        return Decision(True)
    logger.info(f"Ignoring direct message from non-owner {normalize(actor)[:4]}…")
    return Decision(False, "")


def authorize(
    actor: str,
    is_group: bool,
    action: Action,
    roster: Optional[Roster],
    owners: Iterable[str],
) -> Decision:
    """Decide whether `actor` may perform `action` in the current scope."""
    if not is_group:
        return check_direct(actor, owners)

    if action not in PRIVILEGED_ACTIONS:
        return Decision(True)

    if is_owner(actor, owners):
        return Decision(True)

    if roster is None:
        logger.warning(f"Denying {action.value}: roster unavailable")
        return Decision(False, DENIED_TEXT)

    if roster.is_admin(actor):
        return Decision(True)

    logger.info(f"Denied {action.value} for non-admin in {roster.scope_id}")
    return Decision(False, DENIED_TEXT)


def require(
    actor: str,
    is_group: bool,
    action: Action,
    roster: Optional[Roster],
    owners: Iterable[str],
):
    """`authorize()`, raising Unauthorized on denial."""
    decision = authorize(actor, is_group, action, roster, owners)
    if not decision:
        raise Unauthorized(action.value, decision.reason)
