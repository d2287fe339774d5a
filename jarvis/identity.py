"""Participant identifier helpers.

WhatsApp hands us the same person in several surface forms:

    911234567123@s.whatsapp.net      full address (phone JID)
    911234567123:12@s.whatsapp.net   full address with device suffix
    123456789012345@lid              locally-assigned alias (LID)
    911234567123                     bare number

Everything that compares participants goes through `normalize()` so the
forms above collapse to one canonical numeric key.
"""

import json
import logging
import re
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Roster

logger = logging.getLogger("jarvis.identity")

USER_SUFFIX = "@s.whatsapp.net"
ALIAS_SUFFIX = "@lid"
GROUP_SUFFIX = "@g.us"

_CANONICAL_RE = re.compile(r"\d{6,15}")
_PHONE_RE = re.compile(r"(?<!\d)\d{8,15}(?!\d)")
_PRIVATE_RE = re.compile(r'"\d{10}')


def normalize(identifier: str) -> str:
    """Return the canonical numeric key of an identifier, or "" if it has none."""
    if not identifier:
        return ""
    m = _CANONICAL_RE.search(str(identifier))
    return m.group(0) if m else ""


def local_part(identifier: str) -> str:
    """Address-local part without device suffix: '9112:3@s.whatsapp.net' -> '9112'."""
    if not identifier:
        return ""
    return identifier.split("@", 1)[0].split(":", 1)[0]


def is_alias(identifier: str) -> bool:
    return bool(identifier) and identifier.endswith(ALIAS_SUFFIX)


def is_group_jid(jid: str) -> bool:
    return bool(jid) and jid.endswith(GROUP_SUFFIX)


def to_user_jid(identifier: str) -> str:
    """Full-address form for a bare number or device JID."""
    local = local_part(identifier)
    return f"{local}{USER_SUFFIX}" if local else ""


def same_participant(a: str, b: str) -> bool:
    ka, kb = normalize(a), normalize(b)
    return bool(ka) and ka == kb


def resolve_alias(identifier: str, roster: Optional["Roster"]) -> Optional[str]:
    """Map an alias-form identifier onto the roster's preferred form.

    An exact `lid` match wins. Otherwise the alias digits must be a suffix
    of exactly one participant's canonical key. Unresolvable or ambiguous
    aliases return None; we never guess.
    """
    if not is_alias(identifier):
        return identifier
    if roster is None:
        logger.warning(f"Cannot resolve alias {identifier}: no roster")
        return None

    for p in roster.participants:
        if p.lid and local_part(p.lid) == local_part(identifier):
            return p.id

    digits = local_part(identifier)
    if not digits.isdigit():
        logger.warning(f"Alias {identifier} has no numeric part")
        return None

    matches = [
        p for p in roster.participants
        if not is_alias(p.id) and normalize(p.id).endswith(digits)
    ]
    if len(matches) == 1:
        return matches[0].id
    if len(matches) > 1:
        logger.warning(f"Alias {identifier} is ambiguous ({len(matches)} roster matches), dropping")
    else:
        logger.warning(f"Alias {identifier} not found in roster, dropping")
    return None


def extract_phone_ids(text: str) -> list[str]:
    """Pull 8-15 digit phone numbers out of free text as full addresses.

    Deduplicated, first occurrence order kept.
    """
    seen: set[str] = set()
    result = []
    for m in _PHONE_RE.finditer(text or ""):
        digits = m.group(0)
        if digits in seen:
            continue
        seen.add(digits)
        result.append(f"{digits}{USER_SUFFIX}")
    return result


def mask_private_data(data):
    """Return a copy of a JSON-able structure with phone numbers masked.

    In any string value starting with 10 digits, those ten digits become
    '<first two> XXXXXXX'. Used before logging raw frames.
    """
    raw = json.dumps(data, ensure_ascii=False)
    masked = _PRIVATE_RE.sub(lambda m: f'"{m.group(0)[1:3]} XXXXXXX', raw)
    return json.loads(masked)
