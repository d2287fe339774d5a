"""Work out who a command is about.

Priority: structured mentions on the message, then the author of the
quoted message, then nothing. Mutation commands read phone numbers
typed in the text when nothing structured is present (see `targets`).
"""

import logging
from typing import Optional

from .identity import extract_phone_ids, is_alias, normalize, resolve_alias
from .models import InboundMessage, Roster

logger = logging.getLogger("jarvis.mentions")


def _present(identifiers: list[str], roster: Roster) -> list[str]:
    """Keep roster members only, in the roster's form, deduplicated."""
    result = []
    seen = set()
    for ident in identifiers:
        p = roster.find(ident)
        if p is None:
            logger.debug(f"Dropping {ident}: not in roster of {roster.scope_id}")
            continue
        if p.key in seen:
            continue
        seen.add(p.key)
        result.append(p.id)
    return result


def resolve(message: InboundMessage, roster: Optional[Roster]) -> list[str]:
    """Identifiers the message points at, restricted to the roster."""
    if roster is None:
        return []

    if message.mentioned_ids:
        resolved = []
        for ident in message.mentioned_ids:
            if is_alias(ident):
                mapped = resolve_alias(ident, roster)
                if mapped is None:
                    continue
                ident = mapped
            resolved.append(ident)
        found = _present(resolved, roster)
        if found:
            return found

    quoted = message.quoted
    if quoted and quoted.participant:
        participant = quoted.participant
        if is_alias(participant):
            participant = resolve_alias(participant, roster)
        if participant:
            return _present([participant], roster)

    return []


def points_at_someone(message: InboundMessage) -> bool:
    """True when the message carries structured mentions or quotes someone."""
    quoted = message.quoted
    return bool(message.mentioned_ids) or bool(quoted and quoted.participant)


def targets(message: InboundMessage, roster: Optional[Roster], text: str) -> list[str]:
    """`resolve()` for structured mentions, else phone numbers in `text`.

    Typed numbers are only read when the message has no structured mentions
    and quotes nobody. Mentions that don't resolve are dropped, so the text
    (which carries the raw alias digits) is never used in their place.
    Typed numbers are not checked against the roster: stored members are
    only validated at tag time.
    """
    if not points_at_someone(message):
        return extract_phone_ids(text)
    if roster is not None:
        return resolve(message, roster)

    # No roster to check against: full addresses are taken as-is, aliases dropped
    quoted = message.quoted
    candidates = list(message.mentioned_ids)
    if quoted and quoted.participant:
        candidates.append(quoted.participant)
    found = []
    seen = set()
    for ident in candidates:
        key = normalize(ident)
        if is_alias(ident) or not key or key in seen:
            continue
        seen.add(key)
        found.append(ident)
    return found
