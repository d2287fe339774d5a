"""Tag dispatcher — mention a set of people, in paced batches.

Pipeline: roster minus the bot → intersect with candidates (by canonical
key) → batches of `batch_size` → one message per batch, `batch_delay`
seconds apart. A failed batch is logged and the rest still go out.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .identity import local_part, normalize
from .models import OutboundMessage, Participant, Roster

logger = logging.getLogger("jarvis.dispatch")

SendFn = Callable[[str, OutboundMessage], Awaitable[bool]]

NO_MEMBERS_TEXT = "No members of that list are in this group right now."
NOT_READY_TEXT = "Still connecting to WhatsApp. Try again in a moment."


@dataclass
class DispatchResult:
    tagged: int = 0
    batches_sent: int = 0
    batches_failed: int = 0

    @property
    def empty(self) -> bool:
        return self.tagged == 0


def batched(items: list, size: int) -> list[list]:
    """Split into consecutive chunks of at most `size`, order preserved."""
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


def mention_token(participant: Participant, crown: bool = False) -> str:
    token = f"@{local_part(participant.id)}"
    if crown and participant.is_admin:
        token += " 👑"
    return token


class TagDispatcher:

    def __init__(
        self,
        send: SendFn,
        own_id: Callable[[], Optional[str]],
        batch_size: int = 20,
        batch_delay: float = 0.5,
    ):
        self._send = send
        self._own_id = own_id
        self.batch_size = max(1, batch_size)
        self.batch_delay = max(0.0, batch_delay)

    def present_members(self, candidates: list[str], roster: Roster) -> list[Participant]:
        """Roster participants matching `candidates`, in candidate order, bot excluded."""
        own_key = normalize(self._own_id() or "")
        by_key: dict[str, Participant] = {}
        for p in roster.participants:
            if not p.key or p.key == own_key:
                continue
            by_key.setdefault(p.key, p)
            if p.lid:
                by_key.setdefault(normalize(p.lid), p)

        present = []
        seen = set()
        for ident in candidates:
            p = by_key.get(normalize(ident))
            if p is None or p.key in seen:
                continue
            seen.add(p.key)
            present.append(p)
        return present

    async def _notify(self, scope: str, text: str, quoted_message_id: Optional[str]):
        try:
            await self._send(scope, OutboundMessage(text=text, quoted_message_id=quoted_message_id))
        except Exception as e:
            logger.error(f"Notice to {scope} raised: {e}")

    async def dispatch(
        self,
        scope: str,
        candidates: list[str],
        roster: Optional[Roster],
        quoted_message_id: Optional[str] = None,
        header: Optional[str] = None,
        crown_admins: bool = False,
    ) -> DispatchResult:
        result = DispatchResult()

        # Without our own id the bot can't be kept out of the mentions
        if not normalize(self._own_id() or ""):
            logger.warning(f"Own WhatsApp id unknown, not tagging in {scope}")
            await self._notify(scope, NOT_READY_TEXT, quoted_message_id)
            return result

        members = self.present_members(candidates, roster) if roster else []

        if not members:
            await self._notify(scope, NO_MEMBERS_TEXT, quoted_message_id)
            return result

        batches = batched(members, self.batch_size)
        for index, batch in enumerate(batches):
            if index > 0 and self.batch_delay:
                await asyncio.sleep(self.batch_delay)

            separator = ", " if crown_admins else " "
            body = separator.join(mention_token(p, crown_admins) for p in batch)
            if header:
                label = header if len(batches) == 1 else f"{header} ({index + 1}/{len(batches)})"
                body = f"{label}\n{body}"

            message = OutboundMessage(
                text=body,
                mentions=[p.id for p in batch],
                quoted_message_id=quoted_message_id,
            )
            try:
                ok = await self._send(scope, message)
            except Exception as e:
                logger.error(f"Batch {index + 1}/{len(batches)} to {scope} raised: {e}")
                ok = False

            if ok:
                result.batches_sent += 1
                result.tagged += len(batch)
            else:
                result.batches_failed += 1
                logger.warning(f"Batch {index + 1}/{len(batches)} to {scope} failed, continuing")

        logger.info(
            f"Tagged {result.tagged} member(s) in {scope} "
            f"({result.batches_sent} sent, {result.batches_failed} failed)"
        )
        return result
