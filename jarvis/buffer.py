"""Bounded in-memory caches owned by long-lived service instances.

MessageBuffer keeps the last N text messages per scope (input for
`summarize`). SentMessageCache keeps the last N outbound payloads so the
gateway can ask for them again when it needs to retry a delivery.
"""

import logging
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("jarvis.buffer")


@dataclass
class BufferedMessage:
    timestamp: float
    sender: str
    text: str


class MessageBuffer:
    """Per-scope ring buffer of recent messages.

    Oldest messages are dropped beyond `capacity`; the least recently active
    scope is dropped beyond `max_scopes`.
    """

    def __init__(self, capacity: int = 200, max_scopes: int = 256):
        self.capacity = max(1, capacity)
        self.max_scopes = max(1, max_scopes)
        self._scopes: OrderedDict[str, deque[BufferedMessage]] = OrderedDict()

    def record(self, scope: str, sender: str, text: str, timestamp: Optional[float] = None):
        text = (text or "").strip()
        if not text:
            return
        if scope not in self._scopes:
            self._scopes[scope] = deque(maxlen=self.capacity)
        self._scopes.move_to_end(scope)
        self._scopes[scope].append(BufferedMessage(timestamp or time.time(), sender, text))
        while len(self._scopes) > self.max_scopes:
            evicted, _ = self._scopes.popitem(last=False)
            logger.debug(f"Message buffer evicted scope {evicted}")

    @property
    def scope_count(self) -> int:
        return len(self._scopes)

    def recent(self, scope: str, k: int) -> list[BufferedMessage]:
        """Last `k` messages of a scope, oldest first."""
        items = self._scopes.get(scope)
        if not items or k <= 0:
            return []
        return list(items)[-k:]

    def size(self, scope: str) -> int:
        return len(self._scopes.get(scope, ()))

    def clear(self, scope: Optional[str] = None):
        if scope is None:
            self._scopes.clear()
        else:
            self._scopes.pop(scope, None)


class SentMessageCache:
    """Message id → outbound payload, bounded, oldest evicted first."""

    def __init__(self, capacity: int = 500):
        self.capacity = max(1, capacity)
        self._items: OrderedDict[str, dict] = OrderedDict()

    def put(self, message_id: str, payload: dict):
        if not message_id:
            return
        self._items[message_id] = payload
        self._items.move_to_end(message_id)
        while len(self._items) > self.capacity:
            evicted, _ = self._items.popitem(last=False)
            logger.debug(f"Sent cache evicted {evicted}")

    def get(self, message_id: str) -> Optional[dict]:
        return self._items.get(message_id)

    def __len__(self) -> int:
        return len(self._items)
