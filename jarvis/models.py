"""Core data types shared by the bot, commands and the bridge."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .identity import normalize

GLOBAL_SCOPE = "global"


class Role(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @classmethod
    def parse(cls, value) -> "Role":
        """Gateway sends null / "admin" / "superadmin"."""
        if not value:
            return cls.MEMBER
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.MEMBER


@dataclass
class Participant:
    id: str
    role: Role = Role.MEMBER
    lid: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPERADMIN)

    @property
    def key(self) -> str:
        return normalize(self.id)


@dataclass
class Roster:
    """Point-in-time participant list of a group. Never persisted."""
    scope_id: str
    participants: list[Participant] = field(default_factory=list)
    subject: str = ""

    def find(self, identifier: str) -> Optional[Participant]:
        key = normalize(identifier)
        if not key:
            return None
        for p in self.participants:
            if p.key == key or (p.lid and normalize(p.lid) == key):
                return p
        return None

    def contains(self, identifier: str) -> bool:
        return self.find(identifier) is not None

    def is_admin(self, identifier: str) -> bool:
        p = self.find(identifier)
        return p is not None and p.is_admin


@dataclass
class QuotedMessage:
    message_id: str
    participant: Optional[str] = None
    text: str = ""
    has_image: bool = False


@dataclass
class InboundMessage:
    message_id: str
    scope_id: str
    sender_id: str
    is_group: bool
    text: str = ""
    mentioned_ids: list[str] = field(default_factory=list)
    quoted: Optional[QuotedMessage] = None
    has_image: bool = False
    from_me: bool = False
    push_name: str = ""
    timestamp: int = 0

    @property
    def scope_key(self) -> str:
        """Outer key of the membership store for this message."""
        return self.scope_id if self.is_group else GLOBAL_SCOPE


@dataclass
class OutboundMessage:
    text: str = ""
    mentions: list[str] = field(default_factory=list)
    sticker: Optional[bytes] = None
    quoted_message_id: Optional[str] = None
