"""Bridge wire frames, validated with pydantic.

Every frame is a JSON object `{type, requestId?, payload}`. Requests we
send also carry `token`. Field names follow the gateway (camelCase).
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from ..identity import is_group_jid
from ..models import InboundMessage, Participant, QuotedMessage, Role, Roster

# Request types (client → gateway)
HEALTH = "health"
SEND_MESSAGE = "send_message"
GROUP_METADATA = "group_metadata"
DOWNLOAD_MEDIA = "download_media"
GET_MESSAGE_RESULT = "get_message_result"

# Frame types (gateway → client)
RESPONSE = "response"
MESSAGE = "message"
CONNECTION = "connection"
GET_MESSAGE = "get_message"


class Frame(BaseModel):
    type: str
    requestId: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    code: str = "ERR_INTERNAL"
    message: str = "Bridge command failed"


class ResponsePayload(BaseModel):
    ok: bool = False
    result: Any = None
    error: Optional[ErrorInfo] = None


class QuotedPayload(BaseModel):
    messageId: str
    participant: Optional[str] = None
    text: str = ""
    hasImage: bool = False


class MessagePayload(BaseModel):
    messageId: str
    chatJid: str
    senderJid: Optional[str] = None
    fromMe: bool = False
    pushName: str = ""
    text: str = ""
    timestamp: int = 0
    mentionedJids: list[str] = Field(default_factory=list)
    quoted: Optional[QuotedPayload] = None
    hasImage: bool = False

    def to_inbound(self) -> InboundMessage:
        quoted = None
        if self.quoted:
            quoted = QuotedMessage(
                message_id=self.quoted.messageId,
                participant=self.quoted.participant,
                text=self.quoted.text,
                has_image=self.quoted.hasImage,
            )
        return InboundMessage(
            message_id=self.messageId,
            scope_id=self.chatJid,
            sender_id=self.senderJid or self.chatJid,
            is_group=is_group_jid(self.chatJid),
            text=self.text,
            mentioned_ids=list(self.mentionedJids),
            quoted=quoted,
            has_image=self.hasImage,
            from_me=self.fromMe,
            push_name=self.pushName,
            timestamp=self.timestamp,
        )


class ConnectionPayload(BaseModel):
    status: str                     # open | close | qr
    loggedOut: bool = False
    me: Optional[str] = None
    qr: Optional[str] = None


class GetMessagePayload(BaseModel):
    messageId: str


class ParticipantInfo(BaseModel):
    id: str
    admin: Optional[str] = None     # null | "admin" | "superadmin"
    lid: Optional[str] = None


class GroupMetadata(BaseModel):
    id: str
    subject: str = ""
    participants: list[ParticipantInfo] = Field(default_factory=list)

    def to_roster(self) -> Roster:
        return Roster(
            scope_id=self.id,
            subject=self.subject,
            participants=[
                Participant(id=p.id, role=Role.parse(p.admin), lid=p.lid)
                for p in self.participants
            ],
        )
