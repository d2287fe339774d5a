"""Pytest configuration and shared fixtures."""

import pytest

from jarvis.config import JarvisSettings
from jarvis.models import InboundMessage, Participant, Role, Roster
from jarvis.store import MembershipStore

GROUP = "120363000000000001@g.us"
BOT = "919999999999@s.whatsapp.net"
OWNER = "910000000001@s.whatsapp.net"
ADMIN = "911111111111@s.whatsapp.net"
MEMBER = "912222222222@s.whatsapp.net"


def make_roster(*participants, scope_id: str = GROUP, with_bot: bool = True) -> Roster:
    """Roster from (id, role) tuples or bare ids."""
    people = []
    for p in participants:
        if isinstance(p, tuple):
            people.append(Participant(id=p[0], role=p[1]))
        else:
            people.append(Participant(id=p))
    if with_bot:
        people.append(Participant(id=BOT))
    return Roster(scope_id=scope_id, participants=people, subject="Test Group")


def group_message(text: str, sender: str = MEMBER, **kwargs) -> InboundMessage:
    return InboundMessage(
        message_id=kwargs.pop("message_id", "MSG1"),
        scope_id=kwargs.pop("scope_id", GROUP),
        sender_id=sender,
        is_group=True,
        text=text,
        **kwargs,
    )


def direct_message(text: str, sender: str = OWNER, **kwargs) -> InboundMessage:
    return InboundMessage(
        message_id=kwargs.pop("message_id", "DM1"),
        scope_id=sender,
        sender_id=sender,
        is_group=False,
        text=text,
        **kwargs,
    )


class FakeTransport:
    """In-memory stand-in for the WhatsApp bridge."""

    def __init__(self, roster=None, own_id=BOT, media=None):
        self.roster = roster
        self.own_id = own_id
        self.media = media
        self.sent = []
        self.roster_calls = 0
        self.fail_on = set()     # indexes of send() calls that report failure

    async def send(self, scope, message):
        index = len(self.sent)
        self.sent.append((scope, message))
        return index not in self.fail_on

    async def get_roster(self, scope):
        self.roster_calls += 1
        return self.roster

    async def download_media(self, chat_id, message_id):
        return self.media

    @property
    def texts(self) -> list[str]:
        return [m.text for _, m in self.sent]


@pytest.fixture
def settings():
    return JarvisSettings(
        _env_file=None,
        owners="910000000001",
        batch_size=20,
        batch_delay=0.4,
        gemini_api_key=None,
    )


@pytest.fixture
def store(tmp_path):
    return MembershipStore(tmp_path / "subgroups.json")


@pytest.fixture
def roster():
    return make_roster((ADMIN, Role.ADMIN), (MEMBER, Role.MEMBER))


@pytest.fixture
def transport(roster):
    return FakeTransport(roster=roster)
