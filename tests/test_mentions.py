"""Tests for mention / quoted-reply / free-text target resolution."""

from jarvis.mentions import resolve, targets
from jarvis.models import Participant, QuotedMessage, Roster

from conftest import GROUP, MEMBER, group_message

ALICE = "911234567123@s.whatsapp.net"
BOB = "917777777777@s.whatsapp.net"
OUTSIDER = "915555555555@s.whatsapp.net"


def _roster():
    return Roster(scope_id=GROUP, participants=[
        Participant(id=ALICE),
        Participant(id=BOB, lid="246813579@lid"),
        Participant(id=MEMBER),
    ])


class TestResolve:

    def test_mentions_filtered_to_roster(self):
        msg = group_message("!group add x", mentioned_ids=[ALICE, OUTSIDER])
        assert resolve(msg, _roster()) == [ALICE]

    def test_alias_mentions_resolved(self):
        msg = group_message("!group add x", mentioned_ids=["123@lid", "246813579@lid"])
        assert resolve(msg, _roster()) == [ALICE, BOB]

    def test_unresolvable_alias_does_not_abort_others(self):
        msg = group_message("!group add x", mentioned_ids=["456@lid", ALICE])
        assert resolve(msg, _roster()) == [ALICE]

    def test_device_suffix_returns_roster_form(self):
        msg = group_message("!x", mentioned_ids=["911234567123:5@s.whatsapp.net"])
        assert resolve(msg, _roster()) == [ALICE]

    def test_duplicates_removed(self):
        msg = group_message("!x", mentioned_ids=[ALICE, "911234567123", "123@lid"])
        assert resolve(msg, _roster()) == [ALICE]

    def test_quoted_participant_fallback(self):
        msg = group_message("!x", quoted=QuotedMessage(message_id="Q1", participant=BOB))
        assert resolve(msg, _roster()) == [BOB]

    def test_quoted_outsider_ignored(self):
        msg = group_message("!x", quoted=QuotedMessage(message_id="Q1", participant=OUTSIDER))
        assert resolve(msg, _roster()) == []

    def test_mentions_beat_quote(self):
        msg = group_message(
            "!x",
            mentioned_ids=[ALICE],
            quoted=QuotedMessage(message_id="Q1", participant=BOB),
        )
        assert resolve(msg, _roster()) == [ALICE]

    def test_no_roster(self):
        msg = group_message("!x", mentioned_ids=[ALICE])
        assert resolve(msg, None) == []


class TestTargets:

    def test_free_text_numbers_when_nothing_structured(self):
        msg = group_message("!group add x 915555555555")
        assert targets(msg, _roster(), "915555555555") == [OUTSIDER]

    def test_structured_wins_over_text(self):
        msg = group_message("!group add x 915555555555", mentioned_ids=[ALICE])
        assert targets(msg, _roster(), "915555555555") == [ALICE]

    def test_without_roster_keeps_full_addresses(self):
        msg = group_message(
            "!group add x @123456789 911234567123",
            mentioned_ids=[BOB, "123456789@lid", BOB],
        )
        assert targets(msg, None, "@123456789 911234567123") == [BOB]

    def test_unresolved_alias_not_read_from_text(self):
        msg = group_message("!group add x @123456789012345", mentioned_ids=["123456789012345@lid"])
        assert targets(msg, _roster(), "@123456789012345") == []

    def test_text_only_when_no_mentions(self):
        msg = group_message("!group add x 911234567123")
        assert targets(msg, None, "911234567123") == [ALICE]
