"""Tests for command parsing and keyword resolution."""

import pytest

from jarvis.commands import build_registry, parse_command
from jarvis.permissions import Action


@pytest.fixture
def registry():
    return build_registry()


class TestParseCommand:

    def test_plain_text_ignored(self):
        assert parse_command("hello there") is None
        assert parse_command("") is None
        assert parse_command("!") is None

    def test_keyword_lowercased_args_kept(self):
        parsed = parse_command("  !Group ADD Friends @123  ")
        assert parsed.keyword == "group"
        assert parsed.args == ["ADD", "Friends", "@123"]
        assert parsed.rest == "ADD Friends @123"

    def test_custom_prefix(self):
        assert parse_command("!help", prefix="/") is None
        assert parse_command("/help", prefix="/").keyword == "help"

    def test_mirror_prefix_case_insensitive(self):
        parsed = parse_command("@Jarvis say   this", mirror_prefix="@jarvis")
        assert parsed.keyword == "mirror"
        assert parsed.rest == "say   this"

    def test_mirror_prefix_alone(self):
        parsed = parse_command("@jarvis")
        assert parsed.keyword == "mirror"
        assert parsed.rest == ""


class TestResolve:

    def _resolve(self, registry, text):
        return registry.resolve(parse_command(text))

    def test_two_word_command(self, registry):
        cmd, args, rest = self._resolve(registry, "!group create friends")
        assert cmd.name == "group create"
        assert args == ["friends"]
        assert rest == "friends"

    def test_subcommand_case_insensitive(self, registry):
        cmd, args, _ = self._resolve(registry, "!group SHOW friends")
        assert cmd.name == "group show"
        assert args == ["friends"]

    def test_single_word_command(self, registry):
        cmd, args, rest = self._resolve(registry, "!ask what is   up")
        assert cmd.name == "ask"
        assert args == ["what", "is", "up"]
        assert rest == "what is   up"

    def test_tagall_beats_shortcut(self, registry):
        cmd, _, _ = self._resolve(registry, "!tagall")
        assert cmd.name == "tagall"

    def test_tag_shortcut(self, registry):
        cmd, args, rest = self._resolve(registry, "!tagfriends see you at 5")
        assert cmd.name == "group tag"
        assert args[0] == "friends"
        assert rest == "friends see you at 5"

    def test_bare_tag_unknown(self, registry):
        assert self._resolve(registry, "!tag") is None

    def test_unknown(self, registry):
        assert self._resolve(registry, "!dance") is None
        assert self._resolve(registry, "!group explode x") is None

    def test_mirror_resolves(self, registry):
        cmd, _, rest = self._resolve(registry, "@jarvis hi all")
        assert cmd.name == "mirror"
        assert rest == "hi all"


class TestCommandTable:

    def test_hidden_excluded_from_listing(self, registry):
        names = {c.name for c in registry.list_commands()}
        assert "mirror" not in names
        assert "mirror" in {c.name for c in registry.list_commands(include_hidden=True)}
        assert {"group create", "group tag", "tagall", "summarize", "sticker", "help"} <= names

    def test_group_only_commands(self, registry):
        assert registry.get("tagall").group_only
        assert registry.get("group tag").group_only
        assert not registry.get("group list").group_only

    def test_actions(self, registry):
        assert registry.get("group create").action == Action.CREATE
        assert registry.get("tagall").action == Action.TAG_ALL
        assert registry.get("GROUP DELETE").action == Action.DELETE
