"""Chat commands and their registration table."""

from .registry import (
    Command,
    CommandContext,
    CommandRegistry,
    ParsedCommand,
    parse_command,
)


def build_registry() -> CommandRegistry:
    """Registry with every built-in command."""
    from . import general, groups

    registry = CommandRegistry()
    groups.register(registry)
    general.register(registry)
    return registry


__all__ = [
    "Command",
    "CommandContext",
    "CommandRegistry",
    "ParsedCommand",
    "parse_command",
    "build_registry",
]
