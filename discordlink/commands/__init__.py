"""
Command layer.

Parses ``discord`` command lines into DiscordCommand objects and dispatches
them against the connection registry.
"""

from discordlink.commands.dispatcher import CommandDispatcher
from discordlink.commands.models import CommandResult, DiscordCommand, Instruction
from discordlink.commands.parsing import parse_arguments, parse_command

__all__ = [
    "CommandDispatcher",
    "CommandResult",
    "DiscordCommand",
    "Instruction",
    "parse_arguments",
    "parse_command",
]
