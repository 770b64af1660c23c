"""
Command-line parsing.

Turns a line such as

    ~discord id:mybot message channel:discordchannel@mybot,555 "Hello world!"

into a DiscordCommand. Arguments are whitespace-separated (shell quoting
rules). Named arguments use ``prefix:value``; the first usable one wins.
Any other token that is not an instruction name, including a repeated or
unparseable named argument, becomes the message text if none is set yet and
is logged as unhandled otherwise. A leading ``~`` asks for the
command to be waited for.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Sequence
from typing import Any

from discordlink.commands.models import DiscordCommand, Instruction
from discordlink.config.logging import get_logger
from discordlink.errors import InvalidArgumentsError
from discordlink.references import ChannelRef, GroupRef, RoleRef, UserRef
from discordlink.references.base import parse_snowflake

logger = get_logger(__name__)

COMMAND_NAME = "discord"

# prefix -> converter; a converter returning None rejects the argument
_NAMED_ARGUMENTS: dict[str, Callable[[str], Any]] = {
    "id": lambda value: value.lower(),
    "code": lambda value: value,
    "channel": ChannelRef.parse,
    "url": lambda value: value,
    "user": UserRef.parse,
    "group": GroupRef.parse,
    "role": RoleRef.parse,
    "status": lambda value: value,
    "activity": lambda value: value,
    "message_id": parse_snowflake,
}

_FIELD_NAMES = {"id": "bot_id"}


def tokenize(line: str) -> tuple[list[str], bool]:
    """
    Split a command line into arguments.

    Strips an optional leading ``~`` (waited mode) and the command name.

    Returns:
        (arguments, wait)
    """
    tokens = shlex.split(line)
    wait = False
    if tokens and tokens[0].startswith("~"):
        wait = True
        tokens[0] = tokens[0][1:]
        if not tokens[0]:
            tokens.pop(0)
    if tokens and tokens[0].lower() == COMMAND_NAME:
        tokens.pop(0)
    return tokens, wait


def _split_prefix(token: str) -> tuple[str | None, str]:
    prefix, sep, value = token.partition(":")
    if not sep or not prefix:
        return None, token
    return prefix.lower(), value


def parse_arguments(tokens: Sequence[str], wait: bool = False) -> DiscordCommand:
    """
    Build a DiscordCommand from already-split arguments.

    Raises:
        InvalidArgumentsError: If no id or no instruction was given
    """
    values: dict[str, Any] = {}
    instruction: Instruction | None = None

    for token in tokens:
        prefix, value = _split_prefix(token)
        if prefix in _NAMED_ARGUMENTS and prefix not in values:
            converted = _NAMED_ARGUMENTS[prefix](value)
            if converted is not None:
                values[prefix] = converted
                continue
        if prefix is None and instruction is None and Instruction.lookup(token) is not None:
            instruction = Instruction.lookup(token)
            continue
        if "message" not in values:
            values["message"] = token
            continue
        logger.warning(f"Unhandled argument: '{token}'")

    if "id" not in values:
        raise InvalidArgumentsError("Must have an ID!")
    if instruction is None:
        raise InvalidArgumentsError("Must have an instruction!")

    fields = {_FIELD_NAMES.get(name, name): value for name, value in values.items()}
    return DiscordCommand(instruction=instruction, wait=wait, **fields)


def parse_command(line: str) -> DiscordCommand:
    """
    Parse one command line.

    Raises:
        InvalidArgumentsError: If the line is malformed or lacks an id or instruction
    """
    try:
        tokens, wait = tokenize(line)
    except ValueError as e:
        raise InvalidArgumentsError(f"Cannot split command line: {e}") from e
    return parse_arguments(tokens, wait=wait)
