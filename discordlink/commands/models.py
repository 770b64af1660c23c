"""
Command and result types.

A DiscordCommand is one parsed invocation: the bot it targets, the
instruction, and whichever named parameters the instruction uses. The
dispatcher answers it with a CommandResult that collects diagnostics,
possibly while the remote call is still running.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field, SecretStr, field_validator

from discordlink.config.logging import get_logger
from discordlink.references import ChannelRef, GroupRef, RoleRef, UserRef

logger = get_logger(__name__)


class Instruction(str, Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    MESSAGE = "message"
    ADD_ROLE = "add_role"
    REMOVE_ROLE = "remove_role"
    STATUS = "status"
    RENAME = "rename"
    START_TYPING = "start_typing"
    STOP_TYPING = "stop_typing"
    EDIT_MESSAGE = "edit_message"
    DELETE_MESSAGE = "delete_message"

    @classmethod
    def lookup(cls, text: str) -> Instruction | None:
        try:
            return cls(text.lower())
        except ValueError:
            return None


class DiscordCommand(BaseModel):
    """One invocation of the discord command."""

    bot_id: str = Field(description="Registry id of the bot, lowercased")
    instruction: Instruction
    wait: bool = Field(default=False, description="Block until the remote call completes")

    code: SecretStr | None = Field(default=None, description="Bot token (connect only)")
    message: str | None = Field(default=None, description="Message text, nickname, or activity name")
    message_id: int | None = None
    channel: ChannelRef | None = None
    user: UserRef | None = None
    group: GroupRef | None = None
    role: RoleRef | None = None
    status: str | None = None
    activity: str | None = None
    url: str | None = None

    @field_validator("bot_id")
    @classmethod
    def _lowercase_bot_id(cls, value: str) -> str:
        return value.lower()

    def describe(self) -> str:
        """Debug summary. The bot token is never included."""
        parts = [f"id='{self.bot_id}'", f"instruction='{self.instruction.value}'"]
        for name in ("channel", "user", "group", "role", "message", "message_id", "status", "activity", "url"):
            value = getattr(self, name)
            if value is not None:
                parts.append(f"{name}='{value}'")
        return " ".join(parts)


@dataclass
class CommandResult:
    """
    Outcome of one dispatched command.

    Validation failures are in ``errors`` as soon as execute() returns.
    Remote failures are appended later, when the remote call finishes;
    await ``completion`` (if set) to be sure they are all in.
    """

    command: DiscordCommand
    errors: list[str] = field(default_factory=list)
    debug: list[str] = field(default_factory=list)
    message_id: int | None = None
    completion: asyncio.Task | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def done(self) -> bool:
        return self.completion is None or self.completion.done()

    def error(self, text: str) -> None:
        self.errors.append(text)
        logger.error(text)

    def note(self, text: str) -> None:
        self.debug.append(text)
        logger.debug(text)
