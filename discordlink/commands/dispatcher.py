"""
CommandDispatcher: runs DiscordCommands against the connection registry.

Every instruction has one handler. A handler validates in a fixed order
(session registered → session logged in → required parameters) and then
issues exactly one remote call, wrapped in an asyncio.Task so the caller
can either wait for it or carry on and collect failures later from the
CommandResult.

Failures never escape execute(): validation problems and remote errors
alike become entries in ``CommandResult.errors`` and are logged at ERROR.
A message that disappeared before edit_message/delete_message got to it is
not an error; it is recorded at DEBUG only.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import discord

from discordlink.commands.models import CommandResult, DiscordCommand, Instruction
from discordlink.config.logging import get_logger
from discordlink.errors import DiscordLinkError
from discordlink.registry import ConnectionRegistry, Session

logger = get_logger(__name__)

PRESENCE_STATUSES = {
    "online": discord.Status.online,
    "dnd": discord.Status.dnd,
    "idle": discord.Status.idle,
    "invisible": discord.Status.invisible,
}

ACTIVITY_TYPES = ("playing", "streaming", "listening", "watching")


def build_activity(kind: str, name: str, url: str | None = None) -> discord.BaseActivity:
    """Map an activity keyword to the discord.py activity object."""
    if kind == "streaming":
        return discord.Streaming(name=name, url=url)
    if kind == "listening":
        return discord.Activity(type=discord.ActivityType.listening, name=name)
    if kind == "watching":
        return discord.Activity(type=discord.ActivityType.watching, name=name)
    return discord.Game(name=name)


Handler = Callable[[DiscordCommand, CommandResult], Awaitable[None]]


class CommandDispatcher:
    """
    Executes commands against live sessions.

    Args:
        registry: Connection registry shared with the rest of the process
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        self._handlers: dict[Instruction, Handler] = {
            Instruction.CONNECT: self._connect,
            Instruction.DISCONNECT: self._disconnect,
            Instruction.MESSAGE: self._message,
            Instruction.ADD_ROLE: self._add_role,
            Instruction.REMOVE_ROLE: self._remove_role,
            Instruction.STATUS: self._status,
            Instruction.RENAME: self._rename,
            Instruction.START_TYPING: self._start_typing,
            Instruction.STOP_TYPING: self._stop_typing,
            Instruction.EDIT_MESSAGE: self._edit_message,
            Instruction.DELETE_MESSAGE: self._delete_message,
        }

    async def execute(self, command: DiscordCommand) -> CommandResult:
        """
        Run one command.

        When ``command.wait`` is set the remote call has finished (and any
        failure is in the result) by the time this returns. Otherwise the
        result's ``completion`` task may still be running.
        """
        result = CommandResult(command=command)
        logger.debug(f"discord: {command.describe()}")
        await self._handlers[command.instruction](command, result)
        if command.wait and result.completion is not None:
            await result.completion
        return result

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _fail(self, command: DiscordCommand, result: CommandResult, reason: str) -> None:
        result.error(f"Failed to process Discord {command.instruction.value} command: {reason}")

    def _session(self, command: DiscordCommand, result: CommandResult) -> Session | None:
        try:
            return self._registry.require(command.bot_id)
        except DiscordLinkError as e:
            self._fail(command, result, f"{e}!")
            return None

    def _require(self, command: DiscordCommand, result: CommandResult, value: Any, name: str) -> bool:
        if value is None:
            self._fail(command, result, f"no {name} given!")
            return False
        return True

    def _submit(
        self,
        command: DiscordCommand,
        result: CommandResult,
        operation: Awaitable[Any],
    ) -> None:
        result.completion = asyncio.create_task(
            self._run(command, result, operation),
            name=f"discord-{command.bot_id}-{command.instruction.value}",
        )

    async def _run(
        self,
        command: DiscordCommand,
        result: CommandResult,
        operation: Awaitable[Any],
    ) -> None:
        try:
            await operation
        except Exception as e:
            self._fail(command, result, str(e) or type(e).__name__)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def _connect(self, command: DiscordCommand, result: CommandResult) -> None:
        if not self._require(command, result, command.code, "code"):
            return
        if command.bot_id in self._registry:
            result.error("Failed to connect: duplicate ID!")
            return
        self._submit(
            command,
            result,
            self._registry.connect(command.bot_id, command.code.get_secret_value()),
        )

    async def _disconnect(self, command: DiscordCommand, result: CommandResult) -> None:
        if self._session(command, result) is None:
            return
        # Always completes before returning, waited or not
        await self._run(command, result, self._registry.disconnect(command.bot_id))

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def _message(self, command: DiscordCommand, result: CommandResult) -> None:
        if command.channel is None and command.user is None:
            # Both are reported, not just the first
            self._require(command, result, command.channel, "channel")
            self._require(command, result, command.user, "user")
            return
        session = self._session(command, result)
        if session is None or not self._require(command, result, command.message, "message"):
            return
        self._submit(command, result, self._send_message(session.client, command, result))

    async def _send_message(
        self, client: discord.Client, command: DiscordCommand, result: CommandResult
    ) -> None:
        if command.channel is not None:
            target = await _get_channel(client, command.channel.channel_id)
        else:
            # User.send opens (or reuses) the private channel
            target = await client.fetch_user(command.user.user_id)
        sent = await target.send(command.message)
        result.message_id = sent.id

    async def _edit_message(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._session(command, result)
        if (
            session is None
            or not self._require(command, result, command.channel, "channel")
            or not self._require(command, result, command.message, "message")
            or not self._require(command, result, command.message_id, "message_id")
        ):
            return

        async def edit(message: discord.Message) -> None:
            await message.edit(content=command.message)

        self._submit(command, result, self._on_existing_message(session.client, command, result, edit))

    async def _delete_message(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._session(command, result)
        if (
            session is None
            or not self._require(command, result, command.channel, "channel")
            or not self._require(command, result, command.message_id, "message_id")
        ):
            return

        async def delete(message: discord.Message) -> None:
            await message.delete()

        self._submit(command, result, self._on_existing_message(session.client, command, result, delete))

    async def _on_existing_message(
        self,
        client: discord.Client,
        command: DiscordCommand,
        result: CommandResult,
        action: Callable[[discord.Message], Awaitable[None]],
    ) -> None:
        channel = await _get_channel(client, command.channel.channel_id)
        try:
            message = await channel.fetch_message(command.message_id)
            await action(message)
        except discord.NotFound:
            # Scripts cannot always know a message is gone, so this is not an error
            result.note(f"Message '{command.message_id}' does not exist.")

    # ------------------------------------------------------------------
    # Group membership
    # ------------------------------------------------------------------

    async def _add_role(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._role_session(command, result)
        if session is None:
            return

        async def add_role() -> None:
            member = await _fetch_member(session.client, command.group.group_id, command.user.user_id)
            await member.add_roles(discord.Object(id=command.role.role_id))

        self._submit(command, result, add_role())

    async def _remove_role(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._role_session(command, result)
        if session is None:
            return

        async def remove_role() -> None:
            member = await _fetch_member(session.client, command.group.group_id, command.user.user_id)
            await member.remove_roles(discord.Object(id=command.role.role_id))

        self._submit(command, result, remove_role())

    def _role_session(self, command: DiscordCommand, result: CommandResult) -> Session | None:
        session = self._session(command, result)
        if (
            session is None
            or not self._require(command, result, command.user, "user")
            or not self._require(command, result, command.group, "group")
            or not self._require(command, result, command.role, "role")
        ):
            return None
        return session

    async def _rename(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._session(command, result)
        if (
            session is None
            or not self._require(command, result, command.group, "group")
            or not self._require(command, result, command.message, "message")
        ):
            return
        client = session.client

        async def rename() -> None:
            user_id = command.user.user_id if command.user is not None else client.user.id
            member = await _fetch_member(client, command.group.group_id, user_id)
            await member.edit(nick=command.message)

        self._submit(command, result, rename())

    # ------------------------------------------------------------------
    # Typing and presence
    # ------------------------------------------------------------------

    async def _start_typing(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._session(command, result)
        if session is None or not self._require(command, result, command.channel, "channel"):
            return
        channel_id = command.channel.channel_id

        async def start_typing() -> None:
            channel = await _get_channel(session.client, channel_id)
            await session.start_typing(channel, channel_id)

        self._submit(command, result, start_typing())

    async def _stop_typing(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._session(command, result)
        if session is None or not self._require(command, result, command.channel, "channel"):
            return
        if not session.stop_typing(command.channel.channel_id):
            result.note(f"Not typing in channel '{command.channel.channel_id}'.")

    async def _status(self, command: DiscordCommand, result: CommandResult) -> None:
        session = self._session(command, result)
        if session is None:
            return
        status = PRESENCE_STATUSES.get((command.status or "online").lower(), discord.Status.online)
        kind = (command.activity or "playing").lower()
        if kind not in ACTIVITY_TYPES:
            kind = "playing"
        if kind == "streaming" and not self._require(command, result, command.url, "url"):
            return

        activity = None
        if command.message and status is not discord.Status.invisible:
            activity = build_activity(kind, command.message, command.url)

        self._submit(command, result, session.client.change_presence(status=status, activity=activity))


async def _get_channel(client: discord.Client, channel_id: int):
    channel = client.get_channel(channel_id)
    if channel is None:
        channel = await client.fetch_channel(channel_id)
    return channel


async def _fetch_member(client: discord.Client, group_id: int, user_id: int) -> discord.Member:
    guild = client.get_guild(group_id)
    if guild is None:
        guild = await client.fetch_guild(group_id)
    return await guild.fetch_member(user_id)
