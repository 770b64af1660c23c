"""
Gateway events observed by a logged-in bot.

SessionClient turns the discord.py callbacks it receives into these frozen
models and hands them to an EventListener. Every event names the bot it was
seen by and carries reference objects, never live discord.py objects, so a
listener can keep them around and query them later through the registry.

Events and the callbacks that produce them:

    MessageReceived   on_message
    MessageModified   on_raw_message_edit (content changes only)
    MessageDeleted    on_raw_message_delete
    UserJoins         on_member_join
    UserLeaves        on_member_remove
    UserRoleChange    on_member_update (only when the role set changed)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Literal

import discord
from pydantic import BaseModel, ConfigDict, Field

from discordlink.config.logging import get_logger
from discordlink.references import ChannelRef, GroupRef, MessageRef, RoleRef, UserRef

logger = get_logger(__name__)


class DiscordEvent(BaseModel):
    """
    Common fields of every event.

    Attributes:
        kind: Event name, e.g. "message_received"
        bot: Registry id of the bot that saw the event
        group: Group the event happened in; None for direct messages
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    bot: str
    group: GroupRef | None = None

    def describe(self) -> str:
        return f"[{self.bot}] {self.kind}"


class MessageReceived(DiscordEvent):
    kind: Literal["message_received"] = "message_received"
    channel: ChannelRef
    message: MessageRef
    author: UserRef
    text: str

    def describe(self) -> str:
        return f"[{self.bot}] message {self.message.message_id} from {self.author.user_id} in {self.channel.channel_id}"


class MessageModified(DiscordEvent):
    """A message's text changed. old_text is None unless the message was cached."""

    kind: Literal["message_modified"] = "message_modified"
    channel: ChannelRef
    message: MessageRef
    text: str
    old_text: str | None = None

    def describe(self) -> str:
        return f"[{self.bot}] message {self.message.message_id} edited in {self.channel.channel_id}"


class MessageDeleted(DiscordEvent):
    """A message was deleted. old_text is None unless the message was cached."""

    kind: Literal["message_deleted"] = "message_deleted"
    channel: ChannelRef
    message: MessageRef
    old_text: str | None = None

    def describe(self) -> str:
        return f"[{self.bot}] message {self.message.message_id} deleted in {self.channel.channel_id}"


class UserJoins(DiscordEvent):
    kind: Literal["user_joins"] = "user_joins"
    user: UserRef

    def describe(self) -> str:
        return f"[{self.bot}] user {self.user.user_id} joined group {self.group.group_id}"


class UserLeaves(DiscordEvent):
    kind: Literal["user_leaves"] = "user_leaves"
    user: UserRef

    def describe(self) -> str:
        return f"[{self.bot}] user {self.user.user_id} left group {self.group.group_id}"


class UserRoleChange(DiscordEvent):
    """
    A member gained or lost roles.

    Attributes:
        added_roles: Roles the member has now but did not have before
        removed_roles: Roles the member had before but not any more
    """

    kind: Literal["user_role_change"] = "user_role_change"
    user: UserRef
    added_roles: list[RoleRef] = Field(default_factory=list)
    removed_roles: list[RoleRef] = Field(default_factory=list)

    def describe(self) -> str:
        return (
            f"[{self.bot}] user {self.user.user_id} roles changed in group {self.group.group_id}: "
            f"+{[r.role_id for r in self.added_roles]} -{[r.role_id for r in self.removed_roles]}"
        )


EventListener = Callable[[DiscordEvent], Awaitable[None]]


async def log_event(event: DiscordEvent) -> None:
    """Default listener: events are only logged."""
    logger.debug(f"No listener for {event.kind}: {event.model_dump_json()}")


def _group(bot: str, guild_id: int | None) -> GroupRef | None:
    return GroupRef(bot=bot, group_id=guild_id) if guild_id is not None else None


def _message_refs(bot: str, channel_id: int, message_id: int) -> tuple[ChannelRef, MessageRef]:
    return (
        ChannelRef(bot=bot, channel_id=channel_id),
        MessageRef(bot=bot, channel_id=channel_id, message_id=message_id),
    )


def message_received(bot: str, message: discord.Message) -> MessageReceived:
    channel, ref = _message_refs(bot, message.channel.id, message.id)
    return MessageReceived(
        bot=bot,
        group=_group(bot, message.guild.id if message.guild is not None else None),
        channel=channel,
        message=ref,
        author=UserRef(bot=bot, user_id=message.author.id),
        text=message.content,
    )


def message_modified(bot: str, payload: discord.RawMessageUpdateEvent) -> MessageModified | None:
    """None when the edit did not touch the text (embeds resolving, pins, ...)."""
    text = payload.data.get("content")
    if text is None:
        return None
    cached = payload.cached_message
    old_text = cached.content if cached is not None else None
    if old_text == text:
        return None
    channel, ref = _message_refs(bot, payload.channel_id, payload.message_id)
    return MessageModified(
        bot=bot,
        group=_group(bot, payload.guild_id),
        channel=channel,
        message=ref,
        text=text,
        old_text=old_text,
    )


def message_deleted(bot: str, payload: discord.RawMessageDeleteEvent) -> MessageDeleted:
    cached = payload.cached_message
    channel, ref = _message_refs(bot, payload.channel_id, payload.message_id)
    return MessageDeleted(
        bot=bot,
        group=_group(bot, payload.guild_id),
        channel=channel,
        message=ref,
        old_text=cached.content if cached is not None else None,
    )


def user_joins(bot: str, member: discord.Member) -> UserJoins:
    return UserJoins(bot=bot, group=_group(bot, member.guild.id), user=UserRef(bot=bot, user_id=member.id))


def user_leaves(bot: str, member: discord.Member) -> UserLeaves:
    return UserLeaves(bot=bot, group=_group(bot, member.guild.id), user=UserRef(bot=bot, user_id=member.id))


def user_role_change(bot: str, before: discord.Member, after: discord.Member) -> UserRoleChange | None:
    """Diff the members' role ids. None when the role set is unchanged."""
    old_ids = [role.id for role in before.roles]
    new_ids = [role.id for role in after.roles]
    added = [role_id for role_id in new_ids if role_id not in old_ids]
    removed = [role_id for role_id in old_ids if role_id not in new_ids]
    if not added and not removed:
        return None
    return UserRoleChange(
        bot=bot,
        group=_group(bot, after.guild.id),
        user=UserRef(bot=bot, user_id=after.id),
        added_roles=[RoleRef(bot=bot, role_id=role_id) for role_id in added],
        removed_roles=[RoleRef(bot=bot, role_id=role_id) for role_id in removed],
    )
