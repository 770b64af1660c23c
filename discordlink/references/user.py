"""
UserRef: a Discord user (human or bot), identified as discorduser@[bot,]id.

Group-scoped attributes (nickname, status, activity, roles) take the group
as their parameter, e.g. ``status[discordgroup@mybot,1234]`` or just the
group id. Presence comes from the gateway's member state because Discord's
REST API does not expose it.
"""

from __future__ import annotations

from typing import ClassVar, Literal

import discord

from discordlink.references.base import SnowflakeReference
from discordlink.references.group import GroupRef
from discordlink.references.role import RoleRef


class UserRef(SnowflakeReference):
    """Reference to a Discord user."""

    PREFIX: ClassVar[str] = "discorduser"
    ID_FIELD: ClassVar[str] = "user_id"
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id", "mention"})

    kind: Literal["user"] = "user"
    user_id: int

    async def fetch(self, client: discord.Client) -> discord.User:
        return await client.fetch_user(self.user_id)

    async def fetch_member(self, client: discord.Client, group: str | None) -> discord.Member | None:
        group_ref = GroupRef.parse(group) if group else None
        if group_ref is None:
            return None
        guild = await group_ref.fetch(client)
        return await guild.fetch_member(self.user_id)

    def live_member(self, client: discord.Client, group: str | None) -> discord.Member | None:
        group_ref = GroupRef.parse(group) if group else None
        if group_ref is None:
            return None
        guild = client.get_guild(group_ref.group_id)
        if guild is None:
            return None
        return guild.get_member(self.user_id)

    async def tag_name(self, client, param):
        user = await self.fetch(client)
        return user.name

    async def tag_mention(self, client, param):
        return f"<@{self.user_id}>"

    async def tag_is_bot(self, client, param):
        user = await self.fetch(client)
        return user.bot

    async def tag_nickname(self, client, param):
        member = await self.fetch_member(client, param)
        if member is None:
            return None
        return member.nick

    async def tag_roles(self, client, param):
        member = await self.fetch_member(client, param)
        if member is None:
            return None
        # The first entry of Member.roles is always @everyone
        return [RoleRef(bot=self.bot, role_id=role.id) for role in member.roles[1:]]

    async def tag_status(self, client, param):
        """online, dnd, idle, invisible or offline, as seen from the group."""
        member = self.live_member(client, param)
        if member is None:
            return None
        return str(member.status)

    async def tag_activity_type(self, client, param):
        """playing, streaming, listening, watching, custom or competing."""
        member = self.live_member(client, param)
        if member is None or member.activity is None:
            return None
        return member.activity.type.name

    async def tag_activity_name(self, client, param):
        member = self.live_member(client, param)
        if member is None or member.activity is None:
            return None
        return member.activity.name

    async def tag_activity_url(self, client, param):
        member = self.live_member(client, param)
        if member is None or member.activity is None:
            return None
        return getattr(member.activity, "url", None)
