"""
GroupRef: a Discord group (guild), identified as discordgroup@[bot,]id.

"Group" is what scripts call a guild/server. Every attribute re-fetches the
guild over REST, so renamed channels or new members show up immediately.
"""

from __future__ import annotations

from typing import ClassVar, Literal

import discord

from discordlink.references.base import SnowflakeReference, best_name_match


def split_discriminator(query: str) -> tuple[str, str | None]:
    """
    Split "name#1234" into ("name", "1234").

    Only a trailing four-character discriminator counts; anything else is
    treated as part of the name.
    """
    query = query.lower()
    mark = query.find("#")
    if mark > 0 and mark == len(query) - 5:
        return query[:mark], query[mark + 1:]
    return query, None


class GroupRef(SnowflakeReference):
    """Reference to a group on Discord."""

    PREFIX: ClassVar[str] = "discordgroup"
    ID_FIELD: ClassVar[str] = "group_id"

    kind: Literal["group"] = "group"
    group_id: int

    async def fetch(self, client: discord.Client) -> discord.Guild:
        return await client.fetch_guild(self.group_id)

    async def tag_name(self, client, param):
        guild = await self.fetch(client)
        return guild.name

    async def tag_channels(self, client, param):
        from discordlink.references.channel import ChannelRef

        guild = await self.fetch(client)
        return [ChannelRef(bot=self.bot, channel_id=chan.id) for chan in await guild.fetch_channels()]

    async def tag_members(self, client, param):
        from discordlink.references.user import UserRef

        guild = await self.fetch(client)
        return [UserRef(bot=self.bot, user_id=member.id) async for member in guild.fetch_members(limit=None)]

    async def tag_roles(self, client, param):
        from discordlink.references.role import RoleRef

        guild = await self.fetch(client)
        return [RoleRef(bot=self.bot, role_id=role.id) for role in await guild.fetch_roles()]

    async def tag_member(self, client, param):
        """
        The member whose username matches ``param``.

        "name#1234" only matches that exact user. A bare name returns the
        first member with that username; which one is unspecified when
        several members share it.
        """
        from discordlink.references.user import UserRef

        if not param:
            return None
        name, discriminator = split_discriminator(param)
        guild = await self.fetch(client)
        async for member in guild.fetch_members(limit=None):
            if member.name.lower() != name:
                continue
            if discriminator is not None and member.discriminator != discriminator:
                continue
            return UserRef(bot=self.bot, user_id=member.id)
        return None

    async def tag_channel(self, client, param):
        from discordlink.references.channel import ChannelRef

        if not param:
            return None
        guild = await self.fetch(client)
        match = best_name_match(await guild.fetch_channels(), param, lambda chan: chan.name)
        if match is None:
            return None
        return ChannelRef(bot=self.bot, channel_id=match.id)

    async def tag_role(self, client, param):
        from discordlink.references.role import RoleRef

        if not param:
            return None
        guild = await self.fetch(client)
        match = best_name_match(await guild.fetch_roles(), param, lambda role: role.name)
        if match is None:
            return None
        return RoleRef(bot=self.bot, role_id=match.id)
