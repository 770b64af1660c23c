"""ChannelRef: a Discord channel, identified as discordchannel@[bot,]id."""

from __future__ import annotations

from typing import ClassVar, Literal

import discord

from discordlink.references.base import SnowflakeReference
from discordlink.references.group import GroupRef


class ChannelRef(SnowflakeReference):
    """Reference to a channel (group channel or private channel)."""

    PREFIX: ClassVar[str] = "discordchannel"
    ID_FIELD: ClassVar[str] = "channel_id"
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id", "mention"})

    kind: Literal["channel"] = "channel"
    channel_id: int

    async def fetch(self, client: discord.Client) -> discord.abc.Snowflake:
        return await client.fetch_channel(self.channel_id)

    async def tag_name(self, client, param):
        channel = await self.fetch(client)
        return getattr(channel, "name", None)

    async def tag_mention(self, client, param):
        return f"<#{self.channel_id}>"

    async def tag_type(self, client, param):
        channel = await self.fetch(client)
        return str(channel.type)

    async def tag_topic(self, client, param):
        channel = await self.fetch(client)
        return getattr(channel, "topic", None)

    async def tag_group(self, client, param):
        channel = await self.fetch(client)
        guild = getattr(channel, "guild", None)
        if guild is None:
            return None
        return GroupRef(bot=self.bot, group_id=guild.id)
