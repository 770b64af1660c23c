"""MessageRef: a sent message, identified as discordmessage@[bot,]channel,message."""

from __future__ import annotations

from typing import ClassVar, Literal

import discord

from discordlink.references.base import Reference, parse_snowflake, strip_prefix
from discordlink.references.channel import ChannelRef
from discordlink.references.user import UserRef


def split_ids(text: str, id_count: int) -> tuple[str | None, list[str]] | None:
    """
    Split "[bot,]a,b,..." into (bot, [a, b, ...]).

    Exactly ``id_count`` trailing fields are expected, with one optional
    leading bot field. Returns None on any other field count.
    """
    parts = text.split(",")
    if len(parts) == id_count + 1:
        bot = parts[0].lower() or None
        return bot, parts[1:]
    if len(parts) == id_count:
        return None, parts
    return None


class MessageRef(Reference):
    """Reference to a message in a channel."""

    PREFIX: ClassVar[str] = "discordmessage"
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id", "channel"})

    kind: Literal["message"] = "message"
    channel_id: int
    message_id: int

    def _identity_fields(self) -> list[str]:
        return [str(self.channel_id), str(self.message_id)]

    @classmethod
    def parse(cls, text: str) -> MessageRef | None:
        body = strip_prefix(text.strip(), cls.PREFIX)
        if body is None:
            return None
        split = split_ids(body, 2)
        if split is None:
            return None
        bot, (channel_text, message_text) = split
        channel_id = parse_snowflake(channel_text)
        message_id = parse_snowflake(message_text)
        if channel_id is None or message_id is None:
            return None
        return cls(bot=bot, channel_id=channel_id, message_id=message_id)

    async def fetch(self, client: discord.Client) -> discord.Message | None:
        """The message, or None when the channel cannot hold messages (e.g. a category)."""
        channel = await client.fetch_channel(self.channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            return None
        return await channel.fetch_message(self.message_id)

    async def tag_id(self, client, param):
        return self.message_id

    async def tag_channel(self, client, param):
        return ChannelRef(bot=self.bot, channel_id=self.channel_id)

    async def tag_text(self, client, param):
        message = await self.fetch(client)
        return message.content if message is not None else None

    async def tag_author(self, client, param):
        message = await self.fetch(client)
        if message is None:
            return None
        return UserRef(bot=self.bot, user_id=message.author.id)

    async def tag_was_edited(self, client, param):
        message = await self.fetch(client)
        if message is None:
            return None
        return message.edited_at is not None

    async def tag_reactions(self, client, param):
        from discordlink.references.reaction import ReactionRef

        message = await self.fetch(client)
        if message is None:
            return None
        return [
            ReactionRef.from_reaction(self.bot, self.channel_id, self.message_id, reaction)
            for reaction in message.reactions
        ]
