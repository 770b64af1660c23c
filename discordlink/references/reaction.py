"""
ReactionRef: a reaction on a message.

Identified as discordreaction@[bot,]channel,message,emoji where the emoji
field is a custom emoji's numeric id or a unicode emoji as text.
"""

from __future__ import annotations

from typing import ClassVar, Literal

import discord

from discordlink.references.base import Reference, parse_snowflake, strip_prefix
from discordlink.references.message import MessageRef, split_ids
from discordlink.references.user import UserRef


def emoji_key(emoji: discord.PartialEmoji | discord.Emoji | str) -> str:
    """Identifier text for an emoji: custom emoji id, or the unicode text."""
    if isinstance(emoji, str):
        return emoji
    if emoji.id is not None:
        return str(emoji.id)
    return emoji.name


class ReactionRef(Reference):
    """Reference to one emoji's reactions on a message."""

    PREFIX: ClassVar[str] = "discordreaction"
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id", "message"})

    kind: Literal["reaction"] = "reaction"
    channel_id: int
    message_id: int
    emoji: str

    def _identity_fields(self) -> list[str]:
        return [str(self.channel_id), str(self.message_id), self.emoji]

    @classmethod
    def parse(cls, text: str) -> ReactionRef | None:
        body = strip_prefix(text.strip(), cls.PREFIX)
        if body is None:
            return None
        split = split_ids(body, 3)
        if split is None:
            return None
        bot, (channel_text, message_text, emoji) = split
        channel_id = parse_snowflake(channel_text)
        message_id = parse_snowflake(message_text)
        if channel_id is None or message_id is None or not emoji:
            return None
        return cls(bot=bot, channel_id=channel_id, message_id=message_id, emoji=emoji)

    @classmethod
    def from_reaction(
        cls, bot: str | None, channel_id: int, message_id: int, reaction: discord.Reaction
    ) -> ReactionRef:
        return cls(
            bot=bot,
            channel_id=channel_id,
            message_id=message_id,
            emoji=emoji_key(reaction.emoji),
        )

    @property
    def is_custom(self) -> bool:
        return self.emoji.isdigit()

    async def fetch(self, client: discord.Client) -> discord.Reaction | None:
        message = await MessageRef(
            bot=self.bot, channel_id=self.channel_id, message_id=self.message_id
        ).fetch(client)
        if message is None:
            return None
        for reaction in message.reactions:
            if emoji_key(reaction.emoji) == self.emoji:
                return reaction
        return None

    async def tag_id(self, client, param):
        return self.emoji

    async def tag_message(self, client, param):
        return MessageRef(bot=self.bot, channel_id=self.channel_id, message_id=self.message_id)

    async def tag_count(self, client, param):
        reaction = await self.fetch(client)
        return reaction.count if reaction is not None else None

    async def tag_name(self, client, param):
        if not self.is_custom:
            return self.emoji
        reaction = await self.fetch(client)
        if reaction is None:
            return None
        return getattr(reaction.emoji, "name", None)

    async def tag_is_animated(self, client, param):
        if not self.is_custom:
            return False
        reaction = await self.fetch(client)
        if reaction is None:
            return None
        return bool(getattr(reaction.emoji, "animated", False))

    async def tag_reactors(self, client, param):
        reaction = await self.fetch(client)
        if reaction is None:
            return None
        return [UserRef(bot=self.bot, user_id=user.id) async for user in reaction.users()]
