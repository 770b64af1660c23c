"""BotRef: a connected bot itself, identified as discord@<bot>."""

from __future__ import annotations

from typing import ClassVar, Literal

from discordlink.references.base import Reference, best_name_match, strip_prefix
from discordlink.references.group import GroupRef
from discordlink.references.user import UserRef


class BotRef(Reference):
    """Reference to one of the registry's bots."""

    PREFIX: ClassVar[str] = "discord"
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id"})

    kind: Literal["bot"] = "bot"
    bot: str

    def identify(self) -> str:
        return f"{self.PREFIX}@{self.bot}"

    @classmethod
    def parse(cls, text: str) -> BotRef | None:
        body = strip_prefix(text.strip(), cls.PREFIX)
        if not body or "," in body:
            return None
        return cls(bot=body.lower())

    async def tag_id(self, client, param):
        return self.bot

    async def tag_name(self, client, param):
        return client.user.name if client.user is not None else None

    async def tag_self_user(self, client, param):
        if client.user is None:
            return None
        return UserRef(bot=self.bot, user_id=client.user.id)

    async def tag_groups(self, client, param):
        return [GroupRef(bot=self.bot, group_id=guild.id) for guild in client.guilds]

    async def tag_group(self, client, param):
        if not param:
            return None
        match = best_name_match(client.guilds, param, lambda guild: guild.name)
        if match is None:
            return None
        return GroupRef(bot=self.bot, group_id=match.id)
