"""RoleRef: a group role, identified as discordrole@[bot,]id."""

from __future__ import annotations

from typing import ClassVar, Literal

import discord

from discordlink.references.base import SnowflakeReference
from discordlink.references.group import GroupRef


class RoleRef(SnowflakeReference):
    """Reference to a role in one of the bot's groups."""

    PREFIX: ClassVar[str] = "discordrole"
    ID_FIELD: ClassVar[str] = "role_id"
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id", "mention"})

    kind: Literal["role"] = "role"
    role_id: int

    def find(self, client: discord.Client) -> discord.Role | None:
        # Role ids are global, but Discord only serves roles per guild
        for guild in client.guilds:
            role = guild.get_role(self.role_id)
            if role is not None:
                return role
        return None

    async def tag_mention(self, client, param):
        return f"<@&{self.role_id}>"

    async def tag_name(self, client, param):
        role = self.find(client)
        return role.name if role is not None else None

    async def tag_color(self, client, param):
        role = self.find(client)
        return str(role.color) if role is not None else None

    async def tag_position(self, client, param):
        role = self.find(client)
        return role.position if role is not None else None

    async def tag_group(self, client, param):
        role = self.find(client)
        if role is None:
            return None
        return GroupRef(bot=self.bot, group_id=role.guild.id)
