"""
Tests for reference attribute lookups.

The session's client is a MagicMock scripted per test; every lookup must
go back to it (no caching) and turn missing data into None.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from discordlink.references import (
    BotRef,
    ChannelRef,
    GroupRef,
    MessageRef,
    ReactionRef,
    RoleRef,
    UserRef,
)
from helpers import aiter_of, named, not_found


def _member(member_id: int, name: str, discriminator: str = "0") -> MagicMock:
    return named(member_id, name, discriminator=discriminator)


async def _connected_client(registry) -> MagicMock:
    session = await registry.connect("mybot", "token")
    return session.client


def _guild_with(client, members=(), channels=(), roles=()) -> MagicMock:
    guild = named(1234, "Denizen")
    guild.fetch_members = MagicMock(side_effect=lambda limit=None: aiter_of(list(members)))
    guild.fetch_channels = AsyncMock(return_value=list(channels))
    guild.fetch_roles = AsyncMock(return_value=list(roles))
    client.fetch_guild = AsyncMock(return_value=guild)
    return guild


class TestGracefulAbsence:
    @pytest.mark.asyncio
    async def test_no_session_yields_none(self, registry):
        ref = GroupRef(bot="mybot", group_id=1234)
        assert await ref.get_attribute(registry, "name") is None

    @pytest.mark.asyncio
    async def test_bot_agnostic_reference_still_answers_id(self, registry):
        ref = GroupRef(group_id=1234)
        assert await ref.get_attribute(registry, "id") == 1234
        assert await ref.get_attribute(registry, "name") is None

    @pytest.mark.asyncio
    async def test_unknown_attribute_yields_none(self, registry):
        await _connected_client(registry)
        ref = GroupRef(bot="mybot", group_id=1234)
        assert await ref.get_attribute(registry, "no_such_thing") is None

    @pytest.mark.asyncio
    async def test_helper_methods_are_not_attributes(self, registry):
        """Only tag coroutines are attributes; "names" must not reach attribute_names()."""
        await _connected_client(registry)
        ref = GroupRef(bot="mybot", group_id=1234)

        assert "names" not in ref.attribute_names()
        assert {"id", "name", "member", "roles"} <= set(ref.attribute_names())
        assert await ref.get_attribute(registry, "names") is None

    @pytest.mark.asyncio
    async def test_remote_not_found_yields_none(self, registry):
        client = await _connected_client(registry)
        client.fetch_guild = AsyncMock(side_effect=not_found("Unknown Guild"))
        ref = GroupRef(bot="mybot", group_id=1234)
        assert await ref.get_attribute(registry, "name") is None


class TestGroupAttributes:
    @pytest.mark.asyncio
    async def test_name_is_fetched_on_every_call(self, registry):
        client = await _connected_client(registry)
        guild = _guild_with(client)
        ref = GroupRef(bot="mybot", group_id=1234)

        assert await ref.get_attribute(registry, "name") == "Denizen"
        guild.name = "Renamed"
        assert await ref.get_attribute(registry, "NAME") == "Renamed"
        assert client.fetch_guild.await_count == 2

    @pytest.mark.asyncio
    async def test_member_matches_username_case_insensitively(self, registry):
        client = await _connected_client(registry)
        _guild_with(client, members=[_member(1, "alice"), _member(2, "Bob")])
        ref = GroupRef(bot="mybot", group_id=1234)

        assert await ref.get_attribute(registry, "member", "BOB") == UserRef(bot="mybot", user_id=2)

    @pytest.mark.asyncio
    async def test_member_with_discriminator_requires_exact_match(self, registry):
        client = await _connected_client(registry)
        _guild_with(client, members=[_member(1, "bob", "1111"), _member(2, "bob", "2222")])
        ref = GroupRef(bot="mybot", group_id=1234)

        assert await ref.get_attribute(registry, "member", "bob#2222") == UserRef(bot="mybot", user_id=2)
        assert await ref.get_attribute(registry, "member", "bob#3333") is None

    @pytest.mark.asyncio
    async def test_member_without_param_or_match_is_none(self, registry):
        client = await _connected_client(registry)
        _guild_with(client, members=[_member(1, "alice")])
        ref = GroupRef(bot="mybot", group_id=1234)

        assert await ref.get_attribute(registry, "member") is None
        assert await ref.get_attribute(registry, "member", "carol") is None

    @pytest.mark.asyncio
    async def test_channel_prefers_exact_then_first_substring(self, registry):
        client = await _connected_client(registry)
        _guild_with(client, channels=[named(10, "general"), named(11, "bot-spam"), named(12, "spam")])
        ref = GroupRef(bot="mybot", group_id=1234)

        assert await ref.get_attribute(registry, "channel", "Spam") == ChannelRef(bot="mybot", channel_id=12)
        assert await ref.get_attribute(registry, "channel", "bot") == ChannelRef(bot="mybot", channel_id=11)
        assert await ref.get_attribute(registry, "channel", "memes") is None

    @pytest.mark.asyncio
    async def test_lists(self, registry):
        client = await _connected_client(registry)
        _guild_with(
            client,
            members=[_member(1, "alice")],
            channels=[named(10, "general")],
            roles=[named(7, "Admin")],
        )
        ref = GroupRef(bot="mybot", group_id=1234)

        assert await ref.get_attribute(registry, "members") == [UserRef(bot="mybot", user_id=1)]
        assert await ref.get_attribute(registry, "channels") == [ChannelRef(bot="mybot", channel_id=10)]
        assert await ref.get_attribute(registry, "roles") == [RoleRef(bot="mybot", role_id=7)]
        assert await ref.get_attribute(registry, "role", "admin") == RoleRef(bot="mybot", role_id=7)


class TestUserAttributes:
    @pytest.mark.asyncio
    async def test_presence_comes_from_live_member(self, registry):
        client = await _connected_client(registry)
        activity = MagicMock()
        activity.type = discord.ActivityType.streaming
        activity.name = "Minecraft"
        activity.url = "https://twitch.tv/example"
        member = named(42, "alice", status=discord.Status.idle, activity=activity)
        client.get_guild.return_value.get_member.return_value = member
        ref = UserRef(bot="mybot", user_id=42)

        assert await ref.get_attribute(registry, "status", "1234") == "idle"
        assert await ref.get_attribute(registry, "activity_type", "discordgroup@mybot,1234") == "streaming"
        assert await ref.get_attribute(registry, "activity_name", "1234") == "Minecraft"
        assert await ref.get_attribute(registry, "activity_url", "1234") == "https://twitch.tv/example"
        client.get_guild.assert_called_with(1234)
        client.get_guild.return_value.get_member.assert_called_with(42)

    @pytest.mark.asyncio
    async def test_activity_absent(self, registry):
        client = await _connected_client(registry)
        client.get_guild.return_value.get_member.return_value = named(42, "alice", activity=None)
        ref = UserRef(bot="mybot", user_id=42)

        assert await ref.get_attribute(registry, "activity_type", "1234") is None

    @pytest.mark.asyncio
    async def test_group_scoped_attributes_need_a_group(self, registry):
        await _connected_client(registry)
        ref = UserRef(bot="mybot", user_id=42)
        assert await ref.get_attribute(registry, "nickname") is None
        assert await ref.get_attribute(registry, "status", "not-a-group") is None

    @pytest.mark.asyncio
    async def test_nickname_and_roles(self, registry):
        client = await _connected_client(registry)
        guild = _guild_with(client)
        everyone = named(1234, "@everyone")
        guild.fetch_member = AsyncMock(
            return_value=named(42, "alice", nick="Ally", roles=[everyone, named(7, "Admin")])
        )
        ref = UserRef(bot="mybot", user_id=42)

        assert await ref.get_attribute(registry, "nickname", "1234") == "Ally"
        assert await ref.get_attribute(registry, "roles", "1234") == [RoleRef(bot="mybot", role_id=7)]

    @pytest.mark.asyncio
    async def test_mention_needs_no_session(self, registry):
        ref = UserRef(user_id=42)
        assert await ref.get_attribute(registry, "mention") == "<@42>"


class TestMessageAndReactionAttributes:
    def _message(self, client, reactions):
        message = MagicMock()
        message.content = "Hello world!"
        message.author.id = 42
        message.reactions = reactions
        channel = MagicMock(spec=discord.TextChannel)
        channel.fetch_message = AsyncMock(return_value=message)
        client.fetch_channel = AsyncMock(return_value=channel)
        return message

    def _reaction(self, emoji, count, users=()):
        reaction = MagicMock()
        reaction.emoji = emoji
        reaction.count = count
        reaction.users = MagicMock(side_effect=lambda: aiter_of(list(users)))
        return reaction

    @pytest.mark.asyncio
    async def test_message_text_and_author(self, registry):
        client = await _connected_client(registry)
        self._message(client, [])
        ref = MessageRef(bot="mybot", channel_id=555, message_id=777)

        assert await ref.get_attribute(registry, "text") == "Hello world!"
        assert await ref.get_attribute(registry, "author") == UserRef(bot="mybot", user_id=42)

    @pytest.mark.asyncio
    async def test_reaction_count_and_reactors(self, registry):
        client = await _connected_client(registry)
        self._message(
            client,
            [self._reaction("👎", 1), self._reaction("👍", 2, users=[named(1, "a"), named(2, "b")])],
        )
        ref = ReactionRef(bot="mybot", channel_id=555, message_id=777, emoji="👍")

        assert await ref.get_attribute(registry, "count") == 2
        assert await ref.get_attribute(registry, "reactors") == [
            UserRef(bot="mybot", user_id=1),
            UserRef(bot="mybot", user_id=2),
        ]
        assert await ref.get_attribute(registry, "name") == "👍"

    @pytest.mark.asyncio
    async def test_message_reactions_list(self, registry):
        client = await _connected_client(registry)
        custom = named(99, "blobcat", animated=True)
        self._message(client, [self._reaction(custom, 3)])
        ref = MessageRef(bot="mybot", channel_id=555, message_id=777)

        reactions = await ref.get_attribute(registry, "reactions")
        assert reactions == [ReactionRef(bot="mybot", channel_id=555, message_id=777, emoji="99")]
        assert await reactions[0].get_attribute(registry, "is_animated") is True
        assert await reactions[0].get_attribute(registry, "name") == "blobcat"

    @pytest.mark.asyncio
    async def test_deleted_message_yields_none(self, registry):
        client = await _connected_client(registry)
        channel = MagicMock(spec=discord.TextChannel)
        channel.fetch_message = AsyncMock(side_effect=not_found())
        client.fetch_channel = AsyncMock(return_value=channel)
        ref = MessageRef(bot="mybot", channel_id=555, message_id=777)

        assert await ref.get_attribute(registry, "text") is None

    @pytest.mark.asyncio
    async def test_channel_without_messages_yields_none(self, registry):
        """A category id in a message identifier is valid input, not a crash."""
        client = await _connected_client(registry)
        client.fetch_channel = AsyncMock(return_value=MagicMock(spec=discord.CategoryChannel))
        message = MessageRef(bot="mybot", channel_id=5, message_id=6)
        reaction = ReactionRef(bot="mybot", channel_id=5, message_id=6, emoji="👍")

        for name in ("text", "author", "was_edited", "reactions"):
            assert await message.get_attribute(registry, name) is None
        assert await reaction.get_attribute(registry, "count") is None


class TestBotAttributes:
    @pytest.mark.asyncio
    async def test_groups_and_group_by_name(self, registry):
        client = await _connected_client(registry)
        client.guilds = [named(1, "Denizen Script"), named(2, "Other")]
        ref = BotRef(bot="mybot")

        assert await ref.get_attribute(registry, "groups") == [
            GroupRef(bot="mybot", group_id=1),
            GroupRef(bot="mybot", group_id=2),
        ]
        assert await ref.get_attribute(registry, "group", "denizen") == GroupRef(bot="mybot", group_id=1)
        assert await ref.get_attribute(registry, "self_user") == UserRef(bot="mybot", user_id=999)
