"""
Tests for the discord.py-backed session provider.

SessionClient is patched out so no gateway connection is attempted; the
provider tests only drive the login / connect / ready sequencing. Gateway
event handlers are called directly with mocked discord.py objects.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from discordlink.bot.client import DiscordSessionProvider, SessionClient, build_intents
from discordlink.config.settings import DiscordSettings
from discordlink.events import (
    MessageDeleted,
    MessageModified,
    MessageReceived,
    UserJoins,
    UserLeaves,
    UserRoleChange,
    log_event,
)
from discordlink.references import GroupRef, MessageRef, RoleRef, UserRef


async def _forever(*args, **kwargs):
    await asyncio.Event().wait()


def _fake_client(connect=_forever, ready=None) -> MagicMock:
    client = MagicMock()
    client.login = AsyncMock()
    client.close = AsyncMock()
    client.connect = MagicMock(side_effect=connect)
    client.wait_until_ready = MagicMock(side_effect=ready or _forever)
    client.connect_task = None
    return client


class TestBuildIntents:
    def test_defaults(self):
        """Members and presences are requested by default, message content is not."""
        intents = build_intents(DiscordSettings())
        assert intents.members is True
        assert intents.presences is True
        assert intents.message_content is False
        assert intents.guilds is True

    def test_flags_are_honoured(self):
        settings = DiscordSettings(members_intent=False, presences_intent=False, message_content_intent=True)
        intents = build_intents(settings)
        assert intents.members is False
        assert intents.presences is False
        assert intents.message_content is True


class TestDiscordSessionProvider:
    @pytest.mark.asyncio
    async def test_open_returns_session_once_ready(self):
        """open() logs in, starts the gateway and returns after the ready event."""

        async def ready():
            return None

        client = _fake_client(ready=ready)
        provider = DiscordSessionProvider(DiscordSettings())

        with patch("discordlink.bot.client.SessionClient", return_value=client) as cls:
            session = await provider.open("mybot", "ABC")

        cls.assert_called_once()
        assert cls.call_args.args[0] == "mybot"
        client.login.assert_awaited_once_with("ABC")
        assert session.bot_id == "mybot"
        assert session.client is client
        assert not client.connect_task.done()

        await provider.close(session)
        client.close.assert_awaited_once()
        assert client.connect_task.cancelled()

    @pytest.mark.asyncio
    async def test_rejected_token_closes_client(self):
        """A LoginFailure propagates and the half-built client is closed."""
        client = _fake_client()
        client.login.side_effect = discord.LoginFailure("Improper token has been passed.")
        provider = DiscordSessionProvider(DiscordSettings())

        with patch("discordlink.bot.client.SessionClient", return_value=client):
            with pytest.raises(discord.LoginFailure):
                await provider.open("mybot", "bad")

        client.close.assert_awaited_once()
        client.connect.assert_not_called()

    @pytest.mark.asyncio
    async def test_gateway_failure_before_ready_is_raised(self):
        """If the gateway task dies first, its exception comes out of open()."""

        async def broken_connect(*args, **kwargs):
            raise RuntimeError("gateway refused intents")

        client = _fake_client(connect=broken_connect)
        provider = DiscordSessionProvider(DiscordSettings())

        with patch("discordlink.bot.client.SessionClient", return_value=client):
            with pytest.raises(RuntimeError, match="gateway refused intents"):
                await provider.open("mybot", "ABC")

        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gateway_closing_cleanly_before_ready(self):
        async def closed_connect(*args, **kwargs):
            return None

        client = _fake_client(connect=closed_connect)
        provider = DiscordSessionProvider(DiscordSettings())

        with patch("discordlink.bot.client.SessionClient", return_value=client):
            with pytest.raises(ConnectionError, match="before 'mybot' was ready"):
                await provider.open("mybot", "ABC")


def _session_client(listener) -> SessionClient:
    """A SessionClient without a gateway connection, as the handlers see it."""
    client = SessionClient.__new__(SessionClient)
    client.bot_id = "mybot"
    client.event_listener = listener
    return client


def _member(member_id: int, role_ids=()) -> MagicMock:
    member = MagicMock()
    member.id = member_id
    member.guild.id = 1234
    member.roles = [MagicMock(id=role_id) for role_id in role_ids]
    return member


class TestGatewayEvents:
    @pytest.mark.asyncio
    async def test_message_reaches_listener(self):
        listener = AsyncMock()
        client = _session_client(listener)
        message = MagicMock()
        message.id, message.channel.id, message.author.id, message.guild.id = 777, 555, 42, 1234
        message.content = "Hello world!"

        await client.on_message(message)

        event = listener.await_args.args[0]
        assert isinstance(event, MessageReceived)
        assert event.message == MessageRef(bot="mybot", channel_id=555, message_id=777)
        assert event.author == UserRef(bot="mybot", user_id=42)

    @pytest.mark.asyncio
    async def test_edit_and_delete(self):
        listener = AsyncMock()
        client = _session_client(listener)
        payload = MagicMock(message_id=777, channel_id=555, guild_id=1234, cached_message=None)
        payload.data = {"content": "edited"}

        await client.on_raw_message_edit(payload)
        await client.on_raw_message_delete(payload)

        modified, deleted = (call.args[0] for call in listener.await_args_list)
        assert isinstance(modified, MessageModified)
        assert modified.text == "edited"
        assert isinstance(deleted, MessageDeleted)
        assert deleted.message == MessageRef(bot="mybot", channel_id=555, message_id=777)

    @pytest.mark.asyncio
    async def test_member_join_leave_and_roles(self):
        listener = AsyncMock()
        client = _session_client(listener)

        await client.on_member_join(_member(42))
        await client.on_member_update(_member(42), _member(42, role_ids=[7]))
        await client.on_member_remove(_member(42))

        joined, changed, left = (call.args[0] for call in listener.await_args_list)
        assert isinstance(joined, UserJoins)
        assert isinstance(changed, UserRoleChange)
        assert changed.added_roles == [RoleRef(bot="mybot", role_id=7)]
        assert isinstance(left, UserLeaves)
        assert left.group == GroupRef(bot="mybot", group_id=1234)

    @pytest.mark.asyncio
    async def test_unchanged_roles_are_not_reported(self):
        listener = AsyncMock()
        client = _session_client(listener)

        await client.on_member_update(_member(42, role_ids=[7]), _member(42, role_ids=[7]))

        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_listener_is_logged_not_raised(self):
        client = _session_client(AsyncMock(side_effect=RuntimeError("listener broke")))

        with patch("discordlink.bot.client.logger") as logger:
            await client.on_member_join(_member(42))

        logger.exception.assert_called_once()
        assert "listener broke" in logger.exception.call_args.args[0]

    @pytest.mark.asyncio
    async def test_events_are_logged_without_a_listener(self):
        client = SessionClient("mybot", build_intents(DiscordSettings()))
        assert client.event_listener is log_event

        with patch("discordlink.bot.client.logger") as logger:
            await client.on_member_join(_member(42))

        logger.info.assert_called_once_with("[mybot] user 42 joined group 1234")

    @pytest.mark.asyncio
    async def test_provider_hands_listener_to_clients(self):
        async def ready():
            return None

        listener = AsyncMock()
        client = _fake_client(ready=ready)
        provider = DiscordSessionProvider(DiscordSettings(), on_event=listener)

        with patch("discordlink.bot.client.SessionClient", return_value=client) as cls:
            session = await provider.open("mybot", "ABC")

        assert cls.call_args.args[2] is listener
        await provider.close(session)
