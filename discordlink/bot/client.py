"""
SessionClient: discord.py client backing one registered bot.

DiscordSessionProvider logs a client in, starts the gateway connection as a
background task, and hands a Session to the registry once the client is
ready. If the gateway task dies before the ready event (bad intents, network
error) the failure is raised from open() instead of hanging.

Once connected, the client reports gateway events (messages, members
joining or leaving, role changes) to an event listener; see
discordlink.events.
"""

from __future__ import annotations

import asyncio

import discord

from discordlink import events
from discordlink.config.logging import get_logger
from discordlink.config.settings import DiscordSettings
from discordlink.events import DiscordEvent, EventListener, log_event
from discordlink.registry import Session, SessionProvider

logger = get_logger(__name__)


def build_intents(settings: DiscordSettings) -> discord.Intents:
    intents = discord.Intents.default()
    intents.members = settings.members_intent
    intents.presences = settings.presences_intent
    intents.message_content = settings.message_content_intent
    return intents


class SessionClient(discord.Client):
    """
    Discord client for a single bot id.

    Gateway callbacks are turned into discordlink events and passed to
    the event listener. A failing listener is logged and never reaches discord.py.

    Args:
        bot_id: Registry id, used for log messages and event references
        intents: Gateway intents to request
        on_event: Listener for gateway events; by default they are only logged
    """

    def __init__(
        self,
        bot_id: str,
        intents: discord.Intents,
        on_event: EventListener | None = None,
    ) -> None:
        super().__init__(intents=intents)
        self.bot_id = bot_id
        self.event_listener = on_event or log_event
        self.connect_task: asyncio.Task | None = None

    async def on_ready(self) -> None:
        """Called when the gateway session is established."""
        logger.info(f"[{self.bot_id}] Logged in as {self.user} (id: {self.user.id})")
        logger.info(f"[{self.bot_id}] Connected to {len(self.guilds)} group(s)")

    async def emit(self, event: DiscordEvent | None) -> None:
        if event is None:
            return
        logger.info(event.describe())
        try:
            await self.event_listener(event)
        except Exception as e:
            logger.exception(f"[{self.bot_id}] Event listener failed on {event.kind}: {e}")

    async def on_message(self, message: discord.Message) -> None:
        await self.emit(events.message_received(self.bot_id, message))

    async def on_raw_message_edit(self, payload: discord.RawMessageUpdateEvent) -> None:
        await self.emit(events.message_modified(self.bot_id, payload))

    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        await self.emit(events.message_deleted(self.bot_id, payload))

    async def on_member_join(self, member: discord.Member) -> None:
        await self.emit(events.user_joins(self.bot_id, member))

    async def on_member_remove(self, member: discord.Member) -> None:
        await self.emit(events.user_leaves(self.bot_id, member))

    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        await self.emit(events.user_role_change(self.bot_id, before, after))

    async def close(self) -> None:
        logger.info(f"[{self.bot_id}] Logging out...")
        await super().close()


class DiscordSessionProvider(SessionProvider):
    """
    Production session provider backed by discord.py.

    Args:
        settings: Discord settings (intents)
        on_event: Listener given to every client this provider logs in
    """

    def __init__(self, settings: DiscordSettings, on_event: EventListener | None = None) -> None:
        self._settings = settings
        self._on_event = on_event

    async def open(self, bot_id: str, token: str) -> Session:
        client = SessionClient(bot_id, build_intents(self._settings), self._on_event)
        try:
            await client.login(token)
            client.connect_task = asyncio.create_task(
                client.connect(reconnect=True), name=f"gateway-{bot_id}"
            )
            ready_task = asyncio.create_task(client.wait_until_ready())
            done, _ = await asyncio.wait(
                {client.connect_task, ready_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if ready_task not in done:
                ready_task.cancel()
                # connect() only returns early on failure or close
                exc = client.connect_task.exception()
                raise exc or ConnectionError(f"gateway closed before '{bot_id}' was ready")
        except BaseException:
            await client.close()
            raise
        return Session(bot_id=bot_id, client=client)

    async def close(self, session: Session) -> None:
        client = session.client
        await client.close()
        connect_task = getattr(client, "connect_task", None)
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
            try:
                await connect_task
            except asyncio.CancelledError:
                logger.debug(f"[{session.bot_id}] Gateway task cancelled")
