"""
Connection registry: maps bot ids to live Discord sessions.

The registry is the only shared mutable state in discordlink. It is an
explicit service object: the CLI creates one at startup, hands it to the
dispatcher and the reference objects, and tears it down with close().

Login is delegated to a SessionProvider so tests can swap in a fake that
never touches the network. While a login is in flight the bot id is
"pending": lookup() reports it absent, but a second connect for the same id
is still rejected.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import discord

from discordlink.config.logging import get_logger
from discordlink.errors import DuplicateIdError, NotReadyError, UnknownIdError

logger = get_logger(__name__)


@dataclass
class Session:
    """
    A logged-in bot.

    Attributes:
        bot_id: Lowercased bot id the session is registered under
        client: Connected discord.py client
        typing_tasks: Channel id -> background task holding a typing indicator
    """

    bot_id: str
    client: discord.Client
    typing_tasks: dict[int, asyncio.Task] = field(default_factory=dict)

    async def start_typing(self, channel: discord.abc.Messageable, channel_id: int) -> None:
        """
        Show the typing indicator in a channel until stop_typing() is called.

        Returns once the indicator is on.

        Raises:
            discord.HTTPException: If Discord refused the typing request
        """
        existing = self.typing_tasks.get(channel_id)
        if existing is not None and not existing.done():
            return
        entered = asyncio.get_running_loop().create_future()
        task = asyncio.create_task(
            _keep_typing(channel, entered), name=f"typing-{self.bot_id}-{channel_id}"
        )
        self.typing_tasks[channel_id] = task
        await asyncio.wait({entered, task}, return_when=asyncio.FIRST_COMPLETED)
        if entered.done():
            return
        # The typing context failed before it was entered
        if self.typing_tasks.get(channel_id) is task:
            del self.typing_tasks[channel_id]
        if not task.cancelled():
            task.result()

    def stop_typing(self, channel_id: int) -> bool:
        """Cancel the typing indicator for a channel. Returns False if none was active."""
        task = self.typing_tasks.pop(channel_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def stop_all_typing(self) -> None:
        for channel_id in list(self.typing_tasks):
            self.stop_typing(channel_id)


async def _keep_typing(channel: discord.abc.Messageable, entered: asyncio.Future) -> None:
    # discord.py re-sends the typing event every few seconds inside the context
    async with channel.typing():
        entered.set_result(None)
        await asyncio.get_running_loop().create_future()


class SessionProvider(ABC):
    """Creates and tears down live sessions."""

    @abstractmethod
    async def open(self, bot_id: str, token: str) -> Session:
        """
        Log in with a bot token and return the connected session.

        Raises:
            discord.LoginFailure: If the token is rejected
            discord.HTTPException / ConnectionError: On transport failure
        """

    @abstractmethod
    async def close(self, session: Session) -> None:
        """Log the session out and release its connection."""


class ConnectionRegistry:
    """
    Process-wide mapping of bot ids to sessions.

    Reads (lookup, is_pending, __contains__) never suspend. Writes happen in
    two places only: connect() installs a session after a successful login,
    disconnect()/close() remove one. The duplicate check and the pending
    mark in connect() happen before it returns, so two connects for the
    same id can never both proceed.

    Args:
        provider: Factory used to log sessions in and out
    """

    def __init__(self, provider: SessionProvider) -> None:
        self._provider = provider
        self._sessions: dict[str, Session] = {}
        self._pending: set[str] = set()
        self._lock = asyncio.Lock()

    def lookup(self, bot_id: str) -> Session | None:
        """Return the established session for a bot id, or None."""
        return self._sessions.get(bot_id.lower())

    def is_pending(self, bot_id: str) -> bool:
        """True while a connect for this id is still logging in."""
        return bot_id.lower() in self._pending

    def __contains__(self, bot_id: str) -> bool:
        bot_id = bot_id.lower()
        return bot_id in self._sessions or bot_id in self._pending

    def bot_ids(self) -> list[str]:
        return sorted(self._sessions)

    def require(self, bot_id: str) -> Session:
        """
        Return the established session for a bot id.

        Raises:
            NotReadyError: If the id is registered but still logging in
            UnknownIdError: If nothing is registered under the id
        """
        bot_id = bot_id.lower()
        session = self._sessions.get(bot_id)
        if session is not None:
            return session
        if bot_id in self._pending:
            raise NotReadyError(bot_id)
        raise UnknownIdError(bot_id)

    def connect(self, bot_id: str, token: str) -> asyncio.Task[Session]:
        """
        Reserve a bot id and start logging it in.

        The id is marked pending as soon as this is called, so a second
        connect for it fails even before the first login is awaited. Await
        the returned task for the session. However the task ends, including
        cancellation before it ever runs, the pending mark is cleared.

        Raises:
            DuplicateIdError: If the id is already registered or pending
        """
        bot_id = bot_id.lower()
        if bot_id in self:
            raise DuplicateIdError(bot_id)
        self._pending.add(bot_id)
        task = asyncio.create_task(self._login(bot_id, token), name=f"login-{bot_id}")
        task.add_done_callback(lambda _: self._pending.discard(bot_id))
        return task

    async def _login(self, bot_id: str, token: str) -> Session:
        """
        Log a reserved bot id in and register the session.

        Raises:
            Exception: Whatever the provider raised; nothing is registered
        """
        logger.info(f"Connecting Discord bot '{bot_id}'...")
        try:
            session = await self._provider.open(bot_id, token)
        except BaseException:
            self._pending.discard(bot_id)
            logger.warning(f"Login failed for Discord bot '{bot_id}'")
            raise
        async with self._lock:
            self._pending.discard(bot_id)
            self._sessions[bot_id] = session
        logger.info(f"Discord bot '{bot_id}' connected")
        return session

    async def disconnect(self, bot_id: str) -> None:
        """
        Remove a bot from the registry and log it out.

        Returns once logout has finished.

        Raises:
            UnknownIdError: If nothing is registered under the id
            NotReadyError: If the id is still logging in
        """
        async with self._lock:
            session = self.require(bot_id)
            del self._sessions[session.bot_id]
        session.stop_all_typing()
        await self._provider.close(session)
        logger.info(f"Discord bot '{session.bot_id}' disconnected")

    async def close(self) -> None:
        """Disconnect every established session."""
        for bot_id in self.bot_ids():
            try:
                await self.disconnect(bot_id)
            except Exception as e:
                logger.warning(f"Error while disconnecting '{bot_id}': {e}")
