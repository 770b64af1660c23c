"""Builders for mocked discord.py objects and a network-free session provider."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import discord

from discordlink.registry import Session, SessionProvider

SELF_USER_ID = 999


async def aiter_of(items):
    """Async iterator over a list, shaped like discord.py's paginated fetches."""
    for item in items:
        yield item


def named(mock_id: int, name: str, **attrs) -> MagicMock:
    """A MagicMock with real ``id`` and ``name`` attributes."""
    obj = MagicMock()
    obj.id = mock_id
    obj.name = name
    for key, value in attrs.items():
        setattr(obj, key, value)
    return obj


def not_found(text: str = "Unknown Message") -> discord.NotFound:
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), text)


def forbidden(text: str = "Missing Permissions") -> discord.Forbidden:
    return discord.Forbidden(MagicMock(status=403, reason="Forbidden"), text)


class FakeSessionProvider(SessionProvider):
    """
    Session provider that never touches Discord.

    Every "login" produces a Session whose client is a MagicMock, so tests
    can script the remote side without a network connection.

    Args:
        fail_with: Exception raised by open() instead of logging in
        gate: If set, open() waits for this event before finishing
    """

    def __init__(self, fail_with: BaseException | None = None, gate: asyncio.Event | None = None):
        self.fail_with = fail_with
        self.gate = gate
        self.opened: list[tuple[str, str]] = []
        self.closed: list[str] = []

    async def open(self, bot_id: str, token: str) -> Session:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.opened.append((bot_id, token))
        client = MagicMock(name=f"client-{bot_id}")
        client.user.id = SELF_USER_ID
        return Session(bot_id=bot_id, client=client)

    async def close(self, session: Session) -> None:
        self.closed.append(session.bot_id)
