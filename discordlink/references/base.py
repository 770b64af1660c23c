"""
Base class and parsing helpers for reference objects.

A reference names a remote Discord entity by bot id + snowflake id(s) and
holds no live state. Constructing one never needs a session; only
get_attribute() does, and it looks the session up again on every call so
the result always reflects the current remote state.

Identifier format shared by every kind:

    <prefix>@[<bot>,]<id>[,<id>...]

The "<prefix>@" part is optional when the kind is already known. The bot id
is case-folded; without it the reference is bot-agnostic and can only answer
attributes that need no remote data.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, ClassVar, TypeVar

import discord
from pydantic import BaseModel, ConfigDict

from discordlink.config.logging import get_logger
from discordlink.registry import ConnectionRegistry

logger = get_logger(__name__)

_SNOWFLAKE_RE = re.compile(r"^\d{1,20}$", re.ASCII)
_MAX_SNOWFLAKE = 2**64 - 1

T = TypeVar("T")


def strip_prefix(text: str, prefix: str) -> str | None:
    """Remove an optional "<prefix>@" marker. Returns None if another "@" remains."""
    marker = f"{prefix}@"
    if text.lower().startswith(marker):
        text = text[len(marker):]
    if "@" in text:
        return None
    return text


def split_bot(text: str) -> tuple[str | None, str]:
    """Split a leading "<bot>," off an identifier body."""
    comma = text.find(",")
    if comma > 0:
        return text[:comma].lower(), text[comma + 1:]
    return None, text


def parse_snowflake(text: str) -> int | None:
    """Parse a positive 64-bit id. Anything else yields None."""
    text = text.strip()
    if not _SNOWFLAKE_RE.match(text):
        return None
    value = int(text)
    if value == 0 or value > _MAX_SNOWFLAKE:
        return None
    return value


def best_name_match(items: Iterable[T], query: str, name_of: Callable[[T], str]) -> T | None:
    """
    Pick the item whose name best matches the query.

    An exact case-insensitive match wins; otherwise the first item (in
    enumeration order) whose name contains the query.
    """
    query = query.lower()
    partial = None
    for item in items:
        name = name_of(item).lower()
        if name == query:
            return item
        if partial is None and query in name:
            partial = item
    return partial


Handler = Callable[..., Awaitable[Any]]


class Reference(BaseModel):
    """
    Common behaviour of every reference kind.

    Subclasses declare PREFIX, their id fields, and one coroutine per
    attribute named ``tag_<attribute>``. Each tag coroutine receives the
    live client (or None for LOCAL_TAGS on a bot-agnostic reference) and
    the optional attribute parameter.
    """

    model_config = ConfigDict(frozen=True)

    PREFIX: ClassVar[str]
    LOCAL_TAGS: ClassVar[frozenset[str]] = frozenset({"id"})

    bot: str | None = None

    def identify(self) -> str:
        fields = self._identity_fields()
        if self.bot is not None:
            fields = [self.bot, *fields]
        return f"{self.PREFIX}@" + ",".join(fields)

    def _identity_fields(self) -> list[str]:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.identify()

    def client(self, registry: ConnectionRegistry) -> discord.Client | None:
        """Resolve the live client for this reference's bot, if any."""
        if self.bot is None:
            return None
        session = registry.lookup(self.bot)
        return session.client if session is not None else None

    @classmethod
    def attribute_names(cls) -> list[str]:
        """Names of the attributes get_attribute() answers."""
        return sorted(
            name[4:]
            for name in dir(cls)
            if name.startswith("tag_") and inspect.iscoroutinefunction(getattr(cls, name))
        )

    async def get_attribute(
        self,
        registry: ConnectionRegistry,
        name: str,
        param: str | None = None,
    ) -> Any:
        """
        Evaluate a named attribute against current remote state.

        Returns None when the attribute is unknown, the session is absent,
        the remote entity is gone, or nothing matches. Never raises for
        remote failures; those are logged.
        """
        name = name.lower()
        handler: Handler | None = getattr(self, f"tag_{name}", None)
        if handler is None or not inspect.iscoroutinefunction(handler):
            logger.debug(f"{self.identify()} has no attribute '{name}'")
            return None

        client = self.client(registry)
        if client is None and name not in self.LOCAL_TAGS:
            logger.debug(f"{self.identify()}.{name}: no live session for bot '{self.bot}'")
            return None

        try:
            return await handler(client, param)
        except discord.NotFound:
            logger.debug(f"{self.identify()}.{name}: remote entity not found")
            return None
        except discord.HTTPException as e:
            logger.warning(f"{self.identify()}.{name} failed: {e}")
            return None


class SnowflakeReference(Reference):
    """A reference identified by one snowflake id."""

    ID_FIELD: ClassVar[str]

    @property
    def snowflake(self) -> int:
        return getattr(self, self.ID_FIELD)

    def _identity_fields(self) -> list[str]:
        return [str(self.snowflake)]

    @classmethod
    def parse(cls, text: str):
        """Parse "[<prefix>@][<bot>,]<id>". Returns None when malformed."""
        body = strip_prefix(text.strip(), cls.PREFIX)
        if body is None:
            return None
        bot, rest = split_bot(body)
        value = parse_snowflake(rest)
        if value is None:
            return None
        return cls(bot=bot, **{cls.ID_FIELD: value})

    async def tag_id(self, client, param):
        return self.snowflake
