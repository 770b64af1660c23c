"""
Error taxonomy for discordlink.

The registry and the command parser raise these; the dispatcher catches them
and reports them as diagnostics on the command result.
"""


class DiscordLinkError(Exception):
    """Base class for all discordlink errors."""


class InvalidArgumentsError(DiscordLinkError):
    """A command line is missing its bot id or instruction."""


class DuplicateIdError(DiscordLinkError):
    """A connect was issued for a bot id that is already registered."""

    def __init__(self, bot_id: str):
        super().__init__(f"duplicate ID '{bot_id}'")
        self.bot_id = bot_id


class UnknownIdError(DiscordLinkError):
    """No session is registered for the bot id."""

    def __init__(self, bot_id: str):
        super().__init__(f"unknown ID '{bot_id}'")
        self.bot_id = bot_id


class NotReadyError(DiscordLinkError):
    """The bot's session is still logging in."""

    def __init__(self, bot_id: str):
        super().__init__(f"the Discord bot '{bot_id}' is not yet loaded")
        self.bot_id = bot_id
