"""
Discord client layer.

Wraps discord.py clients so the connection registry can log bots in and out
without knowing about gateway details.
"""

from discordlink.bot.client import DiscordSessionProvider, SessionClient

__all__ = ["DiscordSessionProvider", "SessionClient"]
