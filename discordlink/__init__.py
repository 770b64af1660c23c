"""
discordlink - drive Discord bots from line-oriented script commands.

Keeps a registry of connected bots, dispatches ``discord`` commands
(connect, message, roles, presence, typing, nicknames, message edits)
against them through discord.py, and exposes reference objects whose
attributes are fetched live from Discord.
"""

__version__ = "0.1.0"
