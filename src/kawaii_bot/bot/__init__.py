"""Discord client, commands and event handlers."""

from kawaii_bot.bot.client import KawaiiBot

__all__ = ["KawaiiBot"]
