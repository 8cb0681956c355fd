"""Persistent bot settings."""

from kawaii_bot.storage.settings import BotSettings, SettingsStore

__all__ = [
    "BotSettings",
    "SettingsStore",
]
