"""Utility modules for Kawaii Bot."""

from kawaii_bot.utils.exceptions import (
    KawaiiBotError,
    ConfigurationError,
    SchedulerStateError,
    DeliveryError,
    DeliveryDisabledError,
    ImageAPIError,
    StorageError,
    DiscordAPIError,
)
from kawaii_bot.utils.logging import setup_logging

__all__ = [
    "KawaiiBotError",
    "ConfigurationError",
    "SchedulerStateError",
    "DeliveryError",
    "DeliveryDisabledError",
    "ImageAPIError",
    "StorageError",
    "DiscordAPIError",
    "setup_logging",
]
