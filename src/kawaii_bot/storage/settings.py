"""
JSON file persistence for bot settings.

Settings are small, so the whole file is rewritten on every change.
"""

import json
import threading
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ValidationError

from kawaii_bot.utils.exceptions import StorageError
from kawaii_bot.utils.logging import get_logger


class BotSettings(BaseModel):
    """Settings persisted across restarts."""

    daily_webhook_enabled: bool = False


class SettingsStore:
    """Loads and saves BotSettings to a JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        """
        Open the settings file, creating it with defaults if it is missing.

        Args:
            path: Location of the JSON settings file

        Raises:
            StorageError: If the file exists but cannot be read or parsed,
                or if the default file cannot be written
        """
        self.path = Path(path)
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._settings = BotSettings()

        if self.path.exists():
            self._load()
        else:
            self.logger.info("Settings file not found, creating defaults", path=str(self.path))
            with self._lock:
                self._save(self._settings)

    def _load(self) -> None:
        try:
            raw = self.path.read_text(encoding="utf-8")
            settings = BotSettings(**json.loads(raw))
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            raise StorageError(
                "Failed to load settings",
                context={"path": str(self.path)},
                original_error=e,
            )

        with self._lock:
            self._settings = settings

        self.logger.debug("Loaded settings", path=str(self.path), **settings.model_dump())

    def _save(self, settings: BotSettings) -> None:
        """Write ``settings`` to disk. Callers hold ``_lock``."""
        data = json.dumps(settings.model_dump(), indent=2)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(data, encoding="utf-8")
        except OSError as e:
            raise StorageError(
                "Failed to write settings file",
                context={"path": str(self.path)},
                original_error=e,
            )

    def _update(self, **changes) -> BotSettings:
        # Memory only changes once the file has been written
        with self._lock:
            settings = self._settings.model_copy(update=changes)
            self._save(settings)
            self._settings = settings
        return settings

    @property
    def daily_webhook_enabled(self) -> bool:
        with self._lock:
            return self._settings.daily_webhook_enabled

    def set_daily_webhook_enabled(self, enabled: bool) -> None:
        """Set and persist the daily webhook flag."""
        self._update(daily_webhook_enabled=enabled)

    def toggle_daily_webhook_enabled(self) -> bool:
        """
        Flip and persist the daily webhook flag.

        Returns:
            The new value of the flag

        Raises:
            StorageError: If the file cannot be written; the flag is unchanged
        """
        with self._lock:
            new_state = not self._settings.daily_webhook_enabled
            self._update(daily_webhook_enabled=new_state)

        self.logger.info("Daily webhook toggled", enabled=new_state)
        return new_state

    def all(self) -> BotSettings:
        """Return a copy of all settings."""
        with self._lock:
            return self._settings.model_copy()
