"""Test configuration and utilities."""

from datetime import datetime
from typing import List, Optional, Tuple

import pytest

from kawaii_bot.config import DailyConfig, LoggingConfig, ProviderConfig
from kawaii_bot.daily import ScheduleState


TEST_WEBHOOK_URL = "https://discord.com/api/webhooks/123456789/abcDEF_token-xyz"


@pytest.fixture
def daily_config() -> DailyConfig:
    """Daily settings with the production defaults and a test webhook."""
    return DailyConfig(
        webhook_url=TEST_WEBHOOK_URL,
        trigger_hour=5,
        max_retries=3,
        retry_backoff_seconds=300.0,
        providers=["nekos"],
    )


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        nekos_base_url="https://nekos.test/api/v1/",
        nekos_image_url="https://nekos.test/image/",
        waifu_base_url="https://waifu.test/images",
        timeout=5,
    )


@pytest.fixture
def logging_config() -> LoggingConfig:
    return LoggingConfig(level="DEBUG", format="text")


class FakeSender:
    """
    In-memory sender.

    ``failures`` is how many calls fail before the sender starts
    succeeding; use a large number for a sender that always fails.
    """

    def __init__(self, state: ScheduleState, url: str = TEST_WEBHOOK_URL, failures: int = 0) -> None:
        self.state = state
        self.url = url
        self.failures = failures
        self.calls = 0

    def is_enabled(self) -> bool:
        return self.state.enabled and self.url != ""

    def get_status(self) -> Tuple[bool, str]:
        return self.state.enabled, self.url

    async def send(self) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"send failed ({self.calls})")


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FixedClock:
    """Clock returning a settable local time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def enabled_state() -> ScheduleState:
    return ScheduleState(enabled=True)


@pytest.fixture
def fake_sender(enabled_state: ScheduleState) -> FakeSender:
    return FakeSender(enabled_state)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 10, 4, 0, 0))


def make_state(enabled: bool = True, running: Optional[bool] = None) -> ScheduleState:
    state = ScheduleState(enabled=enabled)
    if running is not None:
        state.set_running(running)
    return state
