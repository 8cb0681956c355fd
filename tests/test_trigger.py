"""Tests for next-trigger computation."""

from datetime import datetime, timedelta

import pytest

from kawaii_bot.daily import next_trigger_time, time_until_next_trigger


def test_before_trigger_hour_fires_today():
    now = datetime(2024, 3, 10, 4, 30, 0)

    assert next_trigger_time(now, 5) == datetime(2024, 3, 10, 5, 0, 0)
    assert time_until_next_trigger(now, 5) == timedelta(minutes=30)


def test_after_trigger_hour_fires_tomorrow():
    now = datetime(2024, 3, 10, 6, 0, 0)

    assert next_trigger_time(now, 5) == datetime(2024, 3, 11, 5, 0, 0)
    assert time_until_next_trigger(now, 5) == timedelta(hours=23)


def test_exactly_at_trigger_waits_a_full_day():
    now = datetime(2024, 3, 10, 5, 0, 0)

    assert time_until_next_trigger(now, 5) == timedelta(hours=24)


def test_just_after_trigger():
    now = datetime(2024, 3, 10, 5, 0, 0, 1)

    assert next_trigger_time(now, 5) == datetime(2024, 3, 11, 5, 0, 0)


def test_crosses_month_end():
    now = datetime(2024, 1, 31, 23, 59, 0)

    assert next_trigger_time(now, 5) == datetime(2024, 2, 1, 5, 0, 0)


@pytest.mark.parametrize("hour", [0, 5, 12, 23])
@pytest.mark.parametrize(
    "now",
    [
        datetime(2024, 3, 10, 0, 0, 0),
        datetime(2024, 3, 10, 4, 59, 59),
        datetime(2024, 3, 10, 12, 30, 15),
        datetime(2024, 3, 10, 23, 59, 59, 999999),
    ],
)
def test_wait_is_within_one_day(now, hour):
    wait = time_until_next_trigger(now, hour)

    assert timedelta(0) < wait <= timedelta(hours=24)
    target = now + wait
    assert (target.hour, target.minute, target.second, target.microsecond) == (hour, 0, 0, 0)
