"""Tests for the webhook check command line."""

from datetime import datetime

import pytest

from kawaii_bot import cli
from kawaii_bot.config import DailyConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("WEBHOOK_URL", "DAILY_WEBHOOK_URL", "DAILY_TRIGGER_HOUR", "DAILY_PROVIDERS"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


def test_describe_next_trigger():
    config = DailyConfig(trigger_hour=5, providers=["nekos", "waifu"])

    text = cli.describe_next_trigger(config, datetime(2024, 3, 10, 6, 30))

    assert text == "Next daily delivery: 2024-03-11 05:00 (in 22h 30m, providers: nekos, waifu)"


def test_next_action_prints_schedule(capsys):
    assert cli.main(["--action", "next", "--hour", "7"]) == 0

    assert "07:00" in capsys.readouterr().out


def test_invalid_hour_is_rejected(capsys):
    assert cli.main(["--hour", "25"]) == 1

    assert "Configuration error" in capsys.readouterr().err


def test_send_without_webhook_fails(capsys):
    assert cli.main(["--action", "send"]) == 1

    assert "No webhook configured" in capsys.readouterr().err
