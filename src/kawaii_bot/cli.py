"""
Daily webhook diagnostics.

Checks the daily webhook without starting the Discord bot: shows when the
next delivery would fire, or sends the daily pictures once right now.
Only the daily, provider and logging settings are needed, so no Discord
bot token has to be configured.

Usage:
    kawaii-bot-check-webhook --action next
    kawaii-bot-check-webhook --action send --no-retry
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from kawaii_bot.config import DailyConfig, LoggingConfig, ProviderConfig
from kawaii_bot.daily import (
    DailyDelivery,
    DailyScheduler,
    DeliveryStatus,
    ScheduleState,
    next_trigger_time,
)
from kawaii_bot.providers import NekosClient, WaifuClient
from kawaii_bot.utils.logging import mask_webhook_url, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check the Kawaii Bot daily webhook")
    parser.add_argument("--action", choices=["next", "send"], default="next",
                        help="Show the next trigger time, or send the daily pictures now")
    parser.add_argument("--hour", type=int, default=None,
                        help="Trigger hour to use instead of DAILY_TRIGGER_HOUR")
    parser.add_argument("--no-retry", action="store_true",
                        help="Make a single delivery attempt")
    parser.add_argument("--env-file", default=".env", help="Environment file to load")
    return parser


def describe_next_trigger(config: DailyConfig, now: datetime) -> str:
    """Human-readable summary of the next scheduled delivery."""
    target = next_trigger_time(now, config.trigger_hour)
    wait = target - now
    hours, remainder = divmod(int(wait.total_seconds()), 3600)
    minutes = remainder // 60
    return (
        f"Next daily delivery: {target:%Y-%m-%d %H:%M} "
        f"(in {hours}h {minutes:02d}m, providers: {', '.join(config.providers)})"
    )


async def send_once(daily: DailyConfig, providers: ProviderConfig) -> DeliveryStatus:
    """
    Run one delivery sequence against the configured webhook.

    The delivery is enabled for this run regardless of the persisted flag.
    """
    state = ScheduleState(enabled=True)

    async with NekosClient(providers) as nekos, WaifuClient(providers) as waifu:
        delivery = DailyDelivery(daily, state, nekos, waifu, provider_config=providers)
        try:
            scheduler = DailyScheduler(delivery, state, daily)
            report = await scheduler.deliver_with_retry()
        finally:
            await delivery.close()

    for attempt in report.attempts:
        outcome = "ok" if attempt.succeeded else f"failed: {attempt.error}"
        print(f"  attempt {attempt.number}/{report.max_attempts}: {outcome}")

    return report.status


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    env_file = Path(args.env_file)
    if env_file.exists():
        load_dotenv(env_file)

    try:
        overrides = {}
        if args.hour is not None:
            overrides["trigger_hour"] = args.hour
        if args.no_retry:
            overrides["max_retries"] = 1
        daily = DailyConfig(**overrides)
        providers = ProviderConfig()
        setup_logging(LoggingConfig(format="text"))
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    print(describe_next_trigger(daily, datetime.now()))

    if args.action == "next":
        return 0

    if not daily.webhook_url:
        print("No webhook configured. Set WEBHOOK_URL.", file=sys.stderr)
        return 1

    print(f"Sending daily pictures to {mask_webhook_url(daily.webhook_url)}")
    status = asyncio.run(send_once(daily, providers))
    print(f"Result: {status.value}")
    return 0 if status == DeliveryStatus.DELIVERED else 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
