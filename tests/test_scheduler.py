"""Tests for the daily scheduler lifecycle and retry policy."""

import asyncio
import random
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List

import pytest

from conftest import FakeSender, FixedClock, RecordingSleep
from kawaii_bot.daily import (
    DailyScheduler,
    DeliveryStatus,
    ScheduleState,
    TriggerSource,
)
from kawaii_bot.utils.exceptions import DeliveryDisabledError, SchedulerStateError


class SequenceClock:
    """Returns the given times in order, then repeats the last one."""

    def __init__(self, times: List[datetime]) -> None:
        self.times = list(times)

    def __call__(self) -> datetime:
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


class BlockingSender(FakeSender):
    """Sender whose delivery never finishes until it is cancelled."""

    def __init__(self, state: ScheduleState) -> None:
        super().__init__(state)
        self.entered = asyncio.Event()
        self.cancelled = False

    async def send(self) -> None:
        self.calls += 1
        self.entered.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def make_scheduler(sender, state, daily_config, clock=None, sleep=None) -> DailyScheduler:
    return DailyScheduler(
        sender,
        state,
        daily_config,
        clock=clock or FixedClock(datetime(2024, 3, 10, 4, 0, 0)),
        sleep=sleep or RecordingSleep(),
    )


class TestLifecycle:

    async def test_start_and_stop(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)

        scheduler.start()
        assert scheduler.is_running()

        await wait_until(lambda: scheduler.next_trigger is not None)
        assert scheduler.next_trigger == datetime(2024, 3, 10, 5, 0, 0)

        scheduler.stop()
        assert not scheduler.is_running()
        await scheduler.aclose()

    async def test_start_twice_raises(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)
        scheduler.start()

        with pytest.raises(SchedulerStateError, match="already running"):
            scheduler.start()

        assert scheduler.is_running()
        await scheduler.aclose()

    async def test_stop_when_stopped_raises(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)

        with pytest.raises(SchedulerStateError, match="not running"):
            scheduler.stop()

        scheduler.start()
        scheduler.stop()

        with pytest.raises(SchedulerStateError):
            scheduler.stop()

        assert not scheduler.is_running()
        await scheduler.aclose()

    async def test_start_while_disabled_is_a_no_op(self, daily_config):
        state = ScheduleState(enabled=False)
        sender = FakeSender(state)
        scheduler = make_scheduler(sender, state, daily_config)

        scheduler.start()

        assert not scheduler.is_running()
        with pytest.raises(SchedulerStateError):
            scheduler.stop()

    async def test_start_without_webhook_url_is_a_no_op(self, enabled_state, daily_config):
        sender = FakeSender(enabled_state, url="")
        scheduler = make_scheduler(sender, enabled_state, daily_config)

        scheduler.start()

        assert not scheduler.is_running()

    async def test_restart_after_stop(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)

        scheduler.start()
        scheduler.stop()
        scheduler.start()

        assert scheduler.is_running()
        await scheduler.aclose()
        assert not scheduler.is_running()

    async def test_shutdown_event_ends_loop(self, fake_sender, enabled_state, daily_config):
        shutdown = asyncio.Event()
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)
        scheduler.start(shutdown)
        await wait_until(lambda: scheduler.next_trigger is not None)

        shutdown.set()
        await wait_until(lambda: scheduler.next_trigger is None)

        assert fake_sender.calls == 0
        # The running flag is left for an explicit stop
        assert scheduler.is_running()
        scheduler.stop()
        await scheduler.aclose()

    async def test_interleaved_start_stop_stays_consistent(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)
        rng = random.Random(1234)
        expected_running = False

        for _ in range(50):
            if rng.random() < 0.5:
                try:
                    scheduler.start()
                    assert not expected_running
                    expected_running = True
                except SchedulerStateError:
                    assert expected_running
            else:
                try:
                    scheduler.stop()
                    assert expected_running
                    expected_running = False
                except SchedulerStateError:
                    assert not expected_running

            assert scheduler.is_running() == expected_running
            await asyncio.sleep(0)

        await scheduler.aclose()

    async def test_concurrent_stops_succeed_once(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)
        scheduler.start()
        await wait_until(lambda: scheduler.next_trigger is not None)

        def try_stop() -> bool:
            try:
                scheduler.stop()
                return True
            except SchedulerStateError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: try_stop(), range(8)))

        assert results.count(True) == 1
        assert not scheduler.is_running()
        # The waiting loop wakes up on its own, without being cancelled
        await wait_until(lambda: scheduler.next_trigger is None)
        await scheduler.aclose()

    async def test_aclose_cancels_replaced_loop_mid_delivery(self, enabled_state, daily_config):
        sender = BlockingSender(enabled_state)
        clock = SequenceClock([
            datetime(2024, 3, 10, 4, 59, 59, 950000),
            datetime(2024, 3, 10, 5, 0, 1),
        ])
        scheduler = make_scheduler(sender, enabled_state, daily_config, clock=clock)

        scheduler.start()
        await asyncio.wait_for(sender.entered.wait(), timeout=2)

        # The first loop is stuck in its delivery while a new one starts
        scheduler.stop()
        scheduler.start()
        await wait_until(lambda: scheduler.next_trigger is not None)

        await scheduler.aclose()

        assert sender.cancelled
        assert not scheduler.is_running()


class TestRetryPolicy:

    async def test_success_on_first_attempt(self, fake_sender, enabled_state, daily_config, recording_sleep):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config, sleep=recording_sleep)

        report = await scheduler.deliver_with_retry()

        assert report.status == DeliveryStatus.DELIVERED
        assert report.attempt_count == 1
        assert fake_sender.calls == 1
        assert recording_sleep.delays == []

    async def test_succeeds_on_third_attempt_with_backoff(self, enabled_state, daily_config, recording_sleep):
        sender = FakeSender(enabled_state, failures=2)
        scheduler = make_scheduler(sender, enabled_state, daily_config, sleep=recording_sleep)

        report = await scheduler.deliver_with_retry()

        assert report.status == DeliveryStatus.DELIVERED
        assert sender.calls == 3
        assert recording_sleep.delays == [300, 600]
        assert [a.succeeded for a in report.attempts] == [False, False, True]

    async def test_gives_up_after_max_retries(self, enabled_state, daily_config, recording_sleep):
        sender = FakeSender(enabled_state, failures=99)
        scheduler = make_scheduler(sender, enabled_state, daily_config, sleep=recording_sleep)

        report = await scheduler.deliver_with_retry()

        assert report.status == DeliveryStatus.FAILED
        assert sender.calls == 3
        assert recording_sleep.delays == [300, 600]
        assert report.attempts[-1].error == "send failed (3)"
        assert scheduler.last_report is report

    async def test_backoff_follows_configuration(self, enabled_state, daily_config, recording_sleep):
        config = daily_config.model_copy(update={"max_retries": 4, "retry_backoff_seconds": 10.0})
        sender = FakeSender(enabled_state, failures=99)
        scheduler = make_scheduler(sender, enabled_state, config, sleep=recording_sleep)

        await scheduler.deliver_with_retry()

        assert sender.calls == 4
        assert recording_sleep.delays == [10, 20, 30]

    async def test_skipped_when_disabled(self, daily_config, recording_sleep):
        state = ScheduleState(enabled=False)
        sender = FakeSender(state)
        scheduler = make_scheduler(sender, state, daily_config, sleep=recording_sleep)

        report = await scheduler.deliver_with_retry()

        assert report.status == DeliveryStatus.SKIPPED
        assert sender.calls == 0


class TestScheduledDelivery:

    async def test_fires_at_trigger_and_rearms(self, fake_sender, enabled_state, daily_config):
        clock = SequenceClock([
            datetime(2024, 3, 10, 4, 59, 59, 950000),
            datetime(2024, 3, 10, 5, 0, 1),
        ])
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config, clock=clock)

        scheduler.start()
        await wait_until(lambda: scheduler.last_report is not None)
        await wait_until(lambda: scheduler.next_trigger is not None)

        assert fake_sender.calls == 1
        assert scheduler.last_report.trigger == TriggerSource.SCHEDULED
        assert scheduler.last_report.status == DeliveryStatus.DELIVERED
        assert scheduler.next_trigger == datetime(2024, 3, 11, 5, 0, 0)

        scheduler.stop()
        await scheduler.aclose()

    async def test_exhausted_retries_keep_running(self, enabled_state, daily_config, recording_sleep):
        sender = FakeSender(enabled_state, failures=99)
        clock = SequenceClock([
            datetime(2024, 3, 10, 4, 59, 59, 950000),
            datetime(2024, 3, 10, 5, 0, 1),
        ])
        scheduler = make_scheduler(sender, enabled_state, daily_config, clock=clock, sleep=recording_sleep)

        scheduler.start()
        await wait_until(lambda: scheduler.last_report is not None)

        assert sender.calls == 3
        assert recording_sleep.delays == [300, 600]
        assert scheduler.last_report.status == DeliveryStatus.FAILED
        assert scheduler.is_running()

        await wait_until(lambda: scheduler.next_trigger is not None)
        assert scheduler.next_trigger == datetime(2024, 3, 11, 5, 0, 0)

        await scheduler.aclose()

    async def test_disabled_between_start_and_trigger_skips(self, fake_sender, enabled_state, daily_config):
        clock = SequenceClock([
            datetime(2024, 3, 10, 4, 59, 59, 950000),
            datetime(2024, 3, 10, 5, 0, 1),
        ])
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config, clock=clock)

        scheduler.start()
        enabled_state.set_enabled(False)
        await wait_until(lambda: scheduler.last_report is not None)

        assert scheduler.last_report.status == DeliveryStatus.SKIPPED
        assert fake_sender.calls == 0
        await scheduler.aclose()


class TestForceSend:

    async def test_force_send_while_disabled_raises(self, daily_config):
        state = ScheduleState(enabled=False)
        sender = FakeSender(state)
        scheduler = make_scheduler(sender, state, daily_config)

        with pytest.raises(DeliveryDisabledError, match="Daily webhook is disabled"):
            scheduler.force_send()

        await asyncio.sleep(0.05)
        assert sender.calls == 0

    async def test_force_send_returns_before_delivery(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)

        scheduler.force_send()
        assert fake_sender.calls == 0

        await wait_until(lambda: scheduler.last_report is not None)
        assert fake_sender.calls == 1
        assert scheduler.last_report.trigger == TriggerSource.FORCED
        assert scheduler.last_report.status == DeliveryStatus.DELIVERED

    async def test_force_send_does_not_need_running_scheduler(self, fake_sender, enabled_state, daily_config):
        scheduler = make_scheduler(fake_sender, enabled_state, daily_config)

        scheduler.force_send()
        await wait_until(lambda: fake_sender.calls == 1)

        assert not scheduler.is_running()

    async def test_force_send_retries(self, enabled_state, daily_config, recording_sleep):
        sender = FakeSender(enabled_state, failures=1)
        scheduler = make_scheduler(sender, enabled_state, daily_config, sleep=recording_sleep)

        scheduler.force_send()
        await wait_until(lambda: scheduler.last_report is not None)

        assert sender.calls == 2
        assert recording_sleep.delays == [300]
