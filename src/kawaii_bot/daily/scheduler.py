"""
Daily delivery scheduler.

This module runs the background loop that sends the daily pictures once a
day at a configured local hour. Each firing retries a failed delivery with
an increasing backoff, and the loop can be started, stopped and bypassed
(force send) from chat commands.

The loop waits on three things at once: the shutdown event supplied to
``start``, the scheduler's own stop event and the deadline of the next
trigger. Whichever happens first decides what the loop does next.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, Protocol, Set, Tuple

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from kawaii_bot.config import DailyConfig
from kawaii_bot.daily.state import (
    DeliveryAttempt,
    DeliveryReport,
    DeliveryStatus,
    ScheduleState,
    TriggerSource,
)
from kawaii_bot.utils.exceptions import DeliveryDisabledError, SchedulerStateError
from kawaii_bot.utils.logging import get_logger, generate_correlation_id


class Sender(Protocol):
    """What the scheduler needs from the daily delivery."""

    def is_enabled(self) -> bool: ...

    async def send(self) -> None: ...

    def get_status(self) -> Tuple[bool, str]: ...


def next_trigger_time(now: datetime, hour: int) -> datetime:
    """
    Return the next instant at ``hour``:00 local time strictly after ``now``.

    If today's instant has already passed, or is exactly ``now``, the
    instant for tomorrow is returned.
    """
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target += timedelta(days=1)
    return target


def time_until_next_trigger(now: datetime, hour: int) -> timedelta:
    """
    Return how long to wait from ``now`` until the next trigger.

    The result is always in (0, 24h]; exactly 24h when ``now`` is the
    trigger instant itself.

    Example:
        ```python
        wait = time_until_next_trigger(datetime(2024, 1, 1, 4, 30), hour=5)
        assert wait == timedelta(minutes=30)
        ```
    """
    return next_trigger_time(now, hour) - now


class DailyScheduler:
    """
    Fires the daily delivery once per day and retries it on failure.

    Lifecycle:
        Stopped -> Running via ``start`` (only while the sender is enabled)
        Running -> Stopped via ``stop``

    Delivery failures never leave the Running state; they are retried up to
    ``max_retries`` times per cycle and then logged.

    Attributes:
        trigger_hour: Local hour at which the daily delivery fires
        max_retries: Attempts per delivery sequence
        retry_backoff: Base backoff in seconds; attempt N waits N times this
    """

    def __init__(
        self,
        sender: Sender,
        state: ScheduleState,
        config: DailyConfig,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            sender: Performs one fetch-and-post delivery
            state: Shared running/enabled state
            config: Daily delivery settings
            clock: Returns the current local time (defaults to ``datetime.now``)
            sleep: Coroutine function used for backoff waits
        """
        self.trigger_hour = config.trigger_hour
        self.max_retries = config.max_retries
        self.retry_backoff = config.retry_backoff_seconds

        self._sender = sender
        self._state = state
        self._clock = clock or datetime.now
        self._sleep = sleep
        self.logger = get_logger(__name__)

        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        # Loops replaced by a later start may still be finishing a delivery
        self._loop_tasks: Set[asyncio.Task] = set()
        self._forced_tasks: Set[asyncio.Task] = set()
        self._next_trigger: Optional[datetime] = None
        self._last_report: Optional[DeliveryReport] = None

    @property
    def next_trigger(self) -> Optional[datetime]:
        """When the armed timer fires, or None if the loop is not waiting."""
        return self._next_trigger

    @property
    def last_report(self) -> Optional[DeliveryReport]:
        """The most recent delivery sequence, scheduled or forced."""
        return self._last_report

    def is_running(self) -> bool:
        return self._state.running

    def start(self, shutdown_event: Optional[asyncio.Event] = None) -> None:
        """
        Start the daily loop.

        Must be called from a running event loop. If the sender is disabled
        this is a no-op and the scheduler stays stopped.

        Args:
            shutdown_event: Process-wide shutdown signal; the loop exits
                when it is set

        Raises:
            SchedulerStateError: If the scheduler is already running
        """
        with self._state.lock:
            if self._state.running:
                raise SchedulerStateError("Scheduler is already running")

            if not self._sender.is_enabled():
                enabled, url = self._sender.get_status()
                self.logger.info(
                    "Daily webhook is not configured or disabled, scheduler will not start",
                    enabled=enabled,
                    webhook_configured=bool(url),
                )
                return

            self._state.set_running(True)
            self._loop = asyncio.get_running_loop()
            self._stop_event = asyncio.Event()
            task = self._loop.create_task(
                self._run(self._stop_event, shutdown_event),
                name="daily-scheduler",
            )
            self._loop_tasks.add(task)
            task.add_done_callback(self._loop_tasks.discard)

        self.logger.info("Scheduler started", trigger_hour=self.trigger_hour)

    def stop(self) -> None:
        """
        Signal the daily loop to exit.

        An in-flight delivery or backoff is not interrupted; the loop exits
        at its next wait. Safe to call from any thread.

        Raises:
            SchedulerStateError: If the scheduler is not running
        """
        with self._state.lock:
            if not self._state.running:
                raise SchedulerStateError("Scheduler is not running")

            self._state.set_running(False)
            if self._stop_event is not None:
                self._signal_stop(self._stop_event)

        self.logger.info("Scheduler stopped")

    def _signal_stop(self, stop_event: asyncio.Event) -> None:
        # asyncio.Event is not thread-safe; hand the set to the owning loop
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is self._loop or self._loop is None or self._loop.is_closed():
            stop_event.set()
        else:
            self._loop.call_soon_threadsafe(stop_event.set)

    def force_send(self) -> None:
        """
        Run a delivery sequence now, outside the schedule.

        The sequence runs as an unsupervised background task; its outcome is
        only logged and recorded in ``last_report``.

        Raises:
            DeliveryDisabledError: If the sender is disabled
        """
        if not self._sender.is_enabled():
            raise DeliveryDisabledError("Daily webhook is disabled")

        task = asyncio.get_running_loop().create_task(
            self.deliver_with_retry(TriggerSource.FORCED),
            name="daily-force-send",
        )
        # Held only so the task is not garbage collected mid-flight
        self._forced_tasks.add(task)
        task.add_done_callback(self._forced_tasks.discard)

        self.logger.info("Forced daily delivery launched")

    async def aclose(self) -> None:
        """
        Stop the loop if needed and cancel it, for process shutdown.

        Loops left behind by an earlier stop and start are cancelled too.
        """
        if self.is_running():
            self.stop()

        tasks = [task for task in self._loop_tasks if not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(
        self,
        stop_event: asyncio.Event,
        shutdown_event: Optional[asyncio.Event],
    ) -> None:
        try:
            while not stop_event.is_set():
                now = self._clock()
                delay = time_until_next_trigger(now, self.trigger_hour)
                self._next_trigger = now + delay

                self.logger.info(
                    "Next daily delivery scheduled",
                    next_trigger=self._next_trigger.isoformat(),
                    wait_seconds=round(delay.total_seconds()),
                )

                reason = await self._wait_for_trigger(delay, stop_event, shutdown_event)
                if reason is not None:
                    self.logger.info("Scheduler loop exiting", reason=reason)
                    return

                self._next_trigger = None
                await self.deliver_with_retry(TriggerSource.SCHEDULED)

        except asyncio.CancelledError:
            self.logger.info("Scheduler loop cancelled")
            raise
        finally:
            if stop_event is self._stop_event:
                self._next_trigger = None

    async def _wait_for_trigger(
        self,
        delay: timedelta,
        stop_event: asyncio.Event,
        shutdown_event: Optional[asyncio.Event],
    ) -> Optional[str]:
        """
        Wait for the deadline, a stop request or shutdown.

        Returns:
            None when the deadline elapsed, otherwise "stop" or "shutdown"
        """
        waiters: Dict[asyncio.Task, str] = {
            asyncio.create_task(stop_event.wait()): "stop",
        }
        if shutdown_event is not None:
            waiters[asyncio.create_task(shutdown_event.wait())] = "shutdown"

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=delay.total_seconds(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in waiters:
                waiter.cancel()

        if not done:
            return None
        return waiters[next(iter(done))]

    async def deliver_with_retry(self, trigger: TriggerSource = TriggerSource.SCHEDULED) -> DeliveryReport:
        """
        Run one delivery sequence.

        Skips silently when the sender is disabled. Otherwise calls the
        sender up to ``max_retries`` times, waiting ``attempt * retry_backoff``
        seconds after each failed attempt except the last. Failures are
        logged, never raised.

        Args:
            trigger: Whether the schedule or a user started this sequence

        Returns:
            The report of this sequence, also stored as ``last_report``
        """
        report = DeliveryReport(
            trigger=trigger,
            max_attempts=self.max_retries,
            started_at=self._clock(),
        )
        correlation_id = generate_correlation_id()
        logger = self.logger.bind(trigger=trigger.value, correlation_id=correlation_id)

        if not self._sender.is_enabled():
            logger.info("Daily webhook is disabled, skipping delivery")
            report.status = DeliveryStatus.SKIPPED
            report.finished_at = self._clock()
            self._last_report = report
            return report

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=self.retry_backoff, increment=self.retry_backoff),
            retry=retry_if_exception_type(Exception),
            sleep=self._sleep,
            reraise=True,
        )

        logger.info("Sending daily delivery", max_attempts=self.max_retries)

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    try:
                        await self._sender.send()
                    except Exception as e:
                        report.attempts.append(DeliveryAttempt(number=number, succeeded=False, error=str(e)))
                        logger.warning(
                            "Daily delivery attempt failed",
                            attempt=number,
                            max_attempts=self.max_retries,
                            error=str(e),
                            retry_in_seconds=number * self.retry_backoff if number < self.max_retries else None,
                        )
                        raise

                    report.attempts.append(DeliveryAttempt(number=number, succeeded=True))
                    logger.info(
                        "Daily delivery sent successfully",
                        attempt=number,
                        max_attempts=self.max_retries,
                    )

            report.status = DeliveryStatus.DELIVERED

        except Exception as e:
            report.status = DeliveryStatus.FAILED
            logger.error(
                "Daily delivery failed after all attempts",
                attempts=report.attempt_count,
                error_type=type(e).__name__,
                error=str(e),
            )

        report.finished_at = self._clock()
        self._last_report = report
        return report
