"""
Shared state of the daily delivery feature.

One ScheduleState exists per process. It is created at startup from the
persisted enabled flag and handed to both the delivery sender and the
scheduler, which is the only writer of ``running``.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ScheduleState:
    """
    The ``running`` and ``enabled`` flags behind one lock.

    The lock is reentrant so a holder may read ``enabled`` (for example
    through the sender) while deciding a transition.
    """

    def __init__(self, enabled: bool = False) -> None:
        self.lock = threading.RLock()
        self._running = False
        self._enabled = enabled

    @property
    def running(self) -> bool:
        with self.lock:
            return self._running

    @property
    def enabled(self) -> bool:
        with self.lock:
            return self._enabled

    def set_running(self, running: bool) -> None:
        """Record a scheduler transition. Callers hold ``lock`` and check the guard."""
        with self.lock:
            self._running = running

    def set_enabled(self, enabled: bool) -> None:
        with self.lock:
            self._enabled = enabled

    def toggle_enabled(self) -> bool:
        """Flip the enabled flag and return its new value."""
        with self.lock:
            self._enabled = not self._enabled
            return self._enabled


class TriggerSource(str, Enum):
    """What started a delivery sequence."""
    SCHEDULED = "scheduled"
    FORCED = "forced"


class DeliveryStatus(str, Enum):
    """Final status of a delivery sequence."""
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryAttempt:
    """Outcome of one call to the sender."""
    number: int
    succeeded: bool
    error: Optional[str] = None


@dataclass
class DeliveryReport:
    """Record of one delivery sequence, kept for diagnostics."""
    trigger: TriggerSource
    max_attempts: int
    started_at: datetime
    status: DeliveryStatus = DeliveryStatus.FAILED
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    finished_at: Optional[datetime] = None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)
