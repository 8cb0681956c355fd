"""Daily webhook delivery and its scheduler."""

from kawaii_bot.daily.delivery import DailyDelivery
from kawaii_bot.daily.scheduler import (
    DailyScheduler,
    next_trigger_time,
    time_until_next_trigger,
)
from kawaii_bot.daily.state import (
    DeliveryReport,
    DeliveryStatus,
    ScheduleState,
    TriggerSource,
)

__all__ = [
    "DailyDelivery",
    "DailyScheduler",
    "next_trigger_time",
    "time_until_next_trigger",
    "DeliveryReport",
    "DeliveryStatus",
    "ScheduleState",
    "TriggerSource",
]
