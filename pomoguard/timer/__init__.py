"""Timer package."""

from .engine import TimerEngine, TICK_INTERVAL_MS, AUTO_CHAIN_DELAY_MS
from ..status import (
    TimerState,
    SessionKind,
    NotificationKind,
    TimerStatus,
    PomodoroSession,
    DailyAggregate,
    TimerNotification,
)

__all__ = [
    "TimerEngine",
    "TICK_INTERVAL_MS",
    "AUTO_CHAIN_DELAY_MS",
    "TimerState",
    "SessionKind",
    "NotificationKind",
    "TimerStatus",
    "PomodoroSession",
    "DailyAggregate",
    "TimerNotification",
]
