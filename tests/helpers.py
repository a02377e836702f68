"""Shared test helpers for PomoGuard."""

from __future__ import annotations

from datetime import datetime, timedelta

from pomoguard.errors import StorageError
from pomoguard.storage import TimerStore
from pomoguard.timer.engine import TimerEngine


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class FakeClock:
    """Callable wall clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 3, 12, 10, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> None:
        self.now += timedelta(seconds=seconds, **kwargs)

    def set(self, moment: datetime) -> None:
        self.now = moment


def complete_session(engine: TimerEngine, clock: FakeClock | None = None) -> None:
    """Fast-complete the current session by jumping to the last tick."""
    if clock is not None:
        clock.advance(engine.remaining)
    engine._status.time_remaining = 1
    engine._on_tick()


class FlakyStore(TimerStore):
    """Timer store whose reads or writes can be made to fail on demand."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_writes = False
        self.fail_reads = False
        self.fail_stats = False
        self.writes = 0

    def record_transition(self, *args, **kwargs):
        if self.fail_writes:
            raise StorageError("disk full")
        self.writes += 1
        super().record_transition(*args, **kwargs)

    def get_status(self):
        if self.fail_reads:
            raise StorageError("unreadable status")
        return super().get_status()

    def get_current_session(self):
        if self.fail_reads:
            raise StorageError("unreadable session")
        return super().get_current_session()

    def get_daily_aggregate(self, day):
        if self.fail_reads or self.fail_stats:
            raise StorageError("unreadable stats")
        return super().get_daily_aggregate(day)
