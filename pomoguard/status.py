"""Value types shared by the timer engine, the store and the UI helpers.

``TimerStatus`` is the durable, observable state of the engine.  Every
copy handed to an observer or to the store is independent; mutating it
never reaches back into the engine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum


# ── enums ─────────────────────────────────────────────────────────────────


class TimerState(Enum):
    STOPPED = "STOPPED"
    WORK = "WORK"
    REST = "REST"
    PAUSED = "PAUSED"


class SessionKind(Enum):
    WORK = "WORK"
    REST = "REST"

    @property
    def running_state(self) -> TimerState:
        return TimerState(self.value)


class NotificationKind(Enum):
    WORK_COMPLETE = "work_complete"
    REST_COMPLETE = "rest_complete"


RUNNING_STATES = (TimerState.WORK, TimerState.REST)


# ── records ───────────────────────────────────────────────────────────────


@dataclass
class TimerStatus:
    state: TimerState = TimerState.STOPPED
    time_remaining: int = 0                    # seconds
    total_time: int = 0                        # seconds
    current_task: str = ""
    session_count: int = 0                     # completed work sessions today
    start_time: datetime | None = None
    next_session_type: SessionKind = SessionKind.WORK
    next_session_duration: int = 25 * 60       # seconds
    last_completed_session_type: SessionKind | None = None
    current_session_type: SessionKind | None = None
    last_session_start: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.state in RUNNING_STATES

    def copy(self) -> TimerStatus:
        return replace(self)


@dataclass
class PomodoroSession:
    """One timed interval, in flight or finalized."""

    kind: SessionKind
    planned_duration: int                      # seconds
    start_time: datetime
    date: date                                 # focus day of ``start_time``
    task: str = ""
    duration: int = 0                          # actual seconds, set on finish
    end_time: datetime | None = None
    completed: bool = False
    id: str = field(default_factory=lambda: f"session_{uuid.uuid4().hex}")

    def finish(self, end_time: datetime, completed: bool) -> PomodoroSession:
        """Return a finalized copy measured against the wall clock."""
        elapsed = int((end_time - self.start_time).total_seconds())
        return replace(
            self,
            end_time=end_time,
            duration=max(0, elapsed),
            completed=completed,
        )


@dataclass
class DailyAggregate:
    date: date
    completed_work_sessions: int = 0
    completed_rest_sessions: int = 0
    total_work_time: int = 0                   # seconds
    total_rest_time: int = 0                   # seconds
    count_adjustment: int = 0

    @property
    def session_count(self) -> int:
        """Work-session counter as seen by the engine."""
        return max(0, self.completed_work_sessions + self.count_adjustment)


@dataclass(frozen=True)
class TimerNotification:
    title: str
    message: str
    kind: NotificationKind
