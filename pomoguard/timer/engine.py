"""Timer state machine for PomoGuard.

States
------
STOPPED   Nothing running — the next session type is already decided.
WORK      Work timer counting down.
REST      Break timer counting down (short or long).
PAUSED    Timer frozen; the in-flight session remembers its kind.

Transitions
-----------
STOPPED → WORK                        (start_work)
STOPPED → REST                        (start_rest)
WORK | REST → PAUSED                  (pause)
PAUSED → kind of the current session  (resume)
WORK | REST → STOPPED                 (timer reaches 0, completed)
Any → STOPPED                         (stop / reset / advance, not completed)

Every transition is written to the store before it becomes the engine's
state, so the stored snapshot never runs ahead of or behind memory by
more than the transition in flight.  A command whose write fails raises
:class:`~pomoguard.errors.StorageError` and leaves the engine untouched.
Commands issued in the wrong state are silent no-ops.

Recovery
--------
``initialize()`` reloads the last snapshot and reconciles it with the
wall clock: a session whose deadline passed while the process was gone
is completed exactly once (notification and auto-chain included); one
still in progress resumes ticking.
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ..errors import StorageError
from ..settings import Settings
from ..storage import KEEP, TimerStore
from ..status import (
    NotificationKind,
    PomodoroSession,
    RUNNING_STATES,
    SessionKind,
    TimerNotification,
    TimerState,
    TimerStatus,
)
from . import policy


logger = logging.getLogger(__name__)

# ── constants ─────────────────────────────────────────────────────────────

TICK_INTERVAL_MS = 1000
AUTO_CHAIN_DELAY_MS = 1000  # lets the UI show the STOPPED interstitial


def _serialized(method):
    """Run *method* under the engine lock; commands never interleave."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


# ── engine ────────────────────────────────────────────────────────────────


class TimerEngine(QObject):
    """Single focus/break timer with crash recovery.

    Signals
    -------
    status_changed(status: TimerStatus)
        A copy of the full status after every committed transition and
        once per tick while running.
    timer_completed(notification: TimerNotification)
        Once per session that ran to zero.  Never on a manual stop.
    """

    status_changed = pyqtSignal(object)
    timer_completed = pyqtSignal(object)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        store: TimerStore | None = None,
        clock: Callable[[], datetime] | None = None,
        chain_delay_ms: int = AUTO_CHAIN_DELAY_MS,
    ) -> None:
        super().__init__(parent)

        self._store = store if store is not None else TimerStore()
        self._clock = clock or datetime.now
        self._lock = threading.RLock()

        self._settings = Settings()
        self._status = TimerStatus()
        self._with_next(self._status)
        self._current_session: PomodoroSession | None = None
        self._pending_chain: SessionKind | None = None
        self._last_announced: str | None = None

        # ── Qt timers ─────────────────────────────────────────────────
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(TICK_INTERVAL_MS)
        self._qt_timer.timeout.connect(self._on_tick)

        self._chain_timer = QTimer(self)
        self._chain_timer.setSingleShot(True)
        self._chain_timer.setInterval(chain_delay_ms)
        self._chain_timer.timeout.connect(self._on_chain_timeout)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def state(self) -> TimerState:
        return self._status.state

    @property
    def remaining(self) -> int:
        """Seconds left on the clock."""
        return self._status.time_remaining

    @property
    def session_count(self) -> int:
        return self._status.session_count

    @property
    def is_running(self) -> bool:
        """True when actively counting down (not STOPPED, not PAUSED)."""
        return self._status.is_running

    @property
    def percent_complete(self) -> float:
        """0.0 → 1.0 progress through the current session."""
        total = self._status.total_time
        if total <= 0:
            return 0.0
        elapsed = total - self._status.time_remaining
        return max(0.0, min(1.0, elapsed / total))

    @property
    def current_session(self) -> PomodoroSession | None:
        return self._current_session

    def get_status(self) -> TimerStatus:
        return self._status.copy()

    def get_settings(self) -> Settings:
        return replace(self._settings)

    def should_block_sites(self) -> bool:
        return self._status.state == TimerState.WORK

    def current_day(self) -> date:
        """Focus day the counter currently belongs to."""
        return self._day(self._now())

    # ══════════════════════════════════════════════════════════════════
    #  RECOVERY
    # ══════════════════════════════════════════════════════════════════

    @_serialized
    def initialize(self) -> None:
        """Load stored state and reconcile it with the wall clock.

        Never raises: unreadable data falls back to defaults and a failed
        final write is logged.
        """
        self._halt()

        self._settings = self._read(
            self._store.get_settings, Settings(), "settings"
        ).normalized()
        status = self._read(self._store.get_status, TimerStatus(), "timer status")
        session = self._read(self._store.get_current_session, None, "current session")
        now = self._now()

        status.session_count = max(0, status.session_count)
        status.time_remaining = max(0, min(status.time_remaining, status.total_time))

        self._apply_daily_reset(status, now)
        self._reconcile_count(status, now)

        self._status = status
        self._current_session = session

        finished = None
        if status.state in RUNNING_STATES:
            if status.start_time is None:
                logger.warning(
                    "Stored %s session has no start time; stopping",
                    status.state.value,
                )
                status = self._stopped(status)
                session = None
            else:
                remaining = self._remaining_at(status, now)
                if remaining <= 0:
                    logger.info("Session finished while not running")
                    status.time_remaining = 0
                    status, finished = self._finalized(status, now, completed=True)
                    session = None
                else:
                    status.time_remaining = remaining
        elif status.state == TimerState.PAUSED:
            if session is None and status.current_session_type is None:
                logger.warning("Paused status without a session; stopping")
                status = self._stopped(status)
        else:
            status = self._stopped(status)
            session = None

        try:
            self._store.record_transition(
                status, current_session=session, finished=finished
            )
        except StorageError:
            logger.exception("Could not persist recovered timer status")

        self._status = status
        self._current_session = session
        self._notify()

        if finished is not None:
            self._announce(finished)
        elif status.is_running:
            self._qt_timer.start()

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    @_serialized
    def start_work(self, task: str = "") -> None:
        """Begin a work session.  Only valid from STOPPED."""
        if self._status.state != TimerState.STOPPED:
            return
        self._begin(SessionKind.WORK, task)

    @_serialized
    def start_rest(self) -> None:
        """Begin a break; long every ``long_rest_interval`` work sessions."""
        if self._status.state != TimerState.STOPPED:
            return
        self._begin(SessionKind.REST)

    @_serialized
    def pause(self) -> None:
        if not self._status.is_running:
            return
        status = self._status.copy()
        status.state = TimerState.PAUSED
        status.start_time = None
        self._commit(status)
        self._halt()

    @_serialized
    def resume(self) -> None:
        """Resume from PAUSED into the kind of the current session."""
        if self._status.state != TimerState.PAUSED:
            return
        session = self._current_session
        kind = session.kind if session else self._status.current_session_type
        if kind is None:
            logger.warning("Nothing to resume; stopping instead")
            self.stop()
            return

        now = self._now()
        status = self._status.copy()
        status.state = kind.running_state
        status.current_session_type = kind
        elapsed = status.total_time - status.time_remaining
        status.start_time = now - timedelta(seconds=elapsed)
        if session is None:
            session = self._session_from_status(status, now)
            self._commit(status, current_session=session)
        else:
            self._commit(status)
        self._qt_timer.start()

    @_serialized
    def stop(self) -> None:
        """End the current session as interrupted.  Always allowed."""
        status, finished = self._interrupted(self._status.copy(), self._now())
        self._commit(status, current_session=None, finished=finished)
        self._halt()

    @_serialized
    def reset(self) -> None:
        """Stop and zero today's work-session counter in one write."""
        now = self._now()
        status, finished = self._interrupted(self._status.copy(), now)
        self._apply_daily_reset(status, now)
        adjustment = -status.session_count
        status.session_count = 0
        status.last_completed_session_type = None
        self._with_next(status)
        self._commit(
            status,
            current_session=None,
            finished=finished,
            count_adjustment=adjustment,
            day=self._day(now),
        )
        self._halt()

    @_serialized
    def reset_session_count(self) -> None:
        """Zero the counter without touching a running session."""
        now = self._now()
        status = self._status.copy()
        self._apply_daily_reset(status, now)
        adjustment = -status.session_count
        status.session_count = 0
        if status.state == TimerState.STOPPED:
            self._with_next(status)
        self._commit(status, count_adjustment=adjustment, day=self._day(now))

    @_serialized
    def advance_to_next_session(self) -> None:
        """Skip past the upcoming session without running it.

        Stops first if anything is running.  Skipping a work session
        counts it toward the long-rest cadence; skipping a rest does not
        change the counter.
        """
        now = self._now()
        status, finished = self._interrupted(self._status.copy(), now)
        self._apply_daily_reset(status, now)

        adjustment = 0
        if status.next_session_type == SessionKind.WORK:
            status.session_count += 1
            adjustment = 1
        status.last_completed_session_type = status.next_session_type
        status.last_session_start = now
        self._with_next(status)
        self._commit(
            status,
            current_session=None,
            finished=finished,
            count_adjustment=adjustment,
            day=self._day(now),
        )
        self._halt()

    @_serialized
    def update_current_task(self, task: str) -> None:
        status = self._status.copy()
        status.current_task = task
        if self._current_session is not None:
            session = replace(self._current_session, task=task)
            self._commit(status, current_session=session)
        else:
            self._commit(status)

    @_serialized
    def update_settings(self, settings: Settings) -> None:
        """Apply new settings.  A running session keeps its duration."""
        settings = settings.normalized()
        previous = self._settings
        status = self._status.copy()
        if status.state == TimerState.STOPPED:
            self._with_next(status, settings)

        self._store.save_settings(settings)
        try:
            self._commit(status)
        except StorageError:
            self._store.save_settings(previous)
            raise
        self._settings = settings

    def destroy(self) -> None:
        """Tear down timers.  Nothing is written; every transition already was."""
        self._halt()

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — timer mechanics
    # ══════════════════════════════════════════════════════════════════

    def _begin(self, kind: SessionKind, task: str = "") -> None:
        now = self._now()
        status = self._status.copy()
        self._apply_daily_reset(status, now)

        if kind == SessionKind.WORK:
            seconds = self._settings.work_duration * 60
        else:
            seconds = policy.rest_duration(status.session_count, self._settings)
            task = policy.rest_label(status.session_count, self._settings)

        session = PomodoroSession(
            kind=kind,
            planned_duration=seconds,
            start_time=now,
            date=self._day(now),
            task=task,
        )
        status.state = kind.running_state
        status.time_remaining = seconds
        status.total_time = seconds
        status.current_task = task
        status.start_time = now
        status.current_session_type = kind
        status.last_session_start = now

        self._commit(status, current_session=session)
        self._chain_timer.stop()
        self._pending_chain = None
        self._qt_timer.start()

    def _on_tick(self) -> None:
        with self._lock:
            if not self._status.is_running:
                return
            status = self._status.copy()
            remaining = status.time_remaining - 1
            if status.start_time is not None:
                # the wall clock wins after a system sleep
                remaining = min(remaining, self._remaining_at(status, self._now()))
            status.time_remaining = max(0, remaining)

            if status.time_remaining <= 0:
                self._status = status
                try:
                    self._complete()
                except StorageError:
                    logger.exception("Could not complete session; retrying next tick")
                return

            try:
                self._store.record_transition(status)
            except StorageError:
                logger.warning("Could not persist tick", exc_info=True)
            self._status = status
            self._notify()

    def _complete(self) -> None:
        if not self._status.is_running:
            return
        status, finished = self._finalized(
            self._status.copy(), self._now(), completed=True
        )
        self._commit(status, current_session=None, finished=finished)
        self._halt()
        self._announce(finished)

    def _finalized(
        self, status: TimerStatus, now: datetime, completed: bool
    ) -> tuple[TimerStatus, PomodoroSession]:
        """Close the in-flight session and work out what comes next."""
        session = self._current_session or self._session_from_status(status, now)
        finished = session.finish(now, completed)

        if completed:
            if finished.kind == SessionKind.WORK:
                status.session_count += 1
            status.last_completed_session_type = finished.kind
        return self._stopped(status), finished

    def _interrupted(
        self, status: TimerStatus, now: datetime
    ) -> tuple[TimerStatus, PomodoroSession | None]:
        if status.state == TimerState.STOPPED:
            return self._stopped(status), None
        return self._finalized(status, now, completed=False)

    def _stopped(self, status: TimerStatus) -> TimerStatus:
        status.state = TimerState.STOPPED
        status.time_remaining = 0
        status.total_time = 0
        status.current_task = ""
        status.start_time = None
        status.current_session_type = None
        self._with_next(status)
        return status

    def _announce(self, finished: PomodoroSession) -> None:
        if finished.id == self._last_announced:
            return
        self._last_announced = finished.id

        if finished.kind == SessionKind.WORK:
            notification = TimerNotification(
                title="Work Session Complete!",
                message=(
                    "Time for a break! You completed: "
                    f"{finished.task or 'Work session'}"
                ),
                kind=NotificationKind.WORK_COMPLETE,
            )
            chain = SessionKind.REST if self._settings.auto_start_rest else None
        else:
            notification = TimerNotification(
                title="Break Complete!",
                message="Break time is over. Ready to get back to work?",
                kind=NotificationKind.REST_COMPLETE,
            )
            chain = SessionKind.WORK if self._settings.auto_start_work else None

        self.timer_completed.emit(notification)

        if chain is not None:
            self._pending_chain = chain
            self._chain_timer.start()

    def _on_chain_timeout(self) -> None:
        kind, self._pending_chain = self._pending_chain, None
        if kind is None:
            return
        try:
            if kind == SessionKind.WORK:
                self.start_work()
            else:
                self.start_rest()
        except StorageError:
            logger.exception("Auto-start of %s session failed", kind.value)

    def _halt(self) -> None:
        self._qt_timer.stop()
        self._chain_timer.stop()
        self._pending_chain = None

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — policy glue
    # ══════════════════════════════════════════════════════════════════

    def _now(self) -> datetime:
        return self._clock()

    def _day(self, moment: datetime) -> date:
        return policy.focus_day(moment, self._settings.daily_reset_hour)

    def _with_next(self, status: TimerStatus, settings: Settings | None = None) -> None:
        kind, seconds = policy.next_session(
            status.last_completed_session_type,
            status.session_count,
            settings or self._settings,
        )
        status.next_session_type = kind
        status.next_session_duration = seconds

    def _apply_daily_reset(self, status: TimerStatus, now: datetime) -> None:
        if not policy.crossed_boundary(
            status.last_session_start, now, self._settings.daily_reset_hour
        ):
            return
        if status.session_count or status.last_completed_session_type:
            logger.info("Daily boundary passed; resetting session count")
        status.session_count = 0
        status.last_completed_session_type = None
        status.next_session_type = SessionKind.WORK
        status.next_session_duration = self._settings.work_duration * 60

    def _reconcile_count(self, status: TimerStatus, now: datetime) -> None:
        try:
            aggregate = self._store.get_daily_aggregate(self._day(now))
        except StorageError:
            logger.warning("Daily stats unavailable; keeping stored count",
                           exc_info=True)
            return
        if aggregate.session_count != status.session_count:
            logger.info(
                "Session count %d disagrees with daily stats %d; using stats",
                status.session_count, aggregate.session_count,
            )
            status.session_count = aggregate.session_count
            if status.state == TimerState.STOPPED:
                self._with_next(status)

    @staticmethod
    def _remaining_at(status: TimerStatus, now: datetime) -> int:
        """Seconds left at *now*, measured against the session deadline."""
        elapsed = int((now - status.start_time).total_seconds())
        return min(status.time_remaining, status.total_time - elapsed)

    def _session_from_status(
        self, status: TimerStatus, now: datetime
    ) -> PomodoroSession:
        """Rebuild a lost in-flight session from the status snapshot."""
        if status.current_session_type is not None:
            kind = status.current_session_type
        elif status.state in RUNNING_STATES:
            kind = SessionKind(status.state.value)
        else:
            kind = SessionKind.WORK
        start = status.start_time or now - timedelta(
            seconds=max(0, status.total_time - status.time_remaining)
        )
        return PomodoroSession(
            kind=kind,
            planned_duration=status.total_time,
            start_time=start,
            date=self._day(start),
            task=status.current_task,
        )

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — persistence & observers
    # ══════════════════════════════════════════════════════════════════

    def _read(self, loader, default, what: str):
        try:
            return loader()
        except StorageError:
            logger.warning("Could not load %s; using defaults", what, exc_info=True)
            return default

    def _commit(self, status: TimerStatus, current_session=KEEP, **changes) -> None:
        """Persist *status*, then make it the engine's state and notify."""
        self._store.record_transition(status, current_session, **changes)
        self._status = status
        if current_session is not KEEP:
            self._current_session = current_session
        self._notify()

    def _notify(self) -> None:
        self.status_changed.emit(self._status.copy())
