"""Timer store — the persistence collaborator of the timer engine.

Wraps the SQLAlchemy layer in :mod:`pomoguard.database` and the JSON
settings file behind the small contract the engine consumes.  Every
database error surfaces as :class:`~pomoguard.errors.StorageError`; the
engine decides whether that is fatal for the command at hand.

``record_transition`` is what the engine actually writes through.  It
commits the status snapshot, the in-flight session, and (when a
session just ended) the log entry plus its aggregate in a single
transaction, so the stored snapshot never shows half a transition.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from .database.db import get_session
from .database.models import (
    TimerStatusRow, CurrentSessionRow, SessionLog, DailyStats,
)
from .errors import StorageError
from .settings import Settings, SETTINGS_PATH, load_settings, save_settings
from .status import (
    DailyAggregate, PomodoroSession, SessionKind, TimerState, TimerStatus,
)


logger = logging.getLogger(__name__)

HISTORY_RETENTION_DAYS = 90

# Sentinel: leave the in-flight session as it is.
KEEP = object()


# ── row ↔ value conversion ────────────────────────────────────────────────


def _kind(value: str | None) -> SessionKind | None:
    return SessionKind(value) if value else None


def _status_from_row(row: TimerStatusRow) -> TimerStatus:
    return TimerStatus(
        state=TimerState(row.state),
        time_remaining=row.time_remaining,
        total_time=row.total_time,
        current_task=row.current_task or "",
        session_count=row.session_count,
        start_time=row.start_time,
        next_session_type=SessionKind(row.next_session_type),
        next_session_duration=row.next_session_duration,
        last_completed_session_type=_kind(row.last_completed_session_type),
        current_session_type=_kind(row.current_session_type),
        last_session_start=row.last_session_start,
    )


def _copy_status_to_row(status: TimerStatus, row: TimerStatusRow) -> None:
    row.state = status.state.value
    row.time_remaining = status.time_remaining
    row.total_time = status.total_time
    row.current_task = status.current_task
    row.session_count = status.session_count
    row.start_time = status.start_time
    row.next_session_type = status.next_session_type.value
    row.next_session_duration = status.next_session_duration
    row.last_completed_session_type = (
        status.last_completed_session_type.value
        if status.last_completed_session_type else None
    )
    row.current_session_type = (
        status.current_session_type.value
        if status.current_session_type else None
    )
    row.last_session_start = status.last_session_start


def _session_from_current(row: CurrentSessionRow) -> PomodoroSession:
    return PomodoroSession(
        id=row.id,
        kind=SessionKind(row.session_type),
        planned_duration=row.planned_duration,
        task=row.task_label or "",
        start_time=row.start_time,
        date=row.date,
    )


def _session_from_log(row: SessionLog) -> PomodoroSession:
    return PomodoroSession(
        id=row.id,
        kind=SessionKind(row.session_type),
        planned_duration=row.planned_duration,
        duration=row.duration_seconds,
        task=row.task_label or "",
        start_time=row.start_time,
        end_time=row.end_time,
        completed=row.completed,
        date=row.date,
    )


def _aggregate_from_row(row: DailyStats | None, day: date) -> DailyAggregate:
    if row is None:
        return DailyAggregate(date=day)
    return DailyAggregate(
        date=row.date,
        completed_work_sessions=row.completed_work_sessions,
        completed_rest_sessions=row.completed_rest_sessions,
        total_work_time=row.total_work_seconds,
        total_rest_time=row.total_rest_seconds,
        count_adjustment=row.count_adjustment,
    )


# ── transaction helpers (caller owns the ORM session) ─────────────────────


def _daily_row(db, day: date) -> DailyStats:
    row = db.scalars(select(DailyStats).where(DailyStats.date == day)).first()
    if row is None:
        row = DailyStats(
            date=day,
            completed_work_sessions=0,
            completed_rest_sessions=0,
            total_work_seconds=0,
            total_rest_seconds=0,
            count_adjustment=0,
        )
        db.add(row)
    return row


def _write_status(db, status: TimerStatus) -> None:
    row = db.get(TimerStatusRow, 1)
    if row is None:
        row = TimerStatusRow(id=1)
        db.add(row)
    _copy_status_to_row(status, row)


def _write_current(db, session: PomodoroSession | None) -> None:
    db.execute(delete(CurrentSessionRow))
    if session is not None:
        db.add(CurrentSessionRow(
            id=session.id,
            session_type=session.kind.value,
            planned_duration=session.planned_duration,
            task_label=session.task,
            start_time=session.start_time,
            date=session.date,
        ))


def _append_log(db, session: PomodoroSession) -> None:
    """Log a finalized session and fold it into its day's aggregate."""
    if db.get(SessionLog, session.id) is not None:
        logger.warning("Session %s already logged, skipping", session.id)
        return
    db.add(SessionLog(
        id=session.id,
        session_type=session.kind.value,
        planned_duration=session.planned_duration,
        duration_seconds=session.duration,
        task_label=session.task,
        start_time=session.start_time,
        end_time=session.end_time,
        completed=session.completed,
        date=session.date,
    ))
    stats = _daily_row(db, session.date)
    if session.kind == SessionKind.WORK:
        if session.completed:
            stats.completed_work_sessions += 1
        stats.total_work_seconds += session.duration
    else:
        if session.completed:
            stats.completed_rest_sessions += 1
        stats.total_rest_seconds += session.duration


# ── store ─────────────────────────────────────────────────────────────────


class TimerStore:
    """Database-backed persistence for one timer engine."""

    def __init__(self, settings_path: Path = SETTINGS_PATH) -> None:
        self._settings_path = settings_path

    # ── settings ──────────────────────────────────────────────────────

    def get_settings(self) -> Settings:
        return load_settings(self._settings_path)

    def save_settings(self, settings: Settings) -> None:
        try:
            save_settings(settings, self._settings_path)
        except OSError as exc:
            raise StorageError(f"could not save settings: {exc}") from exc

    # ── status ────────────────────────────────────────────────────────

    def get_status(self) -> TimerStatus:
        try:
            with get_session() as db:
                row = db.get(TimerStatusRow, 1)
                if row is None:
                    logger.info("No timer status stored, using defaults")
                    return TimerStatus()
                return _status_from_row(row)
        except (SQLAlchemyError, ValueError) as exc:
            raise StorageError(f"could not load timer status: {exc}") from exc

    def save_status(self, status: TimerStatus) -> None:
        self.record_transition(status)

    # ── in-flight session ─────────────────────────────────────────────

    def get_current_session(self) -> PomodoroSession | None:
        try:
            with get_session() as db:
                row = db.scalars(select(CurrentSessionRow)).first()
                return _session_from_current(row) if row else None
        except (SQLAlchemyError, ValueError) as exc:
            raise StorageError(f"could not load current session: {exc}") from exc

    def save_current_session(self, session: PomodoroSession | None) -> None:
        try:
            with get_session() as db:
                _write_current(db, session)
        except SQLAlchemyError as exc:
            raise StorageError(f"could not save current session: {exc}") from exc

    # ── history & aggregates ──────────────────────────────────────────

    def get_daily_aggregate(self, day: date) -> DailyAggregate:
        try:
            with get_session() as db:
                row = db.scalars(
                    select(DailyStats).where(DailyStats.date == day)
                ).first()
                return _aggregate_from_row(row, day)
        except SQLAlchemyError as exc:
            raise StorageError(f"could not load stats for {day}: {exc}") from exc

    def append_completed_session(self, session: PomodoroSession) -> None:
        try:
            with get_session() as db:
                _append_log(db, session)
        except SQLAlchemyError as exc:
            raise StorageError(f"could not log session {session.id}: {exc}") from exc

    def get_sessions_history(
        self, start: date | None = None, end: date | None = None
    ) -> list[PomodoroSession]:
        """Finalized sessions, newest first, within an inclusive day range."""
        query = select(SessionLog)
        if start is not None:
            query = query.where(SessionLog.date >= start)
        if end is not None:
            query = query.where(SessionLog.date <= end)
        query = query.order_by(SessionLog.start_time.desc())
        try:
            with get_session() as db:
                return [_session_from_log(r) for r in db.scalars(query)]
        except SQLAlchemyError as exc:
            raise StorageError(f"could not load session history: {exc}") from exc

    def cleanup_old_data(
        self, keep_days: int = HISTORY_RETENTION_DAYS, today: date | None = None
    ) -> None:
        """Drop history older than *keep_days*.  Failure is only logged."""
        cutoff = (today or date.today()) - timedelta(days=keep_days)
        try:
            with get_session() as db:
                db.execute(delete(SessionLog).where(SessionLog.date < cutoff))
                db.execute(delete(DailyStats).where(DailyStats.date < cutoff))
        except SQLAlchemyError:
            logger.exception("History cleanup failed")
            return
        logger.info("Pruned history before %s", cutoff)

    # ── engine transitions ────────────────────────────────────────────

    def record_transition(
        self,
        status: TimerStatus,
        current_session=KEEP,
        finished: PomodoroSession | None = None,
        count_adjustment: int = 0,
        day: date | None = None,
    ) -> None:
        """Commit one engine transition atomically.

        *current_session* replaces the in-flight session unless left as
        ``KEEP``.  *finished* is appended to the log.  A non-zero
        *count_adjustment* is added to the aggregate for *day*.
        """
        try:
            with get_session() as db:
                if finished is not None:
                    _append_log(db, finished)
                if count_adjustment:
                    if day is None:
                        raise ValueError("count_adjustment needs a day")
                    _daily_row(db, day).count_adjustment += count_adjustment
                if current_session is not KEEP:
                    _write_current(db, current_session)
                _write_status(db, status)
        except SQLAlchemyError as exc:
            raise StorageError(f"could not save timer transition: {exc}") from exc
