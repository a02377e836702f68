"""Alternation and day-boundary rules.

These are pure functions so the engine, the store and the tests all
agree on a single definition of "what comes next" and "which day is it".

Alternation
-----------
The next session is decided by the last *completed* session type alone:

    nothing completed yet  →  WORK
    WORK completed         →  REST (long when count % interval == 0)
    REST completed         →  WORK

A manual stop never completes a session, so it never moves alternation.

Focus day
---------
The counter of completed work sessions resets at a fixed local hour.
A timestamp belongs to the focus day of ``timestamp - reset_hour``, so
with a 05:00 boundary a session started at 01:30 still counts toward
the previous day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from ..settings import Settings
from ..status import SessionKind


def is_long_rest(session_count: int, long_rest_interval: int) -> bool:
    """True when a rest chosen now should use the long duration."""
    interval = max(1, long_rest_interval)
    return session_count > 0 and session_count % interval == 0


def rest_duration(session_count: int, settings: Settings) -> int:
    """Seconds for a rest chosen at *session_count*."""
    if is_long_rest(session_count, settings.long_rest_interval):
        return settings.long_rest_duration * 60
    return settings.rest_duration * 60


def next_session(
    last_completed: SessionKind | None,
    session_count: int,
    settings: Settings,
) -> tuple[SessionKind, int]:
    """Return ``(kind, seconds)`` for the session a start should use."""
    if last_completed == SessionKind.WORK:
        return SessionKind.REST, rest_duration(session_count, settings)
    return SessionKind.WORK, settings.work_duration * 60


def rest_label(session_count: int, settings: Settings) -> str:
    if is_long_rest(session_count, settings.long_rest_interval):
        return "Long Break"
    return "Short Break"


# ── day boundary ──────────────────────────────────────────────────────────


def last_boundary(now: datetime, reset_hour: int) -> datetime:
    """Most recent instant at ``reset_hour:00`` not after *now*."""
    boundary = now.replace(hour=reset_hour, minute=0, second=0, microsecond=0)
    if boundary > now:
        boundary -= timedelta(days=1)
    return boundary


def focus_day(moment: datetime, reset_hour: int) -> date:
    return (moment - timedelta(hours=reset_hour)).date()


def crossed_boundary(
    last_start: datetime | None, now: datetime, reset_hour: int
) -> bool:
    """True when the last recorded start precedes the latest boundary."""
    if last_start is None:
        return False
    return last_start < last_boundary(now, reset_hour)
