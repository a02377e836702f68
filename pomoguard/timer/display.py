"""Read-only helpers for anything that renders the timer.

All functions are pure: they take a :class:`TimerStatus` (or plain
seconds) and never touch the engine.
"""

from __future__ import annotations

from ..status import SessionKind, TimerState, TimerStatus


def format_time(seconds: int) -> str:
    """``MM:SS``; minutes are not wrapped into hours, negatives show 00:00."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


def format_duration_long(seconds: int) -> str:
    """Human readable duration: ``1h 2m 3s``, ``2m 3s`` or ``3s``."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {mins}m {secs}s"
    if mins > 0:
        return f"{mins}m {secs}s"
    return f"{secs}s"


def display_time(status: TimerStatus) -> str:
    """Clock text: the countdown while active, the next duration when stopped."""
    if status.state == TimerState.STOPPED:
        return format_time(status.next_session_duration)
    return format_time(status.time_remaining)


def progress_percent(status: TimerStatus) -> float:
    """0 → 100 progress through the current session."""
    if status.total_time <= 0:
        return 0.0
    elapsed = status.total_time - max(0, status.time_remaining)
    return max(0.0, min(100.0, elapsed / status.total_time * 100))


def is_task_editable(status: TimerStatus) -> bool:
    return status.state == TimerState.STOPPED


def _label_kind(status: TimerStatus) -> SessionKind:
    if status.state == TimerState.STOPPED:
        return status.next_session_type
    if status.current_session_type is not None:
        return status.current_session_type
    if status.state == TimerState.REST:
        return SessionKind.REST
    return SessionKind.WORK


def session_label(status: TimerStatus) -> str:
    """``#N · Work`` / ``#N · Break`` for the current or upcoming session.

    A work session is number ``count + 1``; a break belongs to the work
    session it follows.
    """
    if _label_kind(status) == SessionKind.WORK:
        return f"#{status.session_count + 1} · Work"
    return f"#{max(1, status.session_count)} · Break"
