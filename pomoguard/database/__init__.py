"""Database package."""

from .db import get_session, init_db, configure_engine
from .models import TimerStatusRow, CurrentSessionRow, SessionLog, DailyStats

__all__ = [
    "get_session",
    "init_db",
    "configure_engine",
    "TimerStatusRow",
    "CurrentSessionRow",
    "SessionLog",
    "DailyStats",
]
