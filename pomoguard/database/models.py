"""SQLAlchemy ORM models for PomoGuard."""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class TimerStatusRow(Base):
    """Single-row table holding the last committed timer snapshot."""

    __tablename__ = "timer_status"

    id = Column(Integer, primary_key=True, default=1)
    state = Column(String(10), nullable=False, default="STOPPED")  # STOPPED | WORK | REST | PAUSED
    time_remaining = Column(Integer, nullable=False, default=0)
    total_time = Column(Integer, nullable=False, default=0)
    current_task = Column(String(255), nullable=False, default="")
    session_count = Column(Integer, nullable=False, default=0)
    start_time = Column(DateTime, nullable=True)
    next_session_type = Column(String(10), nullable=False, default="WORK")
    next_session_duration = Column(Integer, nullable=False, default=25 * 60)
    last_completed_session_type = Column(String(10), nullable=True)
    current_session_type = Column(String(10), nullable=True)
    last_session_start = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now,
                        onupdate=datetime.now)

    def __repr__(self) -> str:
        return (
            f"<TimerStatusRow state={self.state} "
            f"remaining={self.time_remaining} count={self.session_count}>"
        )


class CurrentSessionRow(Base):
    """The in-flight session, if any.  At most one row."""

    __tablename__ = "current_session"

    id = Column(String(64), primary_key=True)
    session_type = Column(String(10), nullable=False)  # WORK | REST
    planned_duration = Column(Integer, nullable=False)
    task_label = Column(String(255), nullable=False, default="")
    start_time = Column(DateTime, nullable=False)
    date = Column(Date, nullable=False)

    def __repr__(self) -> str:
        return f"<CurrentSessionRow id={self.id} type={self.session_type}>"


class SessionLog(Base):
    """Every finalized session, completed or interrupted."""

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)
    session_type = Column(String(10), nullable=False)
    planned_duration = Column(Integer, nullable=False, default=0)
    duration_seconds = Column(Integer, nullable=False, default=0)
    task_label = Column(String(255), nullable=False, default="")
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    date = Column(Date, nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<SessionLog id={self.id} type={self.session_type} "
            f"completed={self.completed}>"
        )


class DailyStats(Base):
    """Per focus-day aggregate counters."""

    __tablename__ = "daily_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, unique=True)
    completed_work_sessions = Column(Integer, nullable=False, default=0)
    completed_rest_sessions = Column(Integer, nullable=False, default=0)
    total_work_seconds = Column(Integer, nullable=False, default=0)
    total_rest_seconds = Column(Integer, nullable=False, default=0)
    count_adjustment = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<DailyStats date={self.date} "
            f"work={self.completed_work_sessions} "
            f"rest={self.completed_rest_sessions}>"
        )
