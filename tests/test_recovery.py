"""Tests for engine start-up: restoring, completing or discarding the
session that was in flight when the previous process went away, the
daily counter reset, and reconciliation with the stored daily stats.
"""

from datetime import datetime, timedelta

from pomoguard.database.db import get_session
from pomoguard.database.models import TimerStatusRow
from pomoguard.settings import Settings
from pomoguard.timer.engine import TimerEngine
from pomoguard.timer.policy import focus_day
from pomoguard.status import (
    NotificationKind, PomodoroSession, SessionKind, TimerState, TimerStatus,
)

from helpers import FlakyStore, SignalCollector, complete_session


def seed_running(store, kind, start, remaining, total, task="", count=0):
    """Store a running snapshot plus its in-flight session."""
    day = focus_day(start, 5)
    store.record_transition(
        TimerStatus(
            state=kind.running_state,
            time_remaining=remaining,
            total_time=total,
            current_task=task,
            session_count=count,
            start_time=start,
            current_session_type=kind,
            last_completed_session_type=(
                SessionKind.WORK if kind == SessionKind.REST else None
            ),
            last_session_start=start,
        ),
        current_session=PomodoroSession(
            kind=kind,
            planned_duration=total,
            start_time=start,
            date=day,
            task=task,
        ),
        count_adjustment=count,
        day=day,
    )


def seed_stopped(store, count, last_completed, last_start):
    day = focus_day(last_start, 5)
    store.record_transition(
        TimerStatus(
            session_count=count,
            last_completed_session_type=last_completed,
            last_session_start=last_start,
        ),
        current_session=None,
        count_adjustment=count,
        day=day,
    )


def watch(engine):
    statuses, notes = SignalCollector(), SignalCollector()
    engine.status_changed.connect(statuses)
    engine.timer_completed.connect(notes)
    return statuses, notes


# ═══════════════════════════════════════════════════════════════════════════
#  RESUMING A SESSION STILL IN PROGRESS
# ═══════════════════════════════════════════════════════════════════════════


class TestResumeAfterRestart:

    def test_running_session_continues(self, engine, make_engine, clock):
        engine.start_work("deep work")
        session_id = engine.current_session.id
        engine.destroy()

        clock.advance(600)
        restarted = make_engine()

        status = restarted.get_status()
        assert status.state == TimerState.WORK
        assert status.time_remaining == 900
        assert status.current_task == "deep work"
        assert restarted.current_session.id == session_id
        assert restarted._qt_timer.isActive()

    def test_ticked_time_is_not_counted_twice(self, engine, make_engine, clock):
        engine.start_work()
        for _ in range(100):
            clock.advance(1)
            engine._on_tick()
        engine.destroy()

        clock.advance(50)
        restarted = make_engine()
        assert restarted.remaining == 1350

    def test_paused_session_stays_paused(self, engine, make_engine, clock):
        engine.start_work()
        for _ in range(100):
            engine._on_tick()
        engine.pause()
        engine.destroy()

        clock.advance(hours=2)
        restarted = make_engine()
        assert restarted.state == TimerState.PAUSED
        assert restarted.remaining == 1400
        assert not restarted._qt_timer.isActive()

        restarted.resume()
        assert restarted.state == TimerState.WORK
        assert restarted.remaining == 1400

    def test_notifies_exactly_once(self, engine, make_engine, clock):
        engine.start_work()
        engine.destroy()

        restarted = make_engine(initialize=False)
        statuses, notes = watch(restarted)
        restarted.initialize()
        assert len(statuses) == 1
        assert len(notes) == 0


# ═══════════════════════════════════════════════════════════════════════════
#  COMPLETING A SESSION THAT EXPIRED WHILE DOWN
# ═══════════════════════════════════════════════════════════════════════════


class TestCompleteAfterRestart:

    def test_expired_work_session_completes_once(self, store, make_engine, clock):
        start = clock.now - timedelta(minutes=40)
        seed_running(store, SessionKind.WORK, start, 100, 1500, task="essay")

        eng = make_engine(initialize=False)
        statuses, notes = watch(eng)
        eng.initialize()

        status = eng.get_status()
        assert status.state == TimerState.STOPPED
        assert status.session_count == 1
        assert status.next_session_type == SessionKind.REST
        assert len(notes) == 1
        assert notes.last.kind == NotificationKind.WORK_COMPLETE
        assert "essay" in notes.last.message
        assert len(statuses) == 1

        history = store.get_sessions_history()
        assert len(history) == 1
        assert history[0].completed is True
        assert history[0].duration == 40 * 60

    def test_initialize_twice_does_not_complete_twice(
        self, store, make_engine, clock
    ):
        start = clock.now - timedelta(minutes=40)
        seed_running(store, SessionKind.WORK, start, 100, 1500)

        eng = make_engine(initialize=False)
        _, notes = watch(eng)
        eng.initialize()
        eng.initialize()

        assert len(notes) == 1
        assert eng.session_count == 1
        assert len(store.get_sessions_history()) == 1

    def test_count_increments_from_stored_count(self, store, make_engine, clock):
        start = clock.now - timedelta(minutes=30)
        seed_running(store, SessionKind.WORK, start, 300, 1500, count=2)

        eng = make_engine()
        assert eng.session_count == 3

    def test_expired_rest_keeps_count(self, store, make_engine, clock):
        start = clock.now - timedelta(minutes=10)
        seed_running(store, SessionKind.REST, start, 300, 300, count=1)

        eng = make_engine(initialize=False)
        _, notes = watch(eng)
        eng.initialize()

        assert eng.session_count == 1
        assert notes.last.kind == NotificationKind.REST_COMPLETE
        assert eng.get_status().next_session_type == SessionKind.WORK

    def test_completion_survives_another_restart(self, store, make_engine, clock):
        start = clock.now - timedelta(minutes=40)
        seed_running(store, SessionKind.WORK, start, 100, 1500)
        make_engine().destroy()

        again = make_engine()
        assert again.session_count == 1
        assert again.state == TimerState.STOPPED

    def test_auto_chain_runs_after_recovery(self, store, make_engine, clock):
        store.save_settings(Settings(auto_start_rest=True))
        start = clock.now - timedelta(minutes=40)
        seed_running(store, SessionKind.WORK, start, 100, 1500)

        eng = make_engine()
        assert eng.state == TimerState.STOPPED
        assert eng._chain_timer.isActive()

        eng._chain_timer.stop()
        eng._on_chain_timeout()
        assert eng.state == TimerState.REST

    def test_lost_session_record_is_rebuilt(self, store, make_engine, clock):
        start = clock.now - timedelta(minutes=40)
        seed_running(store, SessionKind.WORK, start, 100, 1500, task="notes")
        store.save_current_session(None)

        eng = make_engine()
        assert eng.session_count == 1
        logged = store.get_sessions_history()[0]
        assert logged.task == "notes"
        assert logged.start_time == start

    def test_unsaved_completion_is_announced_once(
        self, qapp, tmp_path, clock
    ):
        flaky = FlakyStore(settings_path=tmp_path / "settings.json")
        start = clock.now - timedelta(minutes=40)
        seed_running(flaky, SessionKind.WORK, start, 100, 1500)
        flaky.fail_writes = True

        eng = TimerEngine(store=flaky, clock=clock)
        _, notes = watch(eng)
        eng.initialize()
        eng.initialize()
        assert len(notes) == 1

        flaky.fail_writes = False
        eng.initialize()
        assert len(notes) == 1
        assert eng.session_count == 1
        assert len(flaky.get_sessions_history()) == 1
        eng.destroy()


# ═══════════════════════════════════════════════════════════════════════════
#  CORRUPT STATE
# ═══════════════════════════════════════════════════════════════════════════


class TestCorruptState:

    def test_running_without_start_time_is_stopped(self, store, make_engine):
        store.record_transition(
            TimerStatus(state=TimerState.WORK, time_remaining=100, total_time=1500),
            current_session=None,
        )

        eng = make_engine(initialize=False)
        _, notes = watch(eng)
        eng.initialize()

        status = eng.get_status()
        assert status.state == TimerState.STOPPED
        assert status.next_session_type == SessionKind.WORK
        assert status.time_remaining == 0
        assert len(notes) == 0
        assert store.get_sessions_history() == []
        assert store.get_status().state == TimerState.STOPPED

    def test_paused_without_session_is_stopped(self, store, make_engine):
        store.record_transition(
            TimerStatus(state=TimerState.PAUSED, time_remaining=100, total_time=1500),
            current_session=None,
        )
        eng = make_engine()
        assert eng.state == TimerState.STOPPED

    def test_unknown_state_falls_back_to_defaults(self, make_engine):
        with get_session() as db:
            db.get(TimerStatusRow, 1).state = "BOGUS"

        eng = make_engine()
        assert eng.state == TimerState.STOPPED
        assert eng.get_status().next_session_type == SessionKind.WORK


# ═══════════════════════════════════════════════════════════════════════════
#  DAILY RESET & RECONCILIATION
# ═══════════════════════════════════════════════════════════════════════════


class TestDailyReset:

    def test_count_resets_after_boundary(self, store, make_engine, clock):
        seed_stopped(store, 3, SessionKind.WORK, datetime(2024, 3, 11, 23, 0))
        clock.set(datetime(2024, 3, 12, 6, 0))

        eng = make_engine()
        status = eng.get_status()
        assert status.session_count == 0
        assert status.next_session_type == SessionKind.WORK
        assert status.last_completed_session_type is None

    def test_count_kept_before_boundary(self, store, make_engine, clock):
        seed_stopped(store, 3, SessionKind.WORK, datetime(2024, 3, 11, 23, 0))
        clock.set(datetime(2024, 3, 12, 4, 0))

        eng = make_engine()
        status = eng.get_status()
        assert status.session_count == 3
        assert status.next_session_type == SessionKind.REST
        assert status.next_session_duration == 300

    def test_advance_after_boundary_resets_first(self, store, make_engine, clock):
        seed_stopped(store, 3, SessionKind.WORK, datetime(2024, 3, 11, 23, 0))
        clock.set(datetime(2024, 3, 12, 4, 30))
        eng = make_engine()
        assert eng.session_count == 3

        clock.set(datetime(2024, 3, 12, 6, 0))
        eng.advance_to_next_session()

        # reset to zero, then skipped past WORK
        status = eng.get_status()
        assert status.session_count == 1
        assert status.next_session_type == SessionKind.REST
        assert status.next_session_duration == 300

        eng.destroy()
        assert make_engine().session_count == 1

    def test_custom_reset_hour(self, store, make_engine, clock):
        store.save_settings(Settings(daily_reset_hour=0))
        seed_stopped(store, 2, SessionKind.WORK, datetime(2024, 3, 11, 23, 0))
        clock.set(datetime(2024, 3, 12, 1, 0))

        eng = make_engine()
        assert eng.session_count == 0

    def test_reset_overnight_keeps_todays_sessions(
        self, engine, make_engine, clock
    ):
        for _ in range(4):
            engine.start_work()
            complete_session(engine, clock)
            engine.start_rest()
            complete_session(engine, clock)
        assert engine.session_count == 4

        clock.set(datetime(2024, 3, 13, 6, 0))
        engine.reset()
        for _ in range(2):
            engine.start_work()
            complete_session(engine, clock)
            engine.start_rest()
            complete_session(engine, clock)
        assert engine.session_count == 2
        engine.destroy()

        assert make_engine().session_count == 2

    def test_counter_reset_overnight_keeps_todays_sessions(
        self, engine, make_engine, clock
    ):
        for _ in range(3):
            engine.start_work()
            complete_session(engine, clock)
        clock.set(datetime(2024, 3, 13, 6, 0))
        engine.reset_session_count()

        engine.start_work()
        complete_session(engine, clock)
        assert engine.session_count == 1
        engine.destroy()

        assert make_engine().session_count == 1


class TestReconciliation:

    def test_daily_stats_win_over_stored_count(self, store, make_engine, clock):
        seed_stopped(store, 1, SessionKind.WORK, clock.now - timedelta(hours=1))
        store.record_transition(
            TimerStatus(
                session_count=3,
                last_completed_session_type=SessionKind.WORK,
                last_session_start=clock.now - timedelta(hours=1),
            ),
        )

        eng = make_engine()
        status = eng.get_status()
        assert status.session_count == 1
        assert status.next_session_type == SessionKind.REST
        assert status.next_session_duration == 300

    def test_stats_read_failure_keeps_stored_count(self, qapp, tmp_path, clock):
        flaky = FlakyStore(settings_path=tmp_path / "settings.json")
        flaky.record_transition(TimerStatus(
            session_count=2,
            last_completed_session_type=SessionKind.WORK,
            last_session_start=clock.now,
        ))
        flaky.fail_stats = True

        eng = TimerEngine(store=flaky, clock=clock)
        eng.initialize()
        assert eng.session_count == 2
        eng.destroy()
