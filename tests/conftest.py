"""Shared pytest fixtures for PomoGuard tests."""

import sys
import pytest

from PyQt6.QtCore import QCoreApplication

from pomoguard.database.db import configure_engine, init_db
from pomoguard.storage import TimerStore
from pomoguard.timer.engine import TimerEngine

from helpers import FakeClock


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication instance shared across the entire test run."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def test_db():
    """Point every test at a fresh in-memory SQLite database."""
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


@pytest.fixture
def clock():
    """Controllable wall clock starting Tuesday 2024-03-12 10:00."""
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """Timer store with settings kept in a temp directory."""
    return TimerStore(settings_path=tmp_path / "settings.json")


@pytest.fixture
def engine(qapp, store, clock):
    """Initialized engine on a fresh database, auto-chain OFF."""
    eng = TimerEngine(parent=None, store=store, clock=clock)
    eng.initialize()
    yield eng
    eng.destroy()


@pytest.fixture
def make_engine(qapp, store, clock):
    """Factory for engines sharing the same store and clock.

    Used to simulate a process restart: build, use, destroy, build again.
    """
    engines = []

    def _make(initialize: bool = True) -> TimerEngine:
        eng = TimerEngine(parent=None, store=store, clock=clock)
        engines.append(eng)
        if initialize:
            eng.initialize()
        return eng

    yield _make
    for eng in engines:
        eng.destroy()
