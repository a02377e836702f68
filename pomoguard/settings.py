"""Timer settings with JSON persistence.

Settings are stored at:
    ~/Library/Application Support/PomoGuard/settings.json

Usage::

    settings = load_settings()
    settings.work_duration = 50
    save_settings(settings)

Durations are in minutes.  Settings are read when the engine starts and
whenever ``TimerEngine.update_settings`` is called; they never alter the
planned duration of a session that is already running.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path


logger = logging.getLogger(__name__)

APP_SUPPORT_DIR = Path.home() / "Library" / "Application Support" / "PomoGuard"
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── timer ─────────────────────────────────────────────────────────
    work_duration: int = 25                # minutes
    rest_duration: int = 5
    long_rest_duration: int = 15
    long_rest_interval: int = 4            # every Nth completed work session
    auto_start_rest: bool = False
    auto_start_work: bool = False

    # ── feedback ──────────────────────────────────────────────────────
    show_notifications: bool = True
    play_sound: bool = True

    # ── day boundary ──────────────────────────────────────────────────
    daily_reset_hour: int = 5              # local hour, 0-23

    def normalized(self) -> Settings:
        """Return a copy with every value clamped into its valid range."""
        return replace(
            self,
            work_duration=max(1, int(self.work_duration)),
            rest_duration=max(1, int(self.rest_duration)),
            long_rest_duration=max(1, int(self.long_rest_duration)),
            long_rest_interval=max(1, int(self.long_rest_interval)),
            daily_reset_hour=min(23, max(0, int(self.daily_reset_hour))),
        )


def load_settings(path: Path = SETTINGS_PATH) -> Settings:
    """Load settings from disk, falling back to defaults."""
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            # Only use keys that exist in the dataclass
            valid_keys = {f.name for f in fields(Settings)}
            filtered = {k: v for k, v in data.items() if k in valid_keys}
            return Settings(**filtered).normalized()
    except (OSError, ValueError, TypeError):
        logger.warning("Unreadable settings at %s, using defaults", path,
                       exc_info=True)
    return Settings()


def save_settings(settings: Settings, path: Path = SETTINGS_PATH) -> None:
    """Write settings to disk as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
