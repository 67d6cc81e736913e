"""Runtime settings for the organizer backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from organizer.models import MAX_PERIOD

_BASE_DIR = os.path.dirname(os.path.abspath(__file__))

TIMETABLE_FILE = "timetable.json"
REMINDERS_FILE = "schedule_dday.json"
PREFERENCES_FILE = "preferences.json"

_TRUTHY = {"1", "true", "yes", "on"}


def _default_data_dir() -> str:
    return os.getenv("ORGANIZER_DATA_DIR") or os.path.join(_BASE_DIR, "data")


@dataclass
class Settings:
    """
    Where data lives and how the app behaves.

    ORGANIZER_DATA_DIR overrides ``data_dir``; ORGANIZER_DESKTOP_NOTIFICATIONS
    ("1", "true", "yes", "on") turns on OS desktop delivery of D-1 alerts.
    """

    data_dir: str = field(default_factory=_default_data_dir)
    max_period: int = MAX_PERIOD
    desktop_notifications: bool = False
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        env_desktop = os.getenv("ORGANIZER_DESKTOP_NOTIFICATIONS")
        if env_desktop:
            self.desktop_notifications = env_desktop.strip().lower() in _TRUTHY


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
