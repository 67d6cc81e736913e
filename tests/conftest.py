from __future__ import annotations

from datetime import datetime

import pytest

from organizer.config import Settings
from organizer.manager import DataManager
from organizer.notifier import NotificationCenter, NotificationScheduler
from organizer.storage import JsonStore

# Monday morning, before the default 09:00 alert time
FIXED_NOW = datetime(2026, 3, 2, 8, 0)


class FixedClock:
    """Callable clock whose time only moves when a test sets it."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture
def errors() -> list:
    return []


@pytest.fixture
def store(tmp_path, errors) -> JsonStore:
    return JsonStore(str(tmp_path), on_error=lambda op, path, exc: errors.append((op, path, exc)))


@pytest.fixture
def center() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def make_manager(store, center, clock):
    def _make() -> DataManager:
        return DataManager(store, NotificationScheduler(center, clock), Settings(data_dir=store.data_dir))

    return _make


@pytest.fixture
def manager(make_manager) -> DataManager:
    return make_manager()
