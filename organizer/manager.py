"""
manager.py
──────────
Timetable & D-day management.

DataManager owns the two root aggregates (the weekly timetable and the D-day
list) plus the alert-time preference.  Every mutation runs to completion
before returning, in this order, all under one threading.RLock:

  1. mutate the in-memory aggregate
  2. persist the whole document through the JsonStore
  3. for D-day / alert-time changes, rebuild every pending D-1 alert

Construct it explicitly and hand it to whoever needs it; the constructor
loads the saved state, ``close()`` flushes it back.
"""

import logging
import threading
from datetime import date, datetime
from typing import List, Optional

from organizer.config import Settings
from organizer.models import (
    AlertTime,
    ChecklistItem,
    ClassSession,
    ReminderItem,
    WeeklyTimetable,
    Weekday,
    sorted_by_date,
    sorted_by_period,
)
from organizer.notifier import NotificationCenter, NotificationRequest, NotificationScheduler
from organizer.storage import JsonStore

logger = logging.getLogger(__name__)


class OrganizerError(Exception):
    """Base class for rejected organizer operations."""


class PeriodConflictError(OrganizerError):
    def __init__(self, day: Weekday, period: int):
        super().__init__(f"period {period} on {Weekday(day).value} is already taken")
        self.day = day
        self.period = period


class DataManager:
    """
    Holds the timetable and D-day list in memory and keeps the JSON documents
    and the notification center in step with them.

    One re-entrant lock is held across the whole mutate → persist →
    reschedule sequence, so overlapping callers never save a stale snapshot.
    Everything handed back to callers is a copy.
    """

    def __init__(self, store: JsonStore, scheduler: NotificationScheduler,
                 settings: Optional[Settings] = None):
        self._store = store
        self._scheduler = scheduler
        self._settings = settings or Settings(data_dir=store.data_dir)
        self._lock = threading.RLock()

        self._timetable = WeeklyTimetable()
        self._reminders: List[ReminderItem] = []
        self._alert_time = AlertTime()

        with self._lock:
            self._load()
            self._reschedule()

    def close(self) -> None:
        """Flush every document; the in-memory state stays usable."""
        with self._lock:
            self._persist_timetable()
            self._persist_reminders()
            self._store.save_alert_time(self._alert_time.model_copy())
        logger.info("Organizer data flushed to %s", self._store.data_dir)

    def __enter__(self) -> "DataManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Timetable ─────────────────────────────────────────────────────────────

    @property
    def timetable(self) -> WeeklyTimetable:
        with self._lock:
            return self._timetable.model_copy(deep=True)

    def get_sessions(self, day: Weekday) -> List[ClassSession]:
        """Sessions of ``day`` in stored order."""
        with self._lock:
            return [s.model_copy(deep=True) for s in self._timetable[day]]

    def sessions_by_period(self, day: Weekday) -> List[ClassSession]:
        return sorted_by_period(self.get_sessions(day))

    def set_sessions(self, day: Weekday, sessions: List[ClassSession]) -> None:
        """
        Replace the whole day.  Periods must be unique and within
        1..max_period; otherwise nothing changes.
        """
        seen = set()
        for s in sessions:
            if not 1 <= s.period <= self._settings.max_period:
                raise ValueError(f"period must be between 1 and {self._settings.max_period}, got {s.period}")
            if s.period in seen:
                raise PeriodConflictError(day, s.period)
            seen.add(s.period)

        with self._lock:
            self._timetable[day] = [s.model_copy(deep=True) for s in sessions]
            self._persist_timetable()

    def next_period(self, day: Weekday) -> int:
        """Period offered for the next new class: one past the last, capped at max_period."""
        with self._lock:
            highest = max((s.period for s in self._timetable[day]), default=0)
        return min(highest + 1, self._settings.max_period)

    def add_session(self, day: Weekday, name: str, period: int) -> ClassSession:
        session = ClassSession(name=name, period=period)
        with self._lock:
            self._timetable[day].append(session)
            self._persist_timetable()
            return session.model_copy(deep=True)

    def remove_session(self, day: Weekday, session_id: str) -> bool:
        """Delete a session and shift every later period down by one."""
        with self._lock:
            sessions = self._timetable[day]
            target = next((s for s in sessions if s.id == session_id), None)
            if target is None:
                return False
            remaining = [s for s in sessions if s.id != session_id]
            for s in remaining:
                if s.period > target.period:
                    s.period -= 1
            self._timetable[day] = remaining
            self._persist_timetable()
        return True

    def update_session(self, day: Weekday, session_id: str, name: Optional[str] = None,
                       period: Optional[int] = None) -> Optional[ClassSession]:
        """
        Rename and/or move a session to another period.

        Moving onto a period another session of the same day already holds
        raises PeriodConflictError and leaves both sessions untouched.
        """
        if period is not None and period < 1:
            raise ValueError(f"period must be positive, got {period}")

        with self._lock:
            session = self._find_session(day, session_id)
            if session is None:
                return None
            if period is not None and any(
                s.period == period for s in self._timetable[day] if s.id != session_id
            ):
                raise PeriodConflictError(day, period)
            if name is not None:
                session.name = name
            if period is not None:
                session.period = period
            self._persist_timetable()
            return session.model_copy(deep=True)

    # ── Checklists ────────────────────────────────────────────────────────────

    def add_item(self, day: Weekday, session_id: str, name: str) -> Optional[ChecklistItem]:
        with self._lock:
            session = self._find_session(day, session_id)
            if session is None:
                return None
            item = ChecklistItem(name=name)
            session.items.append(item)
            self._persist_timetable()
            return item.model_copy()

    def toggle_item(self, day: Weekday, session_id: str, item_id: str) -> Optional[ChecklistItem]:
        with self._lock:
            item = self._find_item(day, session_id, item_id)
            if item is None:
                return None
            item.is_completed = not item.is_completed
            self._persist_timetable()
            return item.model_copy()

    def rename_item(self, day: Weekday, session_id: str, item_id: str,
                    name: str) -> Optional[ChecklistItem]:
        with self._lock:
            item = self._find_item(day, session_id, item_id)
            if item is None:
                return None
            item.name = name
            self._persist_timetable()
            return item.model_copy()

    def remove_item(self, day: Weekday, session_id: str, item_id: str) -> bool:
        with self._lock:
            session = self._find_session(day, session_id)
            if session is None or not any(i.id == item_id for i in session.items):
                return False
            session.items = [i for i in session.items if i.id != item_id]
            self._persist_timetable()
        return True

    # ── D-day list ────────────────────────────────────────────────────────────

    def get_reminder(self, reminder_id: str) -> Optional[ReminderItem]:
        with self._lock:
            reminder = self._find_reminder(reminder_id)
            return reminder.model_copy() if reminder else None

    def reminders_by_date(self) -> List[ReminderItem]:
        with self._lock:
            return sorted_by_date([r.model_copy() for r in self._reminders])

    def add_reminder(self, name: str, when: date) -> Optional[ReminderItem]:
        """
        Append a reminder.  Returns None, leaving the list unchanged, when a
        reminder with the same name already exists on the same calendar day.
        """
        if isinstance(when, datetime):
            when = when.date()

        with self._lock:
            if any(r.name == name and r.date == when for r in self._reminders):
                logger.info("Rejected duplicate reminder %r on %s", name, when)
                return None
            reminder = ReminderItem(name=name, date=when)
            self._reminders.append(reminder)
            self._persist_reminders()
            self._reschedule()
            return reminder.model_copy()

    def remove_reminder(self, reminder_id: str) -> bool:
        with self._lock:
            if self._find_reminder(reminder_id) is None:
                return False
            self._reminders = [r for r in self._reminders if r.id != reminder_id]
            self._persist_reminders()
            self._reschedule()
        return True

    def toggle_reminder_notification(self, reminder_id: str) -> Optional[ReminderItem]:
        with self._lock:
            reminder = self._find_reminder(reminder_id)
            if reminder is None:
                return None
            reminder.notification_enabled = not reminder.notification_enabled
            self._persist_reminders()
            self._reschedule()
            return reminder.model_copy()

    # ── Alert time ────────────────────────────────────────────────────────────

    @property
    def alert_time(self) -> AlertTime:
        with self._lock:
            return self._alert_time.model_copy()

    def set_alert_time(self, alert_time: AlertTime) -> AlertTime:
        with self._lock:
            self._alert_time = alert_time.model_copy()
            self._store.save_alert_time(self._alert_time)
            self._reschedule()
            return self._alert_time.model_copy()

    def now(self) -> datetime:
        return self._scheduler.now()

    @property
    def notification_center(self) -> NotificationCenter:
        return self._scheduler.center

    def pending_notifications(self) -> List[NotificationRequest]:
        return self._scheduler.center.pending()

    # ── Internal ──────────────────────────────────────────────────────────────
    # Callers hold self._lock.

    def _find_session(self, day: Weekday, session_id: str) -> Optional[ClassSession]:
        return next((s for s in self._timetable[day] if s.id == session_id), None)

    def _find_item(self, day: Weekday, session_id: str, item_id: str) -> Optional[ChecklistItem]:
        session = self._find_session(day, session_id)
        if session is None:
            return None
        return next((i for i in session.items if i.id == item_id), None)

    def _find_reminder(self, reminder_id: str) -> Optional[ReminderItem]:
        return next((r for r in self._reminders if r.id == reminder_id), None)

    def _reschedule(self) -> None:
        self._scheduler.reschedule([r.model_copy() for r in self._reminders],
                                   self._alert_time.model_copy())

    def _load(self):
        self._timetable = self._store.load_timetable()
        self._reminders = self._store.load_reminders()
        self._alert_time = self._store.load_alert_time()
        logger.info("Loaded %d class session(s) and %d reminder(s)",
                    sum(len(self._timetable[d]) for d in Weekday), len(self._reminders))

    def _persist_timetable(self):
        self._store.save_timetable(self._timetable.model_copy(deep=True))

    def _persist_reminders(self):
        self._store.save_reminders([r.model_copy() for r in self._reminders])
