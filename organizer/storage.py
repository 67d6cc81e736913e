"""
storage.py
──────────
JSON file-based persistence for the timetable, the D-day list and the
alert-time preference.

  - Whole-document writes; no partial updates
  - Atomic file writes via os.replace() (rename-over-old-file trick)
  - threading.Lock serialises file access
  - Best effort: an unreadable document loads as the empty default, a bad
    session or reminder row is skipped, a failed save is dropped.  Each is
    logged and handed to the optional ``on_error`` hook.
"""

import os
import json
import logging
import threading
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from organizer.config import PREFERENCES_FILE, REMINDERS_FILE, TIMETABLE_FILE
from organizer.models import AlertTime, ClassSession, ReminderItem, WeeklyTimetable, Weekday

logger = logging.getLogger(__name__)

# on_error(operation, path, exc) where operation is "load" or "save"
ErrorHook = Callable[[str, str, Exception], None]


class JsonStore:
    """Reads and writes the organizer documents under ``data_dir``."""

    def __init__(self, data_dir: str, on_error: Optional[ErrorHook] = None):
        self.data_dir = data_dir
        self.timetable_path   = os.path.join(data_dir, TIMETABLE_FILE)
        self.reminders_path   = os.path.join(data_dir, REMINDERS_FILE)
        self.preferences_path = os.path.join(data_dir, PREFERENCES_FILE)
        self._on_error = on_error
        self._lock = threading.Lock()

    # ── Timetable ─────────────────────────────────────────────────────────────

    def load_timetable(self) -> WeeklyTimetable:
        data = self._load(self.timetable_path)
        timetable = WeeklyTimetable()
        if data is None:
            return timetable
        if not isinstance(data, dict):
            self._report("load", self.timetable_path, ValueError("expected a JSON object"))
            return timetable

        for day in Weekday:
            rows = data.get(day.value, [])
            if not isinstance(rows, list):
                self._report("load", self.timetable_path, ValueError(f"{day.value}: expected a JSON array"))
                continue
            sessions = []
            for row in rows:
                try:
                    sessions.append(ClassSession.model_validate(row))
                except ValidationError as exc:
                    self._report("load", self.timetable_path, exc)
            timetable[day] = sessions
        return timetable

    def save_timetable(self, timetable: WeeklyTimetable) -> bool:
        return self._save(self.timetable_path, timetable.model_dump(mode="json", by_alias=True))

    # ── D-day list ────────────────────────────────────────────────────────────

    def load_reminders(self) -> List[ReminderItem]:
        data = self._load(self.reminders_path)
        if data is None:
            return []
        if not isinstance(data, list):
            self._report("load", self.reminders_path, ValueError("expected a JSON array"))
            return []

        reminders = []
        for row in data:
            try:
                reminders.append(ReminderItem.model_validate(row))
            except ValidationError as exc:
                self._report("load", self.reminders_path, exc)
        return reminders

    def save_reminders(self, reminders: List[ReminderItem]) -> bool:
        rows = [r.model_dump(mode="json", by_alias=True) for r in reminders]
        return self._save(self.reminders_path, rows)

    # ── Preferences ───────────────────────────────────────────────────────────

    def load_alert_time(self) -> AlertTime:
        data = self._load(self.preferences_path)
        if data is None:
            return AlertTime()
        try:
            return AlertTime.model_validate(data)
        except ValidationError as exc:
            self._report("load", self.preferences_path, exc)
            return AlertTime()

    def save_alert_time(self, alert_time: AlertTime) -> bool:
        return self._save(self.preferences_path, alert_time.model_dump(by_alias=True))

    # ── Internal ──────────────────────────────────────────────────────────────

    def _load(self, path: str) -> Any:
        """Parsed JSON at ``path``, or None when missing or unreadable."""
        with self._lock:
            if not os.path.exists(path):
                return None
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, ValueError) as exc:
                self._report("load", path, exc)
                return None

    def _save(self, path: str, data: Any) -> bool:
        """Atomic write: write to a tmp file then rename (os.replace)."""
        tmp = path + ".tmp"
        with self._lock:
            try:
                os.makedirs(self.data_dir, exist_ok=True)
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp, path)   # Atomic on POSIX; near-atomic on Windows
            except (OSError, TypeError, ValueError) as exc:
                self._report("save", path, exc)
                return False
        return True

    def _report(self, operation: str, path: str, exc: Exception) -> None:
        logger.warning("%s failed for %s: %s", operation, path, exc)
        if self._on_error:
            try:
                self._on_error(operation, path, exc)
            except Exception:
                logger.exception("on_error hook raised")
