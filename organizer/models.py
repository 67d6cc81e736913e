"""
models.py
─────────
Shared Pydantic data models for the School Organizer.

Document field names are camelCase (``isCompleted``, ``notificationEnabled``)
so the JSON files and the HTTP payloads share one shape.  Python code uses
the snake_case attribute names.
"""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

MAX_PERIOD = 10

_DATETIME = TypeAdapter(dt.datetime)


def _new_id() -> str:
    return str(uuid.uuid4())


class Weekday(str, Enum):
    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"

    @property
    def label(self) -> str:
        return _WEEKDAY_LABELS[self]


_WEEKDAY_LABELS = {
    Weekday.MON: "월",
    Weekday.TUE: "화",
    Weekday.WED: "수",
    Weekday.THU: "목",
    Weekday.FRI: "금",
}


# ── Timetable ──────────────────────────────────────────────────────────────────

class ChecklistItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str
    is_completed: bool = Field(default=False, alias="isCompleted")


class ClassSession(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    period: int = Field(ge=1)              # 1교시, 2교시, ...
    items: List[ChecklistItem] = []


class WeeklyTimetable(BaseModel):
    """One ordered session list per weekday; indexed by :class:`Weekday`."""

    mon: List[ClassSession] = []
    tue: List[ClassSession] = []
    wed: List[ClassSession] = []
    thu: List[ClassSession] = []
    fri: List[ClassSession] = []

    def __getitem__(self, day: Weekday) -> List[ClassSession]:
        return getattr(self, Weekday(day).value)

    def __setitem__(self, day: Weekday, sessions: List[ClassSession]) -> None:
        setattr(self, Weekday(day).value, list(sessions))


# ── Reminders ──────────────────────────────────────────────────────────────────

class ReminderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str
    date: dt.date
    notification_enabled: bool = Field(default=True, alias="notificationEnabled")


class AlertTime(BaseModel):
    """Time of day at which every D-1 alert fires.  Defaults to 09:00."""

    model_config = ConfigDict(populate_by_name=True)

    hour: int = Field(default=9, ge=0, le=23, alias="alertHour")
    minute: int = Field(default=0, ge=0, le=59, alias="alertMinute")

    def as_time(self) -> dt.time:
        return dt.time(self.hour, self.minute)


# ── Request bodies ─────────────────────────────────────────────────────────────

class SessionCreate(BaseModel):
    name: str = Field(min_length=1)
    period: int = Field(ge=1, le=MAX_PERIOD)


class SessionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    period: Optional[int] = Field(default=None, ge=1, le=MAX_PERIOD)


class ItemCreate(BaseModel):
    name: str = Field(min_length=1)


class ItemUpdate(BaseModel):
    name: str = Field(min_length=1)


class ReminderCreate(BaseModel):
    name: str = Field(min_length=1)
    date: dt.date

    @field_validator("date", mode="before")
    @classmethod
    def _drop_time_of_day(cls, value):
        # "2026-03-07T15:30:00" names the same calendar day as "2026-03-07"
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, str) and len(value) > 10:
            try:
                return _DATETIME.validate_python(value).date()
            except ValueError:
                return value
        return value


class ReminderView(ReminderItem):
    label: str                             # "D-5", "D-Day", "종료"


# ── Derived views ──────────────────────────────────────────────────────────────

def days_until(target: dt.date, today: Optional[dt.date] = None) -> int:
    today = today or dt.date.today()
    return (target - today).days


def dday_label(target: dt.date, today: Optional[dt.date] = None) -> str:
    """
    D-day label for a reminder date.

    Future dates count down ("D-5"), today is "D-Day" and anything already
    past is shown as finished ("종료") rather than counting up.
    """
    days = days_until(target, today)
    if days > 0:
        return f"D-{days}"
    if days == 0:
        return "D-Day"
    return "종료"


def sorted_by_period(sessions: List[ClassSession]) -> List[ClassSession]:
    return sorted(sessions, key=lambda s: s.period)


def sorted_by_date(reminders: List[ReminderItem]) -> List[ReminderItem]:
    return sorted(reminders, key=lambda r: (r.date, r.name))
