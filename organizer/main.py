"""
main.py
───────
School Organizer — local FastAPI adapter between the UI and the DataManager.

Exposes:
  REST  /api/timetable/{day}                       sessions of one weekday
  REST  /api/timetable/{day}/sessions[/{id}]       class CRUD
  REST  /api/timetable/{day}/sessions/{id}/items   checklist CRUD
  REST  /api/reminders                             D-day list
  REST  /api/settings/alert-time                   D-1 alert time
  REST  /api/notifications                         pending D-1 alerts

The app holds no state of its own: ``create_app`` receives an explicitly
built DataManager, and the lifespan flushes it on shutdown.  It binds to
127.0.0.1 only.
"""

import os
import logging
import platform
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, HTTPException

from organizer.config import Settings, get_settings
from organizer.manager import DataManager, PeriodConflictError
from organizer.models import (
    AlertTime,
    ChecklistItem,
    ClassSession,
    ItemCreate,
    ItemUpdate,
    ReminderCreate,
    ReminderItem,
    ReminderView,
    SessionCreate,
    SessionUpdate,
    Weekday,
    dday_label,
)
from organizer.notifier import (
    DesktopNotificationCenter,
    NotificationCenter,
    NotificationScheduler,
)
from organizer.storage import JsonStore

logger = logging.getLogger(__name__)


def build_manager(settings: Optional[Settings] = None) -> DataManager:
    settings = settings or get_settings()
    center = DesktopNotificationCenter() if settings.desktop_notifications else NotificationCenter()
    store = JsonStore(settings.data_dir)
    return DataManager(store, NotificationScheduler(center), settings)


def _view(reminder: ReminderItem, today: date) -> ReminderView:
    return ReminderView(**reminder.model_dump(), label=dday_label(reminder.date, today))


def create_app(manager: DataManager) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("[ORGANIZER] PID=%s | Platform=%s", os.getpid(), platform.system())
        manager.notification_center.start()

        yield   # Application runs here

        manager.notification_center.stop()
        manager.close()
        logger.info("[ORGANIZER] Shutdown complete.")

    app = FastAPI(title="School Organizer", version="1.0.0", lifespan=lifespan)
    app.state.manager = manager

    # ── Timetable endpoints ───────────────────────────────────────────────────

    @app.get("/api/timetable/{day}", response_model=List[ClassSession])
    def list_sessions(day: Weekday):
        return manager.sessions_by_period(day)

    @app.put("/api/timetable/{day}", response_model=List[ClassSession])
    def replace_sessions(day: Weekday, body: List[ClassSession]):
        try:
            manager.set_sessions(day, body)
        except PeriodConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        return manager.sessions_by_period(day)

    @app.get("/api/timetable/{day}/next-period")
    def next_period(day: Weekday):
        return {"day": day, "label": day.label, "period": manager.next_period(day)}

    @app.post("/api/timetable/{day}/sessions", response_model=ClassSession, status_code=201)
    def create_session(day: Weekday, body: SessionCreate):
        return manager.add_session(day, body.name, body.period)

    @app.patch("/api/timetable/{day}/sessions/{session_id}", response_model=ClassSession)
    def update_session(day: Weekday, session_id: str, body: SessionUpdate):
        try:
            updated = manager.update_session(day, session_id, name=body.name, period=body.period)
        except PeriodConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        if not updated:
            raise HTTPException(status_code=404, detail="Class not found")
        return updated

    @app.delete("/api/timetable/{day}/sessions/{session_id}", status_code=204)
    def delete_session(day: Weekday, session_id: str):
        if not manager.remove_session(day, session_id):
            raise HTTPException(status_code=404, detail="Class not found")

    # ── Checklist endpoints ───────────────────────────────────────────────────

    @app.post("/api/timetable/{day}/sessions/{session_id}/items",
              response_model=ChecklistItem, status_code=201)
    def create_item(day: Weekday, session_id: str, body: ItemCreate):
        item = manager.add_item(day, session_id, body.name)
        if not item:
            raise HTTPException(status_code=404, detail="Class not found")
        return item

    @app.patch("/api/timetable/{day}/sessions/{session_id}/items/{item_id}",
               response_model=ChecklistItem)
    def rename_item(day: Weekday, session_id: str, item_id: str, body: ItemUpdate):
        item = manager.rename_item(day, session_id, item_id, body.name)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return item

    @app.post("/api/timetable/{day}/sessions/{session_id}/items/{item_id}/toggle",
              response_model=ChecklistItem)
    def toggle_item(day: Weekday, session_id: str, item_id: str):
        item = manager.toggle_item(day, session_id, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return item

    @app.delete("/api/timetable/{day}/sessions/{session_id}/items/{item_id}", status_code=204)
    def delete_item(day: Weekday, session_id: str, item_id: str):
        if not manager.remove_item(day, session_id, item_id):
            raise HTTPException(status_code=404, detail="Item not found")

    # ── D-day endpoints ───────────────────────────────────────────────────────

    @app.get("/api/reminders", response_model=List[ReminderView])
    def list_reminders():
        today = manager.now().date()
        return [_view(r, today) for r in manager.reminders_by_date()]

    @app.post("/api/reminders", response_model=ReminderView, status_code=201)
    def create_reminder(body: ReminderCreate):
        reminder = manager.add_reminder(body.name, body.date)
        if not reminder:
            raise HTTPException(status_code=409, detail="Reminder already exists on that date")
        return _view(reminder, manager.now().date())

    @app.delete("/api/reminders/{reminder_id}", status_code=204)
    def delete_reminder(reminder_id: str):
        if not manager.remove_reminder(reminder_id):
            raise HTTPException(status_code=404, detail="Reminder not found")

    @app.post("/api/reminders/{reminder_id}/toggle-notification", response_model=ReminderView)
    def toggle_notification(reminder_id: str):
        reminder = manager.toggle_reminder_notification(reminder_id)
        if not reminder:
            raise HTTPException(status_code=404, detail="Reminder not found")
        return _view(reminder, manager.now().date())

    # ── Alert time / notifications ────────────────────────────────────────────

    @app.get("/api/settings/alert-time", response_model=AlertTime)
    def get_alert_time():
        return manager.alert_time

    @app.put("/api/settings/alert-time", response_model=AlertTime)
    def put_alert_time(body: AlertTime):
        return manager.set_alert_time(body)

    @app.get("/api/notifications")
    def list_notifications():
        return manager.pending_notifications()

    # ── Health / info ─────────────────────────────────────────────────────────

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "pid": os.getpid(),
            "platform": platform.system(),
            "python": platform.python_version(),
        }

    return app


# ── Entry point ───────────────────────────────────────────────────────────────

def main() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    app = create_app(build_manager(settings))
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
