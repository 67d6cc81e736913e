from __future__ import annotations

import time
from datetime import date, datetime, timedelta

from organizer.models import AlertTime, ReminderItem
from organizer.notifier import (
    DesktopNotificationCenter,
    NotificationCenter,
    NotificationRequest,
    NotificationScheduler,
    compute_requests,
    notification_command,
)

from conftest import FIXED_NOW, FixedClock

TODAY = FIXED_NOW.date()


def reminder(name: str, offset: int, enabled: bool = True) -> ReminderItem:
    return ReminderItem(name=name, date=TODAY + timedelta(days=offset), notification_enabled=enabled)


def test_reminder_tomorrow_fires_today_at_alert_time() -> None:
    item = reminder("Math Final", 1)

    requests = compute_requests([item], AlertTime(), FIXED_NOW)

    assert len(requests) == 1
    assert requests[0].id == item.id
    assert requests[0].fire_at == datetime(2026, 3, 2, 9, 0)
    assert "Math Final" in requests[0].body


def test_reminder_today_or_past_is_not_scheduled() -> None:
    assert compute_requests([reminder("today", 0), reminder("past", -3)], AlertTime(), FIXED_NOW) == []


def test_elapsed_alert_time_is_not_scheduled() -> None:
    later = datetime(2026, 3, 2, 9, 0)

    assert compute_requests([reminder("tomorrow", 1)], AlertTime(), later) == []
    assert len(compute_requests([reminder("tomorrow", 1)], AlertTime(hour=9, minute=1), later)) == 1


def test_disabled_reminders_are_skipped() -> None:
    requests = compute_requests([reminder("on", 3), reminder("off", 3, enabled=False)], AlertTime(), FIXED_NOW)

    assert [r.body for r in requests] == ["내일은 'on' 일정이 있습니다."]


def test_reschedule_replaces_every_pending_request() -> None:
    center = NotificationCenter()
    scheduler = NotificationScheduler(center, FixedClock(FIXED_NOW))
    first, second = reminder("a", 2), reminder("b", 4)

    scheduler.reschedule([first, second], AlertTime())
    assert [r.id for r in center.pending()] == [first.id, second.id]

    scheduler.reschedule([second], AlertTime(hour=18))
    pending = center.pending()
    assert [r.id for r in pending] == [second.id]
    assert pending[0].fire_at == datetime(2026, 3, 5, 18, 0)


def test_pop_due_removes_only_due_requests() -> None:
    center = NotificationCenter()
    scheduler = NotificationScheduler(center, FixedClock(FIXED_NOW))
    soon, later = reminder("soon", 1), reminder("later", 5)
    scheduler.reschedule([soon, later], AlertTime())

    due = center.pop_due(datetime(2026, 3, 2, 9, 0))

    assert [r.id for r in due] == [soon.id]
    assert [r.id for r in center.pending()] == [later.id]


def test_desktop_center_delivers_due_requests_once() -> None:
    clock = FixedClock(FIXED_NOW)
    delivered = []
    center = DesktopNotificationCenter(clock=clock, deliver=delivered.append)
    NotificationScheduler(center, clock).reschedule([reminder("Exam", 1)], AlertTime())

    assert center.deliver_due() == 0

    clock.current = datetime(2026, 3, 2, 9, 0, 5)
    assert center.deliver_due() == 1
    assert center.deliver_due() == 0
    assert delivered[0].title == "D-1 알림"


def test_desktop_center_survives_delivery_errors() -> None:
    clock = FixedClock(datetime(2026, 3, 10))

    def broken(request):
        raise OSError("no display")

    center = DesktopNotificationCenter(clock=clock, deliver=broken)
    NotificationScheduler(center, FixedClock(FIXED_NOW)).reschedule([reminder("x", 2)], AlertTime())

    assert center.deliver_due() == 1
    assert center.pending() == []


def test_center_add_replaces_same_id() -> None:
    center = NotificationCenter()
    item = reminder("x", 3)
    for alert in (AlertTime(hour=7), AlertTime(hour=8)):
        for request in compute_requests([item], alert, FIXED_NOW):
            center.add(request)

    assert len(center.pending()) == 1
    assert center.pending()[0].fire_at.hour == 8


def test_fire_time_crosses_year_boundary() -> None:
    item = ReminderItem(name="new year", date=date(2027, 1, 1))

    [request] = compute_requests([item], AlertTime(hour=23, minute=59), FIXED_NOW)

    assert request.fire_at == datetime(2026, 12, 31, 23, 59)


def test_replace_all_swaps_the_whole_pending_set() -> None:
    center = NotificationCenter()
    old, new = reminder("old", 2), reminder("new", 3)
    for request in compute_requests([old], AlertTime(), FIXED_NOW):
        center.add(request)

    center.replace_all(compute_requests([new], AlertTime(), FIXED_NOW))

    assert [r.id for r in center.pending()] == [new.id]


def quoted_request(name: str) -> NotificationRequest:
    [request] = compute_requests([reminder(name, 2)], AlertTime(), FIXED_NOW)
    return request


def test_osascript_gets_text_as_arguments() -> None:
    request = quoted_request('Exam" & (do shell script "rm -rf ~") & "')

    cmd = notification_command(request, "Darwin")

    assert cmd[-2:] == [request.title, request.body]
    scripts = [cmd[i + 1] for i, part in enumerate(cmd) if part == "-e"]
    assert all("do shell script" not in script for script in scripts)


def test_powershell_text_stays_inside_single_quotes() -> None:
    request = quoted_request("a'b $(Remove-Item C:\\) \"c\"")

    ps_cmd = notification_command(request, "Windows")[-1]

    literal = "'내일은 ''a''b $(Remove-Item C:\\) \"c\"'' 일정이 있습니다.'"
    assert literal in ps_cmd
    assert "$(" not in ps_cmd.replace(literal, "")


def test_powershell_doubles_typographic_quotes() -> None:
    ps_cmd = notification_command(quoted_request("it\u2019s"), "Windows")[-1]

    assert "it\u2019\u2019s" in ps_cmd


def test_notify_send_ends_options_before_text() -> None:
    request = quoted_request("--help")

    cmd = notification_command(request, "Linux")

    assert cmd[-3:] == ["--", request.title, request.body]
    assert notification_command(request, "Plan9") is None


def test_stop_joins_monitor_thread() -> None:
    center = DesktopNotificationCenter(interval=30, deliver=lambda request: None)
    center.start()
    assert center.is_running

    started = time.monotonic()
    center.stop()

    assert not center.is_running
    assert time.monotonic() - started < 5
