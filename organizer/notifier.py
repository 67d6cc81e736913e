"""
notifier.py
───────────
D-1 alert scheduling.

NotificationScheduler turns the D-day list into calendar-triggered
notification requests, one per enabled reminder, firing the day before the
reminder at the user's alert time.  Every recomputation is a full reset of
the notification center followed by re-registration; there is no diffing.

NotificationCenter only keeps the pending requests.  DesktopNotificationCenter
adds a background monitor thread that delivers due requests as OS desktop
notifications via subprocess (notify-send / osascript / PowerShell).
"""

import logging
import platform
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from organizer.models import AlertTime, ReminderItem

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ALERT_TITLE = "D-1 알림"

# PowerShell also closes single-quoted strings on the typographic quotes
_PS_SINGLE_QUOTES = "'\u2018\u2019\u201a\u201b"


@dataclass(frozen=True)
class NotificationRequest:
    id: str                # the reminder's id
    fire_at: datetime
    title: str
    body: str


def alert_body(name: str) -> str:
    return f"내일은 '{name}' 일정이 있습니다."


def fire_time(reminder: ReminderItem, alert_time: AlertTime) -> datetime:
    """Start of the day before the reminder, at the alert hour and minute."""
    return datetime.combine(reminder.date - timedelta(days=1), alert_time.as_time())


def compute_requests(reminders: Iterable[ReminderItem], alert_time: AlertTime,
                     now: datetime) -> List[NotificationRequest]:
    requests = []
    for reminder in reminders:
        if not reminder.notification_enabled:
            continue
        fire_at = fire_time(reminder, alert_time)
        if fire_at <= now:
            continue   # D-1 instant already elapsed
        requests.append(NotificationRequest(
            id=reminder.id,
            fire_at=fire_at,
            title=ALERT_TITLE,
            body=alert_body(reminder.name),
        ))
    return requests


# ── Notification centers ───────────────────────────────────────────────────────

class NotificationCenter:
    """In-process store of pending requests, keyed by request id."""

    def __init__(self):
        self._pending: Dict[str, NotificationRequest] = {}
        self._lock = threading.Lock()

    def add(self, request: NotificationRequest) -> None:
        with self._lock:
            self._pending[request.id] = request

    def remove_all_pending(self) -> None:
        with self._lock:
            self._pending.clear()

    def replace_all(self, requests: Iterable[NotificationRequest]) -> None:
        """Cancel every pending request and register ``requests`` in one step."""
        fresh = {r.id: r for r in requests}
        with self._lock:
            self._pending = fresh

    def pending(self) -> List[NotificationRequest]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda r: (r.fire_at, r.id))

    def pop_due(self, now: datetime) -> List[NotificationRequest]:
        """Remove and return every request whose fire time has arrived."""
        with self._lock:
            due = [r for r in self._pending.values() if r.fire_at <= now]
            for r in due:
                del self._pending[r.id]
        return sorted(due, key=lambda r: r.fire_at)

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class DesktopNotificationCenter(NotificationCenter):
    """
    Pending store plus a daemon thread that fires due requests as OS desktop
    notifications.  The monitor wakes every ``interval`` seconds.
    """

    def __init__(self, clock: Clock = datetime.now, interval: float = 30,
                 deliver: Optional[Callable[[NotificationRequest], None]] = None):
        super().__init__()
        self._clock = clock
        self._interval = interval
        self._deliver = deliver or send_os_notification
        self._stopping = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._monitor_thread and self._monitor_thread.is_alive():
            return
        self._stopping.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitor_loop,
            daemon=True,
            name="reminder-monitor"
        )
        self._monitor_thread.start()

    def stop(self, timeout: float = 5) -> None:
        self._stopping.set()
        if self._monitor_thread and self._monitor_thread is not threading.current_thread():
            self._monitor_thread.join(timeout=timeout)
        self._monitor_thread = None

    @property
    def is_running(self) -> bool:
        return self._monitor_thread is not None and self._monitor_thread.is_alive()

    def deliver_due(self) -> int:
        """Fire every due request once; returns how many were delivered."""
        due = self.pop_due(self._clock())
        for request in due:
            try:
                self._deliver(request)
            except Exception:
                logger.exception("Delivering notification %s failed", request.id)
        return len(due)

    def _monitor_loop(self):
        while not self._stopping.is_set():
            self.deliver_due()
            self._stopping.wait(timeout=self._interval)   # Sleep or until stopped


def _ps_quote(text: str) -> str:
    """PowerShell single-quoted literal; no variable or $(...) expansion inside."""
    for quote in _PS_SINGLE_QUOTES:
        text = text.replace(quote, quote * 2)
    return "'" + text + "'"


def notification_command(request: NotificationRequest, system: str) -> Optional[List[str]]:
    """
    argv that shows ``request`` as a desktop notification on ``system``.

    Title and body never become part of script source except as quoted
    literals: osascript receives them as run-handler arguments, PowerShell
    as single-quoted strings.
    """
    title, body = request.title, request.body
    if system == "Linux":
        return ["notify-send", "--icon=dialog-information",
                "--expire-time=8000", "--", title, body]
    if system == "Darwin":
        return ["osascript",
                "-e", "on run argv",
                "-e", 'display notification (item 2 of argv) with title (item 1 of argv) sound name "Glass"',
                "-e", "end run",
                title, body]
    if system == "Windows":
        ps_cmd = (
            "Add-Type -AssemblyName System.Windows.Forms; "
            "$n = New-Object System.Windows.Forms.NotifyIcon; "
            "$n.Icon = [System.Drawing.SystemIcons]::Information; "
            "$n.Visible = $true; "
            f"$n.ShowBalloonTip(5000, {_ps_quote(title)}, {_ps_quote(body)}, "
            "[System.Windows.Forms.ToolTipIcon]::Info)"
        )
        return ["powershell", "-NoProfile", "-WindowStyle", "Hidden", "-Command", ps_cmd]
    return None


def send_os_notification(request: NotificationRequest) -> None:
    """
    Cross-platform OS desktop notification via subprocess.

    Linux  → notify-send (libnotify / D-Bus IPC)
    macOS  → osascript (AppleScript bridge)
    Windows→ PowerShell NotifyIcon balloon
    """
    system = platform.system()
    cmd = notification_command(request, system)
    if cmd is None:
        logger.warning("No desktop notifier for platform %s", system)
        return

    try:
        subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except FileNotFoundError:
        logger.warning("%s not installed; skipped notification %s", cmd[0], request.id)


# ── Scheduler ──────────────────────────────────────────────────────────────────

class NotificationScheduler:
    """Keeps the center holding exactly one request per enabled future reminder."""

    def __init__(self, center: NotificationCenter, clock: Clock = datetime.now):
        self.center = center
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def reschedule(self, reminders: Iterable[ReminderItem],
                   alert_time: AlertTime) -> List[NotificationRequest]:
        requests = compute_requests(reminders, alert_time, self._clock())
        self.center.replace_all(requests)
        logger.debug("Scheduled %d D-1 alert(s) at %02d:%02d",
                     len(requests), alert_time.hour, alert_time.minute)
        return requests
