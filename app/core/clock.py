# app/core/clock.py

import calendar
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Tuple
from zoneinfo import ZoneInfo

from app.schemas.reminders import Reminder

# Fuente de "ahora"; solo se usa para el estado visual (vencido / proximo)
Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def reminder_status(reminder: Reminder, now: datetime) -> str:
    if reminder.completed:
        return "completed"
    if reminder.due_at < now:
        return "overdue"
    return "upcoming"


def _format_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_due(reminder: Reminder, now: datetime) -> str:
    """'Today at 9:00 AM' si vence hoy (en la zona del recordatorio), si no 'Oct 19, 2026 @ 9:00 AM'."""
    tz = ZoneInfo(reminder.tz_name)
    local = reminder.due_at.astimezone(tz)
    if local.date() == now.astimezone(tz).date():
        return f"Today at {_format_time(local)}"
    return f"{calendar.month_abbr[local.month]} {local.day}, {local.year} @ {_format_time(local)}"


def split_reminders(reminders: Iterable[Reminder]) -> Tuple[List[Reminder], List[Reminder]]:
    ordered = sorted(reminders, key=lambda r: r.due_at)
    upcoming = [r for r in ordered if not r.completed]
    completed = [r for r in ordered if r.completed]
    return upcoming, completed
