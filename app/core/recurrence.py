# app/core/recurrence.py

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from app.schemas.reminders import (
    CompletionResult,
    OnceRecurrence,
    Reminder,
    Weekday,
    local_to_aware,
)


class RecurrenceValidationError(ValueError):
    pass


# ===========================
# Helpers
# ===========================

def _selected_weekdays(recurrence) -> List[Weekday]:
    # Se normaliza aqui tambien: registros creados sin validar (model_construct) llegan desordenados
    days = sorted({Weekday(int(d)) for d in (getattr(recurrence, "weekdays", None) or ())})
    if not days:
        raise RecurrenceValidationError("Weekly recurrence requires at least one selected weekday")
    return days


def validate_recurrence(recurrence) -> None:
    if recurrence.kind == "weekly":
        _selected_weekdays(recurrence)
    elif recurrence.kind not in ("once", "daily", "monthly"):
        raise RecurrenceValidationError(f"Unsupported recurrence kind: {recurrence.kind}")


def _days_until_next(current: Weekday, selected: List[Weekday]) -> int:
    for day in selected:
        if day > current:
            return day - current
    # Ninguno queda en la semana: el primero de la semana siguiente
    return 7 - current + selected[0]


def _add_one_month(day: date) -> date:
    if day.month == 12:
        year, month = day.year + 1, 1
    else:
        year, month = day.year, day.month + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


# ===========================
# Motor
# ===========================

def next_due_at(due_at: datetime, recurrence, tz_name: str = "UTC",
                local_time: Optional[str] = None) -> Optional[datetime]:
    """
    Calcula el siguiente vencimiento (en UTC) a partir del actual.

    El dia siguiente se calcula sobre la fecha local en `tz_name` y se le pone
    `local_time` (HH:MM, por defecto la hora local de `due_at`). Asi "un dia" es
    un dia de calendario (23 o 25 horas en cambios de horario) y, si la hora no
    existe en la fecha destino, el corrimiento afecta solo a esa ocurrencia.
    Devuelve None para recordatorios de una sola vez.
    """
    validate_recurrence(recurrence)
    if recurrence.kind == "once":
        return None

    local = due_at.astimezone(ZoneInfo(tz_name))
    day = local.date()
    if recurrence.kind == "daily":
        following = day + timedelta(days=1)
    elif recurrence.kind == "weekly":
        following = day + timedelta(days=_days_until_next(Weekday.of(local), _selected_weekdays(recurrence)))
    else:
        following = _add_one_month(day)
    return local_to_aware(following, local_time or local.strftime("%H:%M"), tz_name).astimezone(timezone.utc)


def compute_completion(reminder: Reminder) -> CompletionResult:
    """
    Marca la ocurrencia actual como completada y, si es recurrente, genera la siguiente.

    - El registro actual queda completed=True y, si repetia, su politica pasa a "once"
      (queda como historico cerrado).
    - La nueva ocurrencia conserva owner/title/notes/politica original y la hora
      local pedida (due_local_time), sin id.
    Funcion pura: persistir ambos es responsabilidad del llamador.
    """
    if reminder.completed:
        return CompletionResult(updated_current=reminder, next_reminder=None)

    recurrence = reminder.recurrence
    local_time = reminder.local_time
    following = next_due_at(reminder.due_at, recurrence, reminder.tz_name, local_time)
    if following is None:
        return CompletionResult(
            updated_current=reminder.model_copy(update={"completed": True}),
            next_reminder=None,
        )

    updated_current = reminder.model_copy(update={"completed": True, "recurrence": OnceRecurrence()})
    next_reminder = reminder.model_copy(update={
        "id": None,
        "due_at": following,
        "due_local_time": local_time,
        "completed": False,
        "created_at": None,
    })
    return CompletionResult(updated_current=updated_current, next_reminder=next_reminder)


def toggle_complete(reminder: Reminder) -> Reminder:
    return reminder.model_copy(update={"completed": not reminder.completed})


def describe_recurrence(recurrence) -> str:
    validate_recurrence(recurrence)
    if recurrence.kind == "daily":
        return "Repeats daily"
    if recurrence.kind == "monthly":
        return "Repeats monthly"
    if recurrence.kind == "weekly":
        days = ", ".join(day.abbreviation for day in _selected_weekdays(recurrence))
        return f"Repeats weekly on {days}"
    return ""
