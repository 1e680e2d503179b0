# app/schemas/reminders.py

from datetime import date, datetime, time, timezone
from enum import IntEnum
from typing import Annotated, List, Literal, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

Frequency = Literal["once", "daily", "weekly", "monthly"]
ReminderStatus = Literal["completed", "overdue", "upcoming"]

HHMM_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class Weekday(IntEnum):
    """Dia de la semana con domingo = 0 (orden que usa el front)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def abbreviation(self) -> str:
        return _WEEKDAY_ABBREVIATIONS[self.value]

    @classmethod
    def of(cls, value: datetime) -> "Weekday":
        # datetime.weekday(): lunes = 0
        return cls((value.weekday() + 1) % 7)


_WEEKDAY_ABBREVIATIONS = ("Su", "Mo", "Tu", "We", "Th", "Fr", "Sa")


def validate_tz_name(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Invalid tz_name {value!r}. Use an IANA TZ like 'America/Tijuana'.")
    return value


# ===========================
# Politicas de recurrencia
# ===========================

class OnceRecurrence(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["once"] = "once"


class DailyRecurrence(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["daily"] = "daily"


class WeeklyRecurrence(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["weekly"] = "weekly"
    weekdays: Tuple[Weekday, ...]

    @field_validator("weekdays")
    @classmethod
    def _normalize_weekdays(cls, value: Tuple[Weekday, ...]) -> Tuple[Weekday, ...]:
        if not value:
            raise ValueError("Weekly recurrence requires at least one selected weekday")
        return tuple(sorted(set(value)))


class MonthlyRecurrence(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["monthly"] = "monthly"


Recurrence = Annotated[
    Union[OnceRecurrence, DailyRecurrence, WeeklyRecurrence, MonthlyRecurrence],
    Field(discriminator="kind"),
]


def build_recurrence(frequency: Frequency, weekdays: Optional[List[Weekday]] = None):
    """
    Construye la politica a partir de las columnas planas (frequency + weekdays)
    que usan la tabla y el formulario.
    """
    if frequency == "once":
        return OnceRecurrence()
    if frequency == "daily":
        return DailyRecurrence()
    if frequency == "weekly":
        return WeeklyRecurrence(weekdays=tuple(weekdays or ()))
    if frequency == "monthly":
        return MonthlyRecurrence()
    raise ValueError(f"Unsupported frequency: {frequency}")


def recurrence_weekdays(recurrence) -> List[int]:
    if recurrence.kind != "weekly":
        return []
    return [int(d) for d in recurrence.weekdays]


def normalize_hhmm(value: str) -> str:
    hours, minutes = (int(part) for part in value.split(":"))
    return f"{hours:02d}:{minutes:02d}"


def local_to_aware(due_date: date, due_time: str, tz_name: str) -> datetime:
    """
    Fecha + hora local en la zona dada. Si la hora no existe ese dia (salto de
    horario de verano) zoneinfo la resuelve con fold=0, solo para esa fecha.
    """
    hours, minutes = (int(part) for part in due_time.split(":"))
    return datetime.combine(due_date, time(hours, minutes), tzinfo=ZoneInfo(tz_name))


# ===========================
# Dominio
# ===========================

class Reminder(BaseModel):
    """
    Recordatorio de un usuario. `due_at` siempre es un instante absoluto;
    `tz_name` es la zona en la que el usuario eligio la hora local y
    `due_local_time` la hora (HH:MM) que pidio, aunque `due_at` haya tenido que
    correrse por un cambio de horario.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: Optional[str] = None
    owner: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    notes: str = ""
    due_at: AwareDatetime
    tz_name: str = "UTC"
    due_local_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    completed: bool = False
    recurrence: Recurrence = Field(default_factory=OnceRecurrence)
    created_at: Optional[datetime] = None

    @field_validator("notes", mode="before")
    @classmethod
    def _none_notes(cls, value):
        return "" if value is None else value

    @field_validator("due_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return value.astimezone(timezone.utc)

    @field_validator("tz_name")
    @classmethod
    def _check_tz(cls, value: str) -> str:
        return validate_tz_name(value)

    @field_validator("due_local_time")
    @classmethod
    def _normalize_local_time(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else normalize_hhmm(value)

    @property
    def local_time(self) -> str:
        # Registros viejos sin la columna: se deriva de due_at
        if self.due_local_time:
            return self.due_local_time
        return self.due_at.astimezone(ZoneInfo(self.tz_name)).strftime("%H:%M")


class CompletionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    updated_current: Reminder
    next_reminder: Optional[Reminder] = None


# ===========================
# Requests
# ===========================

class ReminderCreate(BaseModel):
    title: str = Field(..., min_length=1)
    notes: Optional[str] = None
    due_date: date
    due_time: str = Field("09:00", pattern=HHMM_PATTERN, description="Hora local HH:MM (24h)")
    tz_name: str = Field("UTC", description="Zona IANA de due_date/due_time (ej: America/Tijuana)")
    frequency: Frequency = "once"
    weekdays: Optional[List[Weekday]] = Field(None, description="Domingo=0 .. Sabado=6; requerido si frequency=weekly")

    model_config = ConfigDict(str_strip_whitespace=True, json_schema_extra={
        "example": {
            "title": "Give flea medication",
            "notes": "With food, in the morning",
            "due_date": "2026-10-23",
            "due_time": "09:00",
            "tz_name": "America/Tijuana",
            "frequency": "weekly",
            "weekdays": [1, 3, 5],
        }
    })

    @field_validator("tz_name")
    @classmethod
    def _check_tz(cls, value: str) -> str:
        return validate_tz_name(value)

    @model_validator(mode="after")
    def _weekly_needs_days(self):
        if self.frequency == "weekly" and not self.weekdays:
            raise ValueError("weekdays required when frequency is 'weekly'")
        return self

    def to_reminder(self, owner: str) -> Reminder:
        return Reminder(
            owner=owner,
            title=self.title,
            notes=self.notes or "",
            due_at=local_to_aware(self.due_date, self.due_time, self.tz_name),
            tz_name=self.tz_name,
            due_local_time=normalize_hhmm(self.due_time),
            completed=False,
            recurrence=build_recurrence(self.frequency, self.weekdays),
        )


class ReminderUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    due_date: Optional[date] = None
    due_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    tz_name: Optional[str] = None
    frequency: Optional[Frequency] = None
    weekdays: Optional[List[Weekday]] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("tz_name")
    @classmethod
    def _check_tz(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else validate_tz_name(value)

    def apply(self, reminder: Reminder) -> Reminder:
        """Aplica los campos enviados sobre un Reminder existente (re-validando)."""
        data = reminder.model_dump()
        if self.title is not None:
            data["title"] = self.title
        if self.notes is not None:
            data["notes"] = self.notes

        # Fecha/hora: se recalcula en la zona (nueva o actual) usando la hora local guardada
        if self.due_date is not None or self.due_time is not None or self.tz_name is not None:
            tz_name = self.tz_name or reminder.tz_name
            due_date = self.due_date or reminder.due_at.astimezone(ZoneInfo(reminder.tz_name)).date()
            due_time = normalize_hhmm(self.due_time or reminder.local_time)
            data["due_at"] = local_to_aware(due_date, due_time, tz_name)
            data["tz_name"] = tz_name
            data["due_local_time"] = due_time

        data["recurrence"] = self._recurrence_for(reminder)
        return Reminder.model_validate(data)

    def _recurrence_for(self, reminder: Reminder):
        current = reminder.recurrence
        if self.frequency is None:
            if self.weekdays is None:
                return current
            if current.kind != "weekly":
                raise ValueError("weekdays can only be changed on a weekly reminder; send frequency='weekly'")
            return build_recurrence("weekly", self.weekdays)

        # weekly sin dias sobre un semanal: se conservan los dias guardados
        if self.frequency == "weekly" and self.weekdays is None and current.kind == "weekly":
            return current
        return build_recurrence(self.frequency, self.weekdays)


# ===========================
# Responses
# ===========================

class ReminderOut(BaseModel):
    id: str
    title: str
    notes: str = ""
    due_at: datetime
    tz_name: str
    due_local_time: str
    completed: bool
    frequency: Frequency
    weekdays: List[int] = []
    recurrence_label: str = ""
    status: ReminderStatus
    due_label: str
    created_at: Optional[datetime] = None


class CompletionOut(BaseModel):
    completed: ReminderOut
    next: Optional[ReminderOut] = None
