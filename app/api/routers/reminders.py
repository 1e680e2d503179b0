# app/api/routers/reminders.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status

from app.core.auth import get_user_id
from app.core.clock import Clock, format_due, reminder_status, split_reminders, system_clock
from app.core.recurrence import (
    RecurrenceValidationError,
    compute_completion,
    describe_recurrence,
    toggle_complete,
)
from app.core.reminder_store import (
    MalformedReminderError,
    ReminderConflictError,
    ReminderNotFoundError,
    ReminderStore,
    ReminderStoreError,
)
from app.core.supabase_client import get_supabase_for_request
from app.schemas.reminders import (
    CompletionOut,
    Reminder,
    ReminderCreate,
    ReminderOut,
    ReminderUpdate,
    recurrence_weekdays,
)

router = APIRouter(prefix="/reminders", tags=["Reminders"])


# ===========
# Dependencias
# ===========
def get_reminder_store(request: Request) -> ReminderStore:
    return ReminderStore(get_supabase_for_request(request))


def get_clock() -> Clock:
    return system_clock


# ===========
# Helpers
# ===========
def _to_out(reminder: Reminder, clock: Clock) -> ReminderOut:
    now = clock()
    return ReminderOut(
        id=reminder.id,
        title=reminder.title,
        notes=reminder.notes,
        due_at=reminder.due_at,
        tz_name=reminder.tz_name,
        due_local_time=reminder.local_time,
        completed=reminder.completed,
        frequency=reminder.recurrence.kind,
        weekdays=recurrence_weekdays(reminder.recurrence),
        recurrence_label=describe_recurrence(reminder.recurrence),
        status=reminder_status(reminder, now),
        due_label=format_due(reminder, now),
        created_at=reminder.created_at,
    )


def _store_error(e: ReminderStoreError) -> HTTPException:
    if isinstance(e, ReminderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
    if isinstance(e, ReminderConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, MalformedReminderError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Stored reminder is malformed")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _load(store: ReminderStore, reminder_id: UUID, owner: str) -> Reminder:
    try:
        return store.get(str(reminder_id), owner)
    except ReminderStoreError as e:
        raise _store_error(e)


# ===========================
# 1) Listar reminders
# ===========================
@router.get("", response_model=List[ReminderOut])
def list_reminders(
    completed: Optional[bool] = Query(None, description="Filtra por estado; sin filtro: proximos primero y luego completados"),
    owner: str = Depends(get_user_id),
    store: ReminderStore = Depends(get_reminder_store),
    clock: Clock = Depends(get_clock),
):
    try:
        reminders = store.list_for_owner(owner, completed=completed)
    except ReminderStoreError as e:
        raise _store_error(e)

    upcoming, done = split_reminders(reminders)
    return [_to_out(r, clock) for r in upcoming + done]


# ===========================
# 2) Crear reminder
# ===========================
@router.post("", response_model=ReminderOut, status_code=status.HTTP_201_CREATED)
def create_reminder(
    body: ReminderCreate,
    owner: str = Depends(get_user_id),
    store: ReminderStore = Depends(get_reminder_store),
    clock: Clock = Depends(get_clock),
):
    try:
        created = store.create(body.to_reminder(owner))
    except ReminderStoreError as e:
        raise _store_error(e)
    return _to_out(created, clock)


# ===========================
# 3) Editar campos
# ===========================
@router.patch("/{reminder_id}", response_model=ReminderOut)
def update_reminder(
    body: ReminderUpdate,
    reminder_id: UUID = Path(..., description="Reminder UUID"),
    owner: str = Depends(get_user_id),
    store: ReminderStore = Depends(get_reminder_store),
    clock: Clock = Depends(get_clock),
):
    current = _load(store, reminder_id, owner)
    try:
        changed = body.apply(current)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        saved = store.update(changed)
    except ReminderStoreError as e:
        raise _store_error(e)
    return _to_out(saved, clock)


# ===========================
# 4) Completar (genera la siguiente ocurrencia si repite)
# ===========================
@router.post("/{reminder_id}/complete", response_model=CompletionOut)
def complete_reminder(
    reminder_id: UUID = Path(..., description="Reminder UUID"),
    owner: str = Depends(get_user_id),
    store: ReminderStore = Depends(get_reminder_store),
    clock: Clock = Depends(get_clock),
):
    current = _load(store, reminder_id, owner)
    if current.completed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Reminder already completed")

    try:
        result = compute_completion(current)
    except RecurrenceValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        saved_current, saved_next = store.save_completion(result)
    except ReminderStoreError as e:
        raise _store_error(e)

    return CompletionOut(
        completed=_to_out(saved_current, clock),
        next=_to_out(saved_next, clock) if saved_next else None,
    )


# ===========================
# 5) Reabrir (des-completar, sin crear registros)
# ===========================
@router.post("/{reminder_id}/reopen", response_model=ReminderOut)
def reopen_reminder(
    reminder_id: UUID = Path(..., description="Reminder UUID"),
    owner: str = Depends(get_user_id),
    store: ReminderStore = Depends(get_reminder_store),
    clock: Clock = Depends(get_clock),
):
    current = _load(store, reminder_id, owner)
    if not current.completed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Reminder is not completed")

    try:
        saved = store.update(toggle_complete(current))
    except ReminderStoreError as e:
        raise _store_error(e)
    return _to_out(saved, clock)


# ===========================
# 6) Eliminar
# ===========================
@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(
    reminder_id: UUID = Path(..., description="Reminder UUID"),
    owner: str = Depends(get_user_id),
    store: ReminderStore = Depends(get_reminder_store),
):
    try:
        store.delete(str(reminder_id), owner)
    except ReminderStoreError as e:
        raise _store_error(e)
    return
