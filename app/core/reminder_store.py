# app/core/reminder_store.py

from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import Client

from app.core.logging import logger
from app.schemas.reminders import CompletionResult, Reminder, recurrence_weekdays

TABLE = "reminders"
COMPLETE_RPC = "complete_reminder"

# PostgREST: la funcion RPC no existe en el schema cache
_RPC_NOT_FOUND = "PGRST202"


class ReminderStoreError(Exception):
    pass


class ReminderNotFoundError(ReminderStoreError):
    pass


class ReminderConflictError(ReminderStoreError):
    pass


class MalformedReminderError(ReminderStoreError):
    pass


# ===========================
# Mapeo fila <-> Reminder
# ===========================

def reminder_to_row(reminder: Reminder) -> Dict[str, Any]:
    weekdays = recurrence_weekdays(reminder.recurrence)
    return {
        "user_id": reminder.owner,
        "title": reminder.title,
        "notes": reminder.notes,
        "due_at": reminder.due_at.isoformat(),
        "tz_name": reminder.tz_name,
        "due_local_time": reminder.local_time,
        "completed": reminder.completed,
        "frequency": reminder.recurrence.kind,
        "weekdays": weekdays or None,
    }


def row_to_reminder(row: Dict[str, Any]) -> Reminder:
    """Valida la fila al entrar: una fila incompleta se rechaza aqui y no mas adelante."""
    try:
        return Reminder.model_validate({
            "id": str(row["id"]) if row.get("id") is not None else None,
            "owner": row.get("user_id"),
            "title": row.get("title"),
            "notes": row.get("notes"),
            "due_at": row.get("due_at"),
            "tz_name": row.get("tz_name") or "UTC",
            "due_local_time": row.get("due_local_time"),
            "completed": bool(row.get("completed")),
            "recurrence": {
                "kind": row.get("frequency") or "once",
                "weekdays": row.get("weekdays") or [],
            },
            "created_at": row.get("created_at"),
        })
    except ValidationError as e:
        raise MalformedReminderError(f"Malformed reminder row {row.get('id')}: {e}") from e


# ===========================
# Store
# ===========================

class ReminderStore:
    """
    Coleccion `reminders` en Supabase. El cliente debe venir autorizado con el
    token del usuario (RLS); aun asi todas las consultas filtran por user_id.
    """

    def __init__(self, client: Client):
        self._client = client

    def _table(self):
        return self._client.table(TABLE)

    @staticmethod
    def _execute(query, what: str) -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except APIError as e:
            logger.error("Supabase error on %s: %s", what, e.message)
            raise ReminderStoreError(f"Cannot {what}: {e.message}") from e
        return getattr(res, "data", None) or []

    def create(self, reminder: Reminder) -> Reminder:
        rows = self._execute(self._table().insert(reminder_to_row(reminder)), "create reminder")
        if not rows:
            raise ReminderStoreError("Insert returned no rows")
        return row_to_reminder(rows[0])

    def get(self, reminder_id: str, owner: str) -> Reminder:
        rows = self._execute(
            self._table().select("*").eq("id", reminder_id).eq("user_id", owner).limit(1),
            "load reminder",
        )
        if not rows:
            raise ReminderNotFoundError(f"Reminder {reminder_id} not found")
        return row_to_reminder(rows[0])

    def list_for_owner(self, owner: str, completed: Optional[bool] = None) -> List[Reminder]:
        q = self._table().select("*").eq("user_id", owner)
        if completed is not None:
            q = q.eq("completed", completed)
        rows = self._execute(q.order("due_at", desc=False), "list reminders")

        reminders = []
        for row in rows:
            try:
                reminders.append(row_to_reminder(row))
            except MalformedReminderError as e:
                logger.warning("Skipping reminder: %s", e)
        return reminders

    def update(self, reminder: Reminder) -> Reminder:
        if reminder.id is None:
            raise ReminderStoreError("Cannot update an unsaved reminder")
        changes = reminder_to_row(reminder)
        changes.pop("user_id")
        # v2: update() sin .select(); la representacion viene en data
        rows = self._execute(
            self._table().update(changes).eq("id", reminder.id).eq("user_id", reminder.owner),
            "update reminder",
        )
        if not rows:
            raise ReminderNotFoundError(f"Reminder {reminder.id} not found or not updated")
        return row_to_reminder(rows[0])

    def delete(self, reminder_id: str, owner: str) -> None:
        self._execute(
            self._table().delete().eq("id", reminder_id).eq("user_id", owner),
            "delete reminder",
        )

    # ---------------------------
    # Completar (dos registros)
    # ---------------------------
    def save_completion(self, result: CompletionResult) -> Tuple[Reminder, Optional[Reminder]]:
        """
        Persiste el cierre de la ocurrencia actual y la creacion de la siguiente.

        Intenta el RPC `complete_reminder` (una sola transaccion, condicionada a
        completed = false). Si el RPC no existe, hace update condicional y luego
        insert: ante una caida se pierde una ocurrencia futura, nunca se duplica.
        """
        current = result.updated_current
        if current.id is None:
            raise ReminderStoreError("Cannot complete an unsaved reminder")

        params = {
            "p_reminder_id": current.id,
            "p_current": reminder_to_row(current),
            "p_next": reminder_to_row(result.next_reminder) if result.next_reminder else None,
        }
        try:
            res = self._client.rpc(COMPLETE_RPC, params).execute()
        except APIError as e:
            if e.code != _RPC_NOT_FOUND:
                logger.error("Supabase error on %s: %s", COMPLETE_RPC, e.message)
                raise ReminderStoreError(f"Cannot complete reminder: {e.message}") from e
            logger.info("RPC %s not installed; completing reminder %s with sequential writes", COMPLETE_RPC, current.id)
            return self._save_completion_sequential(result)

        rows = getattr(res, "data", None) or []
        if not rows:
            raise ReminderConflictError(f"Reminder {current.id} was already completed")

        saved_current, saved_next = None, None
        for row in rows:
            reminder = row_to_reminder(row)
            if reminder.id == current.id:
                saved_current = reminder
            else:
                saved_next = reminder
        if saved_current is None:
            raise ReminderStoreError(f"RPC {COMPLETE_RPC} did not return reminder {current.id}")
        return saved_current, saved_next

    def _save_completion_sequential(self, result: CompletionResult) -> Tuple[Reminder, Optional[Reminder]]:
        current = result.updated_current
        changes = reminder_to_row(current)
        changes.pop("user_id")

        # 1) Cerrar la actual solo si sigue pendiente (control optimista)
        rows = self._execute(
            self._table()
            .update(changes)
            .eq("id", current.id)
            .eq("user_id", current.owner)
            .eq("completed", False),
            "complete reminder",
        )
        if not rows:
            logger.warning("Reminder %s already completed by another session", current.id)
            raise ReminderConflictError(f"Reminder {current.id} was already completed")
        saved_current = row_to_reminder(rows[0])

        if result.next_reminder is None:
            return saved_current, None

        # 2) Crear la siguiente ocurrencia
        try:
            saved_next = self.create(result.next_reminder)
        except ReminderStoreError:
            logger.error("Reminder %s completed but its next occurrence was not created", current.id)
            raise
        return saved_current, saved_next
