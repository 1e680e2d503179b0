from datetime import datetime, timezone

import pytest
from postgrest.exceptions import APIError

from app.core.recurrence import compute_completion
from app.core.reminder_store import (
    MalformedReminderError,
    ReminderConflictError,
    ReminderNotFoundError,
    ReminderStore,
    ReminderStoreError,
    reminder_to_row,
    row_to_reminder,
)
from app.schemas.reminders import DailyRecurrence, Reminder, Weekday, WeeklyRecurrence
from conftest import OWNER, FakeSupabase, reminder_row


def _seed(supa, **overrides):
    row = reminder_row(**overrides)
    supa.table("reminders").rows.append(row)
    return row


def _new_reminder(**fields):
    return Reminder(
        owner=OWNER,
        title=fields.pop("title", "Vet check-up"),
        due_at=fields.pop("due_at", datetime(2026, 10, 20, 15, 0, tzinfo=timezone.utc)),
        **fields,
    )


def test_row_round_trip_keeps_weekly_policy():
    reminder = _new_reminder(recurrence=WeeklyRecurrence(weekdays=(Weekday.FRIDAY, Weekday.MONDAY)))

    row = reminder_to_row(reminder)

    assert row["frequency"] == "weekly"
    assert row["weekdays"] == [1, 5]
    assert row["user_id"] == OWNER
    assert row_to_reminder({**row, "id": "abc"}).recurrence == reminder.recurrence


def test_row_without_weekdays_for_weekly_is_malformed():
    with pytest.raises(MalformedReminderError):
        row_to_reminder(reminder_row(frequency="weekly", weekdays=None))


def test_row_with_null_notes_decodes_to_empty_string():
    assert row_to_reminder(reminder_row(notes=None)).notes == ""


def test_row_keeps_requested_local_time():
    # 03:30 EDT guardado por el salto de horario; la hora pedida sigue siendo 02:30
    reminder = _new_reminder(
        due_at=datetime(2026, 3, 8, 7, 30, tzinfo=timezone.utc),
        tz_name="America/New_York",
        due_local_time="02:30",
        recurrence=DailyRecurrence(),
    )

    row = reminder_to_row(reminder)

    assert row["due_local_time"] == "02:30"
    assert row_to_reminder({**row, "id": "abc"}).due_local_time == "02:30"


def test_row_without_local_time_derives_it_from_due_at():
    reminder = row_to_reminder(reminder_row(tz_name="America/Tijuana", due_at="2026-10-24T02:45:00+00:00"))

    assert reminder.due_local_time is None
    assert reminder.local_time == "19:45"
    assert reminder_to_row(reminder)["due_local_time"] == "19:45"


def test_create_assigns_id(store, supa):
    created = store.create(_new_reminder(notes="Bring vaccine card"))

    assert created.id
    assert created.notes == "Bring vaccine card"
    assert len(supa.table("reminders").rows) == 1


def test_get_is_scoped_to_owner(store, supa):
    row = _seed(supa, user_id="someone-else")

    with pytest.raises(ReminderNotFoundError):
        store.get(row["id"], OWNER)


def test_list_orders_by_due_and_skips_malformed(store, supa):
    late = _seed(supa, due_at="2026-10-21T09:00:00+00:00")
    early = _seed(supa, due_at="2026-10-19T09:00:00+00:00")
    _seed(supa, title="")
    _seed(supa, user_id="someone-else")

    reminders = store.list_for_owner(OWNER)

    assert [r.id for r in reminders] == [early["id"], late["id"]]


def test_list_filters_by_completed(store, supa):
    _seed(supa, completed=True)
    pending = _seed(supa)

    assert [r.id for r in store.list_for_owner(OWNER, completed=False)] == [pending["id"]]


def test_update_and_delete(store, supa):
    row = _seed(supa)
    reminder = store.get(row["id"], OWNER)

    updated = store.update(reminder.model_copy(update={"title": "Give heartworm pill"}))
    store.delete(row["id"], OWNER)

    assert updated.title == "Give heartworm pill"
    assert supa.table("reminders").rows == []


def test_update_missing_reminder_raises(store):
    ghost = _new_reminder().model_copy(update={"id": "missing"})

    with pytest.raises(ReminderNotFoundError):
        store.update(ghost)


def test_api_error_becomes_store_error(store, supa):
    supa.table("reminders").errors["select"] = APIError({"code": "42501", "message": "permission denied"})

    with pytest.raises(ReminderStoreError):
        store.list_for_owner(OWNER)


# ===========================
# save_completion
# ===========================

def test_completion_falls_back_to_sequential_writes(store, supa):
    row = _seed(supa, frequency="daily")
    result = compute_completion(store.get(row["id"], OWNER))

    current, nxt = store.save_completion(result)

    assert supa.rpc_calls[0][0] == "complete_reminder"
    assert current.completed is True
    assert current.recurrence.kind == "once"
    assert nxt.id != current.id
    assert nxt.recurrence == DailyRecurrence()
    assert nxt.due_at == datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)
    assert len(supa.table("reminders").rows) == 2


def test_completion_uses_rpc_when_installed():
    supa = FakeSupabase(installed_rpcs={"complete_reminder"})
    store = ReminderStore(supa)
    row = _seed(supa, frequency="weekly", weekdays=[1, 3])
    result = compute_completion(store.get(row["id"], OWNER))

    current, nxt = store.save_completion(result)

    assert current.id == row["id"] and current.completed
    assert nxt.due_at == datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc)
    assert nxt.recurrence.weekdays == (Weekday.MONDAY, Weekday.WEDNESDAY)


def test_concurrent_completion_is_a_conflict(store, supa):
    row = _seed(supa, frequency="daily")
    result = compute_completion(store.get(row["id"], OWNER))
    store.save_completion(result)

    with pytest.raises(ReminderConflictError):
        store.save_completion(result)
    assert len(supa.table("reminders").rows) == 2


def test_concurrent_completion_via_rpc_is_a_conflict():
    supa = FakeSupabase(installed_rpcs={"complete_reminder"})
    store = ReminderStore(supa)
    row = _seed(supa, frequency="monthly")
    result = compute_completion(store.get(row["id"], OWNER))
    store.save_completion(result)

    with pytest.raises(ReminderConflictError):
        store.save_completion(result)


def test_failed_insert_keeps_current_closed(store, supa):
    row = _seed(supa, frequency="daily")
    result = compute_completion(store.get(row["id"], OWNER))
    supa.table("reminders").errors["insert"] = APIError({"code": "500", "message": "boom"})

    with pytest.raises(ReminderStoreError):
        store.save_completion(result)

    rows = supa.table("reminders").rows
    assert len(rows) == 1
    assert rows[0]["completed"] is True


def test_once_completion_creates_no_record(store, supa):
    row = _seed(supa)
    result = compute_completion(store.get(row["id"], OWNER))

    current, nxt = store.save_completion(result)

    assert current.completed is True
    assert nxt is None
    assert len(supa.table("reminders").rows) == 1


def test_completion_stores_local_time_on_next_row(store, supa):
    row = _seed(supa, frequency="daily", tz_name="America/New_York", due_at="2026-03-07T07:30:00+00:00")
    result = compute_completion(store.get(row["id"], OWNER))

    _, nxt = store.save_completion(result)

    assert nxt.due_local_time == "02:30"
    assert supa.table("reminders").rows[1]["due_local_time"] == "02:30"
