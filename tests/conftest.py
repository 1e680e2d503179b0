import copy
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from app.api.routers import reminders as reminders_router
from app.core.auth import get_user_id
from app.core.reminder_store import ReminderStore
from main import app

OWNER = "7c1e4f0a-0000-4000-8000-000000000001"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)  # lunes


def _sort_key(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class FakeQuery:
    """Subconjunto del query builder de PostgREST que usa ReminderStore."""

    def __init__(self, table: "FakeTable", op: str, payload=None):
        self._table = table
        self._op = op
        self._payload = payload
        self._filters = []
        self._order = None
        self._limit = None

    def select(self, *_columns):
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self._filters)

    def execute(self):
        error = self._table.errors.get(self._op)
        if error is not None:
            raise error

        rows = self._table.rows
        if self._op == "insert":
            row = {
                "id": str(uuid.uuid4()),
                "created_at": datetime.now(timezone.utc).isoformat(),
                **copy.deepcopy(self._payload),
            }
            rows.append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)])

        matched = [row for row in rows if self._matches(row)]
        if self._op == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
        elif self._op == "delete":
            self._table.rows = [row for row in rows if not self._matches(row)]

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda r: _sort_key(r.get(column)), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return SimpleNamespace(data=copy.deepcopy(matched))


class FakeTable:
    def __init__(self):
        self.rows = []
        self.errors = {}

    def select(self, *columns):
        return FakeQuery(self, "select").select(*columns)

    def insert(self, payload):
        return FakeQuery(self, "insert", payload)

    def update(self, payload):
        return FakeQuery(self, "update", payload)

    def delete(self):
        return FakeQuery(self, "delete")


class FakeRpc:
    def __init__(self, client: "FakeSupabase", name: str, params: dict):
        self._client = client
        self._name = name
        self._params = params

    def execute(self):
        if self._name not in self._client.installed_rpcs:
            raise APIError({
                "code": "PGRST202",
                "message": f"Could not find the function public.{self._name} in the schema cache",
                "hint": None,
                "details": None,
            })

        table = self._client.table("reminders")
        current = next(
            (r for r in table.rows if r["id"] == self._params["p_reminder_id"] and not r["completed"]),
            None,
        )
        if current is None:
            return SimpleNamespace(data=[])

        changes = dict(self._params["p_current"])
        changes.pop("user_id", None)
        current.update(changes)
        out = [copy.deepcopy(current)]
        if self._params.get("p_next"):
            next_row = {**self._params["p_next"], "user_id": current["user_id"]}
            out.extend(table.insert(next_row).execute().data)
        return SimpleNamespace(data=out)


class FakeSupabase:
    def __init__(self, installed_rpcs=()):
        self.tables = {}
        self.installed_rpcs = set(installed_rpcs)
        self.rpc_calls = []

    def table(self, name):
        return self.tables.setdefault(name, FakeTable())

    def rpc(self, name, params):
        self.rpc_calls.append((name, params))
        return FakeRpc(self, name, params)


def reminder_row(**overrides):
    row = {
        "id": str(uuid.uuid4()),
        "user_id": OWNER,
        "title": "Give flea medication",
        "notes": "With food",
        "due_at": "2026-10-19T09:00:00+00:00",
        "tz_name": "UTC",
        "completed": False,
        "frequency": "once",
        "weekdays": None,
        "created_at": "2026-10-01T08:00:00+00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture
def supa() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def store(supa) -> ReminderStore:
    return ReminderStore(supa)


@pytest.fixture
def client(supa):
    app.dependency_overrides[get_user_id] = lambda: OWNER
    app.dependency_overrides[reminders_router.get_reminder_store] = lambda: ReminderStore(supa)
    app.dependency_overrides[reminders_router.get_clock] = lambda: (lambda: NOW)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
