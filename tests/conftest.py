"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from datetime import datetime
from typing import Generator

from models.user import UserResponse
from services.backend import Backend, build_memory_backend

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    eq / neq / in_ filter the table data; insert / update / delete act on
    the shared row list so later queries see the change.
    """

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._filters = []
        self._action = "select"
        self._payload = None
        self._limit = None
        self._order = None
        self.calls = table.calls

    def _record(self, name, *args):
        self.calls.append((name, *args))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args)

    def insert(self, data):
        self._action = "insert"
        self._payload = [data] if isinstance(data, dict) else list(data)
        return self._record("insert", len(self._payload))

    def update(self, data):
        self._action = "update"
        self._payload = data
        return self._record("update", data)

    def delete(self):
        self._action = "delete"
        return self._record("delete")

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self._record("eq", column, value)

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self._record("neq", column, value)

    def in_(self, column, values):
        self._filters.append(lambda row: row.get(column) in values)
        return self._record("in_", column, list(values))

    def order(self, column, desc=False, **kwargs):
        self._order = (column, desc)
        return self._record("order", column, desc)

    def limit(self, count):
        self._limit = count
        return self._record("limit", count)

    def _matching(self) -> list:
        return [row for row in self._table.rows if all(f(row) for f in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        if self._table.error is not None:
            raise self._table.error

        if self._action == "insert":
            created = []
            for item in self._payload:
                row = dict(item)
                row.setdefault("id", f"test-uuid-{len(self._table.rows) + 1}")
                row.setdefault("created_at", datetime.utcnow().isoformat() + "Z")
                self._table.rows.append(row)
                created.append(row)
            return MockSupabaseResponse(data=created)

        matching = self._matching()

        if self._action == "update":
            for row in matching:
                row.update(self._payload)
            return MockSupabaseResponse(data=[dict(row) for row in matching])

        if self._action == "delete":
            self._table.rows[:] = [row for row in self._table.rows if row not in matching]
            return MockSupabaseResponse(data=matching)

        data = [dict(row) for row in matching]
        if self._order:
            column, desc = self._order
            data.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self._limit is not None:
            data = data[:self._limit]
        return MockSupabaseResponse(data=data)


class MockSupabaseTable:
    """Mock Supabase table with configurable rows."""

    def __init__(self, rows: list = None):
        self.rows = rows if rows is not None else []
        self.error = None
        self.calls = []

    def _query(self):
        return MockSupabaseQuery(self)

    def select(self, *args, **kwargs):
        return self._query().select(*args)

    def insert(self, data):
        return self._query().insert(data)

    def update(self, data):
        return self._query().update(data)

    def delete(self):
        return self._query().delete()


class MockStorageBucket:
    """Mock Supabase Storage bucket."""

    def __init__(self):
        self.objects = {}
        self.error = None

    def upload(self, path, content, options=None):
        if self.error is not None:
            raise self.error
        self.objects[path] = content
        return {"path": path}

    def download(self, path):
        if self.error is not None:
            raise self.error
        if path not in self.objects:
            raise Exception(f"Object not found: {path}")
        return self.objects[path]

    def remove(self, paths):
        if self.error is not None:
            raise self.error
        for path in paths:
            self.objects.pop(path, None)
        return [{"name": p} for p in paths]


class MockSupabaseStorage:
    def __init__(self):
        self.buckets = {}

    def from_(self, bucket: str) -> MockStorageBucket:
        return self.buckets.setdefault(bucket, MockStorageBucket())


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.storage = MockSupabaseStorage()

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table."""
        self._tables[table_name] = MockSupabaseTable([dict(row) for row in data])

    def get_table(self, name: str) -> MockSupabaseTable:
        return self._tables.setdefault(name, MockSupabaseTable())

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return self.get_table(name)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("sku_mapping", [
                {"id": "1", "market_sku": "MSKU-1", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def memory_backend() -> Backend:
    """Fresh in-memory backend with demo accounts, no SKU mappings."""
    backend = build_memory_backend(seed=True)
    backend.sku_mappings.delete_all()
    return backend


@pytest.fixture
def use_backend(memory_backend, monkeypatch) -> Generator:
    """
    Route every get_backend() call to memory_backend and reset the
    service singletons that keep state between requests.
    """
    import services.backend
    import services.workflow_service

    monkeypatch.setattr(services.backend, "get_backend", lambda: memory_backend)
    monkeypatch.setattr(services.workflow_service, "_workflow_service", None)
    yield memory_backend


@pytest.fixture
def admin_operator(memory_backend) -> UserResponse:
    return UserResponse(**memory_backend.users.get("demo-admin-id"))


@pytest.fixture
def user_operator(memory_backend) -> UserResponse:
    return UserResponse(**memory_backend.users.get("demo-user-id"))


@pytest.fixture
def client(use_backend, monkeypatch):
    """FastAPI TestClient over the in-memory backend."""
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "get_backend", lambda: use_backend)
    with TestClient(main.app) as test_client:
        yield test_client


def login(client, username: str, password: str = "demo") -> dict:
    """Sign in and return Authorization headers."""
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client) -> dict:
    return login(client, "admin")


@pytest.fixture
def user_headers(client) -> dict:
    return login(client, "user")
