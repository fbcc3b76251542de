"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings require Supabase credentials at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timedelta
from typing import Any, Callable, Generator, Optional, Union

from integrations.sequence_store import ProjectModules, SequenceStore
from exceptions import ConcurrentModificationError, ProjectNotFoundError


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Works on the table's row list directly, so updates are visible to
    later queries. eq() filters are honored.
    """

    def __init__(self, rows: list, error: Optional[Exception] = None):
        self._rows = rows
        self._error = error
        self._filters: list[tuple[str, Any]] = []
        self._update: Optional[dict] = None
        self._limit: Optional[int] = None

    def select(self, *args, **kwargs):
        return self

    def update(self, data: dict):
        self._update = data
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(row.get(column) == value for column, value in self._filters)

    def execute(self) -> MockSupabaseResponse:
        if self._error is not None:
            raise self._error

        matched = [row for row in self._rows if self._matches(row)]

        if self._update is not None:
            for row in matched:
                row.update(self._update)
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        if self._limit is not None:
            matched = matched[:self._limit]
        return MockSupabaseResponse(data=[dict(row) for row in matched])


class MockSupabaseRPC:
    """Pending rpc() call."""

    def __init__(self, handler: Union[Callable, Any], params: dict):
        self._handler = handler
        self._params = params

    def execute(self) -> MockSupabaseResponse:
        if isinstance(self._handler, Exception):
            raise self._handler
        if callable(self._handler):
            return MockSupabaseResponse(data=self._handler(self._params))
        return MockSupabaseResponse(data=self._handler)


class MockSupabaseFunctions:
    """Mock edge functions client."""

    def __init__(self):
        self.response: Any = {}
        self.calls: list[tuple[str, dict]] = []

    def invoke(self, name: str, invoke_options: dict = None):
        self.calls.append((name, invoke_options or {}))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, list] = {}
        self._errors: dict[str, Exception] = {}
        self._rpc: dict[str, Any] = {}
        self.rpc_calls: list[tuple[str, dict]] = []
        self.functions = MockSupabaseFunctions()

    def set_table_data(self, table_name: str, data: list):
        """Configure rows for a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self._errors[table_name] = error

    def set_rpc(self, name: str, handler: Any):
        """Configure an RPC result: a value, a callable(params) or an exception."""
        self._rpc[name] = handler

    def rows(self, table_name: str) -> list:
        return self._tables.setdefault(table_name, [])

    def table(self, name: str) -> MockSupabaseQuery:
        """Get mock table."""
        return MockSupabaseQuery(self.rows(name), self._errors.get(name))

    def rpc(self, name: str, params: dict) -> MockSupabaseRPC:
        self.rpc_calls.append((name, params))
        return MockSupabaseRPC(self._rpc.get(name), params)


# ===================
# IN-MEMORY SEQUENCE STORE
# ===================

class FakeSequenceStore(SequenceStore):
    """
    SequenceStore kept in memory.

    Failure switches let tests break one operation at a time.
    """

    def __init__(self):
        self.projects: dict[str, dict] = {}
        self.history: list[dict] = []
        self.save_calls: list[list[dict]] = []
        self.import_response: Any = {"success": True}
        self.import_payloads: list[dict] = []
        self.fail_snapshot_save = False
        self.fail_history = False
        self.fail_fetch = False
        self.fail_modules_save_on: Optional[int] = None
        self._clock = datetime(2025, 1, 10, 8, 0, 0)

    def add_project(self, project_id: str, modules: list[dict], name: str = "Test Project", version: int = 0):
        self.projects[project_id] = {
            "name": name,
            "modules": [dict(m) for m in modules],
            "version": version,
        }

    def modules(self, project_id: str) -> list[dict]:
        return self.projects[project_id]["modules"]

    def add_history_row(self, project_id: str, entries: list[dict], change_type: str = "manual_edit", **fields) -> dict:
        self._clock += timedelta(minutes=1)
        row = {
            "id": fields.pop("id", f"snap-{len(self.history) + 1}"),
            "project_id": project_id,
            "sequence_snapshot": entries,
            "change_type": change_type,
            "change_description": fields.pop("change_description", None),
            "changed_by": fields.pop("changed_by", None),
            "changed_by_name": fields.pop("changed_by_name", "Unknown"),
            "module_count": len(entries),
            "created_at": fields.pop("created_at", self._clock.isoformat()),
        }
        row.update(fields)
        self.history.append(row)
        return row

    def save_snapshot(self, project_id, entries, change_type, description, user_id, user_name) -> str:
        if self.fail_snapshot_save:
            raise RuntimeError("history table unavailable")
        row = self.add_history_row(
            project_id,
            entries,
            change_type,
            change_description=description,
            changed_by=user_id,
            changed_by_name=user_name,
        )
        return row["id"]

    def get_history(self, project_id, limit):
        if self.fail_history:
            raise RuntimeError("history table unavailable")
        rows = [r for r in self.history if r["project_id"] == project_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit]

    def fetch_snapshot_by_id(self, snapshot_id):
        if self.fail_fetch:
            raise RuntimeError("history table unavailable")
        for row in self.history:
            if row["id"] == snapshot_id:
                return dict(row)
        return None

    def invoke_import(self, payload):
        self.import_payloads.append(payload)
        return self.import_response

    def get_project_modules(self, project_id) -> ProjectModules:
        project = self.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return ProjectModules(
            project_id=project_id,
            modules=[dict(m) for m in project["modules"]],
            version=project["version"],
            name=project["name"],
        )

    def save_project_modules(self, project_id, modules, expected_version) -> int:
        if self.fail_modules_save_on == len(self.save_calls) + 1:
            self.save_calls.append(modules)
            raise RuntimeError("write timed out")
        self.save_calls.append(modules)

        project = self.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        if project["version"] != expected_version:
            raise ConcurrentModificationError(project_id, expected_version)

        project["modules"] = [dict(m) for m in modules]
        project["version"] = expected_version + 1
        return project["version"]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("projects", [
                {"id": "p1", "modules": [...], "modules_version": 0}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any store created without an explicit client gets the mock.
    """
    with patch("integrations.supabase_sequence_store.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


@pytest.fixture
def fake_store() -> FakeSequenceStore:
    """Empty in-memory sequence store."""
    return FakeSequenceStore()


@pytest.fixture
def sample_modules() -> list:
    """Three sequenced modules in storage shape."""
    return [
        {"id": "m1", "serialNumber": "25-0001", "buildSequence": 1, "hitchBLM": "B1L2M01"},
        {"id": "m2", "serialNumber": "25-0002", "buildSequence": 2, "hitchBLM": "B1L2M02"},
        {"id": "m3", "serialNumber": "25-0003", "buildSequence": 3, "hitchBLM": "B1L2M03"},
    ]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def test_client_with_store(fake_store):
    """
    FastAPI test client whose services all use the in-memory store.

    Usage:
        def test_endpoint(test_client_with_store, fake_store):
            fake_store.add_project("p1", [...])
            response = test_client_with_store.get("/api/projects/p1/sequence-history")
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.module_import_service import ModuleImportService
    from services.sequence_editor_service import SequenceEditorService
    from services.sequence_export_service import SequenceExportService
    from services.sequence_history_service import SequenceHistoryService

    history = SequenceHistoryService(fake_store)
    with patch("routes.sequence_history.get_sequence_history_service", return_value=history), \
            patch("routes.module_import.get_module_import_service",
                  return_value=ModuleImportService(fake_store, history)), \
            patch("routes.sequences.get_sequence_editor_service",
                  return_value=SequenceEditorService(fake_store, history)), \
            patch("routes.sequences.get_sequence_export_service",
                  return_value=SequenceExportService(fake_store)):
        yield TestClient(app)
