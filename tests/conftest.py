"""
Shared fixtures: a temporary tracker database, a frozen clock and edit helpers.
"""

import pytest
from datetime import datetime, timedelta

from phasegate.core.admins import StaticAdminRegistry
from phasegate.core.audit import AuditSink
from phasegate.core.dao import RecordStore
from phasegate.core.db import init_db
from phasegate.core.router import EventRouter
from phasegate.core.schema import EditEvent, ProjectField
from phasegate.core.snapshot import RowSnapshot


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


ADMIN = "boss@example.com"


def project_row(**overrides):
    """A full projects row as the store would return it."""
    row = {field.value: None for field in ProjectField}
    row.update({
        "row_id": 1,
        "sfid": "SF-001",
        "project_name": "Test Project",
        "status": "Scheduled",
        "last_valid_status": None,
        "ready_global": 0,
        "ready_permitting": 0,
        "ready_scheduled": 0,
        "ready_inspections": 0,
        "ready_done": 0,
        "override_requested": 0,
        "payment_received": 0,
        "is_duplicate": 0,
    })
    row.update(overrides)
    return row


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary database for testing."""
    path = str(tmp_path / "phasegate_test.db")
    init_db(path)
    return path


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 9, 0, 0))


@pytest.fixture
def admins():
    return StaticAdminRegistry([ADMIN])


@pytest.fixture
def audit(db_path, clock):
    return AuditSink(db_path, clock)


@pytest.fixture
def router(db_path, admins, audit, clock):
    return EventRouter(db_path=db_path, registry=admins, audit=audit, clock=clock)


@pytest.fixture
def projects(db_path):
    return RecordStore("projects", db_path)


@pytest.fixture
def tasks(db_path):
    return RecordStore("tasks", db_path)


@pytest.fixture
def make_snapshot():
    """Build an in-memory projects snapshot without touching the store."""
    def _make(notes=None, **overrides):
        row = project_row(**overrides)
        return RowSnapshot(collection="projects", row_id=row["row_id"],
                           initial_values=row, initial_notes=dict(notes or {}))
    return _make


@pytest.fixture
def make_project(projects):
    """Insert a project row and return its row_id."""
    def _make(**overrides):
        row = project_row(**overrides)
        row.pop("row_id")
        return projects.append_row(row)
    return _make


@pytest.fixture
def apply_edit(router, db_path):
    """Write a cell the way a collaborator would, then fire the edit notification."""
    def _edit(collection, row_id, field, value, actor=None, send_prior=True):
        store = RecordStore(collection, db_path)
        prior = store.read_row(row_id)[field]
        store.write_values(row_id, {field: value})
        return router.handle_edit(EditEvent(
            collection=collection,
            row_id=row_id,
            field=field,
            prior_value=prior if send_prior else None,
            actor=actor
        ))
    return _edit
