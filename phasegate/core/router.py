"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Event router - one edit notification in, one committed snapshot out, failures to the issue log.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from .admins import AdminRegistry
from .audit import AuditSink
from .config import OVERRIDE_WINDOW_HOURS, PROJECTS_COLLECTION, TASKS_COLLECTION
from .dao import RecordStore
from .duplicates import DuplicateDetector
from .errors import ConfigurationError
from .gates import PhaseGateValidator
from .overrides import OverrideAuthority
from .schema import (
    REQUIRED_PROJECT_HEADERS, REQUIRED_TASK_HEADERS, EditEvent, IssueCategory,
    ProjectField, TaskField
)
from .snapshot import RowSnapshot
from .tasks import stamp_task_completion

from util.logging import logger

PROJECT_TRIGGERS = {ProjectField.STATUS, ProjectField.SFID, ProjectField.OVERRIDE_REQUESTED}
TASK_TRIGGERS = {TaskField.STATUS}


@dataclass
class EditOutcome:
    collection: str
    row_id: int
    field: str
    action: str
    writes: int = 0
    detail: Optional[str] = None
    result: Any = None

    @property
    def handled(self) -> bool:
        return self.action not in ("ignored", "config_error", "error")


class EventRouter:
    """Dispatches edits to the validator, duplicate detector or override authority.

    Handlers only touch the snapshot; the router commits it once. Nothing a
    handler raises escapes ``handle_edit``.
    """

    def __init__(self, db_path: Optional[str] = None, registry: Optional[AdminRegistry] = None,
                 audit: Optional[AuditSink] = None, clock: Callable[[], datetime] = datetime.now,
                 window_hours: int = OVERRIDE_WINDOW_HOURS,
                 projects_collection: str = PROJECTS_COLLECTION,
                 tasks_collection: str = TASKS_COLLECTION):
        self.db_path = db_path
        self.clock = clock
        self.projects_collection = projects_collection
        self.tasks_collection = tasks_collection
        self.registry = registry or AdminRegistry(db_path)
        self.audit = audit or AuditSink(db_path, clock)
        self.validator = PhaseGateValidator(self.audit, clock)
        self.overrides = OverrideAuthority(self.registry, clock, window_hours)
        self.duplicates = DuplicateDetector(self.audit)

    def handle_edit(self, event: EditEvent) -> EditOutcome:
        try:
            return self._dispatch(event)
        except ConfigurationError as e:
            logger.error(f"Configuration error handling {event.collection}:{event.row_id}: {e}")
            self.audit.log_issue(IssueCategory.SCRIPT_ERROR, f"{event.collection}:{event.row_id}",
                                 str(e), label="configuration")
            return self._outcome(event, "config_error", detail=str(e))
        except Exception as e:
            logger.error(f"Unhandled error for {event.collection}:{event.row_id} ({event.field}): {e}")
            self.audit.log_issue(IssueCategory.SCRIPT_ERROR, f"{event.collection}:{event.row_id}",
                                 f"{type(e).__name__} while handling '{event.field}': {e}",
                                 label="handle_edit")
            return self._outcome(event, "error", detail=str(e))

    def _dispatch(self, event: EditEvent) -> EditOutcome:
        if event.collection == self.projects_collection:
            return self._handle_project_edit(event)
        if event.collection == self.tasks_collection:
            return self._handle_task_edit(event)
        logger.debug(f"Ignoring edit on unrouted collection '{event.collection}'")
        return self._outcome(event, "ignored")

    def _handle_project_edit(self, event: EditEvent) -> EditOutcome:
        field = _parse_field(ProjectField, event.field)
        if field not in PROJECT_TRIGGERS:
            return self._outcome(event, "ignored")

        store = RecordStore(event.collection, self.db_path)
        store.require_headers(REQUIRED_PROJECT_HEADERS)
        snapshot = RowSnapshot.load(store, event.row_id)

        if field is ProjectField.STATUS:
            result = self.validator.validate(snapshot, event.prior_value)
            action = "accepted" if result.stands else "blocked"
        elif field is ProjectField.SFID:
            result = self.duplicates.check(store, snapshot)
            action = "duplicate" if result.is_duplicate else "unique"
        else:
            result = self.overrides.handle_request(snapshot, event.actor, event.prior_value)
            if not result.requested:
                action = "override_withdrawn"
            else:
                action = "override_granted" if result.granted else "override_denied"

        commit = snapshot.commit(store)
        return self._outcome(event, action, writes=commit.writes, result=result)

    def _handle_task_edit(self, event: EditEvent) -> EditOutcome:
        field = _parse_field(TaskField, event.field)
        if field not in TASK_TRIGGERS:
            return self._outcome(event, "ignored")

        store = RecordStore(event.collection, self.db_path)
        store.require_headers(REQUIRED_TASK_HEADERS)
        snapshot = RowSnapshot.load(store, event.row_id)

        stamped = stamp_task_completion(snapshot, self.clock())
        commit = snapshot.commit(store)
        return self._outcome(event, "task_completed" if stamped else "task_unchanged",
                             writes=commit.writes, result=stamped)

    @staticmethod
    def _outcome(event: EditEvent, action: str, **kwargs) -> EditOutcome:
        return EditOutcome(collection=event.collection, row_id=event.row_id,
                           field=event.field, action=action, **kwargs)


def _parse_field(enum_cls, name: str):
    try:
        return enum_cls(name.strip())
    except (ValueError, AttributeError):
        return None
