"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Typed field identifiers, status enum and record types shared by the engine.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ProjectField(str, Enum):
    """Header names of the projects collection."""
    SFID = "sfid"
    NAME = "project_name"
    STATUS = "status"
    LAST_VALID_STATUS = "last_valid_status"
    READY_GLOBAL = "ready_global"
    READY_PERMITTING = "ready_permitting"
    READY_SCHEDULED = "ready_scheduled"
    READY_INSPECTIONS = "ready_inspections"
    READY_DONE = "ready_done"
    BLOCKED_SINCE = "blocked_since"
    OVERRIDE_REQUESTED = "override_requested"
    OVERRIDE_EXPIRES_AT = "override_expires_at"
    SCHEDULED_AT = "scheduled_at"
    COMPLETED_AT = "completed_at"
    PAYMENT_RECEIVED = "payment_received"
    IS_DUPLICATE = "is_duplicate"
    LAST_VALIDATED_AT = "last_validated_at"


class TaskField(str, Enum):
    """Header names of the tasks collection."""
    PROJECT_SFID = "project_sfid"
    NAME = "task_name"
    STATUS = "status"
    COMPLETED_AT = "completed_at"


class Status(str, Enum):
    SCHEDULED = "Scheduled"
    PERMITTING = "Permitting"
    DONE = "Done"
    CANCELED = "Canceled"
    ON_HOLD = "On Hold"
    STUCK = "Stuck"
    INSPECTIONS = "Inspections"
    OVERDUE = "Overdue"

    @classmethod
    def parse(cls, value: Any) -> Optional["Status"]:
        """Return the matching status, or None for blanks and unknown values."""
        if value is None:
            return None
        text = str(value).strip()
        for status in cls:
            if status.value.lower() == text.lower():
                return status
        return None


class IssueCategory(str, Enum):
    SCRIPT_ERROR = "script_error"
    DUPLICATE_SFID = "duplicate_sfid"
    DATA_MISSING = "data_missing"


# Gated targets and the readiness field each one requires
GATED_STATUSES: Dict[Status, ProjectField] = {
    Status.PERMITTING: ProjectField.READY_PERMITTING,
    Status.SCHEDULED: ProjectField.READY_SCHEDULED,
    Status.INSPECTIONS: ProjectField.READY_INSPECTIONS,
    Status.DONE: ProjectField.READY_DONE,
}

# First valid entry into these states is stamped once
MILESTONE_FIELDS: Dict[Status, ProjectField] = {
    Status.SCHEDULED: ProjectField.SCHEDULED_AT,
    Status.DONE: ProjectField.COMPLETED_AT,
}

# Headers the engine cannot run without; extra columns are ignored
REQUIRED_PROJECT_HEADERS = tuple(ProjectField)
REQUIRED_TASK_HEADERS = (TaskField.STATUS, TaskField.COMPLETED_AT)

TASK_DONE_VALUE = "done"


@dataclass(frozen=True)
class AuditEntry:
    """One row of the issue log."""
    id: Optional[int]
    label: str
    subject_key: str
    category: IssueCategory
    details: str
    created_at: datetime
    resolved: bool = False

    def to_dict(self) -> Dict:
        """Convert to dictionary for API responses."""
        data = asdict(self)
        data['category'] = self.category.value
        data['created_at'] = self.created_at.isoformat()
        return data


@dataclass(frozen=True)
class EditEvent:
    """One inbound edit notification from the record store."""
    collection: str
    row_id: int
    field: str
    prior_value: Any = None
    actor: Optional[str] = None


def as_bool(value: Any) -> bool:
    """Interpret a stored cell as a checkbox value."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("true", "1", "yes", "y", "x")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp cell; blanks and garbage read as empty."""
    if isinstance(value, datetime):
        return value
    if value is None or str(value).strip() == "":
        return None
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        return None


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""
