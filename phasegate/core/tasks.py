"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Task completion stamping.
"""

from datetime import datetime

from .schema import TASK_DONE_VALUE, TaskField, format_timestamp, is_blank
from .snapshot import RowSnapshot


def stamp_task_completion(snapshot: RowSnapshot, now: datetime) -> bool:
    """Stamp completed_at the first time a task reads "done". Returns True if stamped."""
    status = snapshot.get(TaskField.STATUS)
    if is_blank(status) or str(status).strip().lower() != TASK_DONE_VALUE:
        return False
    if not is_blank(snapshot.get(TaskField.COMPLETED_AT)):
        return False
    snapshot.set(TaskField.COMPLETED_AT, format_timestamp(now))
    return True
