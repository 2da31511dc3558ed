"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Override authority - admin-only, time-boxed bypass of the readiness gates.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from .admins import AdminRegistry
from .config import OVERRIDE_WINDOW_HOURS
from .schema import ProjectField, as_bool, format_timestamp, is_blank
from .snapshot import RowSnapshot

from util.logging import logger

DENIED_NOTE = "Override denied: only admins can request an override. Authorized: {admins}"
GRANTED_NOTE = "Override granted by {actor}; expires {expires_at}"


@dataclass
class OverrideDecision:
    requested: bool
    granted: bool
    expires_at: Optional[str] = None


class OverrideAuthority:
    """Grants or refuses an edit that ticks the override checkbox."""

    def __init__(self, registry: AdminRegistry, clock: Callable[[], datetime] = datetime.now,
                 window_hours: int = OVERRIDE_WINDOW_HOURS):
        self.registry = registry
        self.clock = clock
        self.window = timedelta(hours=window_hours)

    def handle_request(self, snapshot: RowSnapshot, actor: Optional[str],
                       prior_value: Any = None) -> OverrideDecision:
        subject = snapshot.get(ProjectField.SFID) or f"row:{snapshot.row_id}"

        if not as_bool(snapshot.get(ProjectField.OVERRIDE_REQUESTED)):
            # Unticking withdraws the override
            snapshot.set(ProjectField.OVERRIDE_EXPIRES_AT, None)
            snapshot.set_note(ProjectField.OVERRIDE_REQUESTED, "")
            return OverrideDecision(requested=False, granted=False)

        if not self.registry.is_admin(actor):
            admins = self.registry.get_admins()
            prior = False if is_blank(prior_value) else as_bool(prior_value)
            snapshot.revert(ProjectField.OVERRIDE_REQUESTED, prior)
            snapshot.set_note(ProjectField.OVERRIDE_REQUESTED, DENIED_NOTE.format(admins=", ".join(admins)))
            logger.log_override_decision(str(subject), actor or "unknown", granted=False)
            return OverrideDecision(requested=True, granted=False)

        expires_at = format_timestamp(self.clock() + self.window)
        snapshot.set(ProjectField.OVERRIDE_REQUESTED, True)
        snapshot.set(ProjectField.OVERRIDE_EXPIRES_AT, expires_at)
        snapshot.set_note(ProjectField.OVERRIDE_REQUESTED, GRANTED_NOTE.format(actor=actor, expires_at=expires_at))
        logger.log_override_decision(str(subject), actor, granted=True, expires_at=expires_at)
        return OverrideDecision(requested=True, granted=True, expires_at=expires_at)
