"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Phase-gate validator - decides whether a status transition may stand, and records why not.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from .audit import AuditSink
from .schema import (
    GATED_STATUSES, MILESTONE_FIELDS, IssueCategory, ProjectField, Status,
    as_bool, format_timestamp, is_blank, parse_timestamp
)
from .snapshot import RowSnapshot

from util.logging import logger

GLOBAL_BLOCK_REASON = "Global readiness not met: core project data is incomplete"

GATE_BLOCK_REASONS = {
    Status.PERMITTING: "Permitting gate not met: permit package is not ready",
    Status.SCHEDULED: "Scheduling gate not met: install prerequisites are not ready",
    Status.INSPECTIONS: "Inspections gate not met: installation is not signed off",
    Status.DONE: "Completion gate not met: closeout requirements are not ready",
}

INVALID_STATUS_REASON = "Invalid status value: {value!r}"

PAYMENT_REQUIRED_NOTE = "Payment not received: a project cannot be marked Done until payment is recorded"


@dataclass(frozen=True)
class GateInputs:
    raw_status: Any
    new_status: Optional[Status]
    global_ready: bool
    target_ready: bool
    override_requested: bool
    override_expires_at: Optional[datetime]
    payment_received: bool

    @classmethod
    def from_snapshot(cls, snapshot: RowSnapshot) -> "GateInputs":
        raw_status = snapshot.get(ProjectField.STATUS)
        new_status = Status.parse(raw_status)
        gate_field = GATED_STATUSES.get(new_status)
        return cls(
            raw_status=raw_status,
            new_status=new_status,
            global_ready=as_bool(snapshot.get(ProjectField.READY_GLOBAL)),
            target_ready=as_bool(snapshot.get(gate_field)) if gate_field else True,
            override_requested=as_bool(snapshot.get(ProjectField.OVERRIDE_REQUESTED)),
            override_expires_at=parse_timestamp(snapshot.get(ProjectField.OVERRIDE_EXPIRES_AT)),
            payment_received=as_bool(snapshot.get(ProjectField.PAYMENT_RECEIVED))
        )


@dataclass
class GateDecision:
    status: Optional[Status]
    accepted: bool
    via_override: bool = False
    reasons: List[str] = field(default_factory=list)
    payment_blocked: bool = False

    @property
    def stands(self) -> bool:
        """True when the edited status survives the pass."""
        return self.accepted and not self.payment_blocked

    @property
    def note(self) -> str:
        if self.payment_blocked:
            return PAYMENT_REQUIRED_NOTE
        return "\n".join(self.reasons)


def override_active(requested: bool, expires_at: Optional[datetime], now: datetime) -> bool:
    """An override counts only while requested and unexpired; expiry is never swept."""
    return requested and expires_at is not None and expires_at > now


def block_reasons(status: Status, global_ready: bool, target_ready: bool) -> List[str]:
    """Every failed predicate for entering ``status``, global first."""
    reasons = []
    if not global_ready:
        reasons.append(GLOBAL_BLOCK_REASON)
    if status in GATED_STATUSES and not target_ready:
        reasons.append(GATE_BLOCK_REASONS[status])
    return reasons


def evaluate_transition(inputs: GateInputs, now: datetime) -> GateDecision:
    """Pure decision for one attempted transition.

    An active override bypasses the readiness gates but not the payment guard.
    """
    status = inputs.new_status
    if status is None:
        return GateDecision(
            status=None,
            accepted=False,
            reasons=[INVALID_STATUS_REASON.format(value=inputs.raw_status)]
        )

    payment_blocked = status is Status.DONE and not inputs.payment_received

    if override_active(inputs.override_requested, inputs.override_expires_at, now):
        return GateDecision(status=status, accepted=True, via_override=True,
                            payment_blocked=payment_blocked)

    reasons = block_reasons(status, inputs.global_ready, inputs.target_ready)
    return GateDecision(status=status, accepted=not reasons, reasons=reasons,
                        payment_blocked=payment_blocked)


class PhaseGateValidator:
    """Applies transition decisions to a row snapshot and audits rejections."""

    def __init__(self, audit: AuditSink, clock: Callable[[], datetime] = datetime.now):
        self.audit = audit
        self.clock = clock

    def validate(self, snapshot: RowSnapshot, prior_status: Any = None) -> GateDecision:
        now = self.clock()
        stamp = format_timestamp(now)
        inputs = GateInputs.from_snapshot(snapshot)
        decision = evaluate_transition(inputs, now)

        snapshot.set(ProjectField.LAST_VALIDATED_AT, stamp)

        # A payment block replaces acceptance rather than following it
        if decision.stands:
            self._accept(snapshot, decision, stamp)
        else:
            fallback = prior_status
            if is_blank(fallback):
                fallback = snapshot.initial(ProjectField.LAST_VALID_STATUS)
            if is_blank(fallback):
                # Never had a valid status
                fallback = None
            snapshot.revert(ProjectField.STATUS, fallback)
            self._mark_blocked(snapshot, stamp)

            if not decision.accepted:
                self._report(snapshot, decision.reasons, inputs.raw_status)
            if decision.payment_blocked:
                self._report(snapshot, [PAYMENT_REQUIRED_NOTE], inputs.raw_status)
            snapshot.set_note(ProjectField.STATUS, decision.note)

        return decision

    def _accept(self, snapshot: RowSnapshot, decision: GateDecision, stamp: str):
        status = decision.status
        previous = snapshot.initial(ProjectField.LAST_VALID_STATUS)

        snapshot.set(ProjectField.STATUS, status.value)
        snapshot.set(ProjectField.LAST_VALID_STATUS, status.value)
        snapshot.set(ProjectField.BLOCKED_SINCE, None)
        snapshot.set_note(ProjectField.STATUS, "")

        if not decision.via_override:
            milestone = MILESTONE_FIELDS.get(status)
            if milestone and is_blank(snapshot.get(milestone)):
                snapshot.set(milestone, stamp)

        # Any accepted transition spends a pending override
        if as_bool(snapshot.get(ProjectField.OVERRIDE_REQUESTED)):
            snapshot.set(ProjectField.OVERRIDE_REQUESTED, False)
            snapshot.set(ProjectField.OVERRIDE_EXPIRES_AT, None)
            snapshot.set_note(ProjectField.OVERRIDE_REQUESTED, "")

        logger.log_transition(
            _subject_key(snapshot), previous or "", status.value,
            via="override" if decision.via_override else "gates"
        )

    def _mark_blocked(self, snapshot: RowSnapshot, stamp: str):
        # First failure time only; repeated failures leave it alone
        if is_blank(snapshot.get(ProjectField.BLOCKED_SINCE)):
            snapshot.set(ProjectField.BLOCKED_SINCE, stamp)

    def _report(self, snapshot: RowSnapshot, reasons: List[str], attempted: Any):
        subject = _subject_key(snapshot)
        logger.log_gate_block(subject, str(attempted), reasons)
        self.audit.log_issue(
            IssueCategory.DATA_MISSING,
            subject,
            f"Blocked transition to {attempted!r}: " + "; ".join(reasons),
            label=snapshot.get(ProjectField.NAME) or ""
        )


def _subject_key(snapshot: RowSnapshot) -> str:
    sfid = snapshot.get(ProjectField.SFID)
    return str(sfid).strip() if not is_blank(sfid) else f"row:{snapshot.row_id}"
