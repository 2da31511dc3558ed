"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Structured logging for transitions, gate blocks, overrides and audit fallbacks.
"""

import logging
from typing import Any, Dict, List

class StructuredLogger:
    """Structured logger for phase gate operations."""

    def __init__(self, name: str = "phasegate"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_transition(self, subject_key: str, from_status: str, to_status: str, via: str = "gates"):
        """Log an accepted status transition."""
        self.log_operation("transition", "accepted", {
            "subject_key": subject_key,
            "from": from_status,
            "to": to_status,
            "via": via
        })

    def log_gate_block(self, subject_key: str, attempted: str, reasons: List[str]):
        """Log a rejected status transition."""
        self.log_operation("transition", "blocked", {
            "subject_key": subject_key,
            "attempted": attempted,
            "reasons": [r[:100] for r in reasons]
        })

    def log_override_decision(self, subject_key: str, actor: str, granted: bool, expires_at: str = None):
        """Log an override grant or denial."""
        details = {"subject_key": subject_key, "actor": actor}
        if expires_at:
            details["expires_at"] = expires_at
        self.log_operation("override.request", "granted" if granted else "denied", details)

    def log_duplicate_scan(self, subject_key: str, matches: int, rows_scanned: int):
        """Log a duplicate key scan."""
        self.log_operation("duplicate.scan", "duplicate" if matches > 1 else "unique", {
            "subject_key": subject_key,
            "matches": matches,
            "rows_scanned": rows_scanned
        })

    def log_commit(self, collection: str, row_id: int, value_changes: int, note_changes: int):
        """Log a snapshot commit."""
        self.log_operation("snapshot.commit", "written" if value_changes or note_changes else "noop", {
            "collection": collection,
            "row_id": row_id,
            "values": value_changes,
            "notes": note_changes
        })

    def log_audit_fallback(self, category: str, subject_key: str, details: str, error: Exception):
        """Diagnostic output when the issue log itself cannot be written."""
        self.logger.error(
            f"Audit sink unavailable ({error}); dropped entry "
            f"category={category} subject={subject_key} details={sanitize_payload(details)}"
        )

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)

# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, max_length: int = 100) -> Any:
    """Truncate long strings for log output."""
    if isinstance(payload, dict):
        return {k: sanitize_payload(v, max_length) for k, v in payload.items()}
    elif isinstance(payload, str):
        return payload[:max_length] + "..." if len(payload) > max_length else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, max_length) for item in payload]
    else:
        return payload
