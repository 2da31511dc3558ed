"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Audit sink - append-only issue log that never turns its own failure into a cascading one.
"""

from datetime import datetime
from typing import Callable, List, Optional

from .config import is_audit_enabled
from .dao import count_open_issues, insert_issue, list_issues, resolve_issue
from .schema import AuditEntry, IssueCategory

from util.logging import logger


class AuditSink:
    """Writes issue log entries for validation, authorization and runtime anomalies."""

    def __init__(self, db_path: Optional[str] = None, clock: Callable[[], datetime] = datetime.now):
        self.db_path = db_path
        self.clock = clock

    def log_issue(self, category: IssueCategory, subject_key: str, details: str,
                  label: str = "") -> Optional[int]:
        """Append one entry; on failure, log a diagnostic and return None."""
        if not is_audit_enabled():
            logger.debug(f"Audit disabled, skipped {category.value} for {subject_key}")
            return None

        try:
            issue_id = insert_issue(
                label=label,
                subject_key=subject_key,
                category=category,
                details=details,
                created_at=self.clock(),
                db_path=self.db_path
            )
        except Exception as e:
            logger.log_audit_fallback(category.value, subject_key, details, e)
            return None

        logger.log_operation("audit.issue", category.value, {
            "issue_id": issue_id,
            "subject_key": subject_key
        })
        return issue_id

    def list_issues(self, category: Optional[IssueCategory] = None, include_resolved: bool = True,
                    limit: int = 100) -> List[AuditEntry]:
        return list_issues(category, include_resolved, limit, self.db_path)

    def resolve(self, issue_id: int) -> bool:
        resolved = resolve_issue(issue_id, self.db_path)
        if resolved:
            logger.log_operation("audit.resolve", "success", {"issue_id": issue_id})
        return resolved

    def open_count(self) -> int:
        return count_open_issues(self.db_path)
