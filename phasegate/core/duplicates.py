"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Duplicate detector - flags rows that share an external key (SFID).
"""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .audit import AuditSink
from .dao import RecordStore
from .schema import IssueCategory, ProjectField, as_bool, is_blank
from .snapshot import RowSnapshot

from util.logging import logger


def normalize_key(value: Any) -> Optional[str]:
    return None if is_blank(value) else str(value).strip()


@dataclass
class DuplicateResult:
    key: Optional[str]
    matches: int
    is_duplicate: bool
    peers_updated: int = 0


class DuplicateDetector:
    """Full-column scan per key edit.

    Linear in collection size, which is fine for a business tracker but not a
    high-volume design. Each edit that lands on a duplicate re-reports it.
    """

    def __init__(self, audit: AuditSink):
        self.audit = audit

    def check(self, store: RecordStore, snapshot: RowSnapshot) -> DuplicateResult:
        key = normalize_key(snapshot.get(ProjectField.SFID))

        # The snapshot holds this row's current key; the store holds everyone else's
        keys: Dict[int, Optional[str]] = {
            row_id: normalize_key(value) for row_id, value in store.read_column(ProjectField.SFID)
        }
        keys[snapshot.row_id] = key
        counts = Counter(k for k in keys.values() if k is not None)

        matches = counts[key] if key is not None else 0
        is_duplicate = matches > 1
        snapshot.set(ProjectField.IS_DUPLICATE, is_duplicate)

        peers_updated = self._refresh_peers(store, snapshot.row_id, keys, counts)
        logger.log_duplicate_scan(key or "", matches, len(keys))

        if is_duplicate:
            self.audit.log_issue(
                IssueCategory.DUPLICATE_SFID,
                key,
                f"SFID {key} appears on {matches} rows",
                label=snapshot.get(ProjectField.NAME) or ""
            )

        return DuplicateResult(key=key, matches=matches, is_duplicate=is_duplicate,
                               peers_updated=peers_updated)

    def _refresh_peers(self, store: RecordStore, row_id: int, keys: Dict[int, Optional[str]],
                       counts: Counter) -> int:
        """Correct the flag on other rows the edit made (or unmade) duplicates."""
        flags = dict(store.read_column(ProjectField.IS_DUPLICATE))
        updates = {}
        for peer_id, peer_key in keys.items():
            if peer_id == row_id:
                continue
            expected = peer_key is not None and counts[peer_key] > 1
            if as_bool(flags.get(peer_id)) != expected:
                updates[peer_id] = expected

        store.write_column(ProjectField.IS_DUPLICATE, updates)
        return len(updates)
