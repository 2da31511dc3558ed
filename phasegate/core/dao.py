"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Data access for the tabular record store, cell notes, issue log and script properties.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .db import get_db
from .errors import MissingHeadersError, RecordNotFoundError, UnknownCollectionError
from .schema import AuditEntry, IssueCategory, as_bool, parse_timestamp

from util.logging import logger

FieldRef = Union[str, Enum]


def _header(field: FieldRef) -> str:
    return field.value if isinstance(field, Enum) else str(field)


def _quote(identifier: str) -> str:
    """Quote a table or column name; anything but plain identifiers is refused."""
    if not identifier or not identifier.replace("_", "").isalnum():
        raise UnknownCollectionError(identifier)
    return f'"{identifier}"'


class RecordStore:
    """Header-addressed access to one collection.

    The column map is read once per instance, so a store built at the start of
    a handling pass tolerates reordered and added columns but not renamed ones.
    """

    def __init__(self, collection: str, db_path: Optional[str] = None):
        self.collection = collection
        self.db_path = db_path
        self._columns: Optional[Dict[str, int]] = None

    @property
    def columns(self) -> Dict[str, int]:
        if self._columns is None:
            self._columns = self._load_column_map()
        return self._columns

    def _load_column_map(self) -> Dict[str, int]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"PRAGMA table_info({_quote(self.collection)})")
            columns = {row[1]: row[0] for row in cursor.fetchall()}
        if not columns:
            raise UnknownCollectionError(self.collection)
        return columns

    def require_headers(self, required: Iterable[FieldRef]):
        """Raise MissingHeadersError if any required header is absent."""
        missing = [_header(f) for f in required if _header(f) not in self.columns]
        if missing:
            raise MissingHeadersError(self.collection, missing)

    def read_row(self, row_id: int) -> Dict[str, Any]:
        """Read one row as {header: value}."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM {_quote(self.collection)} WHERE row_id = ?",
                (row_id,)
            )
            row = cursor.fetchone()

        if row is None:
            raise RecordNotFoundError(self.collection, row_id)
        return {name: row[index] for name, index in self.columns.items()}

    def read_notes(self, row_id: int) -> Dict[str, str]:
        """Read the non-empty notes attached to one row."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT field, note FROM cell_notes WHERE collection = ? AND row_id = ?",
                (self.collection, row_id)
            )
            return {field: note for field, note in cursor.fetchall() if note}

    def read_column(self, field: FieldRef) -> List[Tuple[int, Any]]:
        """Read a whole column as (row_id, value) pairs in row order."""
        column = _quote(_header(field))
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT row_id, {column} FROM {_quote(self.collection)} ORDER BY row_id"
            )
            return cursor.fetchall()

    def write_values(self, row_id: int, changes: Dict[str, Any]):
        """Batch write of changed cells in one row (single statement)."""
        if not changes:
            return
        assignments = ", ".join(f"{_quote(name)} = ?" for name in changes)
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE {_quote(self.collection)} SET {assignments} WHERE row_id = ?",
                (*changes.values(), row_id)
            )
            conn.commit()

    def write_notes(self, row_id: int, changes: Dict[str, str]):
        """Batch write of changed notes in one row (single statement)."""
        if not changes:
            return
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.executemany(
                '''
                INSERT INTO cell_notes (collection, row_id, field, note) VALUES (?, ?, ?, ?)
                ON CONFLICT(collection, row_id, field) DO UPDATE SET note = excluded.note
                ''',
                [(self.collection, row_id, field, note or "") for field, note in changes.items()]
            )
            conn.commit()

    def write_column(self, field: FieldRef, values: Dict[int, Any]):
        """Batch write of one column across several rows (single statement)."""
        if not values:
            return
        column = _quote(_header(field))
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.executemany(
                f"UPDATE {_quote(self.collection)} SET {column} = ? WHERE row_id = ?",
                [(value, row_id) for row_id, value in values.items()]
            )
            conn.commit()

    def append_row(self, values: Dict[FieldRef, Any]) -> int:
        """Insert a row the way the external import process does; returns its row_id."""
        names = [_header(f) for f in values]
        placeholders = ", ".join("?" for _ in names)
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO {_quote(self.collection)} ({', '.join(_quote(n) for n in names)}) "
                f"VALUES ({placeholders})",
                tuple(values.values())
            )
            conn.commit()
            return cursor.lastrowid


def get_property(key: str, db_path: Optional[str] = None) -> Optional[str]:
    """Get a script property value."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT value FROM properties WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None


def set_property(key: str, value: str, db_path: Optional[str] = None):
    """Set a script property value (last write wins)."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO properties (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value)
        )
        conn.commit()


def insert_issue(label: str, subject_key: str, category: IssueCategory, details: str,
                 created_at: datetime, db_path: Optional[str] = None) -> int:
    """Append one row to the issue log. Errors propagate to the caller."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO issue_log (label, subject_key, category, resolved, details, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (label, subject_key, category.value, False, details, created_at.isoformat())
        )
        conn.commit()
        return cursor.lastrowid


def _row_to_entry(row) -> AuditEntry:
    issue_id, label, subject_key, category, resolved, details, created_at = row
    return AuditEntry(
        id=issue_id,
        label=label or "",
        subject_key=subject_key or "",
        category=IssueCategory(category),
        details=details or "",
        created_at=parse_timestamp(created_at) or datetime.min,
        resolved=as_bool(resolved)
    )


def list_issues(category: Optional[IssueCategory] = None, include_resolved: bool = True,
                limit: int = 100, db_path: Optional[str] = None) -> List[AuditEntry]:
    """List issue log entries, newest first."""
    try:
        if limit <= 0:
            return []

        query = "SELECT id, label, subject_key, category, resolved, details, created_at FROM issue_log"
        clauses, params = [], []
        if category is not None:
            clauses.append("category = ?")
            params.append(category.value)
        if not include_resolved:
            clauses.append("resolved = 0")
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [_row_to_entry(row) for row in cursor.fetchall()]
    except Exception as e:
        logger.error(f"Failed to list issues: {e}")
        return []


def resolve_issue(issue_id: int, db_path: Optional[str] = None) -> bool:
    """Mark an issue resolved. Returns False if no such open issue exists."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE issue_log SET resolved = 1 WHERE id = ? AND resolved = 0",
                (issue_id,)
            )
            conn.commit()
            return cursor.rowcount > 0
    except Exception as e:
        logger.error(f"Failed to resolve issue {issue_id}: {e}")
        return False


def count_open_issues(db_path: Optional[str] = None) -> int:
    """Count unresolved issue log entries."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM issue_log WHERE resolved = 0")
            result = cursor.fetchone()
            return result[0] if result else 0
    except Exception as e:
        logger.error(f"Failed to count open issues: {e}")
        return 0
