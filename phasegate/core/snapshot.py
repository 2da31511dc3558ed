"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Row state snapshot - buffers every mutation of one row and commits minimal diffs once.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from .dao import RecordStore

from util.logging import logger

FieldRef = Union[str, Enum]

_UNSET = object()


def _header(ref: FieldRef) -> str:
    return ref.value if isinstance(ref, Enum) else str(ref)


@dataclass
class CommitResult:
    value_changes: Dict[str, Any]
    note_changes: Dict[str, str]
    writes: int


@dataclass
class RowSnapshot:
    """Working copy of one row's values and notes for a single handling pass.

    Handlers mutate the snapshot, never the store. ``commit`` diffs the working
    state against the initial state and issues at most one value write and one
    note write.
    """

    collection: str
    row_id: int
    initial_values: Dict[str, Any]
    initial_notes: Dict[str, str]
    values: Dict[str, Any] = field(default_factory=dict)
    notes: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.values:
            self.values = dict(self.initial_values)
        if not self.notes:
            self.notes = dict(self.initial_notes)

    @classmethod
    def load(cls, store: RecordStore, row_id: int) -> "RowSnapshot":
        """Capture a row and its notes from the store."""
        return cls(
            collection=store.collection,
            row_id=row_id,
            initial_values=store.read_row(row_id),
            initial_notes=store.read_notes(row_id)
        )

    def get(self, ref: FieldRef) -> Any:
        return self.values.get(_header(ref))

    def set(self, ref: FieldRef, value: Any):
        name = _header(ref)
        if name not in self.values:
            raise KeyError(f"Unknown field '{name}' in {self.collection}")
        self.values[name] = value

    def initial(self, ref: FieldRef) -> Any:
        return self.initial_values.get(_header(ref))

    def get_note(self, ref: FieldRef) -> str:
        return self.notes.get(_header(ref), "")

    def set_note(self, ref: FieldRef, note: Optional[str]):
        self.notes[_header(ref)] = note or ""

    def revert(self, ref: FieldRef, prior: Any = _UNSET):
        """Restore a field to ``prior``, or to its initial value when no prior is given.

        An explicit ``None`` is a real prior: the field is blanked.
        """
        if prior is _UNSET:
            self.set(ref, self.initial(ref))
        else:
            self.set(ref, prior)

    def value_diff(self) -> Dict[str, Any]:
        return {
            name: value for name, value in self.values.items()
            if value != self.initial_values.get(name)
        }

    def note_diff(self) -> Dict[str, str]:
        return {
            name: note for name, note in self.notes.items()
            if (note or "") != (self.initial_notes.get(name) or "")
        }

    @property
    def is_dirty(self) -> bool:
        return bool(self.value_diff() or self.note_diff())

    def commit(self, store: RecordStore) -> CommitResult:
        """Write both diffs; an unchanged pass writes nothing."""
        value_changes = self.value_diff()
        note_changes = self.note_diff()
        writes = 0

        if value_changes:
            store.write_values(self.row_id, value_changes)
            writes += 1
        if note_changes:
            store.write_notes(self.row_id, note_changes)
            writes += 1

        logger.log_commit(self.collection, self.row_id, len(value_changes), len(note_changes))
        return CommitResult(value_changes=value_changes, note_changes=note_changes, writes=writes)
