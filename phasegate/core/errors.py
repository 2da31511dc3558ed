"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Exception types raised inside a handling pass and converted to audit entries by the router.
"""

from typing import Iterable


class PhaseGateError(Exception):
    """Base class for engine errors."""


class ConfigurationError(PhaseGateError):
    """The store is missing something the engine needs (table, header)."""


class MissingHeadersError(ConfigurationError):
    def __init__(self, collection: str, missing: Iterable[str]):
        self.collection = collection
        self.missing = sorted(missing)
        super().__init__(
            f"Missing required headers in '{collection}': {', '.join(self.missing)}"
        )


class UnknownCollectionError(ConfigurationError):
    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"Unknown collection: '{collection}'")


class RecordNotFoundError(PhaseGateError):
    def __init__(self, collection: str, row_id: int):
        self.collection = collection
        self.row_id = row_id
        super().__init__(f"Row {row_id} not found in '{collection}'")
