"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Admin registry - the set of principals allowed to grant gate overrides.
"""

from typing import Iterable, List, Optional

from .config import ADMIN_PROPERTY_KEY, DEFAULT_ADMIN
from .dao import get_property, set_property

from util.logging import logger


def _normalize(principal: str) -> str:
    return principal.strip().lower()


def parse_admin_list(raw: Optional[str]) -> List[str]:
    """Split a comma-separated property into unique, normalized principals."""
    admins = []
    for part in (raw or "").split(","):
        principal = _normalize(part)
        if principal and principal not in admins:
            admins.append(principal)
    return admins


class AdminRegistry:
    """Persisted admin list, passed explicitly to whatever needs it.

    The list lives in a single string property. When that property is unset or
    empty, the first read bootstraps it to ``default_admin``.
    """

    def __init__(self, db_path: Optional[str] = None, default_admin: str = DEFAULT_ADMIN,
                 property_key: str = ADMIN_PROPERTY_KEY):
        self.db_path = db_path
        self.default_admin = _normalize(default_admin)
        self.property_key = property_key

    def get_admins(self) -> List[str]:
        admins = parse_admin_list(get_property(self.property_key, self.db_path))
        if not admins:
            admins = [self.default_admin]
            set_property(self.property_key, self.default_admin, self.db_path)
            logger.info(f"Admin registry bootstrapped with {self.default_admin}")
        return admins

    def set_admins(self, principals: Iterable[str]) -> List[str]:
        admins = parse_admin_list(",".join(principals))
        if not admins:
            raise ValueError("Admin list cannot be empty")
        set_property(self.property_key, ",".join(admins), self.db_path)
        logger.log_operation("admins.set", "success", {"count": len(admins)})
        return admins

    def is_admin(self, principal: Optional[str]) -> bool:
        if not principal or not principal.strip():
            return False
        return _normalize(principal) in self.get_admins()


class StaticAdminRegistry(AdminRegistry):
    """Fixed in-memory admin set for tests and offline runs."""

    def __init__(self, admins: Iterable[str]):
        super().__init__(default_admin=DEFAULT_ADMIN)
        self._admins = parse_admin_list(",".join(admins)) or [self.default_admin]

    def get_admins(self) -> List[str]:
        return list(self._admins)

    def set_admins(self, principals: Iterable[str]) -> List[str]:
        admins = parse_admin_list(",".join(principals))
        if not admins:
            raise ValueError("Admin list cannot be empty")
        self._admins = admins
        return list(admins)
