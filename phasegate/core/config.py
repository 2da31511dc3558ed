"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Environment-driven configuration for the phase gate engine.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/phasegate.db")

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Admin registry (persisted in the properties table as a comma-separated list)
DEFAULT_ADMIN = os.getenv("DEFAULT_ADMIN", "admin@example.com")
ADMIN_PROPERTY_KEY = os.getenv("ADMIN_PROPERTY_KEY", "ADMIN_EMAILS")

# Override window in hours; expiry is checked lazily against the wall clock
OVERRIDE_WINDOW_HOURS = int(os.getenv("OVERRIDE_WINDOW_HOURS", "24"))

# Collection (table) names routed by the event router
PROJECTS_COLLECTION = os.getenv("PROJECTS_COLLECTION", "projects")
TASKS_COLLECTION = os.getenv("TASKS_COLLECTION", "tasks")

# Audit sink and HTTP surface
AUDIT_ENABLED = os.getenv("AUDIT_ENABLED", "true").lower() == "true"
API_ENABLED = os.getenv("API_ENABLED", "true").lower() == "true"
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8080"))

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def get_db_path() -> str:
    """Current database path; read at call time so tests can repoint it."""
    return os.getenv("DB_PATH", DB_PATH)


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def is_audit_enabled():
    """Check if the audit sink writes to the issue log."""
    return os.getenv("AUDIT_ENABLED", "true").lower() == "true"


def validate_engine_config():
    """Validate engine configuration and return any issues."""
    issues = []

    if OVERRIDE_WINDOW_HOURS < 1:
        issues.append("OVERRIDE_WINDOW_HOURS must be >= 1")

    if not DEFAULT_ADMIN or not DEFAULT_ADMIN.strip():
        issues.append("DEFAULT_ADMIN must not be empty")

    if "," in DEFAULT_ADMIN:
        issues.append("DEFAULT_ADMIN must be a single principal")

    if PROJECTS_COLLECTION == TASKS_COLLECTION:
        issues.append("PROJECTS_COLLECTION and TASKS_COLLECTION must differ")

    if not 0 < API_PORT < 65536:
        issues.append(f"Invalid API_PORT: {API_PORT}")

    return issues
