"""
Core engine scope only. Do not implement beyond this file's responsibilities.
SQLite backing store for the project tracker, its cell notes, issue log and script properties.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional
from .config import get_db_path, ensure_db_directory

REQUIRED_TABLES = ['projects', 'tasks', 'cell_notes', 'issue_log', 'properties']


@contextmanager
def get_db(db_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    path = db_path or get_db_path()
    ensure_db_directory(path)
    conn = sqlite3.connect(path)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None):
    """Initialize the database with required tables."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # One row per project; column order is not significant to the engine
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS projects (
                row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                sfid TEXT,
                project_name TEXT,
                status TEXT,
                last_valid_status TEXT,
                ready_global BOOLEAN DEFAULT FALSE,
                ready_permitting BOOLEAN DEFAULT FALSE,
                ready_scheduled BOOLEAN DEFAULT FALSE,
                ready_inspections BOOLEAN DEFAULT FALSE,
                ready_done BOOLEAN DEFAULT FALSE,
                blocked_since TIMESTAMP,
                override_requested BOOLEAN DEFAULT FALSE,
                override_expires_at TIMESTAMP,
                scheduled_at TIMESTAMP,
                completed_at TIMESTAMP,
                payment_received BOOLEAN DEFAULT FALSE,
                is_duplicate BOOLEAN DEFAULT FALSE,
                last_validated_at TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS tasks (
                row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_sfid TEXT,
                task_name TEXT,
                status TEXT,
                completed_at TIMESTAMP
            )
        ''')

        # Per-cell annotations, keyed the same way the store addresses cells
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS cell_notes (
                collection TEXT NOT NULL,
                row_id INTEGER NOT NULL,
                field TEXT NOT NULL,
                note TEXT,
                PRIMARY KEY (collection, row_id, field)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS issue_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                label TEXT,
                subject_key TEXT,
                category TEXT NOT NULL,
                resolved BOOLEAN DEFAULT FALSE,
                details TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS properties (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_projects_sfid ON projects(sfid)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_issue_log_category ON issue_log(category, resolved)')

        conn.commit()


def health_check(db_path: Optional[str] = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = cursor.fetchall()

            table_names = [table[0] for table in tables]
            return all(table in table_names for table in REQUIRED_TABLES)
    except Exception:
        return False
