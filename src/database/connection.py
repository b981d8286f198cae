"""
HRMS database connection management.

Provides a single get_db() function that returns a connection
with foreign keys enabled and Row factory set for dict-like access.
"""

import os
import sqlite3
from pathlib import Path

from config.settings import DATABASE_PATH

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def get_db(db_path: str | None = None) -> sqlite3.Connection:
    """Return a SQLite connection with standard config applied.

    DATABASE_PATH is read at call time so tests can point each module
    at its own database file.
    """
    path = db_path or os.getenv("DATABASE_PATH", DATABASE_PATH)
    Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create all tables (idempotent)."""
    conn.executescript(SCHEMA_PATH.read_text())
