"""
SQLite connection management for the grid table store.
"""

import os
import logging
import sqlite3
from contextlib import contextmanager

logger = logging.getLogger(__name__)

GRID_SCHEMA_SQLITE = """
CREATE TABLE IF NOT EXISTS grid_tables (
    name TEXT PRIMARY KEY,
    headers TEXT NOT NULL DEFAULT '[]',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS grid_rows (
    table_name TEXT NOT NULL,
    row_number INTEGER NOT NULL,
    cells TEXT NOT NULL,
    PRIMARY KEY (table_name, row_number),
    FOREIGN KEY (table_name) REFERENCES grid_tables(name) ON DELETE CASCADE
);
"""


class SQLiteManager:
    """SQLite database manager backing the grid store."""

    placeholder = '?'

    def __init__(self, db_path: str = None):
        self.db_path = db_path or os.getenv('SQLITE_DB_PATH', 'data/shipflow.db')
        self._ensure_db_directory()

    def _ensure_db_directory(self):
        """Ensure the database directory exists."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @contextmanager
    def get_connection(self):
        """Get a database connection."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row  # Enable dictionary-like access
            conn.execute('PRAGMA foreign_keys = ON')
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    @contextmanager
    def transaction(self):
        """Yield a cursor; commit on success, roll back on error."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            yield cursor
            conn.commit()

    def initialize_schema(self) -> None:
        """Create the grid tables if they do not exist."""
        with self.get_connection() as conn:
            conn.executescript(GRID_SCHEMA_SQLITE)
            conn.commit()
        logger.info("SQLite schema initialized successfully")
