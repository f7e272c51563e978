"""
PostgreSQL connection management with connection pooling.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from psycopg2 import pool

from shipflow.errors import ConfigurationError

logger = logging.getLogger(__name__)

GRID_SCHEMA_POSTGRES = [
    """
    CREATE TABLE IF NOT EXISTS grid_tables (
        name TEXT PRIMARY KEY,
        headers TEXT NOT NULL DEFAULT '[]',
        created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS grid_rows (
        table_name TEXT NOT NULL REFERENCES grid_tables(name) ON DELETE CASCADE,
        row_number INTEGER NOT NULL,
        cells TEXT NOT NULL,
        PRIMARY KEY (table_name, row_number)
    )
    """,
]


class DatabaseManager:
    """Manages PostgreSQL connections with connection pooling."""

    placeholder = '%s'

    def __init__(self, database_url: str):
        self.connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self.database_url = database_url
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL is required for the postgres store backend")

    def initialize_pool(self, min_connections: int = 1, max_connections: int = 4) -> None:
        """Initialize the connection pool."""
        try:
            self.connection_pool = pool.ThreadedConnectionPool(
                minconn=min_connections,
                maxconn=max_connections,
                dsn=self.database_url
            )
            logger.info(f"Database connection pool initialized: {min_connections}-{max_connections} connections")
        except Exception as e:
            logger.error(f"Failed to initialize database connection pool: {e}")
            raise

    def get_connection(self):
        """Get a connection from the pool."""
        if not self.connection_pool:
            self.initialize_pool()

        try:
            return self.connection_pool.getconn()
        except Exception as e:
            logger.error(f"Failed to get database connection: {e}")
            raise

    def return_connection(self, connection) -> None:
        """Return a connection to the pool."""
        if self.connection_pool and connection:
            try:
                self.connection_pool.putconn(connection)
            except Exception as e:
                logger.error(f"Failed to return connection to pool: {e}")

    def close_all_connections(self) -> None:
        """Close all connections in the pool."""
        if self.connection_pool:
            try:
                self.connection_pool.closeall()
                logger.info("All database connections closed")
            except Exception as e:
                logger.error(f"Error closing database connections: {e}")

    @contextmanager
    def transaction(self):
        """Yield a cursor; commit on success, roll back on error."""
        connection = None
        try:
            connection = self.get_connection()
            with connection.cursor() as cursor:
                yield cursor
            connection.commit()
        except Exception as e:
            if connection:
                connection.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise
        finally:
            if connection:
                self.return_connection(connection)

    def initialize_schema(self) -> None:
        """Create the grid tables if they do not exist."""
        with self.transaction() as cursor:
            for statement in GRID_SCHEMA_POSTGRES:
                cursor.execute(statement)
        logger.info("PostgreSQL schema initialized successfully")
