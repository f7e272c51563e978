"""
Grid table store persisted in a relational database.

Each grid table is one row in ``grid_tables`` (holding its header) plus
one ``grid_rows`` record per data row. Row numbers follow spreadsheet
conventions: the header is row 1, the first data row is row 2.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, List, Optional, Sequence

from shipflow.errors import StoreError, TableNotFoundError
from shipflow.interfaces import TableStore
from shipflow.models import CellUpdate, Table
from shipflow.storage.connection import DatabaseManager
from shipflow.storage.sqlite_connection import SQLiteManager

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 2


def encode_cell(value: Any) -> Any:
    """Make a cell JSON-safe, tagging dates so they survive a round trip."""
    if isinstance(value, datetime):
        return {'$datetime': value.isoformat()}
    if isinstance(value, date):
        return {'$date': value.isoformat()}
    return value


def decode_cell(value: Any) -> Any:
    if isinstance(value, dict):
        if '$datetime' in value:
            return datetime.fromisoformat(value['$datetime'])
        if '$date' in value:
            return date.fromisoformat(value['$date'])
    return value


def encode_row(row: Sequence[Any]) -> str:
    return json.dumps([encode_cell(cell) for cell in row], ensure_ascii=False)


def decode_row(payload: str) -> List[Any]:
    return [decode_cell(cell) for cell in json.loads(payload)]


class SQLGridStore(TableStore):
    """TableStore over any manager exposing ``transaction()`` and ``placeholder``."""

    def __init__(self, manager):
        self.manager = manager
        self.p = manager.placeholder

    def initialize(self, table_names: Sequence[str] = ()) -> None:
        """Create the schema and any missing tables."""
        self.manager.initialize_schema()
        for name in table_names:
            self.create_table(name)

    def create_table(self, name: str) -> None:
        if self.table_exists(name):
            return
        with self.manager.transaction() as cursor:
            cursor.execute(
                f"INSERT INTO grid_tables (name, headers) VALUES ({self.p}, {self.p})",
                (name, '[]')
            )
        logger.info(f'Created table "{name}"')

    def table_exists(self, name: str) -> bool:
        with self.manager.transaction() as cursor:
            cursor.execute(f"SELECT 1 FROM grid_tables WHERE name = {self.p}", (name,))
            return cursor.fetchone() is not None

    def _read_headers(self, cursor, name: str) -> List[str]:
        cursor.execute(f"SELECT headers FROM grid_tables WHERE name = {self.p}", (name,))
        result = cursor.fetchone()
        if result is None:
            raise TableNotFoundError(name)
        return json.loads(result[0])

    def _last_row_number(self, cursor, name: str) -> int:
        cursor.execute(
            f"SELECT MAX(row_number) FROM grid_rows WHERE table_name = {self.p}",
            (name,)
        )
        result = cursor.fetchone()
        if result is None or result[0] is None:
            return FIRST_DATA_ROW - 1
        return result[0]

    def read_table(self, name: str) -> Table:
        with self.manager.transaction() as cursor:
            headers = self._read_headers(cursor, name)
            cursor.execute(
                f"SELECT cells FROM grid_rows WHERE table_name = {self.p} ORDER BY row_number",
                (name,)
            )
            rows = [decode_row(record[0]) for record in cursor.fetchall()]

        return Table(headers=headers, rows=rows)

    def append_rows(self, name: str, rows: Sequence[Sequence[Any]], headers: Optional[Sequence[str]] = None) -> None:
        try:
            with self.manager.transaction() as cursor:
                existing_headers = self._read_headers(cursor, name)
                last_row = self._last_row_number(cursor, name)

                if headers and not existing_headers and last_row < FIRST_DATA_ROW:
                    cursor.execute(
                        f"UPDATE grid_tables SET headers = {self.p} WHERE name = {self.p}",
                        (json.dumps(list(headers), ensure_ascii=False), name)
                    )

                params = [
                    (name, last_row + offset, encode_row(row))
                    for offset, row in enumerate(rows, start=1)
                ]
                if params:
                    cursor.executemany(
                        f"INSERT INTO grid_rows (table_name, row_number, cells) VALUES ({self.p}, {self.p}, {self.p})",
                        params
                    )
        except TableNotFoundError:
            raise
        except Exception as e:
            raise StoreError(f'Failed to append rows to "{name}": {e}') from e

        logger.debug(f'Appended {len(rows)} rows to "{name}"')

    def update_cells(self, name: str, updates: Sequence[CellUpdate]) -> None:
        if not updates:
            return

        try:
            with self.manager.transaction() as cursor:
                headers = self._read_headers(cursor, name)
                pending = {}

                for update in updates:
                    if update.row == 1:
                        headers = _set_cell(headers, update.column, update.value)
                        continue

                    if update.row not in pending:
                        cursor.execute(
                            f"SELECT cells FROM grid_rows WHERE table_name = {self.p} AND row_number = {self.p}",
                            (name, update.row)
                        )
                        record = cursor.fetchone()
                        if record is None:
                            raise StoreError(f'Row {update.row} does not exist in "{name}"')
                        pending[update.row] = decode_row(record[0])

                    pending[update.row] = _set_cell(pending[update.row], update.column, update.value)

                cursor.execute(
                    f"UPDATE grid_tables SET headers = {self.p} WHERE name = {self.p}",
                    (json.dumps(headers, ensure_ascii=False), name)
                )
                cursor.executemany(
                    f"UPDATE grid_rows SET cells = {self.p} WHERE table_name = {self.p} AND row_number = {self.p}",
                    [(encode_row(row), name, number) for number, row in pending.items()]
                )
        except (TableNotFoundError, StoreError):
            raise
        except Exception as e:
            raise StoreError(f'Failed to update cells in "{name}": {e}') from e

    def rewrite_table(self, name: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        try:
            with self.manager.transaction() as cursor:
                self._read_headers(cursor, name)
                cursor.execute(f"DELETE FROM grid_rows WHERE table_name = {self.p}", (name,))
                cursor.execute(
                    f"UPDATE grid_tables SET headers = {self.p} WHERE name = {self.p}",
                    (json.dumps(list(headers), ensure_ascii=False), name)
                )
                params = [
                    (name, FIRST_DATA_ROW + offset, encode_row(row))
                    for offset, row in enumerate(rows)
                ]
                if params:
                    cursor.executemany(
                        f"INSERT INTO grid_rows (table_name, row_number, cells) VALUES ({self.p}, {self.p}, {self.p})",
                        params
                    )
        except TableNotFoundError:
            raise
        except Exception as e:
            raise StoreError(f'Failed to rewrite "{name}": {e}') from e

        logger.info(f'Rewrote "{name}" with {len(rows)} rows')


def _set_cell(row: List[Any], column: int, value: Any) -> List[Any]:
    """Set a 1-based column, padding the row with empty cells as needed."""
    row = list(row)
    while len(row) < column:
        row.append('')
    row[column - 1] = value
    return row


class SQLiteTableStore(SQLGridStore):
    """Grid store in a local SQLite file."""

    def __init__(self, db_path: str = None):
        super().__init__(SQLiteManager(db_path))


class PostgresTableStore(SQLGridStore):
    """Grid store in PostgreSQL through a pooled connection manager."""

    def __init__(self, database_url: str):
        super().__init__(DatabaseManager(database_url))

    def close(self) -> None:
        self.manager.close_all_connections()
