"""
In-process grid store, used for dry runs and tests.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence

from shipflow.errors import StoreError, TableNotFoundError
from shipflow.interfaces import TableStore
from shipflow.models import CellUpdate, Table

logger = logging.getLogger(__name__)


class InMemoryTableStore(TableStore):
    """Keeps every grid table in a dict of header/row lists."""

    def __init__(self, tables: Optional[Dict[str, Table]] = None):
        self._tables: Dict[str, Table] = {}
        for name, table in (tables or {}).items():
            self._tables[name] = Table(headers=list(table.headers), rows=[list(r) for r in table.rows])

    def create_table(self, name: str, headers: Sequence[str] = (), rows: Sequence[Sequence[Any]] = ()) -> None:
        self._tables[name] = Table(headers=list(headers), rows=[list(r) for r in rows])

    def _get(self, name: str) -> Table:
        try:
            return self._tables[name]
        except KeyError:
            raise TableNotFoundError(name)

    def table_exists(self, name: str) -> bool:
        return name in self._tables

    def read_table(self, name: str) -> Table:
        return copy.deepcopy(self._get(name))

    def append_rows(self, name: str, rows: Sequence[Sequence[Any]], headers: Optional[Sequence[str]] = None) -> None:
        table = self._get(name)
        if headers and table.is_empty:
            table.headers = list(headers)
        table.rows.extend(list(row) for row in rows)

    def update_cells(self, name: str, updates: Sequence[CellUpdate]) -> None:
        table = self._get(name)
        missing = [u.row for u in updates if u.row - 2 >= len(table.rows)]
        if missing:
            raise StoreError(f'Row {missing[0]} does not exist in "{name}"')

        for update in updates:
            if update.row == 1:
                target: List[Any] = table.headers
            else:
                target = table.rows[update.row - 2]

            while len(target) < update.column:
                target.append('')
            target[update.column - 1] = update.value

    def rewrite_table(self, name: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self._get(name)
        self._tables[name] = Table(headers=list(headers), rows=[list(r) for r in rows])
