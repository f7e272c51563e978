from __future__ import annotations

from datetime import date, datetime

import pytest
import pytz

from shipflow.errors import StoreError, TableNotFoundError
from shipflow.models import CellUpdate
from shipflow.storage.memory_store import InMemoryTableStore
from shipflow.storage.sql_store import SQLiteTableStore, decode_cell, encode_cell

TABLE = 'Raw Data'


@pytest.fixture(params=['memory', 'sqlite'])
def grid_store(request, tmp_path):
    if request.param == 'memory':
        s = InMemoryTableStore()
        s.create_table(TABLE)
    else:
        s = SQLiteTableStore(str(tmp_path / 'db' / 'grid.db'))
        s.initialize([TABLE])
    return s


def test_new_table_is_empty(grid_store) -> None:
    assert grid_store.table_exists(TABLE)
    assert grid_store.read_table(TABLE).is_empty


def test_missing_table_raises(grid_store) -> None:
    assert not grid_store.table_exists('Nope')
    with pytest.raises(TableNotFoundError):
        grid_store.read_table('Nope')


def test_headers_written_only_on_first_append(grid_store) -> None:
    grid_store.append_rows(TABLE, [['a', 1]], headers=['Col', 'Num'])
    grid_store.append_rows(TABLE, [['b', 2]], headers=['Other', 'Headers'])

    table = grid_store.read_table(TABLE)
    assert table.headers == ['Col', 'Num']
    assert table.rows == [['a', 1], ['b', 2]]


def test_update_cells_uses_sheet_row_numbers(grid_store) -> None:
    grid_store.append_rows(TABLE, [['', 'x'], ['', 'y']], headers=['Status', 'Value'])

    grid_store.update_cells(TABLE, [
        CellUpdate(row=2, column=1, value='done'),
        CellUpdate(row=3, column=4, value='wide'),
    ])

    rows = grid_store.read_table(TABLE).rows
    assert rows[0] == ['done', 'x']
    assert rows[1] == ['', 'y', '', 'wide']


def test_update_cell_header_row(grid_store) -> None:
    grid_store.append_rows(TABLE, [['x']], headers=['Status'])

    grid_store.update_cell(TABLE, 1, 2, 'Extra')

    assert grid_store.read_table(TABLE).headers == ['Status', 'Extra']


def test_update_missing_row_raises(grid_store) -> None:
    grid_store.append_rows(TABLE, [['x']], headers=['Status'])

    with pytest.raises(StoreError):
        grid_store.update_cells(TABLE, [CellUpdate(row=5, column=1, value='done')])


def test_failed_batch_leaves_rows_unchanged(grid_store) -> None:
    grid_store.append_rows(TABLE, [['', 'x']], headers=['Status', 'Value'])

    with pytest.raises(StoreError):
        grid_store.update_cells(TABLE, [
            CellUpdate(row=1, column=3, value='Extra'),
            CellUpdate(row=2, column=1, value='done'),
            CellUpdate(row=9, column=1, value='done'),
        ])

    table = grid_store.read_table(TABLE)
    assert table.headers == ['Status', 'Value']
    assert table.rows == [['', 'x']]


def test_rewrite_table_replaces_content(grid_store) -> None:
    grid_store.append_rows(TABLE, [['a'], ['b'], ['c']], headers=['Col'])

    grid_store.rewrite_table(TABLE, ['Col'], [['c']])
    grid_store.append_rows(TABLE, [['d']])

    assert grid_store.read_table(TABLE).rows == [['c'], ['d']]


def test_dates_survive_storage(grid_store) -> None:
    stamp = datetime(2024, 5, 1, 9, 30, tzinfo=pytz.UTC)
    grid_store.append_rows(TABLE, [[stamp, date(2024, 5, 2), None, 1.5]], headers=['When', 'Day', 'Empty', 'Num'])

    assert grid_store.read_table(TABLE).rows[0] == [stamp, date(2024, 5, 2), None, 1.5]


def test_cell_codec_leaves_plain_values() -> None:
    assert encode_cell('text') == 'text'
    assert decode_cell({'other': 1}) == {'other': 1}
    assert decode_cell(encode_cell(datetime(2024, 1, 1, 12))) == datetime(2024, 1, 1, 12)


def test_sqlite_data_persists_across_instances(tmp_path) -> None:
    path = str(tmp_path / 'grid.db')
    SQLiteTableStore(path).initialize([TABLE])
    SQLiteTableStore(path).append_rows(TABLE, [['a']], headers=['Col'])

    reopened = SQLiteTableStore(path)
    reopened.initialize([TABLE])

    assert reopened.read_table(TABLE).rows == [['a']]
