from __future__ import annotations

import re

import pytest

from shipflow.errors import ColumnNotFoundError
from shipflow.processing.cleaning import CleaningEngine, is_unprocessed, lookup_vendor_tier, processed_stamp

STAMP = re.compile(r'^Processed on \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$')


def raw_row(name='Widget', tier='TIER 2', status='', sender='acme@example.com', original_row=2):
    return [status, '2024-05-01 09:30:00', sender, 'Labels', 'labels.csv', original_row, name, tier]


@pytest.fixture()
def engine(store, config) -> CleaningEngine:
    return CleaningEngine(store, config)


@pytest.mark.parametrize("value, expected", [
    ('TIER 1', 'A'), ('TIER 2', 'B'), ('TIER 3', 'C'), ('TIER 4', 'C'),
    ('TIER 5', 'D'), (' TIER 6 ', 'D'), ('TIER 7', 'N/A'), ('', 'N/A'), (None, 'N/A'),
])
def test_lookup_vendor_tier(config, value, expected) -> None:
    assert lookup_vendor_tier(value, config.data.vendor_tier_map) == expected


def test_status_helpers() -> None:
    assert is_unprocessed('')
    assert is_unprocessed('   ')
    assert is_unprocessed(None)
    assert not is_unprocessed('Processed on 2024-05-01 10:00:00')


def test_identical_rows_collapse_and_both_are_marked(engine, store, config, raw_headers) -> None:
    store.create_table(config.sheets.raw_data, raw_headers, [
        raw_row(original_row=2),
        raw_row(original_row=3),
    ])

    result = engine.clean()

    clean = store.read_table(config.sheets.clean_data)
    raw = store.read_table(config.sheets.raw_data)
    assert result.rows_added == 1
    assert result.rows_marked_processed == 2
    assert clean.headers == raw_headers + ['Vendor Tier']
    assert clean.rows == [[''] + raw_row()[1:] + ['B']]
    assert all(STAMP.match(r[0]) for r in raw.rows)


def test_second_pass_is_a_no_op(engine, store, config, raw_headers) -> None:
    store.create_table(config.sheets.raw_data, raw_headers, [raw_row(), raw_row(name='Gadget', tier='TIER 5')])

    engine.clean()
    snapshot = store.read_table(config.sheets.clean_data)
    result = engine.clean()

    assert result.rows_added == 0
    assert result.rows_marked_processed == 0
    assert store.read_table(config.sheets.clean_data) == snapshot


def test_rows_already_in_clean_store_are_not_added(engine, store, config, raw_headers) -> None:
    store.create_table(config.sheets.raw_data, raw_headers, [raw_row()])
    engine.clean()

    # Same data arriving again from a different sender and source row
    store.append_rows(config.sheets.raw_data, [raw_row(sender='other@example.com', original_row=7)])
    result = engine.clean()

    assert result.rows_added == 0
    assert result.rows_marked_processed == 1
    assert len(store.read_table(config.sheets.clean_data).rows) == 1
    assert all(STAMP.match(r[0]) for r in store.read_table(config.sheets.raw_data).rows)


def test_processed_rows_are_skipped(engine, store, config, raw_headers) -> None:
    store.create_table(config.sheets.raw_data, raw_headers, [
        raw_row(status='Processed on 2024-04-30 08:00:00'),
        raw_row(name='Gadget'),
    ])

    result = engine.clean()

    raw = store.read_table(config.sheets.raw_data)
    assert result.rows_added == 1
    assert raw.rows[0][0] == 'Processed on 2024-04-30 08:00:00'
    assert STAMP.match(raw.rows[1][0])
    assert store.read_table(config.sheets.clean_data).rows[0][6] == 'Gadget'


def test_short_rows_are_padded_before_enrichment(engine, store, config, raw_headers) -> None:
    store.create_table(config.sheets.raw_data, raw_headers, [raw_row()[:7]])

    engine.clean()

    clean_row = store.read_table(config.sheets.clean_data).rows[0]
    assert clean_row[-2:] == ['', 'N/A']
    assert len(clean_row) == len(raw_headers) + 1


def test_explicit_compare_columns(engine, store, config, raw_headers) -> None:
    config.data.duplicate_check_columns = ['Name']
    store.create_table(config.sheets.raw_data, raw_headers, [
        raw_row(name='Widget', tier='TIER 1'),
        raw_row(name='Widget', tier='TIER 6'),
    ])

    assert engine.clean().rows_added == 1


def test_unresolvable_compare_columns_keep_every_row(engine, store, config, raw_headers) -> None:
    config.data.duplicate_check_columns = ['Sender', 'Nonexistent']
    store.create_table(config.sheets.raw_data, raw_headers, [raw_row(), raw_row()])

    assert engine.clean().rows_added == 2


def test_duplicate_check_disabled(engine, store, config, raw_headers) -> None:
    config.data.duplicate_check = False
    store.create_table(config.sheets.raw_data, raw_headers, [raw_row(), raw_row()])

    result = engine.clean()

    assert result.rows_added == 2
    assert result.rows_marked_processed == 2


def test_empty_raw_store(engine) -> None:
    result = engine.clean()
    assert (result.rows_added, result.rows_marked_processed) == (0, 0)


def test_missing_tier_column_is_fatal(engine, store, config) -> None:
    store.create_table(config.sheets.raw_data, ['Status', 'Ingest Date', 'Sender', 'Subject', 'Filename', 'Original Row', 'Name'],
                       [['', 'd', 's', 'subj', 'f', 2, 'Widget']])

    with pytest.raises(ColumnNotFoundError, match='Tier'):
        engine.clean()

    assert store.read_table(config.sheets.clean_data).rows == []
    assert store.read_table(config.sheets.raw_data).rows[0][0] == ''


def test_processed_stamp_format() -> None:
    from datetime import datetime
    assert processed_stamp(datetime(2024, 5, 1, 7, 8, 9)) == 'Processed on 2024-05-01 07:08:09'
