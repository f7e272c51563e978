from __future__ import annotations

from unittest.mock import patch

import pytest

from shipflow.errors import ConfigurationError, PipelineLockError
from shipflow.models import CleaningResult
from shipflow.pipeline import Pipeline, RunLock
from tests.fakes import RAW_HEADERS, FakeMessageSource, csv_message


@pytest.fixture()
def source() -> FakeMessageSource:
    return FakeMessageSource([csv_message(1, 'acme@example.com', 'Name,Tier\nWidget,TIER 1\n')])


def test_run_executes_every_stage(config, store, source, delivery) -> None:
    store.create_table(config.sheets.cols_to_send, ['Name', 'Vendor Tier'])

    result = Pipeline(config, store, source=source, delivery=delivery).run()

    assert result.success
    assert result.correlation_id
    assert result.ingestion.rows_appended == 1
    assert result.cleaning.rows_added == 1
    assert result.reporting.sent_count == 1
    assert source.entered == 1


def test_failed_stage_stops_later_stages(config, store, source, delivery) -> None:
    pipeline = Pipeline(config, store, source=source, delivery=delivery)

    with patch('shipflow.pipeline.CleaningEngine.clean', side_effect=RuntimeError('store unavailable')), \
            patch('shipflow.pipeline.ReportingEngine.generate_and_send_reports') as report:
        result = pipeline.run()

    assert not result.success
    assert result.failed_stage == 'cleaning'
    assert result.error == 'store unavailable'
    assert result.ingestion is not None
    assert result.reporting is None
    report.assert_not_called()


def test_missing_source_fails_ingestion(config, store, delivery) -> None:
    result = Pipeline(config, store, delivery=delivery).run()

    assert result.failed_stage == 'ingestion'
    assert 'message source' in result.error


def test_single_stage_runs(config, store) -> None:
    store.create_table(config.sheets.raw_data, RAW_HEADERS, [['', 'd', 's', 'subj', 'f', 2, 'Widget', 'TIER 3']])

    result = Pipeline(config, store).run_cleaning()

    assert result == CleaningResult(rows_added=1, rows_marked_processed=1)

    with pytest.raises(ConfigurationError):
        Pipeline(config, store).run_reporting()


def test_overlapping_run_is_rejected(config, store, source, delivery) -> None:
    pipeline = Pipeline(config, store, source=source, delivery=delivery)
    other = RunLock(config.lock_file)

    with other.hold():
        with pytest.raises(PipelineLockError):
            pipeline.run()

    assert source.marked == []
    assert pipeline.run().ingestion.messages_processed == 1


def test_lock_is_released_after_failure(config) -> None:
    lock = RunLock(config.lock_file)

    with pytest.raises(RuntimeError):
        with lock.hold():
            raise RuntimeError('boom')

    with RunLock(config.lock_file).hold():
        pass


def test_remove_duplicates_defaults_to_raw_table(config, store) -> None:
    store.create_table(config.sheets.raw_data, RAW_HEADERS, [
        ['', 'd1', 'a@example.com', 's', 'f', 2, 'Widget', 'TIER 1'],
        ['', 'd2', 'b@example.com', 's', 'g', 3, 'Widget', 'TIER 1'],
    ])

    result = Pipeline(config, store).remove_duplicates()

    assert result.rows_removed == 1


def test_cleanup_labels(config, store, source) -> None:
    source.marked = [1, 2, 3]

    assert Pipeline(config, store, source=source).cleanup_labels(max_messages=2) == 2
    assert source.marked == [3]

    with pytest.raises(ConfigurationError):
        Pipeline(config, store).cleanup_labels()
