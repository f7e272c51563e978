"""
Pipeline orchestrator: ingestion → cleaning → reporting.
"""

import os
import uuid
import logging
from contextlib import contextmanager
from typing import Optional

from filelock import FileLock, Timeout

from shipflow.config import PipelineConfig
from shipflow.errors import ConfigurationError, PipelineLockError
from shipflow.ingestion.service import IngestionService
from shipflow.interfaces import DeliveryChannel, DocumentTextExtractor, MessageSource, TableStore
from shipflow.models import (
    CleaningResult,
    DedupResult,
    IngestionResult,
    PipelineResult,
    RAW_METADATA_WIDTH,
    ReportRunResult,
)
from shipflow.monitoring.logger_config import OperationLogger
from shipflow.processing.cleaning import CleaningEngine
from shipflow.reporting.service import ReportingEngine
from shipflow.storage.maintenance import remove_duplicates

logger = logging.getLogger(__name__)


class RunLock:
    """Advisory lock preventing overlapping pipeline runs."""

    def __init__(self, lock_file: str, timeout: float = 0):
        lock_dir = os.path.dirname(lock_file)
        if lock_dir:
            os.makedirs(lock_dir, exist_ok=True)
        self.lock_file = lock_file
        self.timeout = timeout
        self._lock = FileLock(lock_file)

    @contextmanager
    def hold(self):
        try:
            self._lock.acquire(timeout=self.timeout)
        except Timeout:
            raise PipelineLockError(f"Another pipeline run holds {self.lock_file}")

        try:
            yield
        finally:
            self._lock.release()


class Pipeline:
    """Sequences the three stages against injected collaborators."""

    def __init__(
        self,
        config: PipelineConfig,
        store: TableStore,
        source: Optional[MessageSource] = None,
        delivery: Optional[DeliveryChannel] = None,
        extractor: Optional[DocumentTextExtractor] = None
    ):
        self.config = config
        self.store = store
        self.source = source
        self.delivery = delivery
        self.extractor = extractor
        self.run_lock = RunLock(config.lock_file, config.lock_timeout_seconds)

    def _ingest(self) -> IngestionResult:
        if self.source is None:
            raise ConfigurationError("A message source is required for ingestion")
        with self.source:
            return IngestionService(self.source, self.store, self.config, self.extractor).ingest()

    def _clean(self) -> CleaningResult:
        return CleaningEngine(self.store, self.config).clean()

    def _report(self) -> ReportRunResult:
        if self.delivery is None:
            raise ConfigurationError("A delivery channel is required for reporting")
        return ReportingEngine(self.store, self.delivery, self.config).generate_and_send_reports()

    def run(self) -> PipelineResult:
        """Run all stages; a failed stage stops the ones after it."""
        result = PipelineResult(correlation_id=str(uuid.uuid4()))
        logger.info(f"Starting shipping data pipeline - Correlation ID: {result.correlation_id}")

        stages = [
            ('ingestion', self._ingest),
            ('cleaning', self._clean),
            ('reporting', self._report),
        ]

        with self.run_lock.hold():
            for name, stage in stages:
                try:
                    with OperationLogger(name, result.correlation_id):
                        setattr(result, name, stage())
                except Exception as e:
                    logger.error(f"Pipeline stopped at {name}: {e}")
                    result.failed_stage = name
                    result.error = str(e)
                    break

        if result.success:
            logger.info("Pipeline completed successfully")
        return result

    def run_ingestion(self) -> IngestionResult:
        with self.run_lock.hold(), OperationLogger('ingestion'):
            return self._ingest()

    def run_cleaning(self) -> CleaningResult:
        with self.run_lock.hold(), OperationLogger('cleaning'):
            return self._clean()

    def run_reporting(self) -> ReportRunResult:
        with self.run_lock.hold(), OperationLogger('reporting'):
            return self._report()

    def remove_duplicates(self, table_name: str = None, metadata_width: int = RAW_METADATA_WIDTH) -> DedupResult:
        """Collapse duplicate rows in a table (the raw store by default)."""
        table_name = table_name or self.config.sheets.raw_data
        with self.run_lock.hold(), OperationLogger('remove_duplicates', table=table_name):
            return remove_duplicates(self.store, table_name, metadata_width)

    def cleanup_labels(self, max_messages: Optional[int] = None) -> int:
        """Clear the processed label so messages are ingested again."""
        if self.source is None:
            raise ConfigurationError("A message source is required to clean up labels")
        with self.run_lock.hold(), self.source:
            return self.source.clear_fetched_marks(max_messages)
