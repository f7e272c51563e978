"""
Cleaning stage: enrich unprocessed raw rows, drop duplicates against the
clean store, append survivors and mark the raw rows processed.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Sequence

from shipflow.config import PipelineConfig
from shipflow.errors import ColumnNotFoundError
from shipflow.ingestion.raw_writer import fit_row
from shipflow.interfaces import TableStore
from shipflow.models import CellUpdate, CleaningResult, RAW_METADATA_WIDTH, STATUS_COLUMN
from shipflow.processing.signature import SignatureEngine

logger = logging.getLogger(__name__)

# Raw store data rows start below the header row
FIRST_DATA_ROW = 2


def lookup_vendor_tier(value: Any, tier_map: Dict[str, str], default: str = 'N/A') -> str:
    """Map a raw tier cell to its vendor grade."""
    if value is None:
        return default
    return tier_map.get(str(value).strip(), default)


def is_unprocessed(status: Any) -> bool:
    return status is None or str(status).strip() == ''


def processed_stamp(timestamp: datetime) -> str:
    return f"Processed on {timestamp.strftime('%Y-%m-%d %H:%M:%S')}"


class CleaningEngine:
    """Promotes unprocessed raw rows into the clean store exactly once."""

    def __init__(self, store: TableStore, config: PipelineConfig):
        self.store = store
        self.config = config
        self.raw_table = config.sheets.raw_data
        self.clean_table = config.sheets.clean_data

    def _signature_engine(self) -> SignatureEngine:
        columns = self.config.data.duplicate_check_columns
        return SignatureEngine(RAW_METADATA_WIDTH, columns, default_tz=self.config.tz)

    def enrich(self, rows: Sequence[Sequence[Any]], headers: List[str]) -> List[List[Any]]:
        """Append the vendor tier to each row, padded to the raw header width."""
        tier_index = headers.index(self.config.data.tier_column_name)
        tier_map = self.config.data.vendor_tier_map
        default = self.config.data.vendor_tier_default

        enriched = []
        for row in rows:
            row = fit_row(row, len(headers))
            row.append(lookup_vendor_tier(row[tier_index], tier_map, default))
            enriched.append(row)
        return enriched

    def clean(self) -> CleaningResult:
        """Run one cleaning pass over the raw store."""
        raw = self.store.read_table(self.raw_table)
        if not raw.rows:
            logger.info("No raw data to clean")
            return CleaningResult()

        status_index = raw.column_index(STATUS_COLUMN)
        if status_index == -1:
            raise ColumnNotFoundError(STATUS_COLUMN, self.raw_table)
        if raw.column_index(self.config.data.tier_column_name) == -1:
            raise ColumnNotFoundError(self.config.data.tier_column_name, self.raw_table)

        pending_rows = []
        pending_numbers = []
        for offset, row in enumerate(raw.rows):
            status = row[status_index] if status_index < len(row) else ''
            if is_unprocessed(status):
                pending_rows.append(row)
                pending_numbers.append(offset + FIRST_DATA_ROW)

        if not pending_rows:
            logger.info("No new raw data to process")
            return CleaningResult()

        logger.info(f"Found {len(pending_rows)} unprocessed raw rows")

        candidates = self.enrich(pending_rows, raw.headers)
        survivors = self._deduplicate(candidates, raw.headers)

        logger.info(f"Found {len(survivors)} unique new rows to add")

        if survivors:
            clean_headers = list(raw.headers) + [self.config.data.vendor_tier_column_name]
            self.store.append_rows(self.clean_table, survivors, headers=clean_headers)

        stamp = processed_stamp(datetime.now(self.config.tz))
        updates = [
            CellUpdate(row=number, column=status_index + 1, value=stamp)
            for number in pending_numbers
        ]
        self.store.update_cells(self.raw_table, updates)
        logger.info(f"Updated status for {len(updates)} rows in '{self.raw_table}'")

        return CleaningResult(rows_added=len(survivors), rows_marked_processed=len(updates))

    def _deduplicate(self, candidates: List[List[Any]], raw_headers: List[str]) -> List[List[Any]]:
        if not self.config.data.duplicate_check:
            logger.info("Duplicate check disabled, keeping every row")
            return candidates

        existing = self.store.read_table(self.clean_table)
        headers = existing.headers or (list(raw_headers) + [self.config.data.vendor_tier_column_name])

        engine = self._signature_engine()
        columns = engine.resolve_columns(headers)
        seen = engine.existing_signatures(existing.rows, columns)
        logger.debug(f"Loaded {len(seen)} existing signatures from '{self.clean_table}'")

        return engine.unique_rows(candidates, seen, columns)
