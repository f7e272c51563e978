"""
Appends freshly fetched CSV rows to the raw store with provenance columns.
"""

import logging
from typing import Any, List, Sequence

from shipflow.config import PipelineConfig
from shipflow.errors import HeaderMismatchError
from shipflow.interfaces import TableStore
from shipflow.models import AttachmentMetadata, RAW_METADATA_HEADERS, RAW_METADATA_WIDTH

logger = logging.getLogger(__name__)

# Source CSV row numbers count the header as row 1
FIRST_SOURCE_DATA_ROW = 2


def fit_row(row: Sequence[Any], width: int) -> List[Any]:
    """Pad with empty cells or truncate so the row matches the header width."""
    row = list(row)
    if len(row) < width:
        row.extend([''] * (width - len(row)))
    return row[:width]


class RawStoreWriter:
    """Writes tagged, unprocessed rows into the raw store."""

    def __init__(self, store: TableStore, config: PipelineConfig):
        self.store = store
        self.config = config
        self.table_name = config.sheets.raw_data

    def validate_headers(self, csv_headers: Sequence[str], store_headers: Sequence[str]) -> None:
        """Check CSV headers against the store's data headers, position by position."""
        data_headers = list(store_headers[RAW_METADATA_WIDTH:])

        if len(csv_headers) != len(data_headers):
            raise HeaderMismatchError(
                f"Header count mismatch: CSV has {len(csv_headers)} columns, "
                f"table expects {len(data_headers)} columns"
            )

        for i, (csv_header, store_header) in enumerate(zip(csv_headers, data_headers)):
            if str(csv_header or '').strip() != str(store_header or '').strip():
                raise HeaderMismatchError(
                    f'Header mismatch at column {i + 1}: CSV has "{csv_header}", '
                    f'table expects "{store_header}"'
                )

    def append_rows(self, csv_headers: Sequence[str], data_rows: Sequence[Sequence[Any]], metadata: AttachmentMetadata) -> int:
        """Append data rows for one attachment; returns the number written."""
        if not data_rows:
            logger.info(f"No data rows in {metadata.filename}")
            return 0

        existing = self.store.read_table(self.table_name)

        if existing.headers:
            headers = existing.headers
            if self.config.data.header_validation:
                self.validate_headers(csv_headers, headers)
            new_headers = None
        else:
            headers = RAW_METADATA_HEADERS + [str(h).strip() for h in csv_headers]
            new_headers = headers

        width = len(headers)
        new_rows = []
        for index, row in enumerate(data_rows):
            prefix = [
                '',
                metadata.ingest_date,
                metadata.sender,
                metadata.subject,
                metadata.filename,
                index + FIRST_SOURCE_DATA_ROW,
            ]
            new_rows.append(fit_row(prefix + list(row), width))

        self.store.append_rows(self.table_name, new_rows, headers=new_headers)
        logger.info(f"Appended {len(new_rows)} raw rows from {metadata.filename}")
        return len(new_rows)
