"""
Administrative maintenance of grid tables.

Not part of the regular pipeline; run manually to collapse duplicates
that slipped into a table.
"""

import logging

from shipflow.interfaces import TableStore
from shipflow.models import DedupResult
from shipflow.processing.signature import SignatureEngine

logger = logging.getLogger(__name__)


def remove_duplicates(store: TableStore, table_name: str, metadata_width: int = 0) -> DedupResult:
    """Rewrite a table keeping the first occurrence of every data signature.

    Columns before ``metadata_width`` are ignored when comparing rows.
    """
    table = store.read_table(table_name)

    if not table.rows:
        logger.info(f'No data to process in "{table_name}"')
        return DedupResult()

    logger.info(f"Processing {len(table.rows)} rows for duplicates...")

    engine = SignatureEngine(metadata_width)
    unique_rows = engine.unique_rows(table.rows, set())

    result = DedupResult(rows_before=len(table.rows), rows_kept=len(unique_rows))
    logger.info(f"Removed {result.rows_removed} duplicate rows")
    logger.info(f"Keeping {result.rows_kept} unique rows")

    if result.rows_removed:
        store.rewrite_table(table_name, table.headers, unique_rows)

    return result
