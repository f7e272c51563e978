"""
Structural row signatures used as the sole duplicate test.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

import pytz

from shipflow.processing.normalizer import normalize_value

logger = logging.getLogger(__name__)

Signature = Tuple[Optional[str], ...]


class SignatureEngine:
    """Computes positional signatures over a row's data columns.

    Columns inside the metadata prefix never participate. With no explicit
    compare columns, every column from the prefix boundary to the end of
    the row is compared.
    """

    def __init__(self, metadata_width: int, compare_columns: Sequence[str] = (), default_tz=pytz.UTC):
        if metadata_width < 0:
            raise ValueError('Metadata width cannot be negative')
        self.metadata_width = metadata_width
        self.compare_columns = list(compare_columns)
        self.default_tz = default_tz

    def resolve_columns(self, headers: Sequence[str]) -> Optional[List[int]]:
        """Resolve compare column names to positions.

        Returns None when every data column is compared.
        """
        if not self.compare_columns:
            return None

        positions = []
        for name in self.compare_columns:
            try:
                index = list(headers).index(name)
            except ValueError:
                logger.warning(f'Duplicate check column "{name}" not found in headers')
                continue

            if index < self.metadata_width:
                logger.warning(f'Duplicate check column "{name}" is a metadata column and will be skipped')
                continue

            positions.append(index)

        if not positions:
            logger.warning('No valid columns found for duplicate checking')

        return positions

    def signature(self, row: Sequence[Any], columns: Optional[List[int]] = None) -> Optional[Signature]:
        """Build the composite key for a row, or None if nothing is comparable."""
        if columns is None:
            columns = range(self.metadata_width, len(row))

        key = tuple(
            normalize_value(row[index], self.default_tz) if index < len(row) else None
            for index in columns
        )

        if not key:
            return None
        return key

    def existing_signatures(self, rows: Iterable[Sequence[Any]], columns: Optional[List[int]] = None) -> Set[Signature]:
        signatures = set()
        for row in rows:
            sig = self.signature(row, columns)
            if sig is not None:
                signatures.add(sig)
        return signatures

    def unique_rows(self, rows: Iterable[Sequence[Any]], seen: Set[Signature], columns: Optional[List[int]] = None) -> List[Sequence[Any]]:
        """Keep rows whose signature is not in ``seen``, first occurrence wins.

        ``seen`` is updated in place with every survivor's signature.
        """
        survivors = []
        for row in rows:
            sig = self.signature(row, columns)
            if sig is None:
                survivors.append(row)
                continue
            if sig in seen:
                continue
            seen.add(sig)
            survivors.append(row)
        return survivors
