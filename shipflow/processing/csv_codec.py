"""
Quote-aware CSV parsing and serialization.
"""

import io
import csv
import logging
from datetime import date, datetime
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)

QUOTE = '"'
CSV_CONTENT_TYPES = ('text/csv', 'application/csv')
PDF_CONTENT_TYPES = ('application/pdf',)


def is_csv_attachment(filename: Optional[str], content_type: Optional[str] = None) -> bool:
    """Check if an attachment is a CSV file by name or content type."""
    if filename and filename.lower().endswith('.csv'):
        return True
    return (content_type or '').lower() in CSV_CONTENT_TYPES


def is_pdf_attachment(filename: Optional[str], content_type: Optional[str] = None) -> bool:
    if (content_type or '').lower() in PDF_CONTENT_TYPES:
        return True
    return bool(filename and filename.lower().endswith('.pdf'))


def parse_csv_line(line: str, delimiter: str = ',') -> List[str]:
    """Split one record into trimmed fields, honouring quoted delimiters."""
    fields = []
    current = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]

        if char == QUOTE:
            if in_quotes and i + 1 < len(line) and line[i + 1] == QUOTE:
                # Escaped quote inside a quoted field
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append(''.join(current).strip())
            current = []
        else:
            current.append(char)

        i += 1

    fields.append(''.join(current).strip())
    return fields


def _split_records(lines: List[str]) -> List[str]:
    """Group physical lines into records, keeping line breaks that sit inside quotes.

    A line whose quote never closes is kept as a record on its own.
    """
    # Quote parity before each line; a record closes where the parity returns
    parity = [0]
    for line in lines:
        parity.append(parity[-1] ^ (line.count(QUOTE) & 1))

    # next_index[p][k]: first position >= k whose parity is p
    size = len(lines)
    next_index = [[None] * (size + 2), [None] * (size + 2)]
    for k in range(size, -1, -1):
        for p in (0, 1):
            next_index[p][k] = k if parity[k] == p else next_index[p][k + 1]

    records = []
    i = 0
    while i < size:
        if not lines[i].strip():
            i += 1
            continue

        end = next_index[parity[i]][i + 1]
        if end is None:
            logger.warning(f"Unterminated quote in CSV line {i + 1}, parsing it on its own")
            end = i + 1

        records.append('\n'.join(lines[i:end]))
        i = end

    return records


def parse_csv_text(text: str, delimiter: str = ',') -> List[List[str]]:
    """Parse delimited text into rows; blank lines are dropped."""
    if not text:
        return []
    return [parse_csv_line(record, delimiter) for record in _split_records(text.splitlines())]


def _format_cell(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.strftime('%Y-%m-%d')
    return value


def serialize_csv(headers: Sequence[Any], rows: Sequence[Sequence[Any]], delimiter: str = ',') -> str:
    """Render headers and rows as CSV text joined by newlines."""
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, lineterminator='\n', quoting=csv.QUOTE_MINIMAL)
    writer.writerow([_format_cell(h) for h in headers])
    for row in rows:
        writer.writerow([_format_cell(cell) for cell in row])

    text = output.getvalue()
    return text[:-1] if text.endswith('\n') else text


def decode_csv_bytes(content: bytes) -> str:
    """Decode attachment bytes as UTF-8, tolerating a BOM and bad bytes."""
    return content.decode('utf-8-sig', errors='replace')
