"""
Reporting stage: group clean rows by sender, export each group as a CSV
attachment and record every dispatch in the mail log.
"""

import re
import logging
from datetime import datetime
from typing import Any, Dict, List, Sequence

from shipflow.config import PipelineConfig
from shipflow.errors import ColumnNotFoundError
from shipflow.interfaces import DeliveryChannel, TableStore
from shipflow.models import DispatchOutcome, MAIL_LOG_HEADERS, ReportRunResult, Table
from shipflow.processing.csv_codec import serialize_csv

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9_-]')

SUBJECT_TEMPLATE = "Shipping Label for customer: {sender}"

BODY_TEMPLATE = """
Hello,

Please find attached CSV with details of the shipping label for the customer: {sender}
Please generate {row_count} labels accordingly.

Best regards,
{display_name}

---
Auto-generated Message
- Sender: {sender}
- Number of Labels: {row_count}
- Export date: {export_date}
""".strip()


def sanitize_filename(base_name: str, timestamp: datetime, extension: str = 'csv') -> str:
    """Replace unsafe characters and append a minute-resolution timestamp."""
    sanitized = _UNSAFE_FILENAME_CHARS.sub('_', base_name)
    return f"{sanitized}_{timestamp.strftime('%Y-%m-%d_%H-%M')}.{extension}"


def export_column_names(table: Table) -> List[str]:
    """Collect export column names from every non-empty cell, row-major.

    A table holding only a header row lists the names in its header.
    """
    source_rows = table.rows if table.rows else [table.headers]
    names = []
    for row in source_rows:
        for cell in row:
            if cell is None:
                continue
            name = str(cell).strip()
            if name:
                names.append(name)
    return names


def group_rows(rows: Sequence[Sequence[Any]], key_index: int) -> Dict[str, List[Sequence[Any]]]:
    """Partition rows by trimmed key, preserving order; empty keys are dropped."""
    groups: Dict[str, List[Sequence[Any]]] = {}
    for row in rows:
        value = row[key_index] if key_index < len(row) else None
        if value is None:
            continue
        key = str(value).strip()
        if not key:
            continue
        groups.setdefault(key, []).append(row)
    return groups


class ReportingEngine:
    """Exports one CSV artifact per sender group."""

    def __init__(self, store: TableStore, delivery: DeliveryChannel, config: PipelineConfig):
        self.store = store
        self.delivery = delivery
        self.config = config

    def generate_and_send_reports(self) -> ReportRunResult:
        result = ReportRunResult()

        columns_to_send = export_column_names(self.store.read_table(self.config.sheets.cols_to_send))
        if not columns_to_send:
            logger.info("No columns specified for reports")
            return result

        clean = self.store.read_table(self.config.sheets.clean_data)
        if not clean.rows:
            logger.info("No data to report")
            return result

        group_column = self.config.data.group_column_name
        group_index = clean.column_index(group_column)
        if group_index == -1:
            raise ColumnNotFoundError(group_column, self.config.sheets.clean_data)

        indices = []
        for name in columns_to_send:
            index = clean.column_index(name)
            if index == -1:
                logger.debug(f'Export column "{name}" not found, skipping')
                continue
            indices.append(index)
        export_headers = [clean.headers[index] for index in indices]

        groups = group_rows(clean.rows, group_index)
        logger.info(f"Generating reports for {len(groups)} senders")

        for sender, sender_rows in groups.items():
            projected = [
                [row[index] if index < len(row) else '' for index in indices]
                for row in sender_rows
            ]
            result.outcomes.append(self._dispatch(sender, export_headers, projected))

        logger.info(f"Report summary: {result.sent_count} sent, {result.failed_count} failed")
        return result

    def _dispatch(self, sender: str, headers: List[str], rows: List[List[Any]]) -> DispatchOutcome:
        timestamp = datetime.now(self.config.tz)
        filename = sanitize_filename(sender, timestamp)
        outcome = DispatchOutcome(group_key=sender, filename=filename, row_count=len(rows))

        recipient = self.config.email.recipient
        display_name = self.config.email.sender_name
        subject = SUBJECT_TEMPLATE.format(sender=sender)
        body = BODY_TEMPLATE.format(
            sender=sender,
            row_count=len(rows),
            display_name=display_name,
            export_date=timestamp.strftime('%Y-%m-%d %H:%M:%S'),
        )

        try:
            content = serialize_csv(headers, rows).encode('utf-8')
            self.delivery.send(recipient, subject, body, content, filename, display_name)
            self.store.append_rows(
                self.config.sheets.mail_log,
                [[timestamp, recipient, subject, filename, len(rows)]],
                headers=MAIL_LOG_HEADERS,
            )
            outcome.success = True
            logger.info(f"Generated and sent report for: {sender}")
        except Exception as e:
            outcome.error = str(e)
            logger.error(f'Error processing sender "{sender}": {e}')

        return outcome
