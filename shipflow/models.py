"""
Data models shared by the pipeline stages.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

# Provenance columns written in front of every raw row
STATUS_COLUMN = 'Status'
RAW_METADATA_HEADERS = ['Status', 'Ingest Date', 'Sender', 'Subject', 'Filename', 'Original Row']
RAW_METADATA_WIDTH = len(RAW_METADATA_HEADERS)

MAIL_LOG_HEADERS = ['Timestamp', 'Recipient', 'Subject', 'Filename', 'Row Count']
PDF_DATA_HEADERS = ['Email Subject', 'Sender', 'Email Date', 'PDF Filename', 'Extracted Text']


class Table(BaseModel):
    """A grid table: a header row plus data rows."""

    headers: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.headers and not self.rows

    def column_index(self, name: str) -> int:
        """Return the 0-based position of a column, or -1 when absent."""
        try:
            return self.headers.index(name)
        except ValueError:
            return -1


class CellUpdate(BaseModel):
    """A single positional cell write (1-based, header is row 1)."""

    row: int
    column: int
    value: Any = None

    @field_validator('row', 'column')
    @classmethod
    def validate_position(cls, v):
        if v < 1:
            raise ValueError('Cell positions are 1-based')
        return v


class Attachment(BaseModel):
    """An attachment fetched from an inbound message."""

    filename: str
    content_type: str = 'application/octet-stream'
    content: bytes = b''


class SourceMessage(BaseModel):
    """An inbound message with its attachments."""

    message_id: Any
    sender: str = ''
    subject: str = ''
    received_at: Optional[datetime] = None
    attachments: List[Attachment] = Field(default_factory=list)


class AttachmentMetadata(BaseModel):
    """Provenance written alongside every raw row."""

    ingest_date: Optional[datetime] = None
    sender: str = ''
    subject: str = ''
    filename: str = ''


class IngestionResult(BaseModel):
    messages_processed: int = 0
    attachments_processed: int = 0
    attachments_failed: int = 0
    rows_appended: int = 0
    pdfs_processed: int = 0


class CleaningResult(BaseModel):
    rows_added: int = 0
    rows_marked_processed: int = 0


class DispatchOutcome(BaseModel):
    """Result of exporting one group."""

    group_key: str
    filename: Optional[str] = None
    row_count: int = 0
    success: bool = False
    error: Optional[str] = None


class ReportRunResult(BaseModel):
    outcomes: List[DispatchOutcome] = Field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)


class DedupResult(BaseModel):
    rows_before: int = 0
    rows_kept: int = 0

    @property
    def rows_removed(self) -> int:
        return self.rows_before - self.rows_kept


class PipelineResult(BaseModel):
    """Aggregate outcome of an orchestrated run."""

    correlation_id: str
    ingestion: Optional[IngestionResult] = None
    cleaning: Optional[CleaningResult] = None
    reporting: Optional[ReportRunResult] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return (
            self.failed_stage is None
            and self.ingestion is not None
            and self.cleaning is not None
            and self.reporting is not None
        )
