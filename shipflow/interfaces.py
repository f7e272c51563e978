"""
Collaborator interfaces injected into the pipeline engines.

Concrete adapters live next to the stage that owns the concern
(IMAP source, SQL grid stores, SMTP delivery, PDF extraction); tests
substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from shipflow.models import CellUpdate, SourceMessage, Table


class MessageSource(ABC):
    """Inbound message source with a 'fetched' marker."""

    @abstractmethod
    def fetch_messages(self) -> List[SourceMessage]:
        """Return unmarked messages within the recency window, bounded by the max count."""

    @abstractmethod
    def mark_fetched(self, message: SourceMessage) -> None:
        """Flag a message so later searches exclude it."""

    @abstractmethod
    def clear_fetched_marks(self, max_messages: Optional[int] = None) -> int:
        """Remove the fetched marker from previously marked messages."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


class TableStore(ABC):
    """Spreadsheet-like grid store."""

    @abstractmethod
    def table_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def read_table(self, name: str) -> Table:
        """Return the full grid; raise TableNotFoundError when absent."""

    @abstractmethod
    def append_rows(self, name: str, rows: Sequence[Sequence[Any]], headers: Optional[Sequence[str]] = None) -> None:
        """Append rows at the end; write headers first when the table is empty."""

    @abstractmethod
    def update_cells(self, name: str, updates: Sequence[CellUpdate]) -> None:
        """Write several cells in one operation (1-based positions, header is row 1)."""

    @abstractmethod
    def rewrite_table(self, name: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        """Clear the table and write headers plus rows."""

    def update_cell(self, name: str, row: int, column: int, value: Any) -> None:
        self.update_cells(name, [CellUpdate(row=row, column=column, value=value)])

    def close(self) -> None:
        """Release connections held by the store."""


class DeliveryChannel(ABC):
    """Outbound delivery of export artifacts."""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        attachment: bytes,
        attachment_name: str,
        display_name: str
    ) -> None:
        """Send one message with one attachment; failures raise."""


class DocumentTextExtractor(ABC):
    """Extracts plain text from a document."""

    @abstractmethod
    def extract_text(self, content: bytes, filename: str) -> str:
        pass


class TempObjectStorage(ABC):
    """Temporary object storage used during document conversion."""

    @abstractmethod
    def upload(self, name: str, content: bytes, content_type: str) -> str:
        """Store raw bytes and return an object id."""

    @abstractmethod
    def convert_to_document(self, object_id: str, name: str, language: str) -> str:
        """Convert a stored object to a text document and return its id."""

    @abstractmethod
    def read_text(self, document_id: str) -> str:
        pass

    @abstractmethod
    def delete(self, object_id: str) -> None:
        pass
