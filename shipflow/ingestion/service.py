"""
Ingestion stage: fetch new messages and land their attachments in the raw store.
"""

import logging
from datetime import datetime
from typing import Optional

from shipflow.config import PipelineConfig
from shipflow.errors import ExtractionError, HeaderMismatchError
from shipflow.ingestion.raw_writer import RawStoreWriter
from shipflow.interfaces import DocumentTextExtractor, MessageSource, TableStore
from shipflow.models import (
    Attachment,
    AttachmentMetadata,
    IngestionResult,
    PDF_DATA_HEADERS,
    SourceMessage,
)
from shipflow.processing.csv_codec import (
    decode_csv_bytes,
    is_csv_attachment,
    is_pdf_attachment,
    parse_csv_text,
)

logger = logging.getLogger(__name__)

EXTRACTION_FAILED_TEMPLATE = '[Extraction failed: {error}]'


class IngestionService:
    """Moves CSV rows (and PDF text) from the message source into the store."""

    def __init__(
        self,
        source: MessageSource,
        store: TableStore,
        config: PipelineConfig,
        extractor: Optional[DocumentTextExtractor] = None
    ):
        self.source = source
        self.store = store
        self.config = config
        self.extractor = extractor
        self.writer = RawStoreWriter(store, config)

    def ingest(self) -> IngestionResult:
        """Run one ingestion pass over unmarked messages."""
        result = IngestionResult()

        messages = self.source.fetch_messages()
        if not messages:
            logger.info("No new emails to process")
            return result

        logger.info(f"Found {len(messages)} messages to process")

        for message in messages:
            self._process_message(message, result)
            self.source.mark_fetched(message)
            result.messages_processed += 1

        logger.info(
            f"Ingestion summary: {result.messages_processed} messages, "
            f"{result.attachments_processed} attachments, {result.rows_appended} rows, "
            f"{result.pdfs_processed} PDFs, {result.attachments_failed} skipped"
        )
        return result

    def _process_message(self, message: SourceMessage, result: IngestionResult) -> None:
        metadata = AttachmentMetadata(
            ingest_date=message.received_at or datetime.now(self.config.tz),
            sender=message.sender,
            subject=message.subject,
        )

        for attachment in message.attachments:
            attachment_metadata = metadata.model_copy(update={'filename': attachment.filename})

            if is_csv_attachment(attachment.filename, attachment.content_type):
                if self._process_csv(attachment, attachment_metadata, result):
                    result.attachments_processed += 1
                else:
                    result.attachments_failed += 1
            elif is_pdf_attachment(attachment.filename, attachment.content_type) and self.extractor:
                self._process_pdf(attachment, attachment_metadata)
                result.pdfs_processed += 1
            else:
                logger.debug(f"Ignoring attachment {attachment.filename} ({attachment.content_type})")

    def _process_csv(self, attachment: Attachment, metadata: AttachmentMetadata, result: IngestionResult) -> bool:
        logger.info(f"Processing CSV: {attachment.filename}")

        parsed = parse_csv_text(decode_csv_bytes(attachment.content))
        if len(parsed) < 2:
            logger.warning(f"CSV file {attachment.filename} has no data rows")
            return False

        headers, data_rows = parsed[0], parsed[1:]

        try:
            appended = self.writer.append_rows(headers, data_rows, metadata)
        except HeaderMismatchError as e:
            logger.warning(f"Skipping {attachment.filename}: {e}")
            return False

        result.rows_appended += appended
        return True

    def _process_pdf(self, attachment: Attachment, metadata: AttachmentMetadata) -> None:
        logger.info(f"Processing PDF: {attachment.filename}")

        try:
            text = self.extractor.extract_text(attachment.content, attachment.filename)
            logger.info(f"Successfully extracted text from {attachment.filename}")
        except ExtractionError as e:
            logger.error(f"Text extraction failed for {attachment.filename}: {e}")
            text = EXTRACTION_FAILED_TEMPLATE.format(error=e)

        self.store.append_rows(
            self.config.sheets.pdf_data,
            [[metadata.subject, metadata.sender, metadata.ingest_date, metadata.filename, text]],
            headers=PDF_DATA_HEADERS,
        )
