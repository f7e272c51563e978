"""
PDF text extraction through temporary object storage.

The PDF is uploaded as a temporary object, converted into a text
document, read, and both temporary objects are removed afterwards,
even when conversion fails.
"""

import os
import io
import time
import uuid
import logging
import tempfile
from pathlib import Path

import pdfplumber

from shipflow.errors import ExtractionError
from shipflow.interfaces import DocumentTextExtractor, TempObjectStorage

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = 'application/pdf'


class LocalTempStorage(TempObjectStorage):
    """Temporary objects kept as files in a scratch directory.

    Conversion extracts the PDF text layer with pdfplumber into a
    ``.txt`` document object.
    """

    def __init__(self, directory: str = None):
        self.directory = Path(directory or tempfile.gettempdir()) / 'shipflow_ocr'
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, object_id: str) -> Path:
        return self.directory / object_id

    def upload(self, name: str, content: bytes, content_type: str) -> str:
        object_id = f"{uuid.uuid4().hex}.bin"
        self._path(object_id).write_bytes(content)
        logger.debug(f"Uploaded temporary object {object_id} for {name} ({content_type})")
        return object_id

    def convert_to_document(self, object_id: str, name: str, language: str) -> str:
        content = self._path(object_id).read_bytes()

        pages = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                text = page.extract_text()
                if text:
                    pages.append(text)

        document_id = f"{uuid.uuid4().hex}.txt"
        self._path(document_id).write_text('\n'.join(pages), encoding='utf-8')
        logger.debug(f"Converted {object_id} to document {document_id} (language: {language})")
        return document_id

    def read_text(self, document_id: str) -> str:
        return self._path(document_id).read_text(encoding='utf-8')

    def delete(self, object_id: str) -> None:
        os.remove(self._path(object_id))


class PdfTextExtractor(DocumentTextExtractor):
    """Extracts PDF text via a two-object conversion round trip."""

    def __init__(self, storage: TempObjectStorage, language: str = 'en'):
        self.storage = storage
        self.language = language

    def extract_text(self, content: bytes, filename: str) -> str:
        source_id = None
        document_id = None

        try:
            source_id = self.storage.upload(
                f"temp_ocr_pdf_{int(time.time() * 1000)}_{filename}", content, PDF_CONTENT_TYPE
            )
            logger.info(f"Uploaded temporary PDF: {source_id}")

            document_id = self.storage.convert_to_document(
                source_id, f"ocr_doc_from_{filename}_{int(time.time() * 1000)}", self.language
            )
            logger.info(f"Converted PDF to temporary document: {document_id}")

            return self.storage.read_text(document_id)

        except Exception as e:
            logger.error(f"Error during text extraction of {filename}: {e}")
            raise ExtractionError(f"Failed to extract text from {filename}: {e}") from e

        finally:
            if document_id:
                try:
                    self.storage.delete(document_id)
                    logger.info(f"Deleted temporary document: {document_id}")
                except Exception as e:
                    logger.warning(f"Could not delete temporary document {document_id}: {e}")
            if source_id:
                try:
                    self.storage.delete(source_id)
                    logger.info(f"Deleted temporary PDF: {source_id}")
                except Exception as e:
                    logger.warning(f"Could not delete temporary PDF {source_id}: {e}")
