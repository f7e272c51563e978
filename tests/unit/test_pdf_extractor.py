from __future__ import annotations

import pytest

from shipflow.errors import ExtractionError
from shipflow.extraction.pdf_extractor import LocalTempStorage, PdfTextExtractor
from shipflow.interfaces import TempObjectStorage


class RecordingStorage(TempObjectStorage):
    def __init__(self, fail_on: str = None, fail_delete: bool = False):
        self.fail_on = fail_on
        self.fail_delete = fail_delete
        self.objects = {}
        self.deleted = []

    def _maybe_fail(self, step):
        if self.fail_on == step:
            raise RuntimeError(f"{step} failed")

    def upload(self, name, content, content_type):
        self._maybe_fail('upload')
        self.objects['src'] = content
        return 'src'

    def convert_to_document(self, object_id, name, language):
        self._maybe_fail('convert')
        self.objects['doc'] = b'Tracking 1Z999'
        return 'doc'

    def read_text(self, document_id):
        self._maybe_fail('read')
        return self.objects[document_id].decode()

    def delete(self, object_id):
        self.deleted.append(object_id)
        if self.fail_delete:
            raise OSError('permission denied')


def test_text_is_returned_and_both_objects_deleted() -> None:
    storage = RecordingStorage()

    text = PdfTextExtractor(storage).extract_text(b'%PDF-1.4', 'label.pdf')

    assert text == 'Tracking 1Z999'
    assert storage.deleted == ['doc', 'src']


def test_failed_conversion_still_deletes_upload() -> None:
    storage = RecordingStorage(fail_on='convert')

    with pytest.raises(ExtractionError, match='label.pdf'):
        PdfTextExtractor(storage).extract_text(b'%PDF-1.4', 'label.pdf')

    assert storage.deleted == ['src']


def test_failed_read_deletes_both_objects() -> None:
    storage = RecordingStorage(fail_on='read')

    with pytest.raises(ExtractionError):
        PdfTextExtractor(storage).extract_text(b'%PDF-1.4', 'label.pdf')

    assert storage.deleted == ['doc', 'src']


def test_failed_upload_deletes_nothing() -> None:
    storage = RecordingStorage(fail_on='upload')

    with pytest.raises(ExtractionError):
        PdfTextExtractor(storage).extract_text(b'', 'label.pdf')

    assert storage.deleted == []


def test_cleanup_failures_are_not_raised() -> None:
    storage = RecordingStorage(fail_delete=True)

    assert PdfTextExtractor(storage).extract_text(b'%PDF-1.4', 'label.pdf') == 'Tracking 1Z999'
    assert storage.deleted == ['doc', 'src']


def test_local_storage_round_trip(tmp_path) -> None:
    storage = LocalTempStorage(str(tmp_path))

    object_id = storage.upload('label.pdf', b'data', 'application/pdf')
    assert (tmp_path / 'shipflow_ocr' / object_id).read_bytes() == b'data'

    storage.delete(object_id)
    assert not (tmp_path / 'shipflow_ocr' / object_id).exists()


def test_local_storage_rejects_invalid_pdf(tmp_path) -> None:
    storage = LocalTempStorage(str(tmp_path))

    with pytest.raises(ExtractionError):
        PdfTextExtractor(storage).extract_text(b'not a pdf', 'broken.pdf')

    assert list((tmp_path / 'shipflow_ocr').iterdir()) == []
