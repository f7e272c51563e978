"""In-memory collaborators shared by the test suite."""
from __future__ import annotations

from datetime import datetime

from shipflow.interfaces import DeliveryChannel, MessageSource
from shipflow.models import Attachment, SourceMessage

RAW_HEADERS = ['Status', 'Ingest Date', 'Sender', 'Subject', 'Filename', 'Original Row', 'Name', 'Tier']


class FakeMessageSource(MessageSource):
    """Serves a fixed list of messages and records which were marked."""

    def __init__(self, messages: list[SourceMessage] | None = None):
        self.messages = list(messages or [])
        self.marked: list = []
        self.entered = 0

    def fetch_messages(self) -> list[SourceMessage]:
        return [m for m in self.messages if m.message_id not in self.marked]

    def mark_fetched(self, message: SourceMessage) -> None:
        self.marked.append(message.message_id)

    def clear_fetched_marks(self, max_messages=None) -> int:
        cleared = self.marked[:max_messages] if max_messages else list(self.marked)
        self.marked = [m for m in self.marked if m not in cleared]
        return len(cleared)

    def __enter__(self):
        self.entered += 1
        return self


class FakeDelivery(DeliveryChannel):
    """Records every send; raises when the subject mentions a key in ``fail_for``."""

    def __init__(self, fail_for: tuple[str, ...] = ()):
        self.sent: list[dict] = []
        self.fail_for = fail_for

    def send(self, recipient, subject, body, attachment, attachment_name, display_name) -> None:
        if any(key in subject for key in self.fail_for):
            raise ConnectionError(f"SMTP refused {subject}")
        self.sent.append({
            'recipient': recipient,
            'subject': subject,
            'body': body,
            'attachment': attachment,
            'attachment_name': attachment_name,
            'display_name': display_name,
        })


def csv_message(message_id, sender: str, csv_text: str, filename: str = 'labels.csv',
                received_at: datetime | None = None) -> SourceMessage:
    return SourceMessage(
        message_id=message_id,
        sender=sender,
        subject=f"Labels from {sender}",
        received_at=received_at or datetime(2024, 5, 1, 9, 30),
        attachments=[Attachment(filename=filename, content_type='text/csv', content=csv_text.encode('utf-8'))],
    )
