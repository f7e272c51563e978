"""
IMAP message source for CSV (and PDF) attachments.

Messages already ingested carry a custom IMAP keyword (the processed
label) and are excluded from later searches.
"""

import email
import imaplib
import logging
from datetime import datetime, timedelta
from email.header import decode_header
from email.utils import parsedate_to_datetime
from typing import List, Optional

from shipflow.config import SourceConfig
from shipflow.errors import ConfigurationError, SourceError
from shipflow.interfaces import MessageSource
from shipflow.models import Attachment, SourceMessage

logger = logging.getLogger(__name__)


class IMAPMessageSource(MessageSource):
    """IMAP client that returns unmarked messages with their attachments."""

    def __init__(self, config: SourceConfig):
        self.config = config
        self.imap_server = config.server
        self.imap_port = config.port
        self.imap_username = config.username
        self.imap_password = config.password
        self.imap_use_ssl = config.use_ssl
        self.inbox = config.inbox
        self.processed_label = config.processed_label

        if not all([self.imap_server, self.imap_username, self.imap_password]):
            raise ConfigurationError("IMAP_SERVER, IMAP_USERNAME, and IMAP_PASSWORD are required")

        self.connection: Optional[imaplib.IMAP4] = None

    def connect(self) -> None:
        """Connect to the IMAP server."""
        try:
            if self.imap_use_ssl:
                self.connection = imaplib.IMAP4_SSL(self.imap_server, self.imap_port)
            else:
                self.connection = imaplib.IMAP4(self.imap_server, self.imap_port)

            self.connection.login(self.imap_username, self.imap_password)
            self.connection.select(self.inbox)
            logger.info(f"Connected to IMAP server: {self.imap_server}")

        except Exception as e:
            logger.error(f"Failed to connect to IMAP server: {e}")
            raise SourceError(f"Failed to connect to IMAP server: {e}") from e

    def disconnect(self) -> None:
        """Disconnect from the IMAP server."""
        if self.connection:
            try:
                self.connection.close()
                self.connection.logout()
                logger.info("Disconnected from IMAP server")
            except Exception as e:
                logger.error(f"Error disconnecting from IMAP server: {e}")
            finally:
                self.connection = None

    def _require_connection(self) -> imaplib.IMAP4:
        if not self.connection:
            raise SourceError("Not connected to IMAP server")
        return self.connection

    def build_search_criteria(self, today: datetime = None) -> List[str]:
        """Build IMAP search criteria excluding marked and out-of-window messages."""
        criteria = ['UNKEYWORD', self.processed_label]

        if self.config.date_range_days > 0:
            today = today or datetime.now()
            since = today - timedelta(days=self.config.date_range_days)
            criteria += ['SINCE', since.strftime('%d-%b-%Y')]

        return criteria

    def _search(self, criteria: List[str]) -> List[bytes]:
        connection = self._require_connection()
        status, data = connection.search(None, *criteria)

        if status != 'OK':
            raise SourceError(f"IMAP search failed: {criteria}")

        return data[0].split() if data and data[0] else []

    def fetch_messages(self) -> List[SourceMessage]:
        """Fetch the newest unmarked messages that carry attachments."""
        criteria = self.build_search_criteria()
        logger.info(f"Executing IMAP search with criteria: {' '.join(criteria)}")

        email_ids = self._search(criteria)

        # Newest first; the cap counts only messages that carry attachments
        messages = []
        for email_id in reversed(email_ids):
            if self.config.max_messages and len(messages) >= self.config.max_messages:
                break
            message = self.fetch_message(email_id)
            if message.attachments:
                messages.append(message)

        messages.reverse()
        logger.info(f"Found {len(messages)} messages with attachments")
        return messages

    def fetch_message(self, email_id: bytes) -> SourceMessage:
        """Download one message and its attachments without marking it seen."""
        connection = self._require_connection()
        status, msg_data = connection.fetch(email_id, '(BODY.PEEK[])')

        if status != 'OK' or not msg_data or not msg_data[0]:
            raise SourceError(f"Failed to fetch email {email_id}")

        email_message = email.message_from_bytes(msg_data[0][1])

        attachments = []
        for part in email_message.walk():
            if part.get_content_disposition() != 'attachment':
                continue
            filename = part.get_filename()
            if not filename:
                continue
            attachments.append(Attachment(
                filename=self._decode_header(filename),
                content_type=part.get_content_type(),
                content=part.get_payload(decode=True) or b'',
            ))

        return SourceMessage(
            message_id=email_id,
            sender=self._decode_header(email_message.get('From', '')),
            subject=self._decode_header(email_message.get('Subject', '')),
            received_at=self._parse_date(email_message.get('Date')),
            attachments=attachments,
        )

    def _parse_date(self, value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.warning(f"Unparseable Date header: {value}")
            return None

    def _decode_header(self, header: str) -> str:
        """Decode email header to handle encoding."""
        if not header:
            return ""

        decoded_parts = decode_header(header)
        decoded_string = ""

        for part, encoding in decoded_parts:
            if isinstance(part, bytes):
                if encoding:
                    try:
                        decoded_string += part.decode(encoding)
                    except (UnicodeDecodeError, LookupError):
                        decoded_string += part.decode('utf-8', errors='ignore')
                else:
                    decoded_string += part.decode('utf-8', errors='ignore')
            else:
                decoded_string += part

        return decoded_string

    def mark_fetched(self, message: SourceMessage) -> None:
        """Flag a message with the processed label."""
        connection = self._require_connection()

        try:
            connection.store(message.message_id, '+FLAGS', self.processed_label)
            logger.info(f"Marked email {message.message_id} as {self.processed_label}")
        except Exception as e:
            logger.error(f"Error marking email {message.message_id}: {e}")
            raise SourceError(f"Failed to mark email {message.message_id}: {e}") from e

    def clear_fetched_marks(self, max_messages: Optional[int] = None) -> int:
        """Remove the processed label so messages can be ingested again."""
        email_ids = self._search(['KEYWORD', self.processed_label])
        if max_messages:
            email_ids = email_ids[:max_messages]

        connection = self._require_connection()
        for email_id in email_ids:
            connection.store(email_id, '-FLAGS', self.processed_label)

        logger.info(f"Removed processed label from {len(email_ids)} messages")
        return len(email_ids)

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
        return False
