"""
SMTP delivery channel for export attachments.
"""

import smtplib
import logging
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from shipflow.config import EmailConfig
from shipflow.errors import ConfigurationError, DispatchError
from shipflow.interfaces import DeliveryChannel

logger = logging.getLogger(__name__)


class SMTPDeliveryChannel(DeliveryChannel):
    """Sends export CSVs as email attachments."""

    def __init__(self, config: EmailConfig):
        self.smtp_server = config.smtp_server
        self.smtp_port = config.smtp_port
        self.smtp_username = config.smtp_username
        self.smtp_password = config.smtp_password
        self.smtp_use_tls = config.smtp_use_tls

        if not all([self.smtp_username, self.smtp_password]):
            raise ConfigurationError("SMTP_USERNAME and SMTP_PASSWORD are required")

    def build_message(
        self,
        recipient: str,
        subject: str,
        body: str,
        attachment: bytes,
        attachment_name: str,
        display_name: str
    ) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg['From'] = f"{display_name} <{self.smtp_username}>"
        msg['To'] = recipient
        msg['Subject'] = subject

        msg.attach(MIMEText(body, 'plain'))

        part = MIMEBase('text', 'csv')
        part.set_payload(attachment)
        encoders.encode_base64(part)
        part.add_header('Content-Disposition', 'attachment', filename=attachment_name)
        msg.attach(part)

        return msg

    def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        attachment: bytes,
        attachment_name: str,
        display_name: str
    ) -> None:
        if not recipient:
            raise DispatchError("No report recipient configured")

        msg = self.build_message(recipient, subject, body, attachment, attachment_name, display_name)

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                if self.smtp_use_tls:
                    server.starttls()

                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent successfully to {recipient} with attachment {attachment_name}")

        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            raise DispatchError(f"Failed to send {attachment_name} to {recipient}: {e}") from e
