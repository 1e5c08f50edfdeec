"""SMTP implementation of the mail transport."""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from grouptrack.domain.entities import EmailSettings, SendResult
from grouptrack.mail.base import Mailer

logger = logging.getLogger(__name__)

SSL_PORT = 465


class SMTPMailer(Mailer):
    """Sends mail through an SMTP relay using the stored sender credentials.

    Every call opens and closes its own connection.
    """

    def __init__(self, settings: EmailSettings, timeout: float = 30.0):
        self.settings = settings
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        ssl = self.settings.smtp_port == SSL_PORT
        factory = smtplib.SMTP_SSL if ssl else smtplib.SMTP
        server = factory(self.settings.smtp_host, self.settings.smtp_port, timeout=self.timeout)
        try:
            if not ssl:
                server.starttls()
            server.login(self.settings.sender_address, self.settings.app_password)
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.settings.sender_name, self.settings.sender_address))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def send(self, to: str, subject: str, body: str) -> SendResult:
        if not self.settings.is_configured:
            return SendResult(False, "Email settings are not configured")
        try:
            with self._connect() as server:
                server.send_message(self._build_message(to, subject, body))
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Failed to send '%s' to %s: %s", subject, to, e)
            return SendResult(False, str(e))
        return SendResult(True, f"Sent to {to}")

    def verify(self) -> SendResult:
        if not self.settings.is_configured:
            return SendResult(False, "Email settings are not configured")
        try:
            with self._connect() as server:
                server.noop()
        except smtplib.SMTPAuthenticationError:
            return SendResult(False, "Authentication failed. Check the sender address and app password")
        except (smtplib.SMTPException, OSError) as e:
            return SendResult(False, f"Connection failed: {e}")
        return SendResult(True, f"Connected to {self.settings.smtp_host}:{self.settings.smtp_port}")
