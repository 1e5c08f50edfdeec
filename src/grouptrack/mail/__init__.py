"""Outbound mail."""

from grouptrack.mail.base import Mailer
from grouptrack.mail.smtp import SMTPMailer

__all__ = ["Mailer", "SMTPMailer"]
