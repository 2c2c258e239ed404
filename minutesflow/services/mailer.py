"""
SMTP mail transport.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import List, Optional

from minutesflow.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Send plain-text mails through the configured SMTP server."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def build_message(
        self, sender: str, recipients: List[str], subject: str, body: str
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def send(self, sender: str, recipients: List[str], subject: str, body: str) -> None:
        if not recipients:
            logger.debug(f"No recipients for mail '{subject}', skipping")
            return

        msg = self.build_message(sender, recipients, subject, body)
        s = self.settings
        with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT) as smtp:
            if s.SMTP_USE_TLS:
                smtp.starttls()
            if s.SMTP_USER:
                smtp.login(s.SMTP_USER, s.SMTP_PASSWORD)
            smtp.send_message(msg)

        logger.info(f"Mail sent: '{subject}' to {len(recipients)} recipient(s)")
