"""Outgoing mail over SMTP."""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from . import config

logger = logging.getLogger(__name__)


class MailError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


def send_mail(to: str, subject: str, html: str, text: Optional[str] = None) -> None:
    if not config.MAIL_HOST:
        raise MailError("Mail transport not configured")

    msg = EmailMessage()
    msg["From"] = formataddr((config.MAIL_FROM_NAME, config.MAIL_FROM))
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text or "Please view this message in an HTML capable mail client.")
    msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(config.MAIL_HOST, config.MAIL_PORT, timeout=30) as smtp:
            if config.MAIL_USE_TLS:
                smtp.starttls()
            if config.MAIL_USER and config.MAIL_PASS:
                smtp.login(config.MAIL_USER, config.MAIL_PASS)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Error sending email to %s: %s", to, exc)
        raise MailError(str(exc)) from exc

    logger.info("Email %r sent to %s", subject, to)
