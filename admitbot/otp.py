# admitbot/otp.py
"""One-time passwords used to prove ownership of an email address.

A code is stored as an ``OtpVerification`` row and mailed to the address.
It can be redeemed once, and only while it is younger than
``OTP_TTL_MINUTES``. Redeemed rows are deleted; unredeemed rows are left to
expire in place.
"""

import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from . import config, mailer
from .models import OtpVerification, utcnow

logger = logging.getLogger(__name__)


OTP_EMAIL_TEMPLATE = """
<h1>Please confirm your OTP</h1>
<p>Here is your OTP code: {otp}</p>
<p>This OTP will expire in {ttl} minutes.</p>
"""


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_otp(length: int = config.OTP_LENGTH) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def issue_otp(db: Session, email: str, *, subject: str = "Verification Email") -> OtpVerification:
    """Store a fresh code for ``email`` and mail it.

    The row is only committed once the mail has been accepted by the SMTP
    server; a :class:`~admitbot.mailer.MailError` rolls it back and propagates.
    """
    email = normalize_email(email)
    record = OtpVerification(email=email, otp=generate_otp(), created_at=utcnow(), verified=False)
    db.add(record)
    db.flush()

    try:
        mailer.send_mail(
            to=email,
            subject=subject,
            html=OTP_EMAIL_TEMPLATE.format(otp=record.otp, ttl=config.OTP_TTL_MINUTES),
            text=f"Your OTP code is {record.otp}. It expires in {config.OTP_TTL_MINUTES} minutes.",
        )
    except mailer.MailError:
        db.rollback()
        raise

    db.commit()
    db.refresh(record)
    logger.info("Issued OTP for %s", email)
    return record


def consume_otp(db: Session, email: str, otp: str, *, commit: bool = True) -> bool:
    """Redeem ``otp`` for ``email``. Returns False for unknown, used or expired codes.

    With ``commit=False`` the deletion is left pending so the caller can commit
    it together with its own changes (or roll it back).
    """
    cutoff = utcnow() - timedelta(minutes=config.OTP_TTL_MINUTES)
    record = (
        db.query(OtpVerification)
        .filter(
            OtpVerification.email == normalize_email(email),
            OtpVerification.otp == otp.strip(),
            OtpVerification.created_at > cutoff,
            OtpVerification.verified.is_(False),
        )
        .order_by(OtpVerification.created_at.desc())
        .first()
    )
    if record is None:
        return False

    db.delete(record)
    if commit:
        db.commit()
    else:
        db.flush()
    return True
