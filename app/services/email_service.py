"""Outgoing email: an ``email_logs`` row per message, sent right away and retried by the worker."""
import logging
import smtplib
import uuid
from datetime import datetime, timezone
from email.message import EmailMessage

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.email_log import EmailLog

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
RETRYABLE = ("queued", "failed")


def queue_email(db: Session, to_email: str, subject: str, body: str, kind: str = "", related_order_number: str = "") -> str:
    """Store the message, then try to send it once. A failed send stays in the table for the worker."""
    log = EmailLog(
        id=str(uuid.uuid4()),
        to_email=to_email,
        subject=subject,
        body=body,
        kind=kind,
        status="queued",
        attempts=0,
        related_order_number=related_order_number,
    )
    db.add(log)
    db.commit()

    _attempt(log)
    db.commit()
    return log.id


def _attempt(log: EmailLog) -> bool:
    log.attempts = (log.attempts or 0) + 1
    try:
        send_email(log.to_email, log.subject, log.body or "", category=log.kind)
    except Exception as e:
        log.last_error = str(e)[:500]
        if log.attempts >= settings.EMAIL_MAX_ATTEMPTS:
            log.status = "abandoned"
            logger.error("Email %s (%s) to %s abandoned after %d attempts: %s", log.id, log.kind, log.to_email, log.attempts, e)
        else:
            log.status = "failed"
            logger.warning("Email %s (%s) to %s failed (attempt %d): %s", log.id, log.kind, log.to_email, log.attempts, e)
        return False
    log.status = "sent"
    log.last_error = None
    log.sent_at = datetime.now(timezone.utc)
    return True


def send_email(to_email: str, subject: str, body: str, category: str = ""):
    """SendGrid when an API key is configured, otherwise plain SMTP (MailHog locally)."""
    if settings.SENDGRID_API_KEY:
        _send_via_sendgrid(to_email, subject, body, category)
    else:
        _send_via_smtp(to_email, subject, body)


def _send_via_smtp(to_email: str, subject: str, body: str):
    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


def _send_via_sendgrid(to_email: str, subject: str, body: str, category: str = ""):
    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": settings.SENDGRID_FROM_EMAIL or settings.SMTP_FROM},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }
    if category:
        payload["categories"] = [category]

    r = requests.post(
        SENDGRID_URL,
        json=payload,
        headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
        timeout=20,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"SendGrid error {r.status_code}: {r.text}")


def process_pending_emails(db: Session, limit: int = 50) -> dict:
    """Retry up to ``limit`` unsent emails, oldest first. Returns counts."""
    pending = (
        db.query(EmailLog)
        .filter(EmailLog.status.in_(RETRYABLE), EmailLog.body.isnot(None), EmailLog.body != "")
        .order_by(EmailLog.created_at.asc())
        .limit(limit)
        .all()
    )
    sent = sum(1 for log in pending if _attempt(log))
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": len(pending) - sent}
