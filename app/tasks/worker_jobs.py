import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from app.db.session import SessionLocal
from app.services.email_service import process_pending_emails
from app.services import notification_service
from app.services.notification_service import send_admin_request_email, send_pending_reminder

logger = logging.getLogger(__name__)


def notify_cancellation_request(request_id: str) -> dict:
    """Email the admin about one new cancellation request."""
    db: Session = SessionLocal()
    try:
        return send_admin_request_email(db, request_id)
    finally:
        db.close()


def remind_pending_cancellations() -> dict:
    """Daily digest of cancellation requests still waiting for a decision."""
    db: Session = SessionLocal()
    try:
        try:
            result = send_pending_reminder(db)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        logger.info("Pending cancellations: %d (urgent %d)", result["total_count"], result["urgent_count"])
        return {k: v for k, v in result.items() if not k.endswith("_requests")}
    finally:
        db.close()


def process_email_queue(limit: int = 50) -> dict:
    """Process queued/failed emails (retry send). Run periodically via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            return process_pending_emails(db, limit=limit)
        except ProgrammingError:
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()


def send_cancellation_link(booking_id: str) -> dict:
    """Email the customer the magic link for a confirmed booking."""
    db: Session = SessionLocal()
    try:
        return notification_service.send_cancellation_link(db, booking_id)
    finally:
        db.close()
