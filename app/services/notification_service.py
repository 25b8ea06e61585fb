"""Cancellation emails: the customer's magic link and admin notifications about requests.

Intake only calls ``notify_admin_of_request``, which hands the work to the Celery
worker and returns immediately. The email itself is built and queued by the
worker through ``send_admin_request_email``.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.booking import Booking
from app.models.cancellation import CancellationRequest, CancellationStatus
from app.services import cancellation_token
from app.services.email_service import queue_email
from app.services.expiry_policy import cancellation_deadline

logger = logging.getLogger(__name__)


def notify_admin_of_request(request_id: str) -> None:
    """Fire-and-forget. A failed dispatch is logged; the request already exists."""
    try:
        from app.tasks.jobs import notify_cancellation_request
        notify_cancellation_request.delay(request_id)
    except Exception:
        logger.exception("Could not dispatch admin notification for cancellation request %s", request_id)


def _admin_address() -> str:
    return settings.ADMIN_NOTIFICATION_EMAIL or settings.ADMIN_EMAIL


def send_admin_request_email(db: Session, request_id: str) -> dict:
    to_email = _admin_address()
    if not to_email:
        logger.warning("No admin address configured; skipping notification for %s", request_id)
        return {"skipped": True, "reason": "no_admin_email"}

    req = db.get(CancellationRequest, request_id)
    if not req:
        return {"skipped": True, "reason": "request_not_found"}
    booking = db.get(Booking, req.booking_id)

    lines = [
        "A customer has requested the cancellation of a booking.",
        "",
        f"Order: {req.order_number}",
        f"Customer: {req.customer_name} <{req.customer_email}>",
        f"Requested at: {req.requested_at.isoformat()}",
        f"Reason: {req.reason or '-'}",
    ]
    if booking:
        lines += [
            f"Product: {booking.product_name or '-'}",
            f"Booking date: {booking.booking_date.isoformat()}",
        ]
        if booking.trip_end_date:
            lines.append(f"Trip end date: {booking.trip_end_date.isoformat()}")
        deadline = cancellation_deadline(booking.booking_date, booking.trip_end_date)
        lines.append(f"Cancellation window closes: {deadline.strftime('%Y-%m-%d %H:%M')}")
    lines += ["", f"Request id: {req.id}"]

    eid = queue_email(
        db,
        to_email,
        f"Cancellation request for order {req.order_number}",
        "\n".join(lines),
        kind="cancellation_request_admin",
        related_order_number=req.order_number,
    )
    return {"ok": True, "emailId": eid}


def summarize_pending_requests(db: Session, now: datetime | None = None) -> dict:
    """Pending requests, oldest first, split into urgent (waiting for days) and recent."""
    now = now or datetime.now(timezone.utc)
    urgent_after = settings.CANCELLATION_URGENT_AFTER_DAYS
    pending = (
        db.query(CancellationRequest)
        .filter(CancellationRequest.status == CancellationStatus.PENDING.value)
        .order_by(CancellationRequest.requested_at.asc())
        .all()
    )
    urgent, recent = [], []
    for req in pending:
        requested_at = req.requested_at
        if requested_at.tzinfo is None:
            # SQLite hands back naive datetimes
            requested_at = requested_at.replace(tzinfo=timezone.utc)
        days_old = (now - requested_at).days
        item = {
            "id": req.id,
            "orderNumber": req.order_number,
            "customerName": req.customer_name,
            "customerEmail": req.customer_email,
            "requestedAt": requested_at.isoformat(),
            "daysOld": days_old,
            "reason": req.reason,
        }
        (urgent if days_old >= urgent_after else recent).append(item)
    return {
        "total_count": len(pending),
        "urgent_count": len(urgent),
        "recent_count": len(recent),
        "urgent_requests": urgent,
        "recent_requests": recent,
    }


def send_pending_reminder(db: Session, now: datetime | None = None) -> dict:
    summary = summarize_pending_requests(db, now=now)
    if not summary["total_count"]:
        return {**summary, "sent": False}
    to_email = _admin_address()
    if not to_email:
        logger.warning("No admin address configured; %d pending cancellation request(s) not reminded", summary["total_count"])
        return {**summary, "sent": False}

    lines = [f"{summary['total_count']} cancellation request(s) are waiting for a decision.", ""]
    if summary["urgent_requests"]:
        lines.append(f"URGENT (waiting {settings.CANCELLATION_URGENT_AFTER_DAYS}+ days):")
        lines += [f"  - {r['orderNumber']} {r['customerName']} ({r['daysOld']} days)" for r in summary["urgent_requests"]]
        lines.append("")
    if summary["recent_requests"]:
        lines.append("Recent:")
        lines += [f"  - {r['orderNumber']} {r['customerName']} ({r['daysOld']} days)" for r in summary["recent_requests"]]

    subject = f"{summary['total_count']} pending cancellation request(s)"
    if summary["urgent_count"]:
        subject = f"[URGENT] {subject}"
    queue_email(db, to_email, subject, "\n".join(lines), kind="cancellation_reminder_admin")
    return {**summary, "sent": True}


def send_cancellation_link(db: Session, booking_id: str) -> dict:
    """Email the customer a magic link that opens the cancellation form for this booking.

    Called by the booking system once the booking is confirmed; the link stays
    valid until the cancellation window closes.
    """
    booking = db.get(Booking, booking_id)
    if not booking:
        return {"skipped": True, "reason": "booking_not_found"}
    if not booking.customer_email:
        return {"skipped": True, "reason": "no_customer_email"}

    token = cancellation_token.generate(
        booking.id, booking.order_number, booking.customer_email, settings.cancellation_secret,
    )
    link = cancellation_token.build_cancellation_link(token)
    logger.info("Cancellation link for order %s (token %s)", booking.order_number, cancellation_token.token_id(token))

    deadline = cancellation_deadline(booking.booking_date, booking.trip_end_date)
    lines = [
        f"Hello {booking.customer_name}," if booking.customer_name else "Hello,",
        "",
        f"Your booking {booking.order_number} for {booking.product_name or 'your experience'} "
        f"on {booking.booking_date.isoformat()} is confirmed.",
        "",
        "If you need to cancel, request it here:",
        link,
        "",
        f"The link can be used until {deadline.strftime('%Y-%m-%d %H:%M')}.",
    ]
    eid = queue_email(
        db,
        booking.customer_email,
        f"Your booking {booking.order_number}: cancellation link",
        "\n".join(lines),
        kind="cancellation_link_customer",
        related_order_number=booking.order_number,
    )
    return {"ok": True, "emailId": eid}
