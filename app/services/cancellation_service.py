"""Customer cancellation request intake.

Turns a magic-link token or a manual (order number, email, name) claim into a
single pending ``CancellationRequest`` per booking. Approval and rejection are
done by the back office and are not handled here.
"""
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    CancellationError,
    ConflictError,
    ExpiredError,
    NotFoundError,
    PersistenceError,
    TokenMismatchError,
    ValidationError,
)
from app.models.booking import Booking
from app.models.cancellation import ACTIVE_STATUSES, CancellationRequest, CancellationStatus
from app.schemas.cancellation import CancellationClaim, CancellationRequestIn, ManualClaim, TokenClaim
from app.services import cancellation_token
from app.services.audit_service import log_audit
from app.services.expiry_policy import is_expired
from app.services.notification_service import notify_admin_of_request

logger = logging.getLogger(__name__)

BOOKING_CANCELLED = "cancelled"

CREATED_MESSAGE = "Cancellation request sent. You will receive an answer by email within 3 days."
ALREADY_PENDING_MESSAGE = "A cancellation request has already been sent. You will receive an answer by email."

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class CancellationResult:
    success: bool
    message: str
    request_id: str
    already_exists: bool = False

    def to_dict(self) -> dict:
        out = {"success": self.success, "message": self.message, "requestId": self.request_id}
        if self.already_exists:
            out["alreadyExists"] = True
        return out


def normalize_order_number(value: str) -> str:
    return value.strip().upper().removeprefix("#")


def normalize_email(value: str) -> str:
    return value.strip().lower()


def clean_name(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value.strip())


def normalize_name(value: str) -> str:
    return clean_name(value).lower()


# -------------------------
# STORE ACCESS
# -------------------------
def find_booking(db: Session, booking_id: str) -> Booking | None:
    return db.get(Booking, booking_id)


def find_booking_by_order(db: Session, order_number: str, email: str) -> Booking | None:
    return (
        db.query(Booking)
        .filter(
            func.upper(Booking.order_number) == order_number.upper(),
            func.lower(Booking.customer_email) == email.lower(),
        )
        .first()
    )


def latest_active_request(db: Session, booking_id: str) -> CancellationRequest | None:
    return (
        db.query(CancellationRequest)
        .filter(CancellationRequest.booking_id == booking_id, CancellationRequest.status.in_(ACTIVE_STATUSES))
        .order_by(CancellationRequest.requested_at.desc())
        .first()
    )


# -------------------------
# AUTHENTICATION
# -------------------------
def _authenticate_token(db: Session, claim: TokenClaim, secret: str, call_id: str) -> tuple[Booking, str, str]:
    logger.info("[%s] Validating token %s", call_id, cancellation_token.token_id(claim.token))
    payload = cancellation_token.verify(claim.token, secret)

    booking = find_booking(db, payload.booking_id)
    if not booking:
        raise NotFoundError()

    # The booking may have been edited since the link was sent
    if booking.order_number != payload.order_number or booking.customer_email.lower() != payload.email.lower():
        raise TokenMismatchError()

    return booking, payload.email, booking.customer_name


def _authenticate_manual(db: Session, claim: ManualClaim, call_id: str) -> tuple[Booking, str, str]:
    order_number = normalize_order_number(claim.order_number)
    email = normalize_email(claim.customer_email)
    logger.info("[%s] Manual claim for order %s", call_id, order_number)

    booking = find_booking_by_order(db, order_number, email)
    if not booking:
        raise NotFoundError("Booking not found. Check the order number and email.")

    # Exact match after normalization; a typo fails closed
    if normalize_name(claim.customer_name) != normalize_name(booking.customer_name or ""):
        raise ValidationError()

    return booking, email, clean_name(claim.customer_name)


def _check_admissible(booking: Booking, magic_link: bool, now: datetime | None) -> None:
    if is_expired(booking.booking_date, booking.trip_end_date, now=now):
        if magic_link:
            raise ExpiredError(
                "The cancellation link has expired (valid until 24h after the experience date).",
                code="token_expired",
            )
        raise ExpiredError(
            "Cancellation can no longer be requested (more than 24h after the experience date).",
            code="request_expired",
        )
    if booking.status == BOOKING_CANCELLED:
        raise ConflictError()


def _resolve_existing(existing: CancellationRequest) -> CancellationResult:
    if existing.status == CancellationStatus.APPROVED.value:
        raise ConflictError("The cancellation has already been approved.", code="already_approved")
    return CancellationResult(success=True, message=ALREADY_PENDING_MESSAGE, request_id=existing.id, already_exists=True)


# -------------------------
# INTAKE
# -------------------------
def create_cancellation_request(
    db: Session,
    claim: CancellationClaim,
    secret: str | None = None,
    now: datetime | None = None,
    notify: Callable[[str], None] | None = None,
) -> CancellationResult:
    """Create (or return the already pending) cancellation request for a booking.

    Raises a ``CancellationError`` subclass when the claim is rejected. ``now`` is
    only used for the expiry check.
    """
    secret = secret or settings.cancellation_secret
    notify = notify or notify_admin_of_request
    call_id = uuid.uuid4().hex[:8]
    magic_link = isinstance(claim, TokenClaim)
    logger.info("[%s] Cancellation request, mode=%s", call_id, "magic-link" if magic_link else "manual")

    if magic_link:
        booking, email, name = _authenticate_token(db, claim, secret, call_id)
    elif isinstance(claim, ManualClaim):
        booking, email, name = _authenticate_manual(db, claim, call_id)
    else:
        raise TypeError(f"unsupported claim type {type(claim).__name__}")

    _check_admissible(booking, magic_link, now)

    existing = latest_active_request(db, booking.id)
    if existing:
        logger.info("[%s] Booking %s already has a %s request %s", call_id, booking.id, existing.status, existing.id)
        return _resolve_existing(existing)

    if magic_link:
        token = claim.token
    else:
        token = cancellation_token.generate(booking.id, booking.order_number, email, secret)

    req = CancellationRequest(
        id=str(uuid.uuid4()),
        booking_id=booking.id,
        token=token,
        order_number=booking.order_number,
        customer_email=email,
        customer_name=name,
        reason=claim.reason,
        status=CancellationStatus.PENDING.value,
        requested_at=datetime.now(timezone.utc),
    )
    db.add(req)
    log_audit(db, email, "cancellation.requested", "cancellation_request", req.id, {
        "bookingId": booking.id,
        "orderNumber": booking.order_number,
        "mode": "magic_link" if magic_link else "manual",
        "tokenId": cancellation_token.token_id(token),
    })
    try:
        db.commit()
    except IntegrityError:
        # A concurrent call for the same booking inserted first
        db.rollback()
        existing = latest_active_request(db, booking.id)
        if existing:
            logger.info("[%s] Lost insert race for booking %s to request %s", call_id, booking.id, existing.id)
            return _resolve_existing(existing)
        logger.exception("[%s] Failed to create cancellation request", call_id)
        raise PersistenceError()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("[%s] Failed to create cancellation request", call_id)
        raise PersistenceError() from e

    logger.info("[%s] Cancellation request created: %s", call_id, req.id)
    try:
        notify(req.id)
    except Exception:
        logger.exception("[%s] Admin notification failed for %s", call_id, req.id)

    return CancellationResult(success=True, message=CREATED_MESSAGE, request_id=req.id)


def submit_cancellation_request(db: Session, body: CancellationRequestIn, **kwargs) -> tuple[int, dict]:
    """HTTP boundary: never raises, returns ``(status_code, json_body)``."""
    try:
        result = create_cancellation_request(db, body.to_claim(), **kwargs)
        return 200, result.to_dict()
    except CancellationError as e:
        logger.warning("Cancellation request rejected: %s (%s)", e.code, e.message)
        return e.status_code, e.to_dict()
    except Exception:
        logger.exception("Unexpected error while creating cancellation request")
        return 500, {"error": "internal_error", "message": "Internal server error."}
