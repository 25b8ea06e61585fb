import enum
from sqlalchemy import String, Text, DateTime, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base


class CancellationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"  # written only when the booking itself is cancelled elsewhere


# Statuses that block a new request for the same booking
ACTIVE_STATUSES = (CancellationStatus.PENDING.value, CancellationStatus.APPROVED.value)

# Intake only ever creates PENDING; the admin processor owns pending -> approved|rejected.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    CancellationStatus.PENDING.value: frozenset({CancellationStatus.APPROVED.value, CancellationStatus.REJECTED.value}),
    CancellationStatus.APPROVED.value: frozenset(),
    CancellationStatus.REJECTED.value: frozenset(),
    CancellationStatus.CANCELLED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


_ACTIVE_SQL = text("status IN ('pending', 'approved')")


class CancellationRequest(Base):
    __tablename__ = "cancellation_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="ck_cancellation_requests_status",
        ),
        # One active request per booking; the second of two racing inserts fails here.
        Index(
            "uq_cancellation_requests_active_booking",
            "booking_id",
            unique=True,
            postgresql_where=_ACTIVE_SQL,
            sqlite_where=_ACTIVE_SQL,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    token: Mapped[str] = mapped_column(Text)

    order_number: Mapped[str] = mapped_column(String(20), index=True)
    customer_email: Mapped[str] = mapped_column(String(320))
    customer_name: Mapped[str] = mapped_column(String(200), default="")
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=CancellationStatus.PENDING.value, index=True)

    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
