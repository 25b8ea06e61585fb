from sqlalchemy import String, Date, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone
from app.db.session import Base

class Booking(Base):
    """Storefront booking. Owned by the booking system; this service only reads it."""
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)  # human-facing, e.g. A0GWPTWH

    customer_email: Mapped[str] = mapped_column(String(320), index=True)
    customer_name: Mapped[str] = mapped_column(String(200), default="")

    product_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    booking_date: Mapped[date] = mapped_column(Date)
    trip_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)  # multi-day trips only

    status: Mapped[str] = mapped_column(String(30), default="confirmed")  # pending, confirmed, cancelled, completed

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
