from datetime import date, datetime, time, timedelta

GRACE_DAYS = 1


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # ISO date or timestamp string, e.g. "2025-01-01" or "2025-01-01T10:00:00Z"
    return date.fromisoformat(value.strip()[:10])


def cancellation_deadline(booking_date: date | datetime | str, end_date: date | datetime | str | None = None) -> datetime:
    """Last local moment at which a cancellation can still be requested.

    The end of the day after the trip's last day (or after the booking date for
    single-day experiences).
    """
    reference = _as_date(end_date) if end_date else _as_date(booking_date)
    return datetime.combine(reference + timedelta(days=GRACE_DAYS), time.max)


def is_expired(booking_date: date | datetime | str, end_date: date | datetime | str | None = None, now: datetime | None = None) -> bool:
    if now is None:
        now = datetime.now()
    elif now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)
    return now > cancellation_deadline(booking_date, end_date)
