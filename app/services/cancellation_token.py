"""Signed cancellation tokens for magic links.

Wire format (every base64 is the URL-safe alphabet with padding stripped):

    base64url(booking_id:order_number:email:issued_at_ms:base64url(HMAC-SHA256(secret, booking_id:order_number:email:issued_at_ms)))

The token carries no expiry. It stays cryptographically valid forever; whether it
can still be used is decided from the live booking by ``expiry_policy``.
"""
import base64
import binascii
import hashlib
import hmac
import re
import time
from dataclasses import dataclass

from app.core.config import settings
from app.core.exceptions import TokenError, TokenFormatError, TokenSignatureError, TokenTimestampError

SEPARATOR = ":"
TOKEN_ID_LENGTH = 8

_TIMESTAMP_RE = re.compile(r"-?\d+")


@dataclass(frozen=True)
class TokenPayload:
    booking_id: str
    order_number: str
    email: str
    issued_at_ms: int


@dataclass(frozen=True)
class TokenValidation:
    valid: bool
    payload: TokenPayload | None = None
    error: TokenError | None = None


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    raw = base64.urlsafe_b64decode(padded)
    # b64decode silently drops characters outside the alphabet; only accept the canonical form
    if _b64url_encode(raw) != value:
        raise ValueError("non-canonical base64url")
    return raw


def _sign(message: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _message(booking_id: str, order_number: str, email: str, issued_at: str) -> str:
    return SEPARATOR.join((booking_id, order_number, email, issued_at))


def generate(booking_id: str, order_number: str, email: str, secret: str, issued_at_ms: int | None = None) -> str:
    if not secret:
        raise ValueError("secret must not be empty")
    for name, value in (("booking_id", booking_id), ("order_number", order_number), ("email", email)):
        if not value:
            raise ValueError(f"{name} must not be empty")
        if SEPARATOR in value:
            raise ValueError(f"{name} must not contain {SEPARATOR!r}")
    if issued_at_ms is None:
        issued_at_ms = time.time_ns() // 1_000_000

    message = _message(booking_id, order_number, email, str(int(issued_at_ms)))
    signature = _sign(message, secret)
    return _b64url_encode(f"{message}{SEPARATOR}{signature}".encode("utf-8"))


def verify(token: str, secret: str) -> TokenPayload:
    """Decode and check a token, raising a ``TokenError`` subclass on failure."""
    try:
        decoded = _b64url_decode(token).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise TokenFormatError() from e

    parts = decoded.split(SEPARATOR)
    if len(parts) != 5:
        raise TokenFormatError()
    booking_id, order_number, email, issued_at, provided = parts

    if not _TIMESTAMP_RE.fullmatch(issued_at):
        raise TokenTimestampError()

    expected = _sign(_message(booking_id, order_number, email, issued_at), secret)
    if not hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8")):
        raise TokenSignatureError()

    return TokenPayload(
        booking_id=booking_id,
        order_number=order_number,
        email=email,
        issued_at_ms=int(issued_at),
    )


def validate(token: str, secret: str) -> TokenValidation:
    try:
        return TokenValidation(valid=True, payload=verify(token, secret))
    except TokenError as e:
        return TokenValidation(valid=False, error=e)


def token_id(token: str) -> str:
    """Short prefix that is safe to log in place of the whole token."""
    return token[:TOKEN_ID_LENGTH]


def build_cancellation_link(token: str, base_url: str | None = None) -> str:
    base_url = base_url or settings.WEBSITE_URL
    return f"{base_url.rstrip('/')}/cancel/{token}"
