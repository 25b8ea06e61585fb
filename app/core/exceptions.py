"""Errors raised by the cancellation core.

Every error carries the wire ``code`` and HTTP status it is reported with, so
the API layer can render any of them as ``{"error": code, "message": message}``
without knowing which step failed.
"""


class CancellationError(Exception):
    code = "internal_error"
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


# -------------------------
# TOKEN DECODING
# -------------------------
class TokenError(CancellationError):
    code = "invalid_token"
    status_code = 400
    default_message = "The cancellation link is invalid or has been tampered with."


class TokenFormatError(TokenError):
    default_message = "Invalid token format"


class TokenTimestampError(TokenError):
    default_message = "Invalid timestamp"


class TokenSignatureError(TokenError):
    default_message = "Invalid signature"


# -------------------------
# CLAIM CHECKS
# -------------------------
class TokenMismatchError(CancellationError):
    code = "token_mismatch"
    status_code = 400
    default_message = "The link data does not match the booking."


class ValidationError(CancellationError):
    code = "validation_failed"
    status_code = 400
    default_message = "The name does not match the booking."


class MissingFieldsError(ValidationError):
    code = "missing_fields"
    default_message = "Missing data. Provide a token, or order number, email and name."


class NotFoundError(CancellationError):
    code = "booking_not_found"
    status_code = 404
    default_message = "Booking not found."


class ExpiredError(CancellationError):
    code = "token_expired"
    status_code = 400
    default_message = "Cancellation is no longer possible (more than 24h after the experience date)."


class ConflictError(CancellationError):
    code = "already_cancelled"
    status_code = 400
    default_message = "This booking has already been cancelled."


class PersistenceError(CancellationError):
    code = "creation_failed"
    status_code = 500
    default_message = "Error while creating the request."
