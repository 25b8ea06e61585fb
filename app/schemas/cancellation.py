from pydantic import BaseModel, ConfigDict
from typing import Optional, Union

from app.core.exceptions import MissingFieldsError


class TokenClaim(BaseModel):
    """Customer arrived through the magic link in their confirmation email."""
    model_config = ConfigDict(frozen=True)

    token: str
    reason: Optional[str] = None


class ManualClaim(BaseModel):
    """Fallback for customers who lost the email: prove ownership with order number, email and name."""
    model_config = ConfigDict(frozen=True)

    order_number: str
    customer_email: str
    customer_name: str
    reason: Optional[str] = None


CancellationClaim = Union[TokenClaim, ManualClaim]


class CancellationRequestIn(BaseModel):
    # Either token, or all of orderNumber + customerEmail + customerName
    token: Optional[str] = None
    orderNumber: Optional[str] = None
    customerEmail: Optional[str] = None
    customerName: Optional[str] = None
    reason: Optional[str] = None

    def to_claim(self) -> CancellationClaim:
        reason = (self.reason or "").strip() or None
        if self.token:
            return TokenClaim(token=self.token.strip(), reason=reason)
        if self.orderNumber and self.customerEmail and self.customerName:
            return ManualClaim(
                order_number=self.orderNumber,
                customer_email=self.customerEmail,
                customer_name=self.customerName,
                reason=reason,
            )
        raise MissingFieldsError()


class CancellationCreatedOut(BaseModel):
    success: bool = True
    message: str
    requestId: str
    alreadyExists: Optional[bool] = None


class ErrorOut(BaseModel):
    error: str
    message: str


class CancellationRequestOut(BaseModel):
    id: str
    bookingId: str
    orderNumber: str
    customerEmail: str
    customerName: str
    reason: Optional[str] = None
    status: str
    requestedAt: str
    processedAt: Optional[str] = None
    processedBy: Optional[str] = None
    adminNotes: Optional[str] = None
