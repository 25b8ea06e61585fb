from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import require_roles
from app.models.user import User
from app.models.cancellation import CancellationRequest, CancellationStatus
from app.schemas.cancellation import CancellationRequestOut

router = APIRouter(tags=["ops"])

_STATUSES = {s.value for s in CancellationStatus}


def _out(c: CancellationRequest) -> CancellationRequestOut:
    return CancellationRequestOut(
        id=c.id,
        bookingId=c.booking_id,
        orderNumber=c.order_number,
        customerEmail=c.customer_email,
        customerName=c.customer_name,
        reason=c.reason,
        status=c.status,
        requestedAt=c.requested_at.isoformat(),
        processedAt=c.processed_at.isoformat() if c.processed_at else None,
        processedBy=c.processed_by,
        adminNotes=c.admin_notes,
    )


# -------------------------
# CANCELLATION REQUESTS (read-only; decisions are made in the admin processor)
# -------------------------
@router.get("/ops/cancellation-requests", response_model=list[CancellationRequestOut])
def list_cancellation_requests(
    status: str = "",
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("ops","admin","superadmin")),
):
    q = db.query(CancellationRequest)
    if status:
        if status not in _STATUSES:
            raise HTTPException(status_code=400, detail="invalid status")
        q = q.filter(CancellationRequest.status == status)
    items = q.order_by(CancellationRequest.requested_at.desc()).limit(500).all()
    return [_out(c) for c in items]


@router.get("/ops/cancellation-requests/{request_id}", response_model=CancellationRequestOut)
def get_cancellation_request(
    request_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("ops","admin","superadmin")),
):
    c = db.get(CancellationRequest, request_id)
    if not c:
        raise HTTPException(status_code=404, detail="Not found")
    return _out(c)
