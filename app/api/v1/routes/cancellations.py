from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.cancellation import CancellationRequestIn, CancellationCreatedOut, ErrorOut
from app.services.cancellation_service import submit_cancellation_request
from app.services.notification_service import notify_admin_of_request

router = APIRouter(tags=["cancellations"])

_ERRORS = {400: {"model": ErrorOut}, 404: {"model": ErrorOut}, 500: {"model": ErrorOut}}


@router.post("/public/cancellation-requests", response_model=CancellationCreatedOut, responses=_ERRORS)
def create_cancellation_request(body: CancellationRequestIn, background: BackgroundTasks, db: Session = Depends(get_db)):
    """Customer cancellation request, from the email magic link (`token`) or the manual form.

    The admin is notified after the response is sent.
    """
    status_code, content = submit_cancellation_request(
        db, body, notify=lambda request_id: background.add_task(notify_admin_of_request, request_id),
    )
    return JSONResponse(status_code=status_code, content=content)
