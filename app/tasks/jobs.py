from app.tasks.celery_app import celery
from app.tasks import worker_jobs

@celery.task(name="app.tasks.jobs.notify_cancellation_request")
def notify_cancellation_request(request_id: str):
    return worker_jobs.notify_cancellation_request(request_id)

@celery.task(name="app.tasks.jobs.remind_pending_cancellations")
def remind_pending_cancellations():
    return worker_jobs.remind_pending_cancellations()


@celery.task(name="app.tasks.jobs.process_email_queue")
def process_email_queue(limit: int = 50):
    return worker_jobs.process_email_queue(limit=limit)


@celery.task(name="app.tasks.jobs.send_cancellation_link")
def send_cancellation_link(booking_id: str):
    return worker_jobs.send_cancellation_link(booking_id)
