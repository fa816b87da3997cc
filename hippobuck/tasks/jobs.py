from hippobuck.tasks.celery_app import celery
from hippobuck.tasks import worker_jobs


@celery.task(name="hippobuck.tasks.jobs.cancel_expired_bookings")
def cancel_expired_bookings():
    return worker_jobs.cancel_expired_bookings()


@celery.task(name="hippobuck.tasks.jobs.auto_checkout")
def auto_checkout():
    return worker_jobs.auto_checkout()


@celery.task(name="hippobuck.tasks.jobs.process_email_queue")
def process_email_queue(limit: int = 50):
    return worker_jobs.process_email_queue(limit=limit)
