from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.schedules import crontab
from hippobuck.core.config import settings


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "hippobuck",
    broker=_redis_url,
    backend=_redis_url,
    include=["hippobuck.tasks.jobs"],
)

celery.conf.timezone = "Africa/Nairobi"

celery.conf.beat_schedule = {
    "cancel-expired-bookings-daily": {
        "task": "hippobuck.tasks.jobs.cancel_expired_bookings",
        "schedule": crontab(hour=0, minute=5),
    },
    "auto-checkout-daily": {
        "task": "hippobuck.tasks.jobs.auto_checkout",
        "schedule": crontab(hour=11, minute=0),
    },
    "process-email-queue-every-2-minutes": {
        "task": "hippobuck.tasks.jobs.process_email_queue",
        "schedule": 120.0,
        "kwargs": {"limit": 50},
    },
}
