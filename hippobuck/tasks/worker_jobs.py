import logging
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from hippobuck.db.session import SessionLocal
from hippobuck.services.booking_service import auto_checkout_bookings, expire_pending_bookings
from hippobuck.services.email_service import process_pending_emails

logger = logging.getLogger(__name__)


def cancel_expired_bookings(db: Session | None = None, today: date | None = None) -> dict:
    """Cancel PENDING bookings whose check-in date passed without payment or confirmation."""
    own = db is None
    db = db or SessionLocal()
    try:
        try:
            cancelled = expire_pending_bookings(db, today)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        if cancelled:
            logger.info("cancelled %d expired bookings: %s", len(cancelled), ", ".join(cancelled))
        return {"cancelled": len(cancelled), "bookingNumbers": cancelled}
    finally:
        if own:
            db.close()


def auto_checkout(db: Session | None = None, today: date | None = None) -> dict:
    own = db is None
    db = db or SessionLocal()
    try:
        try:
            result = auto_checkout_bookings(db, today)
        except ProgrammingError:
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        logger.info("auto checkout: %d checked out, %d no-show", len(result["checkedOut"]), len(result["noShow"]))
        return result
    finally:
        if own:
            db.close()


def process_email_queue(limit: int = 50) -> dict:
    """Process queued/failed emails (retry send). Run periodically via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            return process_pending_emails(db, limit=limit)
        except ProgrammingError:
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()
