import logging
from datetime import datetime, timezone
import smtplib
from email.message import EmailMessage
from sqlalchemy.orm import Session
import uuid
import requests

from hippobuck.core.config import settings
from hippobuck.models.booking import Booking
from hippobuck.models.email_log import EmailLog

logger = logging.getLogger(__name__)


def queue_email(db: Session, to_email: str, subject: str, body: str, related_booking_number: str = "") -> str:
    """Queue and attempt immediate send. Body is stored so the worker can retry on failure."""
    eid = str(uuid.uuid4())
    db.add(
        EmailLog(
            id=eid,
            to_email=to_email,
            subject=subject,
            body=body,
            status="queued",
            related_booking_number=related_booking_number,
        )
    )
    db.commit()

    log = db.get(EmailLog, eid)
    try:
        send_email(to_email, subject, body)
        log.status = "sent"
        log.sent_at = datetime.now(timezone.utc)
    except (OSError, RuntimeError, requests.RequestException) as e:
        # process_email_queue picks it up again
        logger.warning("email %s to %s failed: %s", eid, to_email, e)
        log.status = "failed"
    db.commit()
    return eid


def send_email(to_email: str, subject: str, body: str):
    """Send via SendGrid if configured, otherwise SMTP (MailHog recommended for local)."""
    if settings.SENDGRID_API_KEY:
        _send_via_sendgrid(to_email, subject, body)
        return

    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


def _send_via_sendgrid(to_email: str, subject: str, body: str):
    from_email = settings.SENDGRID_FROM_EMAIL or settings.SMTP_FROM
    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": from_email},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }
    r = requests.post(
        "https://api.sendgrid.com/v3/mail/send",
        json=payload,
        headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
        timeout=20,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"SendGrid error {r.status_code}: {r.text}")


def process_pending_emails(db: Session, limit: int = 50) -> dict:
    """Retry up to `limit` queued or failed emails. Returns counts."""
    pending = (
        db.query(EmailLog)
        .filter(EmailLog.status.in_(["queued", "failed"]), EmailLog.body.isnot(None), EmailLog.body != "")
        .order_by(EmailLog.created_at.asc())
        .limit(limit)
        .all()
    )
    sent, failed = 0, 0
    for log in pending:
        try:
            send_email(log.to_email, log.subject, log.body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            sent += 1
        except (OSError, RuntimeError, requests.RequestException) as e:
            logger.warning("retry of email %s failed: %s", log.id, e)
            log.status = "failed"
            failed += 1
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": failed}


def booking_summary(b: Booking) -> str:
    lines = [
        f"Booking number: {b.booking_number}",
        f"Guest: {b.guest_name} <{b.guest_email}> {b.guest_phone}",
        f"Stay: {b.check_in_date.isoformat()} to {b.check_out_date.isoformat()} ({b.nights} nights)",
        f"Guests: {b.number_of_adults} adult(s), {b.number_of_children} child(ren)",
        "Rooms:",
    ]
    for br in b.rooms:
        room_type = br.room.room_type.name if br.room and br.room.room_type else ""
        number = br.room.room_number if br.room else br.room_id
        lines.append(f"  Room {number} {room_type}: {b.currency} {br.rate_per_night} x {br.number_of_nights} = {br.total_price}")
    lines += [
        f"Total: {b.currency} {b.total_amount}",
        f"Paid: {b.currency} {b.paid_amount}",
        f"Balance: {b.currency} {b.balance}",
        f"Status: {b.status}",
    ]
    return "\n".join(lines)


def notify_booking_created(db: Session, b: Booking) -> str:
    subject = f"Hotel Hippo Buck booking {b.booking_number} ({b.status})"
    body = "Thank you for choosing Hotel Hippo Buck.\n\n" + booking_summary(b) + "\n\nKeep your booking number to look up or change your stay.\n"
    return queue_email(db, b.guest_email, subject, body, related_booking_number=b.booking_number)


def notify_booking_confirmed(db: Session, b: Booking) -> str:
    subject = f"Hotel Hippo Buck booking {b.booking_number} confirmed"
    body = "Your payment has been received and your booking is confirmed.\n\n" + booking_summary(b) + "\n"
    return queue_email(db, b.guest_email, subject, body, related_booking_number=b.booking_number)
