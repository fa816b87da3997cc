import logging
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hippobuck.core.config import settings
from hippobuck.core.constants import BookingStatus, PaymentMethod, PaymentStatus
from hippobuck.core.exceptions import BookingConflict, NotFound, OverpaymentError, ValidationError
from hippobuck.models.booking import Booking
from hippobuck.models.payment import Payment
from hippobuck.services.audit_service import log_audit
from hippobuck.services.availability_service import find_conflicts
from hippobuck.services.booking_status import BookingEvent, next_status
from hippobuck.services.email_service import notify_booking_confirmed
from hippobuck.services.pricing_service import money

logger = logging.getLogger(__name__)

MPESA_PHONE_RE = re.compile(r"^(254|0)[17]\d{8}$")

# outcomes of apply_gateway_callback
CALLBACK_COMPLETED = "completed"
CALLBACK_FAILED = "failed"
CALLBACK_DUPLICATE = "duplicate"
CALLBACK_UNMATCHED = "unmatched"

NO_PAYMENTS = (BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


def normalize_mpesa_phone(phone: str) -> str:
    """07XXXXXXXX / 01XXXXXXXX / 254XXXXXXXXX -> 254XXXXXXXXX."""
    p = re.sub(r"[\s\-+]", "", phone or "")
    if not MPESA_PHONE_RE.match(p):
        raise ValidationError("Invalid phone number. Use format 0712345678 or 254712345678", rule="phone")
    return "254" + p[1:] if p.startswith("0") else p


def _lock_booking(db: Session, booking_id: str) -> Booking:
    # populate_existing: state read under the lock wins over anything cached in the session
    b = db.execute(
        select(Booking).where(Booking.id == booking_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not b:
        raise NotFound("Booking", booking_id)
    return b


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise BookingConflict("Booking was modified concurrently; retry the payment")


def _credit(db: Session, b: Booking, amount: Decimal, method: str, actor: str) -> bool:
    """Add a completed amount to the booking. Returns True when this payment confirmed it."""
    b.paid_amount = money(Decimal(b.paid_amount or 0) + amount)
    b.payment_method = method
    if b.paid_amount < b.total_amount:
        return False
    new_status = next_status(b.status, BookingEvent.PAYMENT_SETTLED)
    if new_status == b.status:
        return False
    if not settings.PENDING_BLOCKS_AVAILABILITY:
        # rooms were never held while PENDING, someone else may own them now
        taken = find_conflicts(db, [br.room_id for br in b.rooms], b.check_in_date, b.check_out_date,
                               exclude_booking_id=b.id)
        if taken:
            logger.warning("booking %s is fully paid but room %s now belongs to %s; left PENDING",
                           b.booking_number, taken[0][0], taken[0][1])
            log_audit(db, actor, "PROMOTION_BLOCKED", "Booking", b.id,
                      {"bookingNumber": b.booking_number, "conflicts": [n for _, n in taken]})
            return False
    b.status = new_status
    log_audit(db, actor, "BOOKING_CONFIRMED", "Booking", b.id, {"bookingNumber": b.booking_number})
    return True


def record_payment(db: Session, booking_id: str, amount, payment_method: str,
                   transaction_id: str | None = None, notes: str | None = None,
                   actor: str = "public") -> Payment:
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero", rule="amount")
    if payment_method not in PaymentMethod.ALL:
        raise ValidationError(f"Unknown payment method {payment_method}", rule="payment_method")

    b = _lock_booking(db, booking_id)
    if b.status in NO_PAYMENTS:
        raise ValidationError(f"Cannot add payment to a {b.status.lower()} booking", rule="booking_status")
    remaining = b.balance
    if amount > remaining:
        raise OverpaymentError(amount, remaining)

    p = Payment(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        amount=amount,
        payment_method=payment_method,
        status=PaymentStatus.COMPLETED,
        transaction_id=transaction_id,
        notes=notes,
        recorded_by_user_id=None if actor == "public" else actor,
        processed_at=datetime.now(timezone.utc),
    )
    db.add(p)
    confirmed = _credit(db, b, amount, payment_method, actor)
    log_audit(db, actor, "PAYMENT_RECEIVED", "Payment", p.id, {
        "bookingNumber": b.booking_number, "amount": amount, "method": payment_method,
        "paidAmount": b.paid_amount, "totalAmount": b.total_amount,
    })
    _commit(db)
    logger.info("payment %s of %s recorded on %s (paid %s/%s)", p.id, amount, b.booking_number,
                b.paid_amount, b.total_amount)
    if confirmed:
        notify_booking_confirmed(db, b)
    return p


def initiate_mobile_money_payment(db: Session, booking_id: str, amount, phone: str,
                                  gateway_reference: str | None = None, actor: str = "public") -> Payment:
    """Record a pending STK push. The gateway callback settles it via ``apply_gateway_callback``."""
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero", rule="amount")
    msisdn = normalize_mpesa_phone(phone)

    b = _lock_booking(db, booking_id)
    if b.status in NO_PAYMENTS:
        raise ValidationError(f"Cannot add payment to a {b.status.lower()} booking", rule="booking_status")
    if amount > b.balance:
        raise OverpaymentError(amount, b.balance)

    if gateway_reference and db.query(Payment.id).filter(Payment.gateway_reference == gateway_reference).first():
        raise ValidationError(f"Gateway reference {gateway_reference} is already in use", rule="gateway_reference")
    reference = gateway_reference or f"ws_CO_{uuid.uuid4().hex[:20].upper()}"
    p = Payment(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        amount=amount,
        payment_method=PaymentMethod.MPESA,
        status=PaymentStatus.PENDING,
        gateway_reference=reference,
        notes=f"STK push to {msisdn}",
        recorded_by_user_id=None if actor == "public" else actor,
    )
    db.add(p)
    log_audit(db, actor, "MPESA_INITIATED", "Payment", p.id, {
        "bookingNumber": b.booking_number, "amount": amount, "reference": reference,
    })
    db.commit()
    db.refresh(p)
    return p


def apply_gateway_callback(db: Session, gateway_reference: str, success: bool, receipt: str | None = None,
                           result_desc: str = "", amount=None) -> str:
    """Settle a pending gateway payment. Safe to call any number of times for one reference.

    Unknown or already-settled references are logged and ignored.
    """
    p = db.execute(
        select(Payment).where(Payment.gateway_reference == gateway_reference).with_for_update()
    ).scalar_one_or_none()
    if not p:
        logger.warning("gateway callback for unknown reference %s (%s)", gateway_reference, result_desc)
        log_audit(db, "gateway", "MPESA_CALLBACK_UNMATCHED", "Payment", (gateway_reference or "")[:36],
                  {"success": success, "receipt": receipt, "resultDesc": result_desc})
        db.commit()
        return CALLBACK_UNMATCHED
    if p.status != PaymentStatus.PENDING:
        logger.info("duplicate gateway callback for %s, payment already %s", gateway_reference, p.status)
        db.rollback()
        return CALLBACK_DUPLICATE

    if not success:
        p.status = PaymentStatus.FAILED
        p.notes = result_desc or "Payment failed"
        p.processed_at = datetime.now(timezone.utc)
        log_audit(db, "gateway", "MPESA_FAILED", "Payment", p.id, {"reference": gateway_reference, "resultDesc": result_desc})
        db.commit()
        return CALLBACK_FAILED

    b = _lock_booking(db, p.booking_id)
    paid = money(p.amount)
    if amount is not None:
        try:
            paid = money(amount)
        except (InvalidOperation, TypeError, ValueError):
            logger.warning("gateway reported unreadable amount %r for %s", amount, gateway_reference)
    if paid != money(p.amount):
        logger.warning("gateway reported %s for %s, %s was requested", paid, gateway_reference, p.amount)
        p.amount = paid

    credit = paid
    if b.status in NO_PAYMENTS:
        credit = Decimal("0.00")
    elif paid > b.balance:
        credit = max(b.balance, Decimal("0.00"))
    if credit < paid:
        # money arrived but cannot all go onto the booking; front desk refunds the excess
        logger.warning("gateway payment %s exceeds what %s can take by %s", gateway_reference,
                       b.booking_number, paid - credit)
        p.notes = f"Refund due: {paid - credit}"

    p.status = PaymentStatus.COMPLETED
    p.transaction_id = receipt
    p.processed_at = datetime.now(timezone.utc)
    confirmed = False
    if credit > 0:
        confirmed = _credit(db, b, credit, PaymentMethod.MPESA, "gateway")
    log_audit(db, "gateway", "MPESA_COMPLETED", "Payment", p.id, {
        "bookingNumber": b.booking_number, "amount": paid, "credited": credit, "receipt": receipt,
    })
    _commit(db)
    logger.info("gateway payment %s completed for %s (receipt %s)", gateway_reference, b.booking_number, receipt)
    if confirmed:
        notify_booking_confirmed(db, b)
    return CALLBACK_COMPLETED


def list_payments(db: Session, booking_id: str) -> list[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.booking_id == booking_id)
        .order_by(Payment.created_at.asc())
        .all()
    )
