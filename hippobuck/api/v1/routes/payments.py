import hmac
import logging
from decimal import Decimal, InvalidOperation
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from hippobuck.api.deps import require_roles
from hippobuck.core.config import settings
from hippobuck.core.constants import UserRole
from hippobuck.db.session import get_db
from hippobuck.models.user import User
from hippobuck.schemas.payments import MpesaInitiateRequest, PaymentIn, PaymentOut, payment_out
from hippobuck.services.booking_service import get_booking, get_booking_by_number
from hippobuck.services.payment_service import (
    apply_gateway_callback, initiate_mobile_money_payment, list_payments, record_payment,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

MPESA_ACK = {"ResultCode": 0, "ResultDesc": "Accepted"}


def _callback_amount(value) -> Decimal | None:
    """Amount as reported by the gateway, or None when it is missing or unreadable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("mpesa callback with unreadable Amount %r", value)
        return None
    return amount if amount.is_finite() else None


def parse_stk_callback(payload: dict) -> dict:
    """Pull the fields we settle on out of a Daraja STK callback body."""
    cb = ((payload or {}).get("Body") or {}).get("stkCallback") or {}
    items = ((cb.get("CallbackMetadata") or {}).get("Item")) or []
    meta = {i.get("Name"): i.get("Value") for i in items if isinstance(i, dict)}
    try:
        result_code = int(cb.get("ResultCode", -1))
    except (TypeError, ValueError):
        result_code = -1
    return {
        "reference": str(cb.get("CheckoutRequestID") or ""),
        "success": result_code == 0,
        "resultDesc": str(cb.get("ResultDesc") or ""),
        "receipt": str(meta["MpesaReceiptNumber"]) if meta.get("MpesaReceiptNumber") is not None else None,
        "amount": _callback_amount(meta.get("Amount")),
    }


@router.post("/bookings/{booking_id}/payments", response_model=PaymentOut)
def add_payment(booking_id: str, body: PaymentIn, db: Session = Depends(get_db),
                user: User = Depends(require_roles(*UserRole.FRONT_DESK))):
    p = record_payment(db, booking_id, body.amount, body.paymentMethod,
                       transaction_id=body.transactionId, notes=body.notes, actor=user.id)
    return payment_out(p)


@router.get("/bookings/{booking_id}/payments", response_model=list[PaymentOut])
def get_payments(booking_id: str, db: Session = Depends(get_db),
                 user: User = Depends(require_roles(*UserRole.FRONT_DESK))):
    b = get_booking(db, booking_id)
    return [payment_out(p) for p in list_payments(db, b.id)]


@router.post("/public/payments/mpesa", response_model=PaymentOut)
def start_mpesa_payment(body: MpesaInitiateRequest, db: Session = Depends(get_db)):
    """Register an STK push for a booking; the gateway reports the result on /webhooks/mpesa."""
    b = get_booking_by_number(db, body.bookingNumber)
    amount = body.amount if body.amount is not None else b.balance
    p = initiate_mobile_money_payment(db, b.id, amount, body.phone, gateway_reference=body.checkoutRequestId)
    return payment_out(p)


@router.post("/webhooks/mpesa")
async def mpesa_webhook(request: Request, db: Session = Depends(get_db)):
    """M-Pesa STK callback. Always acknowledged so the gateway stops redelivering."""
    if settings.MPESA_CALLBACK_TOKEN:
        token = request.query_params.get("token", "")
        if not hmac.compare_digest(token, settings.MPESA_CALLBACK_TOKEN):
            raise HTTPException(status_code=403, detail="Invalid callback token")
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("mpesa callback with unreadable body")
        return MPESA_ACK

    try:
        cb = parse_stk_callback(payload)
    except (AttributeError, TypeError):
        logger.warning("mpesa callback with unexpected shape: %s", payload)
        return MPESA_ACK
    if not cb["reference"]:
        logger.warning("mpesa callback without CheckoutRequestID: %s", payload)
        return MPESA_ACK
    try:
        outcome = apply_gateway_callback(db, cb["reference"], cb["success"], receipt=cb["receipt"],
                                         result_desc=cb["resultDesc"], amount=cb["amount"])
        logger.info("mpesa callback %s -> %s", cb["reference"], outcome)
    except Exception:
        # acknowledged regardless; the failure is in the log
        db.rollback()
        logger.exception("mpesa callback %s could not be stored", cb["reference"])
    return MPESA_ACK
