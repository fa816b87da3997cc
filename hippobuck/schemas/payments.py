from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class PaymentIn(BaseModel):
    amount: Decimal = Field(gt=0)
    paymentMethod: str
    transactionId: Optional[str] = None
    notes: Optional[str] = None


class MpesaInitiateRequest(BaseModel):
    bookingNumber: str
    phone: str
    amount: Optional[Decimal] = Field(default=None, gt=0)  # defaults to the remaining balance
    checkoutRequestId: Optional[str] = Field(default=None, max_length=64)


class PaymentOut(BaseModel):
    id: str
    bookingId: str
    amount: Decimal
    paymentMethod: str
    status: str
    gatewayReference: Optional[str] = None
    transactionId: Optional[str] = None
    notes: Optional[str] = None
    processedAt: Optional[datetime] = None


def payment_out(p) -> PaymentOut:
    return PaymentOut(
        id=p.id,
        bookingId=p.booking_id,
        amount=p.amount,
        paymentMethod=p.payment_method,
        status=p.status,
        gatewayReference=p.gateway_reference,
        transactionId=p.transaction_id,
        notes=p.notes,
        processedAt=p.processed_at,
    )
