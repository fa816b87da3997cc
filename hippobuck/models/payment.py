from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from hippobuck.db.session import Base

class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    payment_method: Mapped[str] = mapped_column(String(20))  # CASH, MPESA, CREDIT_CARD, ...
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)  # PENDING, COMPLETED, FAILED, REFUNDED, PARTIAL
    # gateway-issued id of an initiated push (M-Pesa CheckoutRequestID); callbacks are keyed on it
    gateway_reference: Mapped[str | None] = mapped_column(String(120), unique=True, nullable=True)
    # receipt / cheque / card transaction number
    transaction_id: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
