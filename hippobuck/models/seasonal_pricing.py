from decimal import Decimal
from sqlalchemy import String, Date, DateTime, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone
from hippobuck.db.session import Base

class SeasonalPricing(Base):
    __tablename__ = "seasonal_pricing"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    room_type_id: Mapped[str] = mapped_column(String(36), ForeignKey("room_types.id"), index=True)
    name: Mapped[str] = mapped_column(String(100), default="")
    # inclusive on both ends
    start_date: Mapped[date] = mapped_column(Date, index=True)
    end_date: Mapped[date] = mapped_column(Date, index=True)
    price_multiplier: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("1.00"))
    fixed_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
