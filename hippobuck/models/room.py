from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Boolean, Numeric, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from hippobuck.db.session import Base

class RoomType(Base):
    __tablename__ = "room_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    bed_type: Mapped[str] = mapped_column(String(50), default="")
    size_sqm: Mapped[int] = mapped_column(Integer, nullable=True)
    max_occupancy: Mapped[int] = mapped_column(Integer, default=2)

    # price table: {single/double} x {domestic (East African)/international}
    single_price_domestic: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    double_price_domestic: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    single_price_intl: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    double_price_intl: Mapped[Decimal] = mapped_column(Numeric(12, 2))

    amenities_csv: Mapped[str] = mapped_column(String(600), default="")
    image_urls_csv: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def amenities(self):
        return [s.strip() for s in (self.amenities_csv or "").split(",") if s.strip()]

    @property
    def image_urls(self):
        return [s.strip() for s in (self.image_urls_csv or "").split(",") if s.strip()]


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    room_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    floor: Mapped[int] = mapped_column(Integer, default=0)
    room_type_id: Mapped[str] = mapped_column(String(36), ForeignKey("room_types.id"), index=True)
    # Operational flag only; date overlap against bookings decides availability.
    status: Mapped[str] = mapped_column(String(20), default="AVAILABLE", index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    room_type: Mapped[RoomType] = relationship(lazy="joined")
