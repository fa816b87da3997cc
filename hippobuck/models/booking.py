from decimal import Decimal
from sqlalchemy import String, Integer, Date, DateTime, Numeric, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime, timezone
from hippobuck.db.session import Base
from hippobuck.models.room import Room

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # HHB-YYYYMMDD-XXXX, case-sensitive lookup key shown to guests
    booking_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    guest_first_name: Mapped[str] = mapped_column(String(100))
    guest_last_name: Mapped[str] = mapped_column(String(100))
    guest_email: Mapped[str] = mapped_column(String(320), index=True)
    guest_phone: Mapped[str] = mapped_column(String(40))
    guest_country: Mapped[str | None] = mapped_column(String(80), nullable=True)
    guest_id_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    guest_id_number: Mapped[str | None] = mapped_column(String(80), nullable=True)

    check_in_date: Mapped[date] = mapped_column(Date, index=True)
    check_out_date: Mapped[date] = mapped_column(Date, index=True)
    number_of_adults: Mapped[int] = mapped_column(Integer, default=1)
    number_of_children: Mapped[int] = mapped_column(Integer, default=0)
    region: Mapped[str] = mapped_column(String(20), default="DOMESTIC")     # DOMESTIC|INTERNATIONAL
    occupancy: Mapped[str] = mapped_column(String(10), default="DOUBLE")    # SINGLE|DOUBLE
    currency: Mapped[str] = mapped_column(String(3), default="KES")

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    modified_by_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    actual_check_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_check_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                                                 onupdate=lambda: datetime.now(timezone.utc))

    rooms: Mapped[list["BookingRoom"]] = relationship(back_populates="booking", cascade="all, delete-orphan",
                                                      lazy="selectin")

    # concurrent writers to the same booking fail with StaleDataError
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def guest_name(self) -> str:
        return f"{self.guest_first_name} {self.guest_last_name}".strip()

    @property
    def balance(self) -> Decimal:
        return Decimal(self.total_amount or 0) - Decimal(self.paid_amount or 0)

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days


class BookingRoom(Base):
    __tablename__ = "booking_rooms"
    __table_args__ = (
        UniqueConstraint("booking_id", "room_id", name="uq_booking_room"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), index=True)
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("rooms.id"), index=True)

    # frozen at booking time; later seasonal changes never touch these
    rate_per_night: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    number_of_nights: Mapped[int] = mapped_column(Integer)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    booking: Mapped[Booking] = relationship(back_populates="rooms")
    room: Mapped[Room] = relationship(lazy="joined")
