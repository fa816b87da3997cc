from datetime import date
from sqlalchemy import select, exists, and_, or_
from sqlalchemy.orm import Session

from hippobuck.core.config import settings
from hippobuck.core.constants import BookingStatus, RoomStatus
from hippobuck.models.booking import Booking, BookingRoom
from hippobuck.models.room import Room


def blocking_statuses() -> tuple[str, ...]:
    """Booking statuses whose rooms are unavailable to anyone else for the stay."""
    statuses = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
    if settings.PENDING_BLOCKS_AVAILABILITY:
        statuses = (BookingStatus.PENDING,) + statuses
    return statuses


def _overlap(check_in: date, check_out: date, exclude_booking_id: str | None = None):
    # half-open stays: [in, out) overlaps [in2, out2) iff in < out2 and out > in2
    cond = [
        Booking.status.in_(blocking_statuses()),
        Booking.check_in_date < check_out,
        Booking.check_out_date > check_in,
    ]
    if exclude_booking_id:
        cond.append(Booking.id != exclude_booking_id)
    return and_(*cond)


def find_available_rooms(db: Session, check_in: date, check_out: date, room_type_id: str | None = None,
                         exclude_booking_id: str | None = None) -> list[Room]:
    """Active, operationally bookable rooms with no blocking booking overlapping the stay.

    Ordered by room number so that slicing the result is deterministic.
    """
    conflict = exists(
        select(BookingRoom.id)
        .join(Booking, Booking.id == BookingRoom.booking_id)
        .where(BookingRoom.room_id == Room.id, _overlap(check_in, check_out, exclude_booking_id))
    )
    stmt = select(Room).where(
        Room.is_active == True,  # noqa: E712
        Room.status.in_(RoomStatus.BOOKABLE),
        ~conflict,
    )
    if room_type_id:
        stmt = stmt.where(Room.room_type_id == room_type_id)
    return list(db.execute(stmt.order_by(Room.room_number.asc())).unique().scalars().all())


def find_conflicts(db: Session, room_ids: list[str], check_in: date, check_out: date,
                   exclude_booking_id: str | None = None) -> list[tuple[str, str]]:
    """(room_id, booking_number) for every blocking booking overlapping the stay on these rooms."""
    if not room_ids:
        return []
    rows = db.execute(
        select(BookingRoom.room_id, Booking.booking_number)
        .join(Booking, Booking.id == BookingRoom.booking_id)
        .where(BookingRoom.room_id.in_(room_ids), _overlap(check_in, check_out, exclude_booking_id))
    ).all()
    return [(r[0], r[1]) for r in rows]


def room_holds(db: Session, room_id: str, today: date, exclude_booking_id: str | None = None) -> set[str]:
    """Statuses of the other live bookings still holding a room on or after ``today``.

    A CHECKED_IN booking holds its room until it is checked out, whatever its dates say.
    """
    stmt = (
        select(Booking.status)
        .join(BookingRoom, BookingRoom.booking_id == Booking.id)
        .where(
            BookingRoom.room_id == room_id,
            or_(
                Booking.status == BookingStatus.CHECKED_IN,
                and_(Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]),
                     Booking.check_out_date > today),
            ),
        )
    )
    if exclude_booking_id:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    return set(db.execute(stmt).scalars().all())


def lock_rooms(db: Session, room_ids: list[str] | None = None, room_type_ids: list[str] | None = None) -> None:
    """Row-lock rooms until the surrounding transaction ends.

    Locks are taken in id order so two bookings over the same rooms cannot deadlock.
    SQLite ignores FOR UPDATE; commit-time re-verification still catches races there.
    """
    stmt = select(Room.id)
    if room_ids:
        stmt = stmt.where(Room.id.in_(room_ids))
    elif room_type_ids:
        stmt = stmt.where(Room.room_type_id.in_(room_type_ids))
    else:
        return
    db.execute(stmt.order_by(Room.id).with_for_update()).all()


def available_rooms_with_pricing(db: Session, check_in: date, check_out: date, region: str, occupancy: str,
                                 room_type_id: str | None = None) -> list[dict]:
    """Free rooms for the stay, each with the quote a booking made now would freeze."""
    from hippobuck.services.pricing_service import calculate_room_price

    quotes = {}
    out = []
    for room in find_available_rooms(db, check_in, check_out, room_type_id=room_type_id):
        if room.room_type_id not in quotes:
            quotes[room.room_type_id] = calculate_room_price(db, room.room_type_id, check_in, check_out, region, occupancy)
        q = quotes[room.room_type_id]
        out.append({
            "roomId": room.id,
            "roomNumber": room.room_number,
            "floor": room.floor,
            "roomTypeId": room.room_type_id,
            "roomType": room.room_type.name,
            "maxOccupancy": room.room_type.max_occupancy,
            **{k: v for k, v in q.as_dict().items() if k != "roomTypeId"},
        })
    return out


def availability_by_type(db: Session, check_in: date, check_out: date) -> dict[str, int]:
    """room_type_id -> number of free rooms for the stay."""
    counts: dict[str, int] = {}
    for room in find_available_rooms(db, check_in, check_out):
        counts[room.room_type_id] = counts.get(room.room_type_id, 0) + 1
    return counts
