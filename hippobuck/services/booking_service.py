import logging
import random
import string
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hippobuck.core.config import settings
from hippobuck.core.constants import BookingStatus, PaymentMethod, PaymentStatus, RoomStatus, UserRole
from hippobuck.core.exceptions import (
    BookingConflict, InsufficientAvailability, NotFound, OverpaymentError, PriceChangeNotConfirmed, ValidationError,
)
from hippobuck.models.booking import Booking, BookingRoom
from hippobuck.models.payment import Payment
from hippobuck.models.room import Room
from hippobuck.models.user import User
from hippobuck.services.allocation_service import RoomRequest, allocate_rooms
from hippobuck.services.audit_service import log_audit
from hippobuck.services.availability_service import find_conflicts, lock_rooms, room_holds
from hippobuck.services.booking_status import BookingEvent, initial_status, next_status
from hippobuck.services.email_service import notify_booking_created
from hippobuck.services.pricing_service import (
    PriceQuote, calculate_room_price, count_nights, money, resolve_occupancy, resolve_region,
)

logger = logging.getLogger(__name__)

BOOKING_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
_rng = random.SystemRandom()


@dataclass
class GuestInfo:
    first_name: str
    last_name: str
    email: str
    phone: str
    country: str | None = None
    id_type: str | None = None
    id_number: str | None = None
    special_requests: str | None = None


def generate_booking_number(on: date | None = None) -> str:
    """HHB-YYYYMMDD-XXXX. 36**4 suffixes per day, so collisions are rare but possible."""
    d = on or date.today()
    suffix = "".join(_rng.choices(BOOKING_NUMBER_ALPHABET, k=4))
    return f"{settings.BOOKING_NUMBER_PREFIX}-{d.strftime('%Y%m%d')}-{suffix}"


def allocate_booking_number(db: Session, on: date | None = None) -> str:
    # booking_number must be unique; the column constraint catches anything that slips past this
    for _ in range(10):
        number = generate_booking_number(on)
        exists = db.query(Booking.id).filter(Booking.booking_number == number).first()
        if not exists:
            return number
    raise BookingConflict("could not allocate a booking number")


def validate_stay_dates(check_in: date, check_out: date, today: date | None = None) -> int:
    today = today or date.today()
    if check_in < today:
        raise ValidationError("Check-in date cannot be in the past", rule="check_in_not_past")
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date", rule="check_out_after_check_in")
    nights = count_nights(check_in, check_out)
    if nights > settings.MAX_STAY_NIGHTS:
        raise ValidationError(f"Maximum stay is {settings.MAX_STAY_NIGHTS} nights", rule="max_stay")
    return nights


def validate_guest(guest: GuestInfo, adults: int, children: int) -> None:
    missing = [name for name, value in (
        ("guestFirstName", guest.first_name),
        ("guestLastName", guest.last_name),
        ("guestEmail", guest.email),
        ("guestPhone", guest.phone),
    ) if not (value or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", rule="required_fields")
    if adults < 1:
        raise ValidationError("At least 1 adult is required", rule="min_adults")
    if children < 0:
        raise ValidationError("Number of children cannot be negative", rule="children")


def _check_capacity(rooms: list[Room], adults: int, children: int) -> None:
    capacity = sum(r.room_type.max_occupancy for r in rooms)
    if adults + children > capacity:
        raise ValidationError(
            f"{adults + children} guests exceed the capacity of the selected rooms ({capacity})",
            rule="max_occupancy",
        )


def is_front_desk(user: User | None) -> bool:
    return bool(user and user.is_active and user.role in UserRole.FRONT_DESK)


def get_booking(db: Session, booking_id: str) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFound("Booking", booking_id)
    return b


def get_booking_by_number(db: Session, booking_number: str) -> Booking:
    # exact match: booking numbers are case-sensitive
    b = db.execute(select(Booking).where(Booking.booking_number == booking_number)).scalar_one_or_none()
    if not b:
        raise NotFound("Booking", booking_number)
    return b


def search_bookings(db: Session, status: str | None = None, email: str | None = None,
                    booking_number: str | None = None, check_in_from: date | None = None,
                    check_in_to: date | None = None, limit: int = 200) -> list[Booking]:
    q = db.query(Booking)
    if status:
        q = q.filter(Booking.status == status)
    if email:
        q = q.filter(Booking.guest_email == email.strip().lower())
    if booking_number:
        q = q.filter(Booking.booking_number == booking_number)
    if check_in_from:
        q = q.filter(Booking.check_in_date >= check_in_from)
    if check_in_to:
        q = q.filter(Booking.check_in_date <= check_in_to)
    return q.order_by(Booking.created_at.desc()).limit(min(max(limit, 1), 1000)).all()


def _quote_rooms(db: Session, rooms: list[Room], check_in: date, check_out: date,
                 region: str, occupancy: str) -> list[tuple[Room, PriceQuote]]:
    by_type: dict[str, PriceQuote] = {}
    out = []
    for room in rooms:
        if room.room_type_id not in by_type:
            by_type[room.room_type_id] = calculate_room_price(db, room.room_type_id, check_in, check_out, region, occupancy)
        out.append((room, by_type[room.room_type_id]))
    return out


def create_booking(db: Session, guest: GuestInfo, check_in: date, check_out: date, adults: int, children: int = 0,
                   room_types: list[RoomRequest] | None = None, room_ids: list[str] | None = None,
                   paid_amount: Decimal | int = 0, payment_method: str | None = None,
                   staff_user: User | None = None, staff_confirm: bool = False,
                   region: str | None = None, occupancy: str | None = None,
                   today: date | None = None) -> Booking:
    """Allocate rooms, freeze their prices and persist a new booking.

    Losing a commit race is retried BOOKING_COMMIT_RETRIES times from allocation
    onwards before BookingConflict reaches the caller.
    """
    validate_guest(guest, adults, children)
    validate_stay_dates(check_in, check_out, today)
    paid_amount = money(paid_amount or 0)
    if paid_amount < 0:
        raise ValidationError("Paid amount cannot be negative", rule="paid_amount")
    if paid_amount > 0 and payment_method not in PaymentMethod.ALL:
        raise ValidationError("A valid payment method is required with an initial payment", rule="payment_method")
    if staff_confirm and not is_front_desk(staff_user):
        logger.info("ignoring staff confirmation requested by a non-staff caller")
        staff_confirm = False

    attempts = 1 + max(settings.BOOKING_COMMIT_RETRIES, 0)
    for attempt in range(1, attempts + 1):
        try:
            booking = _create_booking_once(
                db, guest, check_in, check_out, adults, children, room_types, room_ids,
                paid_amount, payment_method, staff_user, staff_confirm, region, occupancy,
            )
            break
        except BookingConflict as e:
            db.rollback()
            if attempt >= attempts:
                logger.warning("booking for %s lost its commit race %d times: %s", guest.email, attempt, e)
                raise
            logger.info("booking for %s lost a commit race (%s), retrying allocation", guest.email, e)

    logger.info("booking %s created status=%s total=%s", booking.booking_number, booking.status, booking.total_amount)
    notify_booking_created(db, booking)
    return booking


def _create_booking_once(db: Session, guest: GuestInfo, check_in: date, check_out: date, adults: int, children: int,
                         room_types: list[RoomRequest] | None, room_ids: list[str] | None,
                         paid_amount: Decimal, payment_method: str | None,
                         staff_user: User | None, staff_confirm: bool,
                         region: str | None, occupancy: str | None) -> Booking:
    # held until commit/rollback so concurrent requests for these rooms queue up
    lock_rooms(db, room_ids=room_ids, room_type_ids=[r.room_type_id for r in room_types or []])
    rooms = allocate_rooms(db, check_in, check_out, room_types=room_types, room_ids=room_ids)
    _check_capacity(rooms, adults, children)

    region = region or resolve_region(guest.country)
    occupancy = occupancy or resolve_occupancy(adults)
    quotes = _quote_rooms(db, rooms, check_in, check_out, region, occupancy)
    total = money(sum((q.total_price for _, q in quotes), Decimal("0")))
    if paid_amount > total:
        raise OverpaymentError(paid_amount, total)

    status = initial_status(total, paid_amount, staff_confirm)
    actor = staff_user.id if staff_user else "public"

    booking = Booking(
        id=str(uuid.uuid4()),
        booking_number=allocate_booking_number(db),
        guest_first_name=guest.first_name.strip(),
        guest_last_name=guest.last_name.strip(),
        guest_email=guest.email.strip().lower(),
        guest_phone=guest.phone.strip(),
        guest_country=guest.country or None,
        guest_id_type=guest.id_type or None,
        guest_id_number=guest.id_number or None,
        special_requests=guest.special_requests or None,
        check_in_date=check_in,
        check_out_date=check_out,
        number_of_adults=adults,
        number_of_children=children,
        region=region,
        occupancy=occupancy,
        currency=quotes[0][1].currency,
        total_amount=total,
        paid_amount=paid_amount,
        status=status,
        payment_method=payment_method if paid_amount > 0 else None,
        created_by_user_id=staff_user.id if staff_user else None,
    )
    for room, quote in quotes:
        booking.rooms.append(BookingRoom(
            id=str(uuid.uuid4()),
            room_id=room.id,
            rate_per_night=quote.price_per_night,
            number_of_nights=quote.nights,
            total_price=quote.total_price,
        ))
        room.status = RoomStatus.RESERVED
    db.add(booking)

    if paid_amount > 0:
        db.add(Payment(
            id=str(uuid.uuid4()),
            booking_id=booking.id,
            amount=paid_amount,
            payment_method=payment_method,
            status=PaymentStatus.COMPLETED,
            notes="Initial payment at booking",
            recorded_by_user_id=staff_user.id if staff_user else None,
            processed_at=datetime.now(timezone.utc),
        ))

    try:
        db.flush()
        taken = find_conflicts(db, [r.id for r in rooms], check_in, check_out, exclude_booking_id=booking.id)
        if taken:
            room_id, other = taken[0]
            raise BookingConflict(f"Room {room_id} was taken by booking {other} while this booking was being created")
        log_audit(db, actor, "BOOKING_CREATED", "Booking", booking.id, {
            "bookingNumber": booking.booking_number,
            "guestEmail": booking.guest_email,
            "totalAmount": booking.total_amount,
            "roomCount": len(rooms),
            "status": status,
        })
        db.commit()
    except IntegrityError as e:
        raise BookingConflict(f"booking could not be committed: {e.orig}")
    db.refresh(booking)
    return booking


def _release_rooms(db: Session, booking: Booking, checked_in: bool = False, today: date | None = None) -> None:
    """Reset the operational flag on rooms this booking no longer holds.

    A room another booking still holds keeps OCCUPIED or RESERVED; MAINTENANCE and CLEANING are left alone.
    """
    today = today or date.today()
    _flush(db)
    for br in booking.rooms:
        room = br.room
        if room.status not in (RoomStatus.RESERVED, RoomStatus.OCCUPIED):
            continue
        holds = room_holds(db, room.id, today, exclude_booking_id=booking.id)
        if BookingStatus.CHECKED_IN in holds:
            room.status = RoomStatus.OCCUPIED
        elif checked_in:
            room.status = RoomStatus.CLEANING
        elif holds:
            room.status = RoomStatus.RESERVED
        else:
            room.status = RoomStatus.AVAILABLE


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise BookingConflict("Booking was modified concurrently; reload and try again")


def _flush(db: Session) -> None:
    try:
        db.flush()
    except StaleDataError:
        db.rollback()
        raise BookingConflict("Booking was modified concurrently; reload and try again")


def cancel_booking(db: Session, booking_id: str, actor: str = "public", reason: str = "") -> Booking:
    b = get_booking(db, booking_id)
    was_checked_in = b.status == BookingStatus.CHECKED_IN
    previous = b.status
    b.status = next_status(b.status, BookingEvent.CANCEL)
    b.cancelled_at = datetime.now(timezone.utc)
    b.modified_by_user_id = None if actor == "public" else actor
    _release_rooms(db, b, checked_in=was_checked_in)
    log_audit(db, actor, "BOOKING_CANCELLED", "Booking", b.id, {
        "bookingNumber": b.booking_number, "previousStatus": previous, "reason": reason,
    })
    _commit(db)
    logger.info("booking %s cancelled (was %s)", b.booking_number, previous)
    return b


def set_payment_method(db: Session, booking_id: str, payment_method: str, actor: str = "public") -> Booking:
    """Guest picks how they will pay; only while the booking is still PENDING."""
    if payment_method not in PaymentMethod.ALL:
        raise ValidationError(f"Unknown payment method {payment_method}", rule="payment_method")
    b = get_booking(db, booking_id)
    if b.status != BookingStatus.PENDING:
        raise ValidationError("Cannot update payment method for non-pending booking", rule="booking_status")
    previous = b.payment_method
    b.payment_method = payment_method
    log_audit(db, actor, "PAYMENT_METHOD_UPDATED", "Booking", b.id, {
        "bookingNumber": b.booking_number, "from": previous, "to": payment_method,
    })
    _commit(db)
    return b


def check_in_booking(db: Session, booking_id: str, actor: str, today: date | None = None) -> Booking:
    b = get_booking(db, booking_id)
    if b.check_in_date > (today or date.today()):
        raise ValidationError("Check-in date has not arrived yet", rule="check_in_date")
    b.status = next_status(b.status, BookingEvent.CHECK_IN)
    b.actual_check_in = datetime.now(timezone.utc)
    b.modified_by_user_id = actor
    for br in b.rooms:
        br.room.status = RoomStatus.OCCUPIED
    log_audit(db, actor, "CHECK_IN", "Booking", b.id, {"bookingNumber": b.booking_number, "guestName": b.guest_name})
    _commit(db)
    return b


def check_out_booking(db: Session, booking_id: str, actor: str) -> Booking:
    b = get_booking(db, booking_id)
    if b.status == BookingStatus.CHECKED_IN and b.balance > 0:
        raise ValidationError(
            f"Outstanding balance of {b.currency} {b.balance} must be paid before check-out",
            rule="outstanding_balance", balance=b.balance,
        )
    b.status = next_status(b.status, BookingEvent.CHECK_OUT)
    b.actual_check_out = datetime.now(timezone.utc)
    b.modified_by_user_id = actor
    _release_rooms(db, b, checked_in=True)
    log_audit(db, actor, "CHECK_OUT", "Booking", b.id, {"bookingNumber": b.booking_number, "guestName": b.guest_name})
    _commit(db)
    return b


def mark_no_show(db: Session, booking_id: str, actor: str) -> Booking:
    b = get_booking(db, booking_id)
    b.status = next_status(b.status, BookingEvent.NO_SHOW)
    b.modified_by_user_id = None if actor == "scheduler" else actor
    _release_rooms(db, b)
    log_audit(db, actor, "NO_SHOW", "Booking", b.id, {"bookingNumber": b.booking_number})
    _commit(db)
    return b


def _stay_params(b: Booking, new_check_in: date | None, new_check_out: date | None,
                 new_adults: int | None, new_occupancy: str | None) -> tuple[date, date, int, str]:
    check_in = new_check_in or b.check_in_date
    check_out = new_check_out or b.check_out_date
    adults = new_adults if new_adults is not None else b.number_of_adults
    if new_occupancy:
        occupancy = new_occupancy
    elif new_adults is not None:
        occupancy = resolve_occupancy(new_adults)
    else:
        occupancy = b.occupancy
    return check_in, check_out, adults, occupancy


def preview_price_change(db: Session, booking_id: str, new_check_in: date | None = None,
                         new_check_out: date | None = None, new_adults: int | None = None,
                         new_occupancy: str | None = None) -> dict:
    """What the booking would cost with new dates/occupancy. Read-only."""
    b = get_booking(db, booking_id)
    check_in, check_out, _, occupancy = _stay_params(b, new_check_in, new_check_out, new_adults, new_occupancy)
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date", rule="check_out_after_check_in")

    lines = sorted(b.rooms, key=lambda br: br.room.room_number)
    quotes = _quote_rooms(db, [br.room for br in lines], check_in, check_out, b.region, occupancy)
    breakdown = []
    new_total = Decimal("0")
    for br, (room, quote) in zip(lines, quotes):
        new_total += quote.total_price
        breakdown.append({
            "roomId": room.id,
            "roomNumber": room.room_number,
            "roomType": room.room_type.name,
            "roomTypeId": room.room_type_id,
            "oldPricePerNight": br.rate_per_night,
            "oldNights": br.number_of_nights,
            "oldPrice": br.total_price,
            "newPricePerNight": quote.price_per_night,
            "newNights": quote.nights,
            "newPrice": quote.total_price,
        })
    original_total = money(b.total_amount)
    new_total = money(new_total)
    return {
        "bookingId": b.id,
        "bookingNumber": b.booking_number,
        "originalTotal": original_total,
        "newTotal": new_total,
        "difference": new_total - original_total,
        "currency": b.currency,
        "originalNights": b.nights,
        "newNights": count_nights(check_in, check_out),
        "checkIn": check_in,
        "checkOut": check_out,
        "occupancy": occupancy,
        "perRoomBreakdown": breakdown,
    }


def apply_booking_change(db: Session, booking_id: str, new_check_in: date | None = None,
                         new_check_out: date | None = None, new_adults: int | None = None,
                         new_children: int | None = None, new_occupancy: str | None = None,
                         accepted_total: Decimal | int | None = None, actor: str = "public",
                         today: date | None = None) -> Booking:
    """Apply new dates/occupancy. A non-zero price change must be accepted by echoing the previewed newTotal."""
    b = get_booking(db, booking_id)
    if b.status not in BookingStatus.EDITABLE:
        raise ValidationError("This booking cannot be edited", rule="editable_status")
    check_in, check_out, adults, occupancy = _stay_params(b, new_check_in, new_check_out, new_adults, new_occupancy)
    children = new_children if new_children is not None else b.number_of_children
    if adults < 1:
        raise ValidationError("At least 1 adult is required", rule="min_adults")
    if (check_in, check_out) != (b.check_in_date, b.check_out_date):
        validate_stay_dates(check_in, check_out, today)
    _check_capacity([br.room for br in b.rooms], adults, children)

    room_ids = [br.room_id for br in b.rooms]
    lock_rooms(db, room_ids=room_ids)
    taken = find_conflicts(db, room_ids, check_in, check_out, exclude_booking_id=b.id)
    if taken:
        room_id, _ = taken[0]
        raise InsufficientAvailability(
            "One or more rooms are not available for the selected dates",
            available=0, requested=1, room_id=room_id,
        )

    preview = preview_price_change(db, b.id, check_in, check_out, adults, occupancy)
    if preview["difference"] != 0:
        if accepted_total is None or money(accepted_total) != preview["newTotal"]:
            raise PriceChangeNotConfirmed(preview)
    if money(b.paid_amount) > preview["newTotal"]:
        raise ValidationError("Amount already paid exceeds the new total; refund before shortening the stay",
                              rule="paid_exceeds_total")

    by_room = {line["roomId"]: line for line in preview["perRoomBreakdown"]}
    for br in b.rooms:
        line = by_room[br.room_id]
        br.rate_per_night = line["newPricePerNight"]
        br.number_of_nights = line["newNights"]
        br.total_price = line["newPrice"]
    b.check_in_date = check_in
    b.check_out_date = check_out
    b.number_of_adults = adults
    b.number_of_children = children
    b.occupancy = occupancy
    b.total_amount = preview["newTotal"]
    b.modified_by_user_id = None if actor == "public" else actor
    if b.paid_amount >= b.total_amount:
        b.status = next_status(b.status, BookingEvent.PAYMENT_SETTLED)
    log_audit(db, actor, "BOOKING_UPDATED", "Booking", b.id, {
        "bookingNumber": b.booking_number,
        "originalTotal": preview["originalTotal"],
        "newTotal": preview["newTotal"],
        "checkIn": check_in,
        "checkOut": check_out,
        "occupancy": occupancy,
    })
    _commit(db)
    logger.info("booking %s changed, total %s -> %s", b.booking_number, preview["originalTotal"], preview["newTotal"])
    return b


def expire_pending_bookings(db: Session, today: date | None = None) -> list[str]:
    """Cancel PENDING bookings whose check-in date has passed; returns their numbers."""
    today = today or date.today()
    expired = db.query(Booking).filter(
        Booking.status == BookingStatus.PENDING,
        Booking.check_in_date < today,
    ).all()
    for b in expired:
        b.status = next_status(b.status, BookingEvent.EXPIRE)
        b.cancelled_at = datetime.now(timezone.utc)
        _release_rooms(db, b, today=today)
        log_audit(db, "scheduler", "AUTO_CANCEL_EXPIRED", "Booking", b.id, {
            "bookingNumber": b.booking_number,
            "checkInDate": b.check_in_date,
            "reason": "Expired - check-in date passed without confirmation",
        })
    _commit(db)
    return [b.booking_number for b in expired]


def auto_checkout_bookings(db: Session, today: date | None = None) -> dict:
    """Check out guests whose stay has ended; confirmed guests who never arrived become NO_SHOW."""
    today = today or date.today()
    due = db.query(Booking).filter(
        Booking.check_out_date <= today,
        Booking.status.in_([BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED]),
    ).all()
    checked_out, no_show = [], []
    for b in due:
        if b.status == BookingStatus.CHECKED_IN:
            b.status = next_status(b.status, BookingEvent.CHECK_OUT)
            b.actual_check_out = datetime.now(timezone.utc)
            _release_rooms(db, b, checked_in=True, today=today)
            log_audit(db, "scheduler", "AUTO_CHECKOUT", "Booking", b.id, {"bookingNumber": b.booking_number, "balance": b.balance})
            checked_out.append(b.booking_number)
        else:
            b.status = next_status(b.status, BookingEvent.NO_SHOW)
            _release_rooms(db, b, today=today)
            log_audit(db, "scheduler", "NO_SHOW", "Booking", b.id, {"bookingNumber": b.booking_number})
            no_show.append(b.booking_number)
    _commit(db)
    return {"checkedOut": checked_out, "noShow": no_show}
