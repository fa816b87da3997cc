import random
import re
import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from hippobuck.core.config import settings
from hippobuck.core.exceptions import (
    BookingConflict, InsufficientAvailability, InvalidStatusTransition, NotFound, OverpaymentError,
    PriceChangeNotConfirmed, ValidationError,
)
from hippobuck.models.audit_log import AuditLog
from hippobuck.models.booking import Booking
from hippobuck.models.seasonal_pricing import SeasonalPricing
from hippobuck.services import booking_service
from hippobuck.services.allocation_service import RoomRequest
from hippobuck.services.booking_service import (
    GuestInfo, allocate_booking_number, apply_booking_change, cancel_booking, check_in_booking, check_out_booking,
    generate_booking_number, get_booking_by_number, mark_no_show, preview_price_change,
    validate_stay_dates,
)
from hippobuck.services.payment_service import record_payment

NUMBER_RE = re.compile(r"^HHB-\d{8}-[A-Z0-9]{4}$")


def test_create_booking_freezes_prices(db, rooms, book, outbox):
    b = book()
    assert NUMBER_RE.match(b.booking_number)
    assert b.status == "PENDING"
    assert b.total_amount == Decimal("14000")
    assert b.paid_amount == 0
    assert b.region == "DOMESTIC"
    assert b.occupancy == "DOUBLE"
    assert b.currency == "KES"
    assert b.guest_email == "wanjiku@example.com"
    [line] = b.rooms
    assert line.rate_per_night == Decimal("7000")
    assert line.number_of_nights == 2
    assert line.total_price == Decimal("14000")
    assert rooms["201"].status == "RESERVED"
    assert outbox and outbox[0][0] == "wanjiku@example.com"
    assert db.query(AuditLog).filter(AuditLog.action == "BOOKING_CREATED").count() == 1


def test_total_is_sum_of_rooms(db, rooms, room_types, book):
    b = book(room_types=[RoomRequest(room_types["superior"].id, 1), RoomRequest(room_types["standard"].id, 2)],
             adults=4)
    assert len(b.rooms) == 3
    assert b.total_amount == sum(br.total_price for br in b.rooms)
    assert b.total_amount == Decimal("14000") + 2 * Decimal("7000")


def test_international_guest_single_occupancy(db, rooms, book):
    g = GuestInfo(first_name="Anna", last_name="Muller", email="anna@example.de", phone="+49 30 1234", country="Germany")
    b = book(guest=g, adults=1)
    assert (b.region, b.occupancy, b.currency) == ("INTERNATIONAL", "SINGLE", "USD")
    assert b.total_amount == Decimal("120")


def test_full_initial_payment_confirms(db, rooms, book):
    b = book(paid_amount=Decimal("14000"), payment_method="CASH")
    assert b.status == "CONFIRMED"
    assert b.paid_amount == Decimal("14000")


def test_partial_initial_payment_stays_pending(db, rooms, book):
    b = book(paid_amount=Decimal("5000"), payment_method="MPESA")
    assert b.status == "PENDING"
    assert b.balance == Decimal("9000")


def test_initial_payment_above_total(db, rooms, book):
    with pytest.raises(OverpaymentError):
        book(paid_amount=Decimal("20000"), payment_method="CASH")
    assert db.query(Booking).count() == 0


def test_staff_confirm_requires_staff(db, rooms, book, staff_user):
    assert book(staff_confirm=True).status == "PENDING"
    b = book(room_ids=[rooms["202"].id], staff_user=staff_user, staff_confirm=True)
    assert b.status == "CONFIRMED"
    assert b.created_by_user_id == staff_user.id


def test_same_room_cannot_be_double_booked(db, rooms, book, book_confirmed):
    book_confirmed()
    with pytest.raises(InsufficientAvailability):
        book()


def test_check_in_in_past_rejected():
    with pytest.raises(ValidationError) as e:
        validate_stay_dates(date(2030, 1, 1), date(2030, 1, 3), today=date(2030, 1, 2))
    assert e.value.rule == "check_in_not_past"


def test_check_out_must_follow_check_in():
    with pytest.raises(ValidationError) as e:
        validate_stay_dates(date(2030, 1, 3), date(2030, 1, 3), today=date(2030, 1, 1))
    assert e.value.rule == "check_out_after_check_in"


def test_maximum_stay():
    start = date(2030, 1, 1)
    assert validate_stay_dates(start, start + timedelta(days=settings.MAX_STAY_NIGHTS), today=start) == 30
    with pytest.raises(ValidationError) as e:
        validate_stay_dates(start, start + timedelta(days=31), today=start)
    assert e.value.rule == "max_stay"


def test_guest_validation(db, rooms, book, guest):
    with pytest.raises(ValidationError) as e:
        book(guest=GuestInfo(first_name="", last_name="Kamau", email="", phone="0712345678"))
    assert e.value.rule == "required_fields"
    with pytest.raises(ValidationError) as e:
        book(adults=0)
    assert e.value.rule == "min_adults"
    with pytest.raises(ValidationError) as e:
        book(adults=3)
    assert e.value.rule == "max_occupancy"


def test_lost_commit_race_is_retried(db, rooms, book, monkeypatch):
    calls = []
    real = booking_service.find_conflicts

    def racing(*args, **kw):
        calls.append(1)
        if len(calls) == 1:
            return [(rooms["201"].id, "HHB-20300101-ZZZZ")]
        return real(*args, **kw)

    monkeypatch.setattr(booking_service, "find_conflicts", racing)
    b = book()
    assert len(calls) == 2
    assert b.status == "PENDING"
    assert db.query(Booking).count() == 1


def test_conflict_surfaces_after_retries(db, rooms, book, monkeypatch):
    monkeypatch.setattr(booking_service, "find_conflicts", lambda *a, **kw: [(rooms["201"].id, "HHB-20300101-ZZZZ")])
    with pytest.raises(BookingConflict) as e:
        book()
    assert e.value.retryable
    assert db.query(Booking).count() == 0


def test_booking_number_format():
    assert generate_booking_number(date(2030, 3, 9)).startswith("HHB-20300309-")
    assert NUMBER_RE.match(generate_booking_number())


def test_booking_numbers_stay_unique_across_many_bookings(db, stay):
    issued = []
    for i in range(300):
        number = allocate_booking_number(db)
        db.add(Booking(id=str(uuid.uuid4()), booking_number=number, guest_first_name="Guest", guest_last_name=str(i),
                       guest_email=f"guest{i}@example.com", guest_phone="0712345678",
                       check_in_date=stay[0], check_out_date=stay[1]))
        db.flush()
        issued.append(number)
    db.commit()
    assert len(set(issued)) == len(issued)
    assert all(NUMBER_RE.match(n) for n in issued)


def test_taken_booking_number_is_retried(db, rooms, book, monkeypatch):
    b = book()
    fresh = "HHB-20300101-FRSH"
    candidates = iter([b.booking_number, b.booking_number, fresh])
    monkeypatch.setattr(booking_service, "generate_booking_number", lambda on=None: next(candidates))
    assert allocate_booking_number(db) == fresh


def test_booking_number_collisions_exhausted(db, rooms, book, monkeypatch):
    b = book()
    monkeypatch.setattr(booking_service, "generate_booking_number", lambda on=None: b.booking_number)
    with pytest.raises(BookingConflict):
        allocate_booking_number(db)


def test_lookup_is_case_sensitive(db, rooms, book):
    b = book()
    assert get_booking_by_number(db, b.booking_number).id == b.id
    with pytest.raises(NotFound):
        get_booking_by_number(db, b.booking_number.lower())


def test_cancel_frees_rooms(db, rooms, book):
    b = book()
    b = cancel_booking(db, b.id, reason="change of plans")
    assert b.status == "CANCELLED"
    assert b.cancelled_at is not None
    assert rooms["201"].status == "AVAILABLE"
    with pytest.raises(InvalidStatusTransition):
        cancel_booking(db, b.id)


def test_stay_lifecycle(db, rooms, book, staff_user):
    today = date.today()
    b = book(check_in=today, check_out=today + timedelta(days=2), paid_amount=Decimal("10000"), payment_method="CASH",
             staff_user=staff_user, staff_confirm=True)
    assert b.status == "CONFIRMED"

    b = check_in_booking(db, b.id, actor=staff_user.id)
    assert b.status == "CHECKED_IN"
    assert b.actual_check_in is not None
    assert rooms["201"].status == "OCCUPIED"

    with pytest.raises(ValidationError) as e:
        check_out_booking(db, b.id, actor=staff_user.id)
    assert e.value.rule == "outstanding_balance"

    record_payment(db, b.id, Decimal("4000"), "CASH", actor=staff_user.id)
    b = check_out_booking(db, b.id, actor=staff_user.id)
    assert b.status == "CHECKED_OUT"
    assert rooms["201"].status == "CLEANING"

    with pytest.raises(InvalidStatusTransition):
        cancel_booking(db, b.id)


def test_check_in_needs_confirmation_and_date(db, rooms, book, staff_user):
    pending = book(check_in=date.today(), check_out=date.today() + timedelta(days=1))
    with pytest.raises(InvalidStatusTransition):
        check_in_booking(db, pending.id, actor=staff_user.id)

    future = book(room_ids=[rooms["202"].id], staff_user=staff_user, staff_confirm=True)
    with pytest.raises(ValidationError) as e:
        check_in_booking(db, future.id, actor=staff_user.id)
    assert e.value.rule == "check_in_date"


def test_no_show(db, rooms, book, staff_user):
    b = book(staff_user=staff_user, staff_confirm=True)
    b = mark_no_show(db, b.id, actor=staff_user.id)
    assert b.status == "NO_SHOW"
    assert rooms["201"].status == "AVAILABLE"


def test_seasonal_change_does_not_touch_existing_booking(db, rooms, room_types, book, stay):
    b = book()
    db.add(SeasonalPricing(id=str(uuid.uuid4()), room_type_id=room_types["superior"].id, name="festive",
                           start_date=stay[0], end_date=stay[1], price_multiplier=Decimal("2.00")))
    db.commit()
    db.refresh(b)
    assert b.total_amount == Decimal("14000")
    assert b.rooms[0].rate_per_night == Decimal("7000")

    preview = preview_price_change(db, b.id)
    assert preview["originalTotal"] == Decimal("14000")
    assert preview["newTotal"] == Decimal("28000")
    assert preview["difference"] == Decimal("14000")
    db.refresh(b)
    assert b.total_amount == Decimal("14000")


def test_preview_extension(db, rooms, book, stay):
    b = book()
    preview = preview_price_change(db, b.id, new_check_out=stay[1] + timedelta(days=1))
    assert preview["newTotal"] == Decimal("21000")
    assert preview["newNights"] == 3
    [line] = preview["perRoomBreakdown"]
    assert (line["oldNights"], line["newNights"]) == (2, 3)
    db.refresh(b)
    assert b.check_out_date == stay[1]


def test_apply_change_needs_accepted_total(db, rooms, book, stay):
    b = book()
    new_out = stay[1] + timedelta(days=1)
    with pytest.raises(PriceChangeNotConfirmed) as e:
        apply_booking_change(db, b.id, new_check_out=new_out)
    assert e.value.preview["newTotal"] == Decimal("21000")

    b = apply_booking_change(db, b.id, new_check_out=new_out, accepted_total=Decimal("21000"))
    assert b.check_out_date == new_out
    assert b.total_amount == Decimal("21000")
    assert b.rooms[0].number_of_nights == 3


def test_apply_change_without_price_difference(db, rooms, book, stay):
    b = book()
    # same length, shifted one day: still 2 x 7000
    b = apply_booking_change(db, b.id, new_check_in=stay[0] + timedelta(days=1),
                             new_check_out=stay[1] + timedelta(days=1))
    assert b.total_amount == Decimal("14000")
    assert b.check_in_date == stay[0] + timedelta(days=1)


def test_apply_change_single_occupancy_lowers_total(db, rooms, book):
    b = book()
    b = apply_booking_change(db, b.id, new_adults=1, accepted_total=Decimal("10000"))
    assert b.occupancy == "SINGLE"
    assert b.total_amount == Decimal("10000")


def test_apply_change_into_another_booking(db, rooms, book, book_confirmed, stay):
    b = book()
    book_confirmed(check_in=stay[1] + timedelta(days=1), check_out=stay[1] + timedelta(days=3))
    with pytest.raises(InsufficientAvailability):
        apply_booking_change(db, b.id, new_check_out=stay[1] + timedelta(days=2), accepted_total=Decimal("28000"))


def test_apply_change_below_paid_amount(db, rooms, book, stay):
    b = book(paid_amount=Decimal("14000"), payment_method="CASH")
    with pytest.raises(ValidationError) as e:
        apply_booking_change(db, b.id, new_check_out=stay[0] + timedelta(days=1), accepted_total=Decimal("7000"))
    assert e.value.rule == "paid_exceeds_total"


def test_apply_change_on_cancelled_booking(db, rooms, book, stay):
    b = book()
    cancel_booking(db, b.id)
    with pytest.raises(ValidationError) as e:
        apply_booking_change(db, b.id, new_check_out=stay[1] + timedelta(days=1))
    assert e.value.rule == "editable_status"


def test_random_stays_never_share_a_room(db, rooms, room_types, book_confirmed):
    rng = random.Random(4242)
    first_night = date.today() + timedelta(days=1)
    superior = RoomRequest(room_types["superior"].id, 1)
    held = {"201": [], "202": []}

    for _ in range(40):
        check_in = first_night + timedelta(days=rng.randrange(0, 21))
        check_out = check_in + timedelta(days=rng.randrange(1, 6))
        free = [number for number, stays in sorted(held.items())
                if not any(ci < check_out and co > check_in for ci, co in stays)]
        if free:
            b = book_confirmed(room_types=[superior], check_in=check_in, check_out=check_out)
            [line] = b.rooms
            assert line.room.room_number == free[0]
            held[free[0]].append((check_in, check_out))
        else:
            with pytest.raises(InsufficientAvailability):
                book_confirmed(room_types=[superior], check_in=check_in, check_out=check_out)

    confirmed = db.query(Booking).filter(Booking.status == "CONFIRMED").all()
    assert len(confirmed) == len(held["201"]) + len(held["202"])
    for i, a in enumerate(confirmed):
        for b in confirmed[i + 1:]:
            if a.rooms[0].room_id == b.rooms[0].room_id:
                assert not (a.check_in_date < b.check_out_date and a.check_out_date > b.check_in_date)


def test_cancelling_future_stay_keeps_in_house_room_occupied(db, rooms, book, book_confirmed, staff_user):
    today = date.today()
    future = book()
    later = book_confirmed(check_in=future.check_out_date, check_out=future.check_out_date + timedelta(days=1))
    in_house = book_confirmed(check_in=today, check_out=today + timedelta(days=2))
    check_in_booking(db, in_house.id, actor=staff_user.id)
    assert rooms["201"].status == "OCCUPIED"

    cancel_booking(db, future.id)
    assert rooms["201"].status == "OCCUPIED"
    mark_no_show(db, later.id, actor=staff_user.id)
    assert rooms["201"].status == "OCCUPIED"


def test_cancel_keeps_room_reserved_for_later_guest(db, rooms, book, book_confirmed):
    later = book_confirmed()
    today = date.today()
    early = book(check_in=today, check_out=today + timedelta(days=2))
    cancel_booking(db, early.id)
    assert rooms["201"].status == "RESERVED"

    cancel_booking(db, later.id)
    assert rooms["201"].status == "AVAILABLE"
