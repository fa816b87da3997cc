from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from hippobuck.api.deps import get_optional_user
from hippobuck.db.session import get_db
from hippobuck.models.room import RoomType
from hippobuck.models.user import User
from hippobuck.schemas.booking import BookingChange, BookingCreate, BookingOut, PaymentMethodUpdate, booking_out
from hippobuck.schemas.room import PriceCheckRequest, RoomTypeOut
from hippobuck.services.allocation_service import RoomRequest
from hippobuck.services.availability_service import availability_by_type, available_rooms_with_pricing
from hippobuck.services.booking_service import (
    GuestInfo, apply_booking_change, create_booking, get_booking_by_number, preview_price_change, search_bookings,
    set_payment_method,
)
from hippobuck.services.pricing_service import calculate_room_price, resolve_occupancy, resolve_region

router = APIRouter(tags=["public"])


def room_type_out(rt: RoomType) -> RoomTypeOut:
    return RoomTypeOut(
        id=rt.id,
        name=rt.name,
        slug=rt.slug,
        description=rt.description or "",
        bedType=rt.bed_type or "",
        sizeSqm=rt.size_sqm,
        maxOccupancy=rt.max_occupancy,
        singleDomesticPrice=rt.single_price_domestic,
        doubleDomesticPrice=rt.double_price_domestic,
        singleInternationalPrice=rt.single_price_intl,
        doubleInternationalPrice=rt.double_price_intl,
        amenities=rt.amenities,
        imageUrls=rt.image_urls,
    )


def guest_info(body: BookingCreate) -> GuestInfo:
    g = body.guest
    return GuestInfo(
        first_name=g.firstName,
        last_name=g.lastName,
        email=g.email,
        phone=g.phone,
        country=g.country,
        id_type=g.idType,
        id_number=g.idNumber,
        special_requests=body.specialRequests,
    )


def room_requests(body: BookingCreate) -> list[RoomRequest]:
    return [RoomRequest(r.roomTypeId, r.quantity) for r in body.roomTypes]


@router.get("/public/room-types", response_model=list[RoomTypeOut])
def list_room_types(db: Session = Depends(get_db)):
    items = db.query(RoomType).filter(RoomType.is_active == True).order_by(RoomType.name.asc()).all()
    return [room_type_out(rt) for rt in items]


@router.get("/public/availability")
def get_availability(
    checkIn: date,
    checkOut: date,
    adults: int = 1,
    country: Optional[str] = None,
    roomTypeId: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Free rooms for the stay with the price a booking made now would be charged."""
    if checkOut <= checkIn:
        raise HTTPException(status_code=400, detail="Check-out date must be after check-in date")
    region = resolve_region(country)
    occupancy = resolve_occupancy(max(adults, 1))
    rooms = available_rooms_with_pricing(db, checkIn, checkOut, region, occupancy, room_type_id=roomTypeId)
    return {
        "checkIn": checkIn,
        "checkOut": checkOut,
        "region": region,
        "occupancy": occupancy,
        "countsByRoomType": availability_by_type(db, checkIn, checkOut),
        "rooms": rooms,
    }


@router.post("/public/price-check")
def price_check(body: PriceCheckRequest, db: Session = Depends(get_db)):
    quote = calculate_room_price(db, body.roomTypeId, body.checkIn, body.checkOut, body.region, body.occupancy)
    return quote.as_dict()


@router.post("/public/bookings", response_model=BookingOut)
def create_public_booking(body: BookingCreate, db: Session = Depends(get_db)):
    booking = create_booking(
        db,
        guest_info(body),
        body.checkIn,
        body.checkOut,
        body.adults,
        body.children,
        room_types=room_requests(body),
        room_ids=body.roomIds,
        region=body.region,
        occupancy=body.occupancy,
    )
    return booking_out(booking)


@router.get("/public/bookings", response_model=list[BookingOut])
def lookup_bookings_by_email(email: str, db: Session = Depends(get_db)):
    if not email.strip():
        raise HTTPException(status_code=400, detail="email is required")
    return [booking_out(b) for b in search_bookings(db, email=email, limit=50)]


@router.get("/public/bookings/{booking_number}", response_model=BookingOut)
def get_public_booking(booking_number: str, db: Session = Depends(get_db)):
    return booking_out(get_booking_by_number(db, booking_number))


@router.patch("/public/bookings/{booking_number}/payment-method", response_model=BookingOut)
def update_payment_method(booking_number: str, body: PaymentMethodUpdate, db: Session = Depends(get_db)):
    b = get_booking_by_number(db, booking_number)
    return booking_out(set_payment_method(db, b.id, body.paymentMethod))


@router.post("/public/bookings/{booking_number}/preview-change")
def preview_booking_change(booking_number: str, body: BookingChange, db: Session = Depends(get_db)):
    b = get_booking_by_number(db, booking_number)
    return preview_price_change(db, b.id, body.checkIn, body.checkOut, body.adults, body.occupancy)


@router.post("/public/bookings/{booking_number}/change", response_model=BookingOut)
def change_booking(
    booking_number: str,
    body: BookingChange,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    b = get_booking_by_number(db, booking_number)
    b = apply_booking_change(
        db, b.id,
        new_check_in=body.checkIn,
        new_check_out=body.checkOut,
        new_adults=body.adults,
        new_children=body.children,
        new_occupancy=body.occupancy,
        accepted_total=body.acceptedTotal,
        actor=user.id if user else "public",
    )
    return booking_out(b)
