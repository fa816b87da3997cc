from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hippobuck.api.deps import require_roles
from hippobuck.api.v1.routes.public import guest_info, room_requests
from hippobuck.core.constants import UserRole
from hippobuck.db.session import get_db
from hippobuck.models.user import User
from hippobuck.schemas.booking import BookingChange, BookingOut, CancelRequest, StaffBookingCreate, booking_out
from hippobuck.schemas.payments import payment_out
from hippobuck.services.booking_service import (
    apply_booking_change, cancel_booking, check_in_booking, check_out_booking, create_booking, get_booking,
    mark_no_show, preview_price_change, search_bookings,
)
from hippobuck.services.payment_service import list_payments

router = APIRouter(tags=["bookings"])

front_desk = require_roles(*UserRole.FRONT_DESK)


@router.post("/bookings", response_model=BookingOut)
def create_staff_booking(body: StaffBookingCreate, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    """Walk-in / phone booking. Staff may take a deposit and confirm straight away."""
    booking = create_booking(
        db,
        guest_info(body),
        body.checkIn,
        body.checkOut,
        body.adults,
        body.children,
        room_types=room_requests(body),
        room_ids=body.roomIds,
        paid_amount=body.paidAmount,
        payment_method=body.paymentMethod,
        staff_user=user,
        staff_confirm=body.confirm,
        region=body.region,
        occupancy=body.occupancy,
    )
    return booking_out(booking)


@router.get("/bookings", response_model=list[BookingOut])
def list_bookings(
    status: Optional[str] = None,
    email: Optional[str] = None,
    bookingNumber: Optional[str] = None,
    checkInFrom: Optional[date] = None,
    checkInTo: Optional[date] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    user: User = Depends(front_desk),
):
    items = search_bookings(db, status=status, email=email, booking_number=bookingNumber,
                            check_in_from=checkInFrom, check_in_to=checkInTo, limit=limit)
    return [booking_out(b) for b in items]


@router.get("/bookings/{booking_id}")
def get_booking_detail(booking_id: str, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    b = get_booking(db, booking_id)
    out = booking_out(b).model_dump()
    out["payments"] = [payment_out(p).model_dump() for p in list_payments(db, b.id)]
    return out


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def cancel(booking_id: str, body: CancelRequest, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    return booking_out(cancel_booking(db, booking_id, actor=user.id, reason=body.reason))


@router.post("/bookings/{booking_id}/check-in", response_model=BookingOut)
def check_in(booking_id: str, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    return booking_out(check_in_booking(db, booking_id, actor=user.id))


@router.post("/bookings/{booking_id}/check-out", response_model=BookingOut)
def check_out(booking_id: str, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    return booking_out(check_out_booking(db, booking_id, actor=user.id))


@router.post("/bookings/{booking_id}/no-show", response_model=BookingOut)
def no_show(booking_id: str, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    return booking_out(mark_no_show(db, booking_id, actor=user.id))


@router.post("/bookings/{booking_id}/preview-change")
def preview_change(booking_id: str, body: BookingChange, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    return preview_price_change(db, booking_id, body.checkIn, body.checkOut, body.adults, body.occupancy)


@router.post("/bookings/{booking_id}/change", response_model=BookingOut)
def change(booking_id: str, body: BookingChange, db: Session = Depends(get_db), user: User = Depends(front_desk)):
    b = apply_booking_change(
        db, booking_id,
        new_check_in=body.checkIn,
        new_check_out=body.checkOut,
        new_adults=body.adults,
        new_children=body.children,
        new_occupancy=body.occupancy,
        accepted_total=body.acceptedTotal,
        actor=user.id,
    )
    return booking_out(b)
