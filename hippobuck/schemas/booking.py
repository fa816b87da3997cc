from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class GuestIn(BaseModel):
    firstName: str
    lastName: str
    email: str  # plain str to allow .local and other dev domains
    phone: str
    country: Optional[str] = None
    idType: Optional[str] = None
    idNumber: Optional[str] = None


class RoomTypeRequestIn(BaseModel):
    roomTypeId: str
    quantity: int = 1


class BookingCreate(BaseModel):
    guest: GuestIn
    checkIn: date
    checkOut: date
    adults: int = 1
    children: int = 0
    # one of the two; roomTypes wins when both are sent
    roomTypes: List[RoomTypeRequestIn] = []
    roomIds: List[str] = []
    region: Optional[str] = None
    occupancy: Optional[str] = None
    specialRequests: Optional[str] = None


class StaffBookingCreate(BookingCreate):
    paidAmount: Decimal = Field(default=Decimal("0"), ge=0)
    paymentMethod: Optional[str] = None
    confirm: bool = False


class BookingChange(BaseModel):
    checkIn: Optional[date] = None
    checkOut: Optional[date] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    occupancy: Optional[str] = None
    # echo of the previewed newTotal; required when the price changes
    acceptedTotal: Optional[Decimal] = None


class PaymentMethodUpdate(BaseModel):
    paymentMethod: str


class CancelRequest(BaseModel):
    reason: str = ""


class BookingRoomOut(BaseModel):
    roomId: str
    roomNumber: str
    roomType: str
    ratePerNight: Decimal
    nights: int
    totalPrice: Decimal


class BookingOut(BaseModel):
    id: str
    bookingNumber: str
    status: str
    guestName: str
    guestEmail: str
    guestPhone: str
    checkIn: date
    checkOut: date
    nights: int
    adults: int
    children: int
    region: str
    occupancy: str
    currency: str
    totalAmount: Decimal
    paidAmount: Decimal
    balance: Decimal
    paymentMethod: Optional[str] = None
    specialRequests: Optional[str] = None
    rooms: List[BookingRoomOut] = []


def booking_out(b) -> BookingOut:
    return BookingOut(
        id=b.id,
        bookingNumber=b.booking_number,
        status=b.status,
        guestName=b.guest_name,
        guestEmail=b.guest_email,
        guestPhone=b.guest_phone,
        checkIn=b.check_in_date,
        checkOut=b.check_out_date,
        nights=b.nights,
        adults=b.number_of_adults,
        children=b.number_of_children,
        region=b.region,
        occupancy=b.occupancy,
        currency=b.currency,
        totalAmount=b.total_amount,
        paidAmount=b.paid_amount,
        balance=b.balance,
        paymentMethod=b.payment_method,
        specialRequests=b.special_requests,
        rooms=[
            BookingRoomOut(
                roomId=br.room_id,
                roomNumber=br.room.room_number,
                roomType=br.room.room_type.name,
                ratePerNight=br.rate_per_night,
                nights=br.number_of_nights,
                totalPrice=br.total_price,
            )
            for br in sorted(b.rooms, key=lambda x: x.room.room_number)
        ],
    )
