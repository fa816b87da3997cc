"""Pick concrete rooms for a reservation request.

Nothing here writes to the database; the booking service holds the room
locks and commits.
"""
from dataclasses import dataclass
from datetime import date
from sqlalchemy.orm import Session

from hippobuck.core.exceptions import InsufficientAvailability, NotFound, ValidationError
from hippobuck.models.room import Room, RoomType
from hippobuck.services.availability_service import find_available_rooms


@dataclass(frozen=True)
class RoomRequest:
    room_type_id: str
    quantity: int = 1


def merge_requests(requests: list[RoomRequest]) -> list[RoomRequest]:
    merged: dict[str, int] = {}
    for r in requests:
        if r.quantity < 1:
            raise ValidationError("Room quantity must be at least 1", rule="room_quantity")
        merged[r.room_type_id] = merged.get(r.room_type_id, 0) + r.quantity
    return [RoomRequest(k, v) for k, v in merged.items()]


def allocate_by_type(db: Session, requests: list[RoomRequest], check_in: date, check_out: date) -> list[Room]:
    allocated: list[Room] = []
    for req in merge_requests(requests):
        room_type = db.get(RoomType, req.room_type_id)
        if not room_type or not room_type.is_active:
            raise NotFound("RoomType", req.room_type_id)
        available = find_available_rooms(db, check_in, check_out, room_type_id=req.room_type_id)
        if len(available) < req.quantity:
            raise InsufficientAvailability(
                f"Not enough {room_type.name} rooms: {len(available)} available, {req.quantity} requested",
                room_type_id=req.room_type_id,
                available=len(available),
                requested=req.quantity,
            )
        allocated.extend(available[:req.quantity])
    return allocated


def allocate_by_ids(db: Session, room_ids: list[str], check_in: date, check_out: date) -> list[Room]:
    wanted = list(dict.fromkeys(room_ids))
    available = {r.id: r for r in find_available_rooms(db, check_in, check_out)}
    for room_id in wanted:
        if room_id not in available:
            raise InsufficientAvailability(
                f"Room {room_id} is not available for selected dates",
                available=0,
                requested=1,
                room_id=room_id,
            )
    return [available[i] for i in wanted]


def allocate_rooms(db: Session, check_in: date, check_out: date,
                   room_types: list[RoomRequest] | None = None, room_ids: list[str] | None = None) -> list[Room]:
    if room_types:
        return allocate_by_type(db, room_types, check_in, check_out)
    if room_ids:
        return allocate_by_ids(db, room_ids, check_in, check_out)
    raise ValidationError("Select at least one room or room type", rule="room_selection")
