import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from hippobuck.db.session import get_db
from hippobuck.api.deps import require_roles
from hippobuck.core.constants import RoomStatus, UserRole
from hippobuck.models.user import User
from hippobuck.models.room import Room, RoomType
from hippobuck.models.seasonal_pricing import SeasonalPricing
from hippobuck.core.security import hash_password
from hippobuck.api.v1.routes.public import room_type_out
from hippobuck.schemas.room import (
    RoomIn, RoomStatusUpdate, RoomTypeIn, RoomTypeOut, RoomTypeUpdate, RoomUpdate, SeasonalPricingIn,
)
from hippobuck.services.audit_service import log_audit
from hippobuck.services.email_service import queue_email

router = APIRouter(tags=["admin"])

managers = require_roles(UserRole.ADMIN, UserRole.MANAGER)


def _season_out(s: SeasonalPricing) -> dict:
    return {
        "id": s.id,
        "roomTypeId": s.room_type_id,
        "name": s.name,
        "startDate": s.start_date.isoformat(),
        "endDate": s.end_date.isoformat(),
        "priceMultiplier": str(s.price_multiplier),
        "fixedPrice": str(s.fixed_price) if s.fixed_price is not None else None,
        "isActive": s.is_active,
    }


def _room_out(r: Room) -> dict:
    return {
        "id": r.id, "roomNumber": r.room_number, "floor": r.floor, "roomTypeId": r.room_type_id,
        "roomType": r.room_type.name, "status": r.status, "isActive": r.is_active,
    }


@router.get("/admin/users")
def list_users(role: str | None = None, limit: int = 50, offset: int = 0,
               db: Session = Depends(get_db),
               me: User = Depends(require_roles(UserRole.ADMIN))):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    total = query.count()
    users = query.order_by(User.created_at.desc()).limit(min(limit, 200)).offset(max(offset, 0)).all()
    return {
        "total": total,
        "items": [{"id": u.id, "email": u.email, "fullName": u.full_name, "role": u.role, "isActive": u.is_active} for u in users],
    }


@router.post("/admin/users")
def create_user(email: str, firstName: str = "", lastName: str = "", role: str = UserRole.STAFF,
                tempPassword: str | None = None,
                db: Session = Depends(get_db),
                me: User = Depends(require_roles(UserRole.ADMIN))):
    email_l = email.strip().lower()
    if not email_l:
        raise HTTPException(status_code=400, detail="email required")
    if db.query(User).filter(User.email == email_l).first():
        raise HTTPException(status_code=409, detail="email already exists")
    if role not in UserRole.ALL:
        raise HTTPException(status_code=400, detail="invalid role")
    pw = tempPassword or (uuid.uuid4().hex[:10] + "A1!")
    u = User(
        id=str(uuid.uuid4()),
        email=email_l,
        first_name=firstName,
        last_name=lastName,
        role=role,
        password_hash=hash_password(pw),
        is_active=True,
    )
    db.add(u)
    log_audit(db, me.id, "USER_CREATED", "User", u.id, {"email": u.email, "role": role})
    db.commit()
    queue_email(db, u.email, "Hotel Hippo Buck staff account",
                f"Your staff account is ready.\nRole: {role}\nTemporary password: {pw}\nPlease login and change it.")
    return {"ok": True, "id": u.id, "email": u.email, "tempPassword": pw}


@router.get("/admin/seasonal-pricing")
def list_seasonal_pricing(roomTypeId: str | None = None, db: Session = Depends(get_db), me: User = Depends(managers)):
    q = db.query(SeasonalPricing)
    if roomTypeId:
        q = q.filter(SeasonalPricing.room_type_id == roomTypeId)
    return [_season_out(s) for s in q.order_by(SeasonalPricing.start_date.asc()).all()]


@router.post("/admin/seasonal-pricing")
def create_seasonal_pricing(body: SeasonalPricingIn, db: Session = Depends(get_db), me: User = Depends(managers)):
    """New prices only apply to bookings made afterwards; existing bookings keep their frozen rates."""
    if not db.get(RoomType, body.roomTypeId):
        raise HTTPException(status_code=404, detail="Room type not found")
    if body.endDate < body.startDate:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")
    s = SeasonalPricing(
        id=str(uuid.uuid4()),
        room_type_id=body.roomTypeId,
        name=body.name,
        start_date=body.startDate,
        end_date=body.endDate,
        price_multiplier=body.priceMultiplier,
        fixed_price=body.fixedPrice,
        is_active=body.isActive,
    )
    db.add(s)
    log_audit(db, me.id, "SEASONAL_PRICING_CREATED", "SeasonalPricing", s.id, _season_out(s))
    db.commit()
    return _season_out(s)


@router.delete("/admin/seasonal-pricing/{season_id}")
def deactivate_seasonal_pricing(season_id: str, db: Session = Depends(get_db), me: User = Depends(managers)):
    s = db.get(SeasonalPricing, season_id)
    if not s:
        raise HTTPException(status_code=404, detail="not found")
    s.is_active = False
    log_audit(db, me.id, "SEASONAL_PRICING_DEACTIVATED", "SeasonalPricing", s.id, {"name": s.name})
    db.commit()
    return {"ok": True}


@router.get("/admin/rooms")
def list_rooms(status: str | None = None, db: Session = Depends(get_db),
               me: User = Depends(require_roles(*UserRole.ALL))):
    q = db.query(Room)
    if status:
        q = q.filter(Room.status == status)
    return [_room_out(r) for r in q.order_by(Room.room_number.asc()).all()]


@router.patch("/admin/rooms/{room_id}/status")
def update_room_status(room_id: str, body: RoomStatusUpdate, db: Session = Depends(get_db),
                       me: User = Depends(require_roles(*UserRole.ALL))):
    """Housekeeping and front desk flag rooms; bookings are unaffected, availability still follows stays."""
    if body.status not in RoomStatus.ALL:
        raise HTTPException(status_code=400, detail="invalid status")
    r = db.get(Room, room_id)
    if not r:
        raise HTTPException(status_code=404, detail="not found")
    previous = r.status
    r.status = body.status
    log_audit(db, me.id, "ROOM_STATUS_CHANGED", "Room", r.id,
              {"roomNumber": r.room_number, "from": previous, "to": body.status})
    db.commit()
    return {"ok": True, "status": r.status}




# RoomTypeIn/RoomTypeUpdate field -> RoomType column
ROOM_TYPE_FIELDS = {
    "name": "name",
    "description": "description",
    "bedType": "bed_type",
    "sizeSqm": "size_sqm",
    "maxOccupancy": "max_occupancy",
    "singleDomesticPrice": "single_price_domestic",
    "doubleDomesticPrice": "double_price_domestic",
    "singleInternationalPrice": "single_price_intl",
    "doubleInternationalPrice": "double_price_intl",
    "isActive": "is_active",
}


def _apply_room_type_fields(rt: RoomType, data: dict) -> None:
    for key, column in ROOM_TYPE_FIELDS.items():
        if key in data:
            setattr(rt, column, data[key])
    if "amenities" in data:
        rt.amenities_csv = ",".join(a.strip() for a in data["amenities"] if a.strip())
    if "imageUrls" in data:
        rt.image_urls_csv = ",".join(u.strip() for u in data["imageUrls"] if u.strip())


@router.get("/admin/room-types", response_model=list[RoomTypeOut])
def list_all_room_types(db: Session = Depends(get_db), me: User = Depends(managers)):
    return [room_type_out(rt) for rt in db.query(RoomType).order_by(RoomType.name.asc()).all()]


@router.post("/admin/room-types", response_model=RoomTypeOut)
def create_room_type(body: RoomTypeIn, db: Session = Depends(get_db), me: User = Depends(managers)):
    slug = body.slug.strip().lower()
    if db.query(RoomType.id).filter(RoomType.slug == slug).first():
        raise HTTPException(status_code=409, detail="slug already exists")
    rt = RoomType(id=str(uuid.uuid4()), slug=slug)
    _apply_room_type_fields(rt, body.model_dump())
    db.add(rt)
    log_audit(db, me.id, "ROOM_TYPE_CREATED", "RoomType", rt.id, {"name": rt.name, "slug": slug})
    db.commit()
    return room_type_out(rt)


@router.patch("/admin/room-types/{room_type_id}", response_model=RoomTypeOut)
def update_room_type(room_type_id: str, body: RoomTypeUpdate, db: Session = Depends(get_db),
                     me: User = Depends(managers)):
    """Rate changes only reach quotes made afterwards; existing bookings keep their frozen rates."""
    rt = db.get(RoomType, room_type_id)
    if not rt:
        raise HTTPException(status_code=404, detail="Room type not found")
    changes = body.model_dump(exclude_unset=True)
    _apply_room_type_fields(rt, changes)
    log_audit(db, me.id, "ROOM_TYPE_UPDATED", "RoomType", rt.id, {"name": rt.name, "changes": changes})
    db.commit()
    return room_type_out(rt)


@router.post("/admin/rooms")
def create_room(body: RoomIn, db: Session = Depends(get_db), me: User = Depends(managers)):
    if body.status not in RoomStatus.ALL:
        raise HTTPException(status_code=400, detail="invalid status")
    if not db.get(RoomType, body.roomTypeId):
        raise HTTPException(status_code=404, detail="Room type not found")
    number = body.roomNumber.strip()
    if db.query(Room.id).filter(Room.room_number == number).first():
        raise HTTPException(status_code=409, detail="room number already exists")
    r = Room(
        id=str(uuid.uuid4()),
        room_number=number,
        floor=body.floor if body.floor is not None else (int(number[0]) if number[0].isdigit() else 0),
        room_type_id=body.roomTypeId,
        status=body.status,
        is_active=body.isActive,
    )
    db.add(r)
    log_audit(db, me.id, "ROOM_CREATED", "Room", r.id, {"roomNumber": number, "roomTypeId": body.roomTypeId})
    db.commit()
    db.refresh(r)
    return _room_out(r)


@router.patch("/admin/rooms/{room_id}")
def update_room(room_id: str, body: RoomUpdate, db: Session = Depends(get_db), me: User = Depends(managers)):
    r = db.get(Room, room_id)
    if not r:
        raise HTTPException(status_code=404, detail="not found")
    changes = body.model_dump(exclude_unset=True)
    if changes.get("roomNumber"):
        number = changes["roomNumber"].strip()
        if db.query(Room.id).filter(Room.room_number == number, Room.id != r.id).first():
            raise HTTPException(status_code=409, detail="room number already exists")
        r.room_number = number
    if changes.get("roomTypeId"):
        if not db.get(RoomType, changes["roomTypeId"]):
            raise HTTPException(status_code=404, detail="Room type not found")
        r.room_type_id = changes["roomTypeId"]
    if "floor" in changes and changes["floor"] is not None:
        r.floor = changes["floor"]
    if changes.get("isActive") is not None:
        r.is_active = changes["isActive"]
    log_audit(db, me.id, "ROOM_UPDATED", "Room", r.id, {"roomNumber": r.room_number, "changes": changes})
    db.commit()
    db.refresh(r)
    return _room_out(r)
