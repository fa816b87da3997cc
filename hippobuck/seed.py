import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from hippobuck.db.session import SessionLocal
from hippobuck.core.constants import RoomStatus, UserRole
from hippobuck.core.security import hash_password
from hippobuck.models.user import User
from hippobuck.models.room import Room, RoomType

logger = logging.getLogger(__name__)

# (slug, name, description, size_sqm, single/double domestic, single/double international, amenities, room numbers)
ROOM_TYPES = [
    (
        "standard", "Standard Room",
        "Comfortable accommodation with all essential amenities for a pleasant stay",
        20, ("3000", "3500"), ("40", "45"),
        "Free High-Speed WiFi,Flat-Screen Smart TV,Air Conditioning,Coffee/Tea Facilities,"
        "En-suite Bathroom,Work Desk,Daily Housekeeping,Bed & Breakfast Included",
        ["101", "102", "103", "104", "105", "106"],
    ),
    (
        "superior-pool", "Superior Room (Pool View)",
        "Enhanced comfort with stunning views of our swimming pool",
        28, ("5000", "5500"), ("55", "65"),
        "Free High-Speed WiFi,Flat-Screen Smart TV,Air Conditioning,Mini Refrigerator,"
        "Balcony/Terrace,Pool View,Priority Room Service,Bed & Breakfast Included",
        ["201", "202", "203", "204"],
    ),
    (
        "superior-garden", "Superior Room (Garden View)",
        "Premium luxury with serene views of our landscaped gardens",
        32, ("6500", "7500"), ("75", "110"),
        "Free High-Speed WiFi,Premium Smart TV,Air Conditioning,Luxury Bathroom with Bathtub,"
        "In-Room Safe,Private Balcony,Garden View,Turndown Service,Bed & Breakfast Included",
        ["301", "302", "303", "304"],
    ),
]


def ensure_user(db: Session, email: str, password: str, role: str, first_name: str):
    u = db.query(User).filter(User.email == email).first()
    if u:
        return
    db.add(
        User(
            id=str(uuid.uuid4()),
            email=email,
            first_name=first_name,
            last_name="",
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
    )
    db.commit()


def ensure_room_types(db: Session):
    for slug, name, description, size, domestic, intl, amenities, numbers in ROOM_TYPES:
        rt = db.query(RoomType).filter(RoomType.slug == slug).first()
        if not rt:
            rt = RoomType(
                id=str(uuid.uuid4()),
                slug=slug,
                name=name,
                description=description,
                bed_type="Single Bed,Double Bed",
                size_sqm=size,
                max_occupancy=2,
                single_price_domestic=Decimal(domestic[0]),
                double_price_domestic=Decimal(domestic[1]),
                single_price_intl=Decimal(intl[0]),
                double_price_intl=Decimal(intl[1]),
                amenities_csv=amenities,
                is_active=True,
            )
            db.add(rt)
            db.flush()
        for number in numbers:
            if db.query(Room.id).filter(Room.room_number == number).first():
                continue
            db.add(Room(
                id=str(uuid.uuid4()),
                room_number=number,
                floor=int(number[0]),
                room_type_id=rt.id,
                status=RoomStatus.AVAILABLE,
                is_active=True,
            ))
    db.commit()


def run(db=None):
    own = db is None
    if own:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except ProgrammingError:
            db.rollback()
            logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@hippobuck.local", "admin12345", UserRole.ADMIN, "Admin")
        ensure_user(db, "manager@hippobuck.local", "manager12345", UserRole.MANAGER, "Manager")
        ensure_user(db, "frontdesk@hippobuck.local", "frontdesk12345", UserRole.STAFF, "Front Desk")
        ensure_user(db, "housekeeping@hippobuck.local", "housekeeping12345", UserRole.HOUSEKEEPING, "Housekeeping")
        ensure_room_types(db)
        logger.info("seed complete")
    finally:
        if own:
            db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
