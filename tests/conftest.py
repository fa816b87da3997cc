import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hippobuck.core.constants import UserRole
from hippobuck.core.security import create_access_token, hash_password
from hippobuck.db.base import Base
from hippobuck.db.session import get_db
from hippobuck.main import app
from hippobuck.models.room import Room, RoomType
from hippobuck.models.user import User
from hippobuck.services import email_service
from hippobuck.services.booking_service import GuestInfo, create_booking

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "send_email", lambda to, subject, body: sent.append((to, subject, body)))
    return sent


@pytest.fixture
def room_types(db):
    superior = RoomType(
        id=str(uuid.uuid4()), name="Superior", slug="superior", max_occupancy=2,
        single_price_domestic=Decimal("5000"), double_price_domestic=Decimal("7000"),
        single_price_intl=Decimal("60"), double_price_intl=Decimal("80"),
    )
    standard = RoomType(
        id=str(uuid.uuid4()), name="Standard", slug="standard", max_occupancy=2,
        single_price_domestic=Decimal("3000"), double_price_domestic=Decimal("3500"),
        single_price_intl=Decimal("40"), double_price_intl=Decimal("45"),
    )
    db.add_all([superior, standard])
    db.commit()
    return {"superior": superior, "standard": standard}


@pytest.fixture
def rooms(db, room_types):
    layout = {
        "201": room_types["superior"], "202": room_types["superior"],
        "101": room_types["standard"], "102": room_types["standard"], "103": room_types["standard"],
    }
    out = {}
    for number, rt in layout.items():
        r = Room(id=str(uuid.uuid4()), room_number=number, floor=int(number[0]), room_type_id=rt.id,
                 status="AVAILABLE", is_active=True)
        db.add(r)
        out[number] = r
    db.commit()
    return out


@pytest.fixture
def guest():
    return GuestInfo(first_name="Wanjiku", last_name="Kamau", email="Wanjiku@Example.com",
                     phone="0712345678", country="Kenya")


@pytest.fixture
def stay():
    check_in = date.today() + timedelta(days=10)
    return check_in, check_in + timedelta(days=2)


@pytest.fixture
def book(db, guest, stay):
    """Create a booking through the service; defaults to 2 nights, 2 adults, room 201."""
    def _book(room_ids=None, room_types=None, check_in=None, check_out=None, adults=2, **kw):
        ci = check_in or stay[0]
        co = check_out or (ci + timedelta(days=2))
        if room_ids is None and room_types is None:
            room_ids = [_room_id(db, "201")]
        return create_booking(db, kw.pop("guest", guest), ci, co, adults,
                              room_ids=room_ids, room_types=room_types, **kw)
    return _book


@pytest.fixture
def book_confirmed(book, staff_user):
    """Staff-confirmed booking; CONFIRMED stays block their rooms under every availability policy."""
    def _book(**kw):
        return book(staff_user=staff_user, staff_confirm=True, **kw)
    return _book


def _room_id(db, number: str) -> str:
    return db.query(Room.id).filter(Room.room_number == number).scalar()


@pytest.fixture
def staff_user(db):
    u = User(id=str(uuid.uuid4()), email="frontdesk@hippobuck.local", first_name="Front", last_name="Desk",
             role=UserRole.STAFF, password_hash=hash_password("frontdesk12345"), is_active=True)
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def housekeeper(db):
    u = User(id=str(uuid.uuid4()), email="hk@hippobuck.local", first_name="House", last_name="Keeping",
             role=UserRole.HOUSEKEEPING, password_hash=hash_password("housekeeping12345"), is_active=True)
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def staff_headers(staff_user):
    return {"Authorization": f"Bearer {create_access_token(staff_user.id, staff_user.role)}"}


@pytest.fixture
def client(db):
    def _get_db():
        yield db
    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def manager_headers(db):
    u = User(id=str(uuid.uuid4()), email="manager@hippobuck.local", first_name="Hotel", last_name="Manager",
             role=UserRole.MANAGER, password_hash=hash_password("manager12345"), is_active=True)
    db.add(u)
    db.commit()
    return {"Authorization": f"Bearer {create_access_token(u.id, u.role)}"}
