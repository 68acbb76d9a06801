import os
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_hotelbooking.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")

from common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from common.database import Base, SessionLocal, engine  # noqa: E402
from common.models import Hotel, RoleEnum, Room, User  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.hotels.app import app as hotels_app, room_list_cache  # noqa: E402

OWNER_ID = "user_owner"
GUEST_ID = "user_guest"


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    room_list_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


@pytest.fixture()
def hotels_client() -> Generator[TestClient, None, None]:
    with TestClient(hotels_app) as client:
        yield client


@pytest.fixture()
def make_user(db_session):
    def _make(user_id: str, role: RoleEnum = RoleEnum.USER) -> User:
        user = User(id=user_id, username=user_id, email=f"{user_id}@example.com", role=role)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def guest(make_user) -> User:
    return make_user(GUEST_ID)


@pytest.fixture()
def hotel(db_session, make_user) -> Hotel:
    owner = make_user(OWNER_ID, RoleEnum.HOTEL_OWNER)
    hotel = Hotel(name="Seaside Inn", address="1 Beach Road", contact="+351000000", city="Lisbon", owner_id=owner.id)
    db_session.add(hotel)
    db_session.commit()
    return hotel


@pytest.fixture()
def room(db_session, hotel) -> Room:
    """A $100/night double room in the fixture hotel."""
    room = Room(
        hotel_id=hotel.id,
        room_type="Double Bed",
        price_per_night=Decimal("100.00"),
        amenities=["Free WiFi", "Room Service"],
        images=["https://img.example.com/double.jpg"],
        is_available=True,
    )
    db_session.add(room)
    db_session.commit()
    return room
