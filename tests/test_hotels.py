from decimal import Decimal

from common.auth import create_access_token
from common.models import Hotel, RoleEnum, Room, User

from conftest import GUEST_ID, OWNER_ID


def auth_header(user_id: str) -> dict[str, str]:
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


HOTEL_PAYLOAD = {"name": "Harbour View", "address": "7 Quay Street", "contact": "+44 1234", "city": "Bristol"}


def test_health(hotels_client):
    assert hotels_client.get("/health").json() == {"status": "ok", "service": "hotels"}


def test_register_hotel_promotes_user(hotels_client, db_session, guest):
    response = hotels_client.post("/api/hotels", json=HOTEL_PAYLOAD, headers=auth_header(GUEST_ID))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["name"] == "Harbour View"
    assert body["data"]["owner_id"] == GUEST_ID

    db_session.expire_all()
    assert db_session.get(User, GUEST_ID).role == RoleEnum.HOTEL_OWNER


def test_second_hotel_for_same_owner_is_rejected(hotels_client, hotel):
    response = hotels_client.post("/api/hotels", json=HOTEL_PAYLOAD, headers=auth_header(OWNER_ID))
    assert response.status_code == 409
    assert response.json() == {"success": False, "message": "Hotel Already Registered", "error": "conflict"}


def test_register_hotel_validates_fields(hotels_client, guest):
    response = hotels_client.post("/api/hotels", json={**HOTEL_PAYLOAD, "name": ""}, headers=auth_header(GUEST_ID))
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_owner_adds_room(hotels_client, hotel):
    payload = {"roomType": "Family Suite", "pricePerNight": 180, "amenities": ["Pool Access"], "images": []}
    response = hotels_client.post("/api/rooms", json=payload, headers=auth_header(OWNER_ID))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["room_type"] == "Family Suite"
    assert data["price_per_night"] == 180.0
    assert data["is_available"] is True
    assert data["hotel"]["id"] == hotel.id


def test_non_owner_cannot_add_room(hotels_client, hotel, guest):
    payload = {"roomType": "Single Bed", "pricePerNight": 50}
    response = hotels_client.post("/api/rooms", json=payload, headers=auth_header(GUEST_ID))
    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"


def test_room_price_must_be_positive(hotels_client, hotel):
    payload = {"roomType": "Single Bed", "pricePerNight": -5}
    response = hotels_client.post("/api/rooms", json=payload, headers=auth_header(OWNER_ID))
    assert response.status_code == 400


def test_room_list_is_cached_until_a_room_changes(hotels_client, db_session, room):
    first = hotels_client.get("/api/rooms").json()["data"]
    assert [r["id"] for r in first] == [room.id]

    # Written behind the service's back, so the cached list is still served.
    db_session.add(Room(hotel_id=room.hotel_id, room_type="Single Bed", price_per_night=Decimal("60")))
    db_session.commit()
    assert len(hotels_client.get("/api/rooms").json()["data"]) == 1

    payload = {"roomType": "Luxury Room", "pricePerNight": 250}
    assert hotels_client.post("/api/rooms", json=payload, headers=auth_header(OWNER_ID)).status_code == 201
    assert len(hotels_client.get("/api/rooms").json()["data"]) == 3


def test_owner_rooms_lists_all_own_rooms(hotels_client, db_session, room):
    hidden = Room(hotel_id=room.hotel_id, room_type="Single Bed", price_per_night=Decimal("60"), is_available=False)
    db_session.add(hidden)
    db_session.commit()

    response = hotels_client.get("/api/rooms/owner", headers=auth_header(OWNER_ID))
    assert response.status_code == 200
    assert {r["id"] for r in response.json()["data"]} == {room.id, hidden.id}


def test_toggle_availability(hotels_client, room):
    response = hotels_client.post(
        "/api/rooms/toggle-availability", json={"roomId": room.id}, headers=auth_header(OWNER_ID)
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Room availability updated"
    assert response.json()["data"]["is_available"] is False
    assert hotels_client.get("/api/rooms").json()["data"] == []

    response = hotels_client.post(
        "/api/rooms/toggle-availability", json={"roomId": room.id}, headers=auth_header(OWNER_ID)
    )
    assert response.json()["data"]["is_available"] is True


def test_toggle_room_of_another_hotel_is_denied(hotels_client, db_session, room, make_user):
    rival = make_user("user_rival", RoleEnum.HOTEL_OWNER)
    db_session.add(Hotel(name="Rival Lodge", address="2 Hill", contact="000", city="Porto", owner_id=rival.id))
    db_session.commit()

    response = hotels_client.post(
        "/api/rooms/toggle-availability", json={"roomId": room.id}, headers=auth_header(rival.id)
    )
    assert response.status_code == 403

    response = hotels_client.post(
        "/api/rooms/toggle-availability", json={"roomId": 9999}, headers=auth_header(rival.id)
    )
    assert response.status_code == 404


def test_user_data_and_recent_searches(hotels_client, guest):
    response = hotels_client.get("/api/user", headers=auth_header(GUEST_ID))
    assert response.json()["data"] == {"role": RoleEnum.USER.value, "recentSearchedCities": []}

    for city in ["Lisbon", "Porto", "Madrid", "Paris"]:
        response = hotels_client.post(
            "/api/user/store-recent-search", json={"recentSearchedCity": city}, headers=auth_header(GUEST_ID)
        )
        assert response.json() == {"success": True, "message": "City added"}

    data = hotels_client.get("/api/user", headers=auth_header(GUEST_ID)).json()["data"]
    assert data["recentSearchedCities"] == ["Porto", "Madrid", "Paris"]


def test_unknown_user_behind_valid_token(hotels_client):
    response = hotels_client.get("/api/user", headers=auth_header("user_ghost"))
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"
