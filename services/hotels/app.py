from contextlib import asynccontextmanager
from typing import Any, List

from circuitbreaker import CircuitBreakerError, circuit
from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from common.cache import SimpleTTLCache
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import get_current_user, require_hotel_owner
from common.errors import ConflictError, NotFoundError, PermissionDenied, StoreError, register_error_handlers, success
from common.logging_middleware import add_audit_middleware, configure_logging
from common.models import Hotel, RoleEnum, Room, User
from common.rate_limit import apply_rate_limiter, limiter
from common.schemas import HotelCreate, HotelRead, RecentSearch, RoomCreate, RoomRead, RoomToggle, UserData
from common.store import store_errors
from common.toggles import toggle_room_availability

settings = get_settings()
room_list_cache: SimpleTTLCache[List[dict[str, Any]]] = SimpleTTLCache(ttl=settings.room_cache_ttl)
ROOM_LIST_KEY = "room-list:available"


def _invalidate_room_list() -> None:
    room_list_cache.pop(ROOM_LIST_KEY)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    configure_logging()
    fastapi_app = FastAPI(title="Hotels Service", version="0.3.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "hotels")
    register_error_handlers(fastapi_app)
    Instrumentator(registry=CollectorRegistry()).instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "hotels"}


def _owned_hotel(db: Session, owner: User) -> Hotel:
    hotel = db.query(Hotel).filter(Hotel.owner_id == owner.id).first()
    if hotel is None:
        raise NotFoundError("No Hotel found")
    return hotel


@app.post("/api/hotels", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register_hotel(
    request: Request,
    hotel_in: HotelCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    with store_errors("Hotel registration"):
        if db.query(Hotel).filter(Hotel.owner_id == current_user.id).first():
            raise ConflictError("Hotel Already Registered")
        hotel = Hotel(owner_id=current_user.id, **hotel_in.model_dump())
        db.add(hotel)
        current_user.role = RoleEnum.HOTEL_OWNER
        db.commit()
        db.refresh(hotel)
        return success(HotelRead.model_validate(hotel), message="Hotel registered successfully")


@app.post("/api/rooms", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_room(
    request: Request,
    room_in: RoomCreate,
    current_user: User = Depends(require_hotel_owner),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    with store_errors("Room creation"):
        hotel = _owned_hotel(db, current_user)
        room = Room(hotel_id=hotel.id, is_available=True, **room_in.model_dump())
        db.add(room)
        db.commit()
        db.refresh(room)
        _invalidate_room_list()
        return success(RoomRead.model_validate(room), message="Room created successfully")


@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=StoreError)
def _load_available_rooms(db: Session) -> List[dict[str, Any]]:
    with store_errors("Room listing"):
        rooms = (
            db.query(Room)
            .filter(Room.is_available.is_(True))
            .order_by(Room.created_at.desc(), Room.id.desc())
            .all()
        )
        return jsonable_encoder([RoomRead.model_validate(room) for room in rooms])


@app.get("/api/rooms")
def list_rooms(request: Request, db: Session = Depends(get_db)) -> dict[str, Any]:
    try:
        rooms = room_list_cache.get_or_set(ROOM_LIST_KEY, lambda: _load_available_rooms(db))
    except CircuitBreakerError as exc:
        raise StoreError("Room catalogue temporarily unavailable") from exc
    return success(rooms)


@app.get("/api/rooms/owner")
@limiter.limit("30/minute")
def owner_rooms(
    request: Request,
    current_user: User = Depends(require_hotel_owner),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    with store_errors("Owner room listing"):
        hotel = _owned_hotel(db, current_user)
        rooms = db.query(Room).filter(Room.hotel_id == hotel.id).order_by(Room.id.desc()).all()
        return success([RoomRead.model_validate(room) for room in rooms])


@app.post("/api/rooms/toggle-availability")
@limiter.limit("15/minute")
def toggle_availability(
    request: Request,
    body: RoomToggle,
    current_user: User = Depends(require_hotel_owner),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    with store_errors("Room lookup"):
        room = db.get(Room, body.room_id)
        if room is None:
            raise NotFoundError("Room not found")
        if room.hotel.owner_id != current_user.id:
            raise PermissionDenied("Insufficient permissions")
    room = toggle_room_availability(db, body.room_id)
    _invalidate_room_list()
    return success(RoomRead.model_validate(room), message="Room availability updated")


@app.get("/api/user")
@limiter.limit("60/minute")
def user_data(request: Request, current_user: User = Depends(get_current_user)) -> dict[str, Any]:
    return success(
        UserData(role=current_user.role, recent_searched_cities=current_user.recent_searched_cities or [])
    )


@app.post("/api/user/store-recent-search")
@limiter.limit("30/minute")
def store_recent_search(
    request: Request,
    body: RecentSearch,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    cities = list(current_user.recent_searched_cities or [])
    cities.append(body.recent_searched_city)
    # oldest first; keep only the newest entries
    current_user.recent_searched_cities = cities[-settings.recent_cities_limit:]
    with store_errors("Recent search update"):
        db.commit()
    return success(message="City added")
