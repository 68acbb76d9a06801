from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import get_current_user, require_hotel_owner
from common.errors import (
    NotFoundError,
    PermissionDenied,
    StoreError,
    ValidationError,
    register_error_handlers,
    success,
)
from common.logging_middleware import add_audit_middleware, configure_logging
from common.models import Booking, BookingStatus, Hotel, Room, User
from common.rate_limit import apply_rate_limiter, limiter
from common.schemas import AvailabilityRequest, BookingCreate, BookingRead, DashboardRead, PaymentUpdate
from common.store import retry_store_call, store_errors
from common.toggles import set_booking_paid

from services.bookings import core

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    configure_logging()
    fastapi_app = FastAPI(title="Bookings Service", version="0.3.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    register_error_handlers(fastapi_app)
    Instrumentator(registry=CollectorRegistry()).instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


@app.post("/api/bookings/check-availability")
@limiter.limit("40/minute")
def check_availability(
    request: Request,
    body: AvailabilityRequest,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    if body.check_out_date <= body.check_in_date:
        raise ValidationError("Check-out date must be after check-in date")

    def probe() -> bool:
        try:
            with store_errors("Room lookup"):
                room = db.get(Room, body.room_id)
            if room is None:
                raise NotFoundError("Room not found")
            return room.is_available and core.is_available(
                db, body.room_id, body.check_in_date, body.check_out_date
            )
        except StoreError:
            db.rollback()
            raise

    available = retry_store_call(probe, settings.store_retry_attempts, settings.store_retry_backoff_seconds)
    return success(isAvailable=available)


@app.post("/api/bookings/book", status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def book_room(
    request: Request,
    body: BookingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    booking = core.create_booking(
        db,
        user_id=current_user.id,
        room_id=body.room_id,
        check_in=body.check_in_date,
        check_out=body.check_out_date,
        guest_count=body.guests,
    )
    return success(BookingRead.model_validate(booking), message="Booking created successfully")


@app.get("/api/bookings/user")
@limiter.limit("30/minute")
def user_bookings(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    with store_errors("Booking list"):
        bookings = (
            db.query(Booking)
            .filter(Booking.user_id == current_user.id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )
        return success([BookingRead.model_validate(b) for b in bookings])


@app.get("/api/bookings/hotel")
@limiter.limit("30/minute")
def hotel_bookings(
    request: Request,
    current_user: User = Depends(require_hotel_owner),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    with store_errors("Hotel dashboard"):
        hotel = db.query(Hotel).filter(Hotel.owner_id == current_user.id).first()
        if hotel is None:
            raise NotFoundError("No Hotel found")
        bookings = (
            db.query(Booking)
            .filter(Booking.hotel_id == hotel.id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )
        revenue = sum(
            (b.total_price for b in bookings if b.status != BookingStatus.CANCELLED),
            Decimal("0"),
        )
        dashboard = DashboardRead(
            total_bookings=len(bookings),
            total_revenue=revenue,
            bookings=[BookingRead.model_validate(b) for b in bookings],
        )
        return success(dashboard)


def _booking_for_party(db: Session, booking_id: int, user: User) -> Booking:
    with store_errors("Booking lookup"):
        booking = db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != user.id and booking.hotel.owner_id != user.id:
            raise PermissionDenied("Access denied")
        return booking


@app.post("/api/bookings/{booking_id}/pay")
@limiter.limit("20/minute")
def mark_paid(
    request: Request,
    booking_id: int,
    body: PaymentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    _booking_for_party(db, booking_id, current_user)
    booking = set_booking_paid(db, booking_id, body.is_paid)
    return success(BookingRead.model_validate(booking))


@app.post("/api/bookings/{booking_id}/cancel")
@limiter.limit("20/minute")
def cancel(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    booking = core.cancel_booking(db, booking_id, current_user.id)
    return success(BookingRead.model_validate(booking), message="Booking cancelled")
