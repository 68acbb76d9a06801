"""Booking availability, pricing and guarded creation.

Overlap uses inclusive bounds: a stored stay ``[in, out]`` conflicts with a
request ``[req_in, req_out]`` when ``in <= req_out and out >= req_in``. A guest
checking out on the day another checks in therefore counts as a conflict.

Creation opens its transaction first, then holds the room's in-process lock and
reads the room row with ``SELECT ... FOR UPDATE`` before the overlap check, so
two requests for the same room cannot both pass the check and both insert. On
SQLite the transaction itself holds the database write lock (see
``common.database``), which covers separate worker processes.
"""
from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from common.config import get_settings
from common.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from common.locks import RoomLockRegistry
from common.models import Booking, BookingStatus, Room
from common.store import store_errors

logger = logging.getLogger(__name__)
settings = get_settings()

ONE_DAY = timedelta(days=1)
CENTS = Decimal("0.01")

room_locks = RoomLockRegistry(timeout=settings.room_lock_timeout_seconds)


def count_nights(check_in: date, check_out: date) -> int:
    """Whole nights between two dates; any partial day counts as a full night."""
    return math.ceil((check_out - check_in) / ONE_DAY)


def compute_total_price(nightly_rate: Decimal | float | int, check_in: date, check_out: date) -> Decimal:
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date")
    rate = Decimal(str(nightly_rate))
    if rate <= 0:
        raise ValidationError("Nightly price must be positive")
    return (rate * count_nights(check_in, check_out)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _validate_request(check_in: date, check_out: date, guest_count: int) -> None:
    if guest_count < 1:
        raise ValidationError("At least one guest is required")
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date")


def _overlap_query(db: Session, room_id: int, check_in: date, check_out: date):
    return db.query(Booking).filter(
        Booking.room_id == room_id,
        Booking.status != BookingStatus.CANCELLED,
        Booking.check_in_date <= check_out,
        Booking.check_out_date >= check_in,
    )


def overlapping_bookings(db: Session, room_id: int, check_in: date, check_out: date) -> List[Booking]:
    with store_errors("Overlap query"):
        return _overlap_query(db, room_id, check_in, check_out).all()


def is_available(db: Session, room_id: int, check_in: date, check_out: date) -> bool:
    """True when no non-cancelled booking on the room touches the interval. Read-only."""
    with store_errors("Availability check"):
        q = _overlap_query(db, room_id, check_in, check_out)
        return not db.query(q.exists()).scalar()


def create_booking(
    db: Session,
    user_id: str,
    room_id: int,
    check_in: date,
    check_out: date,
    guest_count: int,
    locks: Optional[RoomLockRegistry] = None,
) -> Booking:
    _validate_request(check_in, check_out, guest_count)
    if locks is None:
        locks = room_locks

    try:
        with store_errors("Booking creation"):
            # Store lock before room lock, always in this order.
            db.connection()
            with locks.hold(room_id):
                room: Optional[Room] = (
                    db.query(Room).filter(Room.id == room_id).with_for_update().first()
                )
                if room is None:
                    raise NotFoundError("Room not found")
                if not room.is_available:
                    logger.info("room %s is switched off by its owner", room_id)
                    raise ConflictError("Room not available")
                clashes = overlapping_bookings(db, room_id, check_in, check_out)
                if clashes:
                    logger.info(
                        "room %s not available for %s..%s, clashes with bookings %s",
                        room_id,
                        check_in,
                        check_out,
                        [b.id for b in clashes],
                    )
                    raise ConflictError("Room not available")

                booking = Booking(
                    user_id=user_id,
                    room_id=room.id,
                    hotel_id=room.hotel_id,
                    check_in_date=check_in,
                    check_out_date=check_out,
                    number_of_guests=guest_count,
                    total_price=compute_total_price(room.price_per_night, check_in, check_out),
                    status=BookingStatus.PENDING,
                    is_paid=False,
                )
                db.add(booking)
                db.commit()
                db.refresh(booking)
    except Exception:
        db.rollback()
        raise

    logger.info(
        "booking %s created: room=%s user=%s %s..%s total=%s",
        booking.id,
        room_id,
        user_id,
        check_in,
        check_out,
        booking.total_price,
    )
    return booking


def cancel_booking(db: Session, booking_id: int, user_id: str) -> Booking:
    """Move a booking to CANCELLED, releasing its dates. Guest or hotel owner only."""
    with store_errors("Booking cancellation"):
        booking = db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != user_id and booking.hotel.owner_id != user_id:
            raise PermissionDenied("Not allowed to cancel this booking")
        if booking.status == BookingStatus.CANCELLED:
            return booking
        booking.status = BookingStatus.CANCELLED
        db.commit()
        db.refresh(booking)
    logger.info("booking %s cancelled by %s", booking_id, user_id)
    return booking
