"""Unguarded last-writer-wins flag updates.

These never look at booking dates and take no room lock. Do not route changes
to dates, room or status through here; those belong to ``services.bookings.core``.
"""
from sqlalchemy import not_, update
from sqlalchemy.orm import Session

from .errors import NotFoundError
from .models import Booking, Room
from .store import store_errors


def set_booking_paid(db: Session, booking_id: int, paid: bool = True) -> Booking:
    with store_errors("Payment update"):
        result = db.execute(update(Booking).where(Booking.id == booking_id).values(is_paid=paid))
        if result.rowcount == 0:
            db.rollback()
            raise NotFoundError("Booking not found")
        db.commit()
        return db.get(Booking, booking_id, populate_existing=True)


def toggle_room_availability(db: Session, room_id: int) -> Room:
    with store_errors("Room availability update"):
        result = db.execute(
            update(Room).where(Room.id == room_id).values(is_available=not_(Room.is_available))
        )
        if result.rowcount == 0:
            db.rollback()
            raise NotFoundError("Room not found")
        db.commit()
        return db.get(Room, room_id, populate_existing=True)
