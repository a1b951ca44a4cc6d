"""Booking ledger queries.

Reads join ``time_slots`` explicitly and return ``BookingDetails`` rows so the
columns a caller sees are exactly the ones selected here.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from booking_api.models.booking import Booking
from booking_api.models.time_slot import TimeSlot


@dataclass(frozen=True)
class BookingDetails:
    id: int
    user_id: int
    time_slot_id: int
    start_time: datetime
    duration_minutes: int


_DETAILS_COLUMNS = (
    Booking.id,
    Booking.user_id,
    Booking.time_slot_id,
    TimeSlot.start_time,
    TimeSlot.duration_minutes,
)


def _details_query():
    return select(*_DETAILS_COLUMNS).join(TimeSlot, TimeSlot.id == Booking.time_slot_id)


def add_booking(db: Session, *, user_id: int, time_slot_id: int) -> Booking:
    booking = Booking(user_id=user_id, time_slot_id=time_slot_id)
    db.add(booking)
    db.flush()
    return booking


def get_user_booking(db: Session, *, user_id: int, booking_id: int) -> BookingDetails | None:
    row = db.execute(
        _details_query().where(Booking.id == booking_id, Booking.user_id == user_id)
    ).first()
    return BookingDetails(*row) if row else None


def list_user_bookings(db: Session, user_id: int) -> list[BookingDetails]:
    rows = db.execute(
        _details_query().where(Booking.user_id == user_id).order_by(Booking.id.asc())
    ).all()
    return [BookingDetails(*row) for row in rows]


def count_slot_bookings(db: Session, time_slot_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(Booking).where(Booking.time_slot_id == time_slot_id)
    ).scalar_one()
