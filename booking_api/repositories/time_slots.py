"""Slot store queries.

``claim_slot`` is the only write path that touches ``is_booked``.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from booking_api.models.time_slot import TimeSlot


def get_slot(db: Session, slot_id: int) -> TimeSlot | None:
    return db.execute(select(TimeSlot).where(TimeSlot.id == slot_id)).scalar_one_or_none()


def list_unbooked_slots(db: Session) -> list[TimeSlot]:
    return list(
        db.execute(
            select(TimeSlot)
            .where(TimeSlot.is_booked.is_(False))
            .order_by(TimeSlot.start_time.asc(), TimeSlot.id.asc())
        ).scalars()
    )


def add_slot(db: Session, *, start_time: datetime, duration_minutes: int) -> TimeSlot:
    slot = TimeSlot(start_time=start_time, duration_minutes=duration_minutes, is_booked=False)
    db.add(slot)
    db.flush()
    return slot


def claim_slot(db: Session, slot_id: int) -> bool:
    """Flip ``is_booked`` from false to true; return whether this call did it.

    The compare-and-set runs as one UPDATE, so the store's row lock decides
    the winner when several transactions target the same slot.
    """
    result = db.execute(
        update(TimeSlot)
        .where(TimeSlot.id == slot_id, TimeSlot.is_booked.is_(False))
        .values(is_booked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
