"""Reservation engine: slot publication, slot claims and booking lookups.

A slot moves from available to booked exactly once. ``reserve_slot`` is the
only operation that performs that transition, and it does so together with
the booking insert in a single transaction: the conditional update decides
the winner among concurrent callers and the unique index on
``bookings.time_slot_id`` rejects anything that slips past it.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from booking_api.auth.identity import CallerIdentity
from booking_api.core.exceptions import (
    BookingNotFoundError,
    InvalidSlotError,
    PersistenceFailure,
    SlotNotFoundError,
    SlotUnavailableError,
    UnauthorizedError,
)
from booking_api.models.time_slot import TimeSlot
from booking_api.repositories import bookings, time_slots, users
from booking_api.repositories.bookings import BookingDetails

logger = logging.getLogger(__name__)

# one year; also keeps the value inside a 32-bit INTEGER column
MAX_DURATION_MINUTES = 365 * 24 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def reserve_slot(db: Session, caller: CallerIdentity, slot_id: int) -> BookingDetails:
    try:
        if not time_slots.claim_slot(db, slot_id):
            slot = time_slots.get_slot(db, slot_id)
            db.rollback()
            if slot is None:
                raise SlotNotFoundError()
            raise SlotUnavailableError()

        if users.get_user(db, caller.user_id) is None:
            # token outlived its account
            db.rollback()
            raise UnauthorizedError('User not found.')

        booking = bookings.add_booking(db, user_id=caller.user_id, time_slot_id=slot_id)
        slot = time_slots.get_slot(db, slot_id)
        details = BookingDetails(
            id=booking.id,
            user_id=booking.user_id,
            time_slot_id=slot.id,
            start_time=slot.start_time,
            duration_minutes=slot.duration_minutes,
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning('Reservation of slot %s by user %s lost to a concurrent booking', slot_id, caller.user_id)
        raise SlotUnavailableError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to reserve slot %s for user %s', slot_id, caller.user_id)
        raise PersistenceFailure() from exc

    logger.info('User %s booked slot %s (booking %s)', caller.user_id, slot_id, details.id)
    return details


def get_booking(db: Session, caller: CallerIdentity, booking_id: int) -> BookingDetails:
    """Return the caller's booking.

    A booking owned by someone else is reported exactly like a missing one.
    """
    try:
        details = bookings.get_user_booking(db, user_id=caller.user_id, booking_id=booking_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to load booking %s', booking_id)
        raise PersistenceFailure() from exc

    if details is None:
        raise BookingNotFoundError()
    return details


def list_my_bookings(db: Session, caller: CallerIdentity) -> list[BookingDetails]:
    try:
        return bookings.list_user_bookings(db, caller.user_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to list bookings for user %s', caller.user_id)
        raise PersistenceFailure() from exc


def list_available_slots(db: Session) -> list[TimeSlot]:
    try:
        return time_slots.list_unbooked_slots(db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to list available slots')
        raise PersistenceFailure() from exc


def create_slot(
    db: Session,
    start_time: datetime,
    duration_minutes: int,
    now: datetime | None = None,
) -> TimeSlot:
    start_time = to_naive_utc(start_time)
    if start_time < (now or utc_now()):
        raise InvalidSlotError('Start time cannot be in the past.')
    if duration_minutes <= 0:
        raise InvalidSlotError('Duration must be a positive number.')
    if duration_minutes > MAX_DURATION_MINUTES:
        raise InvalidSlotError(f'Duration cannot exceed {MAX_DURATION_MINUTES} minutes.')

    try:
        slot = time_slots.add_slot(db, start_time=start_time, duration_minutes=duration_minutes)
        db.commit()
        db.refresh(slot)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create time slot starting %s', start_time)
        raise PersistenceFailure() from exc

    logger.info('Created time slot %s starting %s', slot.id, slot.start_time)
    return slot
