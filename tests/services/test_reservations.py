import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from booking_api.auth.identity import CallerIdentity
from booking_api.core.config import Settings
from booking_api.core.exceptions import (
    BookingNotFoundError,
    InvalidSlotError,
    PersistenceFailure,
    SlotNotFoundError,
    SlotUnavailableError,
    UnauthorizedError,
)
from booking_api.database import build_engine, create_session_factory, init_schema
from booking_api.models.booking import Booking
from booking_api.models.time_slot import TimeSlot
from booking_api.models.user import Role, User
from booking_api.repositories import bookings as booking_ledger
from booking_api.services import reservations

NOW = datetime(2026, 1, 5, 8, 0)


def _add_user(db, email: str, role: Role = Role.USER) -> CallerIdentity:
    user = User(name=email.split('@')[0], email=email, hashed_password='hash', role=role)
    db.add(user)
    db.commit()
    return CallerIdentity(user_id=user.id, role=role)


def _add_slot(db, start_time: datetime = datetime(2026, 1, 6, 10, 0), duration_minutes: int = 60) -> int:
    return reservations.create_slot(db, start_time, duration_minutes, now=NOW).id


def _assert_slot_invariant(db) -> None:
    for slot in db.execute(select(TimeSlot)).scalars():
        count = booking_ledger.count_slot_bookings(db, slot.id)
        assert count in (0, 1)
        assert (count == 1) == slot.is_booked


def test_create_slot_starts_available(db) -> None:
    slot = reservations.create_slot(db, datetime(2026, 1, 6, 10, 0), 60, now=NOW)

    assert slot.id is not None
    assert slot.is_booked is False
    assert slot.duration_minutes == 60


def test_create_slot_converts_aware_start_time_to_utc(db) -> None:
    start = datetime(2026, 1, 6, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    slot = reservations.create_slot(db, start, 30, now=NOW)

    assert slot.start_time == datetime(2026, 1, 6, 10, 0)


@pytest.mark.parametrize(
    ('start_time', 'duration_minutes', 'message'),
    [
        (datetime(2026, 1, 4, 10, 0), 60, 'Start time cannot be in the past.'),
        (datetime(2026, 1, 6, 10, 0), 0, 'Duration must be a positive number.'),
        (datetime(2026, 1, 6, 10, 0), -15, 'Duration must be a positive number.'),
        (datetime(2026, 1, 6, 10, 0), 10**20, 'Duration cannot exceed 525600 minutes.'),
    ],
)
def test_create_slot_rejects_invalid_input(db, start_time: datetime, duration_minutes: int, message: str) -> None:
    with pytest.raises(InvalidSlotError) as exception_info:
        reservations.create_slot(db, start_time, duration_minutes, now=NOW)

    assert exception_info.value.message == message
    assert exception_info.value.status_code == 400
    assert db.execute(select(TimeSlot)).first() is None


def test_reserve_slot_books_slot_and_records_booking(db) -> None:
    caller = _add_user(db, 'student@example.com')
    slot_id = _add_slot(db)

    details = reservations.reserve_slot(db, caller, slot_id)

    assert details.user_id == caller.user_id
    assert details.time_slot_id == slot_id
    assert details.start_time == datetime(2026, 1, 6, 10, 0)
    assert details.duration_minutes == 60
    assert db.get(TimeSlot, slot_id).is_booked is True
    assert booking_ledger.count_slot_bookings(db, slot_id) == 1
    _assert_slot_invariant(db)


def test_reserve_slot_missing_slot_raises_not_found(db) -> None:
    caller = _add_user(db, 'student@example.com')

    with pytest.raises(SlotNotFoundError):
        reservations.reserve_slot(db, caller, 999999)

    assert db.execute(select(Booking)).first() is None


def test_reserve_slot_twice_always_reports_unavailable(db) -> None:
    first = _add_user(db, 'first@example.com')
    second = _add_user(db, 'second@example.com')
    slot_id = _add_slot(db)
    reservations.reserve_slot(db, first, slot_id)

    for caller in (second, first, second):
        with pytest.raises(SlotUnavailableError):
            reservations.reserve_slot(db, caller, slot_id)

    assert booking_ledger.count_slot_bookings(db, slot_id) == 1
    _assert_slot_invariant(db)


def test_reserve_slot_unique_booking_index_rolls_back_the_claim(db) -> None:
    caller = _add_user(db, 'student@example.com')
    other = _add_user(db, 'other@example.com')
    slot_id = _add_slot(db)
    # a booking written behind the flag's back, e.g. by an interleaved writer
    db.add(Booking(user_id=other.user_id, time_slot_id=slot_id))
    db.commit()

    with pytest.raises(SlotUnavailableError):
        reservations.reserve_slot(db, caller, slot_id)

    assert db.get(TimeSlot, slot_id).is_booked is False
    assert booking_ledger.count_slot_bookings(db, slot_id) == 1


def test_reserve_slot_wraps_store_failures(db, monkeypatch: pytest.MonkeyPatch) -> None:
    caller = _add_user(db, 'student@example.com')
    slot_id = _add_slot(db)

    def broken_claim(session, requested_slot_id):
        raise OperationalError('UPDATE time_slots', {}, Exception('connection lost'))

    monkeypatch.setattr('booking_api.repositories.time_slots.claim_slot', broken_claim)

    with pytest.raises(PersistenceFailure) as exception_info:
        reservations.reserve_slot(db, caller, slot_id)

    assert exception_info.value.kind == 'internal'
    assert 'UPDATE' not in exception_info.value.message
    assert db.get(TimeSlot, slot_id).is_booked is False


def test_concurrent_reservations_yield_exactly_one_booking(tmp_path) -> None:
    settings = Settings(database_url=f'sqlite:///{tmp_path / "race.db"}')
    engine = build_engine(settings)
    init_schema(engine)
    session_factory = create_session_factory(engine)

    setup = session_factory()
    callers = [_add_user(setup, f'user{index}@example.com') for index in range(8)]
    slot_id = _add_slot(setup)
    setup.close()

    barrier = threading.Barrier(len(callers))
    outcomes: list[object] = []
    outcomes_lock = threading.Lock()

    def attempt(caller: CallerIdentity) -> None:
        session = session_factory()
        try:
            barrier.wait()
            outcome = reservations.reserve_slot(session, caller, slot_id)
        except Exception as exc:  # collected and asserted below
            outcome = exc
        finally:
            session.close()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=(caller,)) for caller in callers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    successes = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    assert len(successes) == 1
    assert len(failures) == len(callers) - 1
    assert all(isinstance(failure, SlotUnavailableError) for failure in failures)

    check = session_factory()
    try:
        assert booking_ledger.count_slot_bookings(check, slot_id) == 1
        _assert_slot_invariant(check)
    finally:
        check.close()
        engine.dispose()


def test_concurrent_reservations_on_different_slots_all_succeed(tmp_path) -> None:
    settings = Settings(database_url=f'sqlite:///{tmp_path / "spread.db"}')
    engine = build_engine(settings)
    init_schema(engine)
    session_factory = create_session_factory(engine)

    setup = session_factory()
    caller = _add_user(setup, 'busy@example.com')
    slot_ids = [_add_slot(setup, datetime(2026, 1, 6, 9 + index, 0)) for index in range(4)]
    setup.close()

    errors: list[Exception] = []

    def attempt(slot_id: int) -> None:
        session = session_factory()
        try:
            reservations.reserve_slot(session, caller, slot_id)
        except Exception as exc:  # collected and asserted below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(slot_id,)) for slot_id in slot_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    check = session_factory()
    try:
        assert len(reservations.list_my_bookings(check, caller)) == len(slot_ids)
        assert reservations.list_available_slots(check) == []
    finally:
        check.close()
        engine.dispose()


def test_get_booking_hides_other_users_bookings(db) -> None:
    owner = _add_user(db, 'owner@example.com')
    stranger = _add_user(db, 'stranger@example.com')
    booking = reservations.reserve_slot(db, owner, _add_slot(db))

    assert reservations.get_booking(db, owner, booking.id) == booking

    with pytest.raises(BookingNotFoundError) as foreign:
        reservations.get_booking(db, stranger, booking.id)
    with pytest.raises(BookingNotFoundError) as missing:
        reservations.get_booking(db, stranger, 999999)

    assert foreign.value.message == missing.value.message
    assert foreign.value.status_code == missing.value.status_code == 404


def test_list_my_bookings_returns_only_callers_bookings_with_slot_details(db) -> None:
    caller = _add_user(db, 'caller@example.com')
    other = _add_user(db, 'other@example.com')
    first = reservations.reserve_slot(db, caller, _add_slot(db, datetime(2026, 1, 7, 9, 0), 30))
    reservations.reserve_slot(db, other, _add_slot(db, datetime(2026, 1, 7, 10, 0), 30))
    second = reservations.reserve_slot(db, caller, _add_slot(db, datetime(2026, 1, 6, 9, 0), 45))

    result = reservations.list_my_bookings(db, caller)

    assert [details.id for details in result] == [first.id, second.id]
    assert result[1].start_time == datetime(2026, 1, 6, 9, 0)
    assert result[1].duration_minutes == 45


def test_list_available_slots_excludes_booked_slots(db) -> None:
    caller = _add_user(db, 'caller@example.com')
    later = _add_slot(db, datetime(2026, 1, 8, 9, 0))
    booked = _add_slot(db, datetime(2026, 1, 7, 9, 0))
    earlier = _add_slot(db, datetime(2026, 1, 6, 9, 0))
    reservations.reserve_slot(db, caller, booked)

    available = reservations.list_available_slots(db)

    assert [slot.id for slot in available] == [earlier, later]


def test_deleting_user_cascades_to_bookings(db) -> None:
    caller = _add_user(db, 'leaving@example.com')
    booking = reservations.reserve_slot(db, caller, _add_slot(db))

    db.delete(db.get(User, caller.user_id))
    db.commit()

    assert db.execute(select(Booking).where(Booking.id == booking.id)).first() is None


def test_reserve_slot_for_deleted_user_is_unauthorized_and_keeps_slot_available(db) -> None:
    caller = _add_user(db, 'gone@example.com')
    slot_id = _add_slot(db)
    db.delete(db.get(User, caller.user_id))
    db.commit()

    with pytest.raises(UnauthorizedError) as exception_info:
        reservations.reserve_slot(db, caller, slot_id)

    assert exception_info.value.message == 'User not found.'
    assert db.get(TimeSlot, slot_id).is_booked is False
    assert booking_ledger.count_slot_bookings(db, slot_id) == 0
