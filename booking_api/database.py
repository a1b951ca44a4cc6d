from threading import Lock

from fastapi import Request
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_api.core.config import Settings

Base = declarative_base()

_schema_lock = Lock()
_checked_engines: set[int] = set()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if not url.startswith('sqlite'):
        return create_engine(url, echo=settings.sql_echo, pool_pre_ping=True)

    connect_args = {'check_same_thread': False}
    if url in {'sqlite://', 'sqlite:///:memory:'}:
        # every request thread must see the same in-memory database
        engine = create_engine(url, echo=settings.sql_echo, connect_args=connect_args, poolclass=StaticPool)
    else:
        connect_args['timeout'] = 30
        engine = create_engine(url, echo=settings.sql_echo, connect_args=connect_args)

    event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def init_schema(engine: Engine) -> None:
    # registers the tables on Base.metadata
    from booking_api.models import booking, time_slot, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
    ensure_booking_schema(engine)


def ensure_booking_schema(engine: Engine) -> None:
    """Bring tables created before the booking constraints existed up to date.

    The unique index on ``bookings.time_slot_id`` backs the one-booking-per-slot
    rule; creating it fails if the table already holds duplicate bookings.
    """
    if id(engine) in _checked_engines:
        return

    with _schema_lock:
        if id(engine) in _checked_engines:
            return

        inspector = inspect(engine)
        table_names = inspector.get_table_names()

        with engine.begin() as connection:
            if 'bookings' in table_names:
                connection.execute(
                    text('CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_time_slot_id ON bookings(time_slot_id)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_bookings_user_id ON bookings(user_id)')
                )
            if 'time_slots' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_time_slots_booked_start ON time_slots(is_booked, start_time)')
                )

        _checked_engines.add(id(engine))


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
