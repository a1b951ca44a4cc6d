import pytest
from fastapi.testclient import TestClient

from booking_api.core.config import Settings
from booking_api.database import build_engine, create_session_factory, init_schema
from booking_api.main import create_app


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url='sqlite://',
        jwt_secret_key='test-secret',
        jwt_issuer='booking-api-tests',
        admin_setup_key='setup-secret',
        log_level='WARNING',
    )


@pytest.fixture
def db(settings: Settings):
    engine = build_engine(settings)
    init_schema(engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(settings: Settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
