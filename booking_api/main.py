import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from booking_api.core.config import Settings, load_settings
from booking_api.core.exceptions import register_exception_handlers
from booking_api.database import build_engine, create_session_factory, init_schema
from booking_api.routes import auth_routes, booking_routes, slot_routes

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    engine = build_engine(settings)

    app = FastAPI(title='Booking API')
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            init_schema(engine)
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')

    @app.get('/')
    def root():
        return {'status': 'Booking API Running'}

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(slot_routes.router, prefix='/slots')
    app.include_router(booking_routes.router, prefix='/bookings')

    return app


def run() -> None:
    import uvicorn

    uvicorn.run('booking_api.main:create_app', factory=True, host='0.0.0.0', port=8000)


if __name__ == '__main__':
    run()
