import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_api.core import secrets

DEFAULT_JWT_SECRET = "change-me"


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, assembled once before serving begins."""

    database_url: str
    app_env: str = "development"
    jwt_secret_key: str = DEFAULT_JWT_SECRET
    jwt_issuer: str = "booking-api"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60 * 24
    admin_setup_key: str | None = None
    cors_origins: tuple[str, ...] = field(default=("http://localhost:4200",))
    log_level: str = "INFO"
    sql_echo: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


def load_settings(secret_client=None) -> Settings:
    """Read the environment and resolve secret references into literal values.

    ``DB_SECRET_ARN`` takes precedence over ``DATABASE_URL``. ``JWT_SECRET_KEY``
    and ``ADMIN_SETUP_KEY`` may hold either the literal value or a Secrets
    Manager identifier. Any resolution failure propagates and aborts startup.
    """
    load_dotenv()

    db_secret_arn = os.getenv("DB_SECRET_ARN")
    if db_secret_arn:
        database_url = secrets.load_database_url(db_secret_arn, client=secret_client)
    else:
        database_url = os.getenv("DATABASE_URL", "")

    jwt_secret_key = secrets.resolve_secret(os.getenv("JWT_SECRET_KEY"), client=secret_client)
    admin_setup_key = secrets.resolve_secret(os.getenv("ADMIN_SETUP_KEY"), client=secret_client)

    settings = Settings(
        database_url=database_url,
        app_env=os.getenv("APP_ENV", "development"),
        jwt_secret_key=jwt_secret_key or DEFAULT_JWT_SECRET,
        jwt_issuer=os.getenv("JWT_ISSUER", "booking-api"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", str(60 * 24))),
        admin_setup_key=admin_setup_key,
        cors_origins=_get_list(os.getenv("CORS_ORIGINS"), ("http://localhost:4200",)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        sql_echo=_get_bool(os.getenv("SQL_ECHO"), default=False),
    )
    validate_runtime_config(settings)
    return settings


def validate_runtime_config(settings: Settings) -> None:
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL or DB_SECRET_ARN must be set.")
    if settings.is_production and settings.jwt_secret_key == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
