from datetime import datetime, timedelta, timezone

import jwt

from booking_api.core.config import Settings
from booking_api.models.user import User


def create_access_token(user: User, settings: Settings, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or settings.jwt_expires_minutes
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "name": user.name,
        "role": user.role.value,
        "iss": settings.jwt_issuer,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> dict:
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        options={"require": ["sub", "exp", "iss"]},
    )
