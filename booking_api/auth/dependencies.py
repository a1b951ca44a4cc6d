import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from booking_api.auth import jwt_handler
from booking_api.auth.identity import CallerIdentity
from booking_api.core.config import Settings
from booking_api.core.exceptions import ForbiddenError, InvalidTokenError, UnauthorizedError
from booking_api.models.user import Role

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> CallerIdentity:
    if credentials is None:
        raise UnauthorizedError()

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials, settings)
    except jwt.PyJWTError as exc:
        raise InvalidTokenError() from exc

    try:
        user_id = int(payload["sub"])
        role = Role(payload.get("role", Role.USER.value))
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError("Invalid token subject.") from exc

    return CallerIdentity(user_id=user_id, role=role)


def require_admin(current_user: CallerIdentity = Depends(get_current_user)) -> CallerIdentity:
    if not current_user.is_admin:
        raise ForbiddenError("Only admins can perform this action.")
    return current_user
