from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from booking_api.auth import jwt_handler
from booking_api.auth.dependencies import get_current_user, get_settings
from booking_api.auth.identity import CallerIdentity
from booking_api.core.config import Settings
from booking_api.core.exceptions import UnauthorizedError
from booking_api.database import get_db
from booking_api.models.user import Role
from booking_api.repositories import users
from booking_api.services import accounts

router = APIRouter(tags=["auth"])

MIN_PASSWORD_LENGTH = 8
# bcrypt rejects passwords longer than 72 bytes
MAX_PASSWORD_BYTES = 72


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    local, _, domain = normalized.partition("@")
    if not local or "." not in domain or " " in normalized:
        raise ValueError("A valid email address is required.")
    return normalized


def _normalize_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError("Name is required.")
    return normalized


class UserRegistrationRequest(BaseModel):
    name: str
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _normalize_name(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes.")
        return value


class UserLoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.strip().lower()


class AdminSetupRequest(UserRegistrationRequest):
    setup_key: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class UserWithRoleResponse(UserResponse):
    role: Role


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: UserRegistrationRequest, db: Session = Depends(get_db)):
    return accounts.register_user(db, name=data.name, email=data.email, password=data.password)


@router.post("/login", response_model=TokenResponse)
def login(
    data: UserLoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = accounts.authenticate_user(db, email=data.email, password=data.password)
    return TokenResponse(access_token=jwt_handler.create_access_token(user, settings))


@router.post("/setup-admin", response_model=UserWithRoleResponse, status_code=status.HTTP_201_CREATED)
def setup_admin(
    data: AdminSetupRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return accounts.setup_admin(
        db,
        settings,
        name=data.name,
        email=data.email,
        password=data.password,
        setup_key=data.setup_key,
    )


@router.get("/me", response_model=UserWithRoleResponse)
def me(current_user: CallerIdentity = Depends(get_current_user), db: Session = Depends(get_db)):
    user = users.get_user(db, current_user.user_id)
    if user is None:
        raise UnauthorizedError("User not found.")
    return user
