"""Registration, login and the one-time admin bootstrap."""

import hmac
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from booking_api.auth.passwords import hash_password, verify_password
from booking_api.core.config import Settings
from booking_api.core.exceptions import (
    AdminAlreadyExistsError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidSetupKeyError,
    PersistenceFailure,
)
from booking_api.models.user import Role, User
from booking_api.repositories import users

logger = logging.getLogger(__name__)


def _create_user(db: Session, *, name: str, email: str, password: str, role: Role) -> User:
    try:
        if users.email_exists(db, email):
            raise EmailAlreadyRegisteredError()
        user = users.add_user(db, name=name, email=email, hashed_password=hash_password(password), role=role)
        db.commit()
        db.refresh(user)
    except EmailAlreadyRegisteredError:
        db.rollback()
        logger.warning('Registration rejected: email already exists.')
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning('Registration rejected: email registered concurrently.')
        raise EmailAlreadyRegisteredError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create user.')
        raise PersistenceFailure() from exc
    return user


def register_user(db: Session, *, name: str, email: str, password: str) -> User:
    user = _create_user(db, name=name, email=email, password=password, role=Role.USER)
    logger.info('Registered user %s', user.id)
    return user


def authenticate_user(db: Session, *, email: str, password: str) -> User:
    try:
        user = users.get_user_by_email(db, email)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to look up user during login.')
        raise PersistenceFailure() from exc

    if user is None or not verify_password(password, user.hashed_password):
        logger.warning('Login failed for a submitted email.')
        raise InvalidCredentialsError()
    return user


def setup_admin(
    db: Session,
    settings: Settings,
    *,
    name: str,
    email: str,
    password: str,
    setup_key: str,
) -> User:
    expected_key = settings.admin_setup_key
    if not expected_key or not hmac.compare_digest(setup_key.encode('utf-8'), expected_key.encode('utf-8')):
        logger.warning('Admin setup rejected: invalid setup key.')
        raise InvalidSetupKeyError()

    try:
        has_admin = users.admin_exists(db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to check for an existing admin.')
        raise PersistenceFailure() from exc
    if has_admin:
        raise AdminAlreadyExistsError()

    admin = _create_user(db, name=name, email=email, password=password, role=Role.ADMIN)
    logger.info('Created admin user %s', admin.id)
    return admin
