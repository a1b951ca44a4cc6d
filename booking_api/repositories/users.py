"""Identity store queries."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from booking_api.models.user import Role, User


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def email_exists(db: Session, email: str) -> bool:
    return db.execute(select(User.id).where(User.email == email).limit(1)).first() is not None


def admin_exists(db: Session) -> bool:
    return db.execute(select(User.id).where(User.role == Role.ADMIN).limit(1)).first() is not None


def add_user(db: Session, *, name: str, email: str, hashed_password: str, role: Role = Role.USER) -> User:
    user = User(name=name, email=email, hashed_password=hashed_password, role=role)
    db.add(user)
    db.flush()
    return user
