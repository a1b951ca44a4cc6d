"""User model definitions."""

import enum

from sqlalchemy import Column, Enum, Integer, String
from booking_api.database import Base


class Role(str, enum.Enum):
    USER = "User"
    ADMIN = "Admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(
        Enum(Role, name="user_role", values_callable=lambda roles: [role.value for role in roles]),
        nullable=False,
        default=Role.USER,
    )
