"""Booking model definitions."""

from sqlalchemy import Column, ForeignKey, Index, Integer
from booking_api.database import Base


class Booking(Base):
    """Pairs one user with one time slot. A slot is booked at most once."""
    __tablename__ = "bookings"
    __table_args__ = (
        Index("uq_bookings_time_slot_id", "time_slot_id", unique=True),
        Index("idx_bookings_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
