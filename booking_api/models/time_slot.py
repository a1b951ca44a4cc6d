"""Time slot model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer
from booking_api.database import Base


class TimeSlot(Base):
    """Represents a bookable, fixed-duration time slot."""
    __tablename__ = "time_slots"
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_time_slots_duration_positive"),
        Index("idx_time_slots_booked_start", "is_booked", "start_time"),
    )

    id = Column(Integer, primary_key=True)
    start_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
