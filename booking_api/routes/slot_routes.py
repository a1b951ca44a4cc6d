from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from booking_api.auth.dependencies import require_admin
from booking_api.database import get_db
from booking_api.services import reservations

router = APIRouter(tags=['slots'])


class CreateTimeSlotRequest(BaseModel):
    start_time: datetime
    duration_minutes: int


class TimeSlotResponse(BaseModel):
    id: int
    start_time: datetime
    duration_minutes: int

    class Config:
        from_attributes = True


class CreatedTimeSlotResponse(TimeSlotResponse):
    is_booked: bool


@router.get('', response_model=list[TimeSlotResponse])
def list_available_slots(db: Session = Depends(get_db)):
    return reservations.list_available_slots(db)


@router.post(
    '',
    response_model=CreatedTimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_time_slot(data: CreateTimeSlotRequest, db: Session = Depends(get_db)):
    return reservations.create_slot(db, data.start_time, data.duration_minutes)
