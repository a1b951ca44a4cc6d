from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from booking_api.auth.dependencies import get_current_user
from booking_api.auth.identity import CallerIdentity
from booking_api.database import get_db
from booking_api.repositories.bookings import BookingDetails
from booking_api.services import reservations

router = APIRouter(tags=['bookings'])


class CreateBookingRequest(BaseModel):
    time_slot_id: int


class BookedSlotResponse(BaseModel):
    id: int
    start_time: datetime
    duration_minutes: int


class BookingResponse(BaseModel):
    id: int
    user_id: int
    time_slot_id: int
    time_slot: BookedSlotResponse

    @classmethod
    def from_details(cls, details: BookingDetails) -> 'BookingResponse':
        return cls(
            id=details.id,
            user_id=details.user_id,
            time_slot_id=details.time_slot_id,
            time_slot=BookedSlotResponse(
                id=details.time_slot_id,
                start_time=details.start_time,
                duration_minutes=details.duration_minutes,
            ),
        )


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    db: Session = Depends(get_db),
    current_user: CallerIdentity = Depends(get_current_user),
):
    details = reservations.reserve_slot(db, current_user, data.time_slot_id)
    return BookingResponse.from_details(details)


# Declared before /{booking_id} so the literal path wins.
@router.get('/my-bookings', response_model=list[BookingResponse])
def list_my_bookings(
    db: Session = Depends(get_db),
    current_user: CallerIdentity = Depends(get_current_user),
):
    return [BookingResponse.from_details(details) for details in reservations.list_my_bookings(db, current_user)]


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: CallerIdentity = Depends(get_current_user),
):
    return BookingResponse.from_details(reservations.get_booking(db, current_user, booking_id))
