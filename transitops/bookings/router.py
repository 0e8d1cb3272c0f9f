from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from transitops.database import get_db
from transitops.exceptions import ScheduleError
from transitops.bookings.schemas import Booking, BookingCreateRequest, BookingCancellationRequest
from transitops.bookings.service import BookingService

router = APIRouter()

@router.post("/", response_model=Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    db: Session = Depends(get_db)
):
    """Book one seat on a trip"""
    try:
        return BookingService(db).create_booking(request)
    except ScheduleError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

@router.get("/{booking_id}", response_model=Booking)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    """Get booking details"""
    try:
        return BookingService(db).get_booking(booking_id)
    except ScheduleError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

@router.post("/{booking_id}/cancel", response_model=Booking)
def cancel_booking(
    booking_id: int,
    request: BookingCancellationRequest,
    db: Session = Depends(get_db)
):
    """Cancel a booking and release its seat"""
    try:
        return BookingService(db).cancel_booking(booking_id, reason=request.reason)
    except ScheduleError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
