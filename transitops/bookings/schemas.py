from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum

class BookingStatus(str, Enum):
    """Booking status enumeration"""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

class BookingCreateRequest(BaseModel):
    """Request to book one seat on a trip"""
    schedule_id: int
    student_id: int
    seat_number: Optional[str] = None
    boarding_stop: Optional[str] = None

class BookingCancellationRequest(BaseModel):
    """Rider initiated cancellation"""
    reason: Optional[str] = None

class Booking(BaseModel):
    """Booking as returned to callers"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    schedule_id: int
    student_id: int
    status: BookingStatus
    seat_number: Optional[str] = None
    boarding_stop: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
