"""
Booking Module

The rider-facing booking path. Seats are reserved and released only through
the schedule seat ledger, so booking creation and administrator transitions
on the same trip never race each other.

Key Components:
- service.py: Booking creation and rider cancellation
- router.py: FastAPI endpoints for bookings
- schemas.py: Pydantic models for booking requests and responses
"""

from .router import router
from .service import BookingService
from .schemas import Booking, BookingStatus, BookingCreateRequest, BookingCancellationRequest

__all__ = [
    "router",
    "BookingService",
    "Booking",
    "BookingStatus",
    "BookingCreateRequest",
    "BookingCancellationRequest"
]
