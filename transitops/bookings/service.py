import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from transitops.models import Booking, Student
from transitops.exceptions import NotFound, DuplicateBooking, InvalidTransition
from transitops.bookings.schemas import BookingCreateRequest, BookingStatus
from transitops.schedules.seat_ledger import SeatLedger
from transitops.schedules.locks import InstanceLockRegistry, instance_locks

logger = logging.getLogger(__name__)


class BookingService:
    """Rider booking path: consumes seats through the seat ledger"""
    
    def __init__(self, db: Session, locks: InstanceLockRegistry = instance_locks):
        self.db = db
        self.ledger = SeatLedger(db, locks=locks)
    
    def get_booking(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)
        return booking
    
    def create_booking(self, request: BookingCreateRequest, now: Optional[datetime] = None) -> Booking:
        """Reserve a seat and record a confirmed booking"""
        now = now or datetime.now()
        
        student = self.db.query(Student).filter(Student.id == request.student_id).first()
        if not student:
            raise NotFound(f"Student {request.student_id} not found", student_id=request.student_id)
        
        # Seat and booking row commit together while the trip is locked
        with self.ledger.locked(request.schedule_id):
            existing = self.db.query(Booking).filter(
                Booking.schedule_id == request.schedule_id,
                Booking.student_id == request.student_id,
                Booking.status == BookingStatus.CONFIRMED.value
            ).first()
            if existing:
                raise DuplicateBooking(
                    "Student already holds a confirmed seat on this trip",
                    booking_id=existing.id
                )
            
            try:
                self.ledger.reserve(request.schedule_id, 1, now=now)
                booking = Booking(
                    schedule_id=request.schedule_id,
                    student_id=request.student_id,
                    status=BookingStatus.CONFIRMED.value,
                    seat_number=request.seat_number,
                    boarding_stop=request.boarding_stop
                )
                self.db.add(booking)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        
        self.db.refresh(booking)
        logger.info("Booking %s confirmed for student %s on schedule %s", booking.id, booking.student_id, booking.schedule_id)
        return booking
    
    def cancel_booking(
        self,
        booking_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Booking:
        """Cancel a confirmed booking and give its seat back"""
        now = now or datetime.now()
        booking = self.get_booking(booking_id)
        
        with self.ledger.locked(booking.schedule_id):
            self.db.refresh(booking)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise InvalidTransition(
                    f"Booking {booking_id} is already {booking.status}",
                    booking_id=booking_id
                )
            
            try:
                booking.status = BookingStatus.CANCELLED.value
                booking.cancellation_reason = reason or "Cancelled by student"
                booking.cancelled_at = now
                self.db.flush()
                self.ledger.release(booking.schedule_id, 1)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        
        self.db.refresh(booking)
        logger.info("Booking %s cancelled by student", booking_id)
        return booking
