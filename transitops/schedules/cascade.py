"""
Cascading cancellation of bookings on trips that stop being bookable.

Bookings are processed one at a time: flip ``confirmed`` to ``cancelled``
with a conditional update, give the seat back through the seat ledger,
commit, then notify the rider. A booking that is no longer confirmed is
skipped, so running the cascade again is a no-op.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy import update
from sqlalchemy.orm import Session

from transitops.models import Booking
from transitops.notifications import Notifier, NotificationEvent, NotificationType
from transitops.schedules.schemas import BookingRef, CancelBooking, Notify, CompleteBookings
from transitops.schedules.seat_ledger import SeatLedger
from transitops.schedules.lifecycle import cascade_effects

logger = logging.getLogger(__name__)


class CascadingCancellation:
    """Executes booking side effects produced by lifecycle transitions"""

    def __init__(self, db: Session, ledger: SeatLedger, notifier: Notifier):
        self.db = db
        self.ledger = ledger
        self.notifier = notifier

    def confirmed_bookings(self, schedule_id: int) -> List[BookingRef]:
        rows = self.db.query(Booking.id, Booking.student_id).filter(
            Booking.schedule_id == schedule_id,
            Booking.status == "confirmed"
        ).order_by(Booking.id).all()
        return [BookingRef(booking_id=row.id, student_id=row.student_id) for row in rows]

    def run(
        self,
        schedule_id: int,
        reason: str,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> int:
        """Cancel every confirmed booking on ``schedule_id``; returns how many were cancelled"""
        effects = cascade_effects(schedule_id, self.confirmed_bookings(schedule_id), reason)
        return self.execute(schedule_id, effects, actor_id=actor_id, now=now)

    def execute(
        self,
        schedule_id: int,
        effects: Iterable,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> int:
        """Apply effects in order; returns the number of bookings actually cancelled"""
        now = now or datetime.now()
        cancelled: Set[int] = set()

        for effect in effects:
            if isinstance(effect, CancelBooking):
                if self._cancel_booking(schedule_id, effect, now):
                    cancelled.add(effect.booking_id)
            elif isinstance(effect, Notify):
                if effect.booking_id in cancelled:
                    self._notify(effect, actor_id, now)
            elif isinstance(effect, CompleteBookings):
                self._complete_bookings(effect.schedule_id, now)

        if cancelled:
            logger.info(
                "Cancelled %s booking(s) on schedule %s", len(cancelled), schedule_id
            )
        return len(cancelled)

    def _cancel_booking(self, schedule_id: int, effect: CancelBooking, now: datetime) -> bool:
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.id == effect.booking_id,
                    Booking.schedule_id == schedule_id,
                    Booking.status == "confirmed",
                )
                .values(status="cancelled", cancellation_reason=effect.reason, cancelled_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                return False
            self.ledger.release(schedule_id, 1)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    def _notify(self, effect: Notify, actor_id: Optional[str], now: datetime):
        event = NotificationEvent(
            type=NotificationType.BOOKING_CANCELLED,
            student_id=effect.student_id,
            schedule_id=effect.schedule_id,
            booking_id=effect.booking_id,
            reason=effect.reason,
            actor_id=actor_id,
            occurred_at=now,
        )
        try:
            self.notifier.emit(event)
        except Exception:
            logger.warning(
                "Failed to notify student %s about cancelled booking %s",
                effect.student_id, effect.booking_id, exc_info=True
            )

    def _complete_bookings(self, schedule_id: int, now: datetime):
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.schedule_id == schedule_id, Booking.status == "confirmed")
                .values(status="completed", completed_at=now)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Marked %s booking(s) completed on schedule %s", result.rowcount, schedule_id)
