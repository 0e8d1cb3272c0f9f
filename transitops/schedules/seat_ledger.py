"""
Seat ledger: the only writer of ``ScheduleInstance.booked_seats``.

Each mutation is a single conditional UPDATE executed while holding the
instance's in-process lock, so ``0 <= booked_seats <= total_seats`` holds
even when several requests reserve the same trip at once. Callers that need
the reservation and their own writes to commit atomically wrap both in
``ledger.locked(instance_id)`` and commit before leaving the block.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy import update, select, or_, case
from sqlalchemy.orm import Session

from transitops.models import ScheduleInstance
from transitops.exceptions import NotFound, NotBookable, InsufficientCapacity
from transitops.schedules.locks import InstanceLockRegistry, instance_locks

logger = logging.getLogger(__name__)


class SeatLedger:
    """Atomic seat accounting for schedule instances"""

    def __init__(self, db: Session, locks: InstanceLockRegistry = instance_locks):
        self.db = db
        self.locks = locks

    @contextmanager
    def locked(self, instance_id: int):
        with self.locks.hold(instance_id):
            yield

    def _load(self, instance_id: int) -> ScheduleInstance:
        instance = self.db.get(
            ScheduleInstance, instance_id, with_for_update=True, populate_existing=True
        )
        if not instance:
            raise NotFound(f"Schedule {instance_id} not found", schedule_id=instance_id)
        return instance

    def _booked_seats(self, instance_id: int) -> int:
        return self.db.execute(
            select(ScheduleInstance.booked_seats).where(ScheduleInstance.id == instance_id)
        ).scalar_one()

    def _refresh(self, instance_id: int):
        instance = self.db.identity_map.get(self.db.identity_key(ScheduleInstance, instance_id))
        if instance is not None:
            self.db.expire(instance, ["booked_seats"])

    def reserve(self, instance_id: int, count: int = 1, now: Optional[datetime] = None) -> int:
        """Book ``count`` seats; returns the new booked seat count"""
        if count < 1:
            raise ValueError("count must be at least 1")
        now = now or datetime.now()

        with self.locked(instance_id):
            instance = self._load(instance_id)
            self._check_bookable(instance, now)
            if instance.booked_seats + count > instance.total_seats:
                raise InsufficientCapacity(
                    f"Only {instance.available_seats} seats left on this trip",
                    schedule_id=instance_id,
                    requested=count,
                    available=instance.available_seats,
                )

            result = self.db.execute(
                update(ScheduleInstance)
                .where(
                    ScheduleInstance.id == instance_id,
                    ScheduleInstance.booking_enabled.is_(True),
                    or_(
                        ScheduleInstance.booking_deadline.is_(None),
                        ScheduleInstance.booking_deadline > now,
                    ),
                    ScheduleInstance.booked_seats + count <= ScheduleInstance.total_seats,
                )
                .values(booked_seats=ScheduleInstance.booked_seats + count)
                .execution_options(synchronize_session=False)
            )
            self._refresh(instance_id)

            if result.rowcount != 1:
                # Another writer got there between the read and the update
                instance = self._load(instance_id)
                self._check_bookable(instance, now)
                raise InsufficientCapacity(
                    f"Only {instance.available_seats} seats left on this trip",
                    schedule_id=instance_id,
                    requested=count,
                    available=instance.available_seats,
                )

            booked = self._booked_seats(instance_id)
            logger.debug("Reserved %s seat(s) on schedule %s, booked=%s", count, instance_id, booked)
            return booked

    def release(self, instance_id: int, count: int = 1) -> int:
        """Give back ``count`` seats, never dropping below zero"""
        if count < 1:
            raise ValueError("count must be at least 1")

        with self.locked(instance_id):
            result = self.db.execute(
                update(ScheduleInstance)
                .where(ScheduleInstance.id == instance_id)
                .values(
                    booked_seats=case(
                        (ScheduleInstance.booked_seats > count, ScheduleInstance.booked_seats - count),
                        else_=0,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFound(f"Schedule {instance_id} not found", schedule_id=instance_id)
            self._refresh(instance_id)

            booked = self._booked_seats(instance_id)
            logger.debug("Released %s seat(s) on schedule %s, booked=%s", count, instance_id, booked)
            return booked

    def _check_bookable(self, instance: ScheduleInstance, now: datetime):
        if not instance.booking_enabled:
            raise NotBookable(
                "Booking is not enabled for this trip",
                schedule_id=instance.id,
            )
        if instance.booking_deadline is not None and now >= instance.booking_deadline:
            raise NotBookable(
                f"Booking closed at {instance.booking_deadline.strftime('%d %b %Y %H:%M')}",
                schedule_id=instance.id,
            )
