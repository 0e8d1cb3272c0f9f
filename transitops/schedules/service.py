import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from transitops.audit import record_audit
from transitops.models import ScheduleInstance, Booking, Student
from transitops.notifications import Notifier, LoggingNotifier
from transitops.routes.service import RouteDirectory
from transitops.exceptions import (
    ScheduleError, NotFound, InvalidDate, InvalidSchedule, ScheduleConflict, DeletionBlocked
)
from transitops.schedules.cascade import CascadingCancellation
from transitops.schedules.date_policy import DatePolicy, default_policy
from transitops.schedules.lifecycle import plan_transition
from transitops.schedules.locks import InstanceLockRegistry, instance_locks
from transitops.schedules.schemas import (
    ScheduleInstanceCreate, ScheduleInstance as ScheduleInstanceSchema, ScheduleAction,
    ScheduleSnapshot, TransitionResult, LifecycleState, ScheduleStatus, AutoCompleteResult,
    Passenger
)
from transitops.schedules.seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


class ScheduleLifecycleService:
    """Executes lifecycle transitions against storage"""
    
    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        policy: Optional[DatePolicy] = None,
        locks: InstanceLockRegistry = instance_locks
    ):
        self.db = db
        self.policy = policy or default_policy
        self.locks = locks
        self.notifier = notifier or LoggingNotifier()
        self.routes = RouteDirectory(db)
        self.ledger = SeatLedger(db, locks=locks)
        self.cascade = CascadingCancellation(db, self.ledger, self.notifier)
    
    def get_instance(self, schedule_id: int) -> ScheduleInstance:
        """Get a schedule instance or raise NotFound"""
        instance = self.db.query(ScheduleInstance).filter(ScheduleInstance.id == schedule_id).first()
        if not instance:
            raise NotFound(f"Schedule {schedule_id} not found", schedule_id=schedule_id)
        return instance
    
    def _lock_row(self, schedule_id: int) -> ScheduleInstance:
        instance = self.db.get(
            ScheduleInstance, schedule_id, with_for_update=True, populate_existing=True
        )
        if not instance:
            raise NotFound(f"Schedule {schedule_id} not found", schedule_id=schedule_id)
        return instance
    
    def build_instance(
        self,
        request: ScheduleInstanceCreate,
        actor_id: Optional[str],
        now: datetime
    ) -> ScheduleInstance:
        """Validate a creation request and return an unsaved instance"""
        decision = self.policy.can_enable_for_date(request.schedule_date, now)
        if not decision.allowed:
            raise InvalidDate(
                decision.reason,
                schedule_date=request.schedule_date.isoformat(),
                minimum_date=decision.minimum_date.isoformat()
            )
        
        route = self.routes.get_route(request.route_id)
        if route.status != "active":
            raise InvalidSchedule(
                f"Route {route.route_number} is {route.status} and cannot be scheduled",
                route_id=route.id
            )
        
        total_seats = self.routes.seat_capacity(route.id, request.vehicle_id)
        if total_seats <= 0:
            raise InvalidSchedule(
                f"Route {route.route_number} has no seating capacity",
                route_id=route.id
            )
        
        return ScheduleInstance(
            route_id=route.id,
            vehicle_id=request.vehicle_id,
            driver_id=request.driver_id,
            schedule_date=request.schedule_date,
            departure_time=request.departure_time,
            arrival_time=request.arrival_time,
            total_seats=total_seats,
            booked_seats=0,
            admin_scheduling_enabled=False,
            booking_enabled=False,
            booking_deadline=request.booking_deadline,
            lifecycle_state=LifecycleState.PENDING_APPROVAL.value,
            status=ScheduleStatus.SCHEDULED.value,
            special_instructions=request.special_instructions,
            created_by=actor_id
        )
    
    def find_conflicts(self, route_ids: List[int], dates: list, departure_time) -> List[ScheduleInstance]:
        """Existing instances that would collide with the requested (route, date, departure)"""
        return self.db.query(ScheduleInstance).filter(
            ScheduleInstance.route_id.in_(route_ids),
            ScheduleInstance.schedule_date.in_(dates),
            ScheduleInstance.departure_time == departure_time
        ).all()
    
    def create_instance(
        self,
        request: ScheduleInstanceCreate,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ScheduleInstance:
        """Create a schedule instance in pending approval"""
        now = now or datetime.now()
        instance = self.build_instance(request, actor_id, now)
        
        if self.find_conflicts([request.route_id], [request.schedule_date], request.departure_time):
            raise ScheduleConflict(
                f"A trip already exists for route {request.route_id} on "
                f"{request.schedule_date.isoformat()} at {request.departure_time.strftime('%H:%M')}",
                route_id=request.route_id,
                schedule_date=request.schedule_date.isoformat()
            )
        
        self.db.add(instance)
        try:
            self.db.flush()
            record_audit(self.db, actor_id, "create", instance.id, {
                "route_id": instance.route_id,
                "schedule_date": instance.schedule_date.isoformat(),
                "total_seats": instance.total_seats
            })
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ScheduleConflict(
                f"A trip already exists for route {request.route_id} on {request.schedule_date.isoformat()}",
                route_id=request.route_id,
                schedule_date=request.schedule_date.isoformat()
            )
        
        self.db.refresh(instance)
        logger.info("Created schedule %s for route %s on %s", instance.id, instance.route_id, instance.schedule_date)
        return instance
    
    def transition(
        self,
        schedule_id: int,
        action: ScheduleAction,
        actor_id: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> TransitionResult:
        """Apply one lifecycle transition and carry out its side effects"""
        now = now or datetime.now()
        
        with self.locks.hold(schedule_id):
            try:
                instance = self._lock_row(schedule_id)
                snapshot = ScheduleSnapshot.model_validate(instance)
                plan = plan_transition(
                    snapshot,
                    action,
                    now,
                    self.policy,
                    confirmed_bookings=self.cascade.confirmed_bookings(schedule_id),
                    reason=notes
                )
            except ScheduleError as e:
                self.db.rollback()
                self._audit_failure(actor_id, action, schedule_id, e)
                raise
            
            for field, value in plan.changes.items():
                setattr(instance, field, value)
            if notes and action != ScheduleAction.COMPLETE:
                instance.special_instructions = notes
            
            record_audit(self.db, actor_id, action.value, schedule_id, {
                "from": plan.previous_state.value,
                "to": plan.state.value,
                "changes": sorted(plan.changes),
                "notes": notes
            })
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            
            cancelled = self.cascade.execute(schedule_id, plan.effects, actor_id=actor_id, now=now)
            instance = self.get_instance(schedule_id)
        
        logger.info(
            "Schedule %s %s: %s -> %s, cancelled_bookings=%s",
            schedule_id, action.value, plan.previous_state.value, plan.state.value, cancelled
        )
        return TransitionResult(
            schedule_id=schedule_id,
            action=action,
            previous_state=plan.previous_state,
            state=plan.state,
            cancelled_bookings=cancelled,
            schedule=ScheduleInstanceSchema.model_validate(instance)
        )
    
    def delete_instance(self, schedule_id: int, actor_id: Optional[str] = None) -> None:
        """Hard-delete an instance that no booking has ever referenced"""
        with self.locks.hold(schedule_id):
            instance = self._lock_row(schedule_id)
            booking_count = self.db.query(Booking).filter(Booking.schedule_id == schedule_id).count()
            if booking_count:
                self.db.rollback()
                error = DeletionBlocked(
                    f"Cannot delete schedule {schedule_id}: {booking_count} booking(s) reference it. "
                    "Cancel the trip instead.",
                    schedule_id=schedule_id,
                    bookings=booking_count
                )
                self._audit_failure(actor_id, "delete", schedule_id, error)
                raise error
            
            self.db.delete(instance)
            record_audit(self.db, actor_id, "delete", schedule_id, {
                "route_id": instance.route_id,
                "schedule_date": instance.schedule_date.isoformat()
            })
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        
        logger.info("Deleted schedule %s", schedule_id)
    
    def complete_elapsed(self, now: Optional[datetime] = None) -> AutoCompleteResult:
        """Complete every approved or open trip whose date has passed"""
        now = now or datetime.now()
        candidates = [row.id for row in self.db.query(ScheduleInstance.id).filter(
            ScheduleInstance.lifecycle_state.in_([
                LifecycleState.APPROVED.value, LifecycleState.OPEN_FOR_BOOKING.value
            ]),
            ScheduleInstance.schedule_date < now.date()
        ).order_by(ScheduleInstance.schedule_date, ScheduleInstance.id).all()]
        
        completed = []
        for schedule_id in candidates:
            try:
                self.transition(schedule_id, ScheduleAction.COMPLETE, actor_id="system", now=now)
                completed.append(schedule_id)
            except ScheduleError as e:
                # State moved on since the candidate query
                logger.info("Skipped completing schedule %s: %s", schedule_id, e.detail)
        
        if completed:
            logger.info("Auto-completed %s trip(s)", len(completed))
        return AutoCompleteResult(completed_schedule_ids=completed, completed_at=now)
    
    def list_passengers(self, schedule_id: int) -> List[Passenger]:
        """Riders with confirmed seats on a trip"""
        self.get_instance(schedule_id)
        rows = self.db.query(Booking, Student).join(
            Student, Student.id == Booking.student_id
        ).filter(
            Booking.schedule_id == schedule_id,
            Booking.status == "confirmed"
        ).order_by(Booking.boarding_stop, Booking.seat_number, Booking.id).all()
        
        return [
            Passenger(
                booking_id=booking.id,
                student_id=student.id,
                student_name=student.student_name,
                roll_number=student.roll_number,
                email=student.email,
                mobile=student.mobile,
                seat_number=booking.seat_number,
                boarding_stop=booking.boarding_stop,
                booked_at=booking.created_at
            )
            for booking, student in rows
        ]
    
    def _audit_failure(self, actor_id, action, schedule_id, error: ScheduleError):
        action_name = action.value if isinstance(action, ScheduleAction) else action
        record_audit(
            self.db, actor_id, action_name, schedule_id,
            {"error": error.code}, success=False, error_message=error.detail
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Could not record audit failure for schedule %s", schedule_id, exc_info=True)
