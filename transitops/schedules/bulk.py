"""
Bulk operations over schedule instances.

``bulk_transition`` is best effort: each instance is transitioned and
committed on its own and failures are collected, never raised. Work on
different instances may run on a thread pool; an id is never processed twice
in one request. ``bulk_transition_range`` selects the instances of one route
within a date range, skipping dates too near to be enabled.

``create_instances`` is the opposite: every requested date is checked first
and a single bad date rejects the whole request.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from transitops.audit import record_audit
from transitops.config import settings
from transitops.exceptions import (
    ScheduleError, ScheduleConflict, InvalidDate, InvalidDateRange, DeadlinePassed, NotFound, error_code
)
from transitops.models import ScheduleInstance
from transitops.notifications import Notifier
from transitops.schedules.date_policy import DatePolicy
from transitops.schedules.locks import InstanceLockRegistry, instance_locks
from transitops.schedules.schemas import (
    ScheduleAction, BulkTransitionResult, BulkItemFailure, CreateInstancesRequest,
    CreateInstancesResult, RejectedDate, ScheduleInstanceCreate,
    ScheduleInstance as ScheduleInstanceSchema
)
from transitops.schedules.service import ScheduleLifecycleService

logger = logging.getLogger(__name__)

ItemOutcome = Tuple[int, Optional[BulkItemFailure], int]

# Actions that put a trip in front of riders; past and too-near dates are skipped for these
ENABLING_ACTIONS = (ScheduleAction.APPROVE, ScheduleAction.ENABLE_BOOKING, ScheduleAction.RE_ENABLE)


def _unique(items):
    seen = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


class BulkOrchestrator:
    """Applies one action to many schedule instances"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        policy: Optional[DatePolicy] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        max_workers: Optional[int] = None,
        locks: InstanceLockRegistry = instance_locks
    ):
        self.db = db
        self.notifier = notifier
        self.policy = policy
        self.session_factory = session_factory
        self.max_workers = max_workers or settings.BULK_MAX_WORKERS
        self.locks = locks
        self.service = self._service(db)

    def _service(self, db: Session) -> ScheduleLifecycleService:
        return ScheduleLifecycleService(db, notifier=self.notifier, policy=self.policy, locks=self.locks)

    def bulk_transition(
        self,
        schedule_ids: List[int],
        action: ScheduleAction,
        actor_id: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BulkTransitionResult:
        """Transition each instance independently and report per-item outcomes"""
        if not schedule_ids:
            raise ValueError("schedule_ids must be a non-empty list")
        now = now or datetime.now()
        ids = _unique(schedule_ids)

        if self.session_factory is not None and self.max_workers > 1 and len(ids) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ids))) as pool:
                outcomes = list(pool.map(
                    lambda schedule_id: self._apply_in_own_session(schedule_id, action, actor_id, notes, now),
                    ids
                ))
        else:
            outcomes = [self._apply(self.service, schedule_id, action, actor_id, notes, now) for schedule_id in ids]

        succeeded = [schedule_id for schedule_id, failure, _ in outcomes if failure is None]
        failed = [failure for _, failure, _ in outcomes if failure is not None]
        cancelled_total = sum(cancelled for _, _, cancelled in outcomes)

        result = BulkTransitionResult(
            action=action,
            succeeded=succeeded,
            failed=failed,
            cancelled_bookings_total=cancelled_total,
            completed_at=datetime.now()
        )
        logger.info("Bulk %s by %s: %s", action.value, actor_id, result.message)
        return result

    def bulk_transition_range(
        self,
        route_id: int,
        start_date: date,
        end_date: date,
        action: ScheduleAction,
        actor_id: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BulkTransitionResult:
        """Apply ``action`` to every instance of a route dated within the inclusive range"""
        now = now or datetime.now()
        if end_date < start_date:
            raise InvalidDateRange(
                "End date must not be before start date",
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat()
            )
        self.service.routes.get_route(route_id)
        policy = self.service.policy

        instances = self.db.query(ScheduleInstance).filter(
            ScheduleInstance.route_id == route_id,
            ScheduleInstance.schedule_date >= start_date,
            ScheduleInstance.schedule_date <= end_date
        ).order_by(
            ScheduleInstance.schedule_date, ScheduleInstance.departure_time, ScheduleInstance.id
        ).all()
        if not instances:
            raise NotFound(
                f"No schedules found for route {route_id} between {start_date.isoformat()} and {end_date.isoformat()}",
                route_id=route_id
            )

        skipped = []
        eligible = []
        for instance in instances:
            if action in ENABLING_ACTIONS and not policy.can_enable_for_date(instance.schedule_date, now).allowed:
                skipped.append(instance.id)
            else:
                eligible.append(instance)

        if not eligible:
            raise InvalidDate(
                "No schedules in this range are far enough ahead. Booking cannot be enabled for past dates or today.",
                route_id=route_id,
                minimum_date=policy.minimum_schedule_date(now).isoformat()
            )

        if action == ScheduleAction.ENABLE_BOOKING:
            closed = [
                i.id for i in eligible
                if policy.is_deadline_passed(
                    i.booking_deadline or policy.default_booking_deadline(i.schedule_date), now
                )
            ]
            if closed:
                raise DeadlinePassed(
                    f"Cannot enable booking for {len(closed)} schedule(s) as their booking deadlines have already passed",
                    schedule_ids=closed
                )

        result = self.bulk_transition([i.id for i in eligible], action, actor_id=actor_id, notes=notes, now=now)
        result.skipped = skipped
        if skipped:
            logger.info("Skipped %s schedule(s) on route %s outside the booking lead time", len(skipped), route_id)
        return result

    def _apply_in_own_session(self, schedule_id, action, actor_id, notes, now) -> ItemOutcome:
        db = self.session_factory()
        try:
            return self._apply(self._service(db), schedule_id, action, actor_id, notes, now)
        finally:
            db.close()

    def _apply(
        self,
        service: ScheduleLifecycleService,
        schedule_id: int,
        action: ScheduleAction,
        actor_id: Optional[str],
        notes: Optional[str],
        now: datetime
    ) -> ItemOutcome:
        try:
            result = service.transition(schedule_id, action, actor_id=actor_id, notes=notes, now=now)
            return schedule_id, None, result.cancelled_bookings
        except ScheduleError as e:
            return schedule_id, BulkItemFailure(schedule_id=schedule_id, error=e.code, detail=e.detail), 0
        except SQLAlchemyError as e:
            service.db.rollback()
            logger.exception("Storage failure while applying %s to schedule %s", action.value, schedule_id)
            return schedule_id, BulkItemFailure(
                schedule_id=schedule_id, error=error_code(e), detail=str(e)
            ), 0

    def create_instances(
        self,
        request: CreateInstancesRequest,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CreateInstancesResult:
        """Create one instance per (route, date); any invalid date rejects the whole request"""
        now = now or datetime.now()
        route_ids = _unique(request.route_ids)
        dates = _unique(request.dates)
        policy = self.service.policy

        rejections = []
        for day in dates:
            decision = policy.can_enable_for_date(day, now)
            if not decision.allowed:
                rejections.append(RejectedDate(date=day, reason=decision.reason))
        if rejections:
            logger.warning(
                "Rejected bulk creation for %s route(s): invalid dates %s",
                len(route_ids), [r.date.isoformat() for r in rejections]
            )
            return CreateInstancesResult(
                created=[],
                rejected_dates=[r.date for r in rejections],
                rejections=rejections
            )

        instances = []
        for route_id in route_ids:
            for day in dates:
                instances.append(self.service.build_instance(
                    ScheduleInstanceCreate(
                        route_id=route_id,
                        schedule_date=day,
                        departure_time=request.departure_time,
                        arrival_time=request.arrival_time,
                        vehicle_id=request.vehicle_id,
                        driver_id=request.driver_id,
                        special_instructions=request.special_instructions
                    ),
                    actor_id,
                    now
                ))

        conflicts = self.service.find_conflicts(route_ids, dates, request.departure_time)
        if conflicts:
            described = ", ".join(
                f"route {c.route_id} on {c.schedule_date.isoformat()}" for c in conflicts
            )
            raise ScheduleConflict(
                f"Schedules already exist for: {described}",
                conflicts=[c.id for c in conflicts]
            )

        self.db.add_all(instances)
        try:
            self.db.flush()
            record_audit(self.db, actor_id, "bulk_create", None, {
                "route_ids": route_ids,
                "dates": [d.isoformat() for d in dates],
                "schedule_ids": [i.id for i in instances]
            })
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ScheduleConflict("Schedules already exist for one or more requested route dates")

        logger.info("Created %s schedule(s) for %s route(s) over %s date(s)", len(instances), len(route_ids), len(dates))
        return CreateInstancesResult(
            created=[ScheduleInstanceSchema.model_validate(i) for i in instances],
            rejected_dates=[],
            rejections=[]
        )
