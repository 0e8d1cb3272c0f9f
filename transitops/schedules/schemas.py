from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import List, Optional, Dict, Any, Literal, Union
from datetime import datetime, date, time
from decimal import Decimal
from enum import Enum

class LifecycleState(str, Enum):
    """Administrative lifecycle of a schedule instance"""
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    OPEN_FOR_BOOKING = "open_for_booking"
    DISABLED = "disabled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

TERMINAL_STATES = (LifecycleState.CANCELLED, LifecycleState.COMPLETED)

class ScheduleStatus(str, Enum):
    """Operational status of a trip"""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class ScheduleAction(str, Enum):
    """Transitions an administrator (or the system) can apply"""
    APPROVE = "approve"
    ENABLE_BOOKING = "enable_booking"
    DISABLE_BOOKING = "disable_booking"
    DISABLE_ALL = "disable_all"
    RE_ENABLE = "re_enable"
    CANCEL = "cancel"
    COMPLETE = "complete"

# Date Policy
class DatePolicyDecision(BaseModel):
    """Outcome of a date policy check"""
    allowed: bool
    reason: Optional[str] = None
    minimum_date: date
    booking_window: Optional[str] = None

# Schedule Instances
class ScheduleInstanceCreate(BaseModel):
    """Request to create a single schedule instance"""
    route_id: int
    schedule_date: date
    departure_time: time
    arrival_time: time
    vehicle_id: Optional[int] = None
    driver_id: Optional[str] = None
    booking_deadline: Optional[datetime] = None
    special_instructions: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.arrival_time <= self.departure_time:
            raise ValueError("arrival_time must be after departure_time")
        return self

class ScheduleInstance(BaseModel):
    """Schedule instance as returned to callers"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_id: int
    vehicle_id: Optional[int] = None
    driver_id: Optional[str] = None
    schedule_date: date
    departure_time: time
    arrival_time: time
    total_seats: int
    booked_seats: int
    available_seats: int
    occupancy_percentage: float
    admin_scheduling_enabled: bool
    booking_enabled: bool
    booking_deadline: Optional[datetime] = None
    lifecycle_state: LifecycleState
    status: ScheduleStatus
    special_instructions: Optional[str] = None
    completion_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class CreateInstancesRequest(BaseModel):
    """Create one instance per (route, date) pair"""
    route_ids: List[int] = Field(..., min_length=1)
    dates: List[date] = Field(..., min_length=1)
    departure_time: time
    arrival_time: time
    vehicle_id: Optional[int] = None
    driver_id: Optional[str] = None
    special_instructions: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.arrival_time <= self.departure_time:
            raise ValueError("arrival_time must be after departure_time")
        return self

class RejectedDate(BaseModel):
    """A requested date refused by the date policy"""
    date: date
    reason: str

class CreateInstancesResult(BaseModel):
    """Outcome of a bulk creation request"""
    created: List[ScheduleInstance] = []
    rejected_dates: List[date] = []
    rejections: List[RejectedDate] = []

    @property
    def accepted(self) -> bool:
        return not self.rejected_dates

# Transitions
def admin_action(action: ScheduleAction) -> ScheduleAction:
    """Completion is run by the system sweep, never requested by an administrator"""
    if action == ScheduleAction.COMPLETE:
        raise ValueError("complete is applied automatically once a trip date has passed")
    return action

class TransitionRequest(BaseModel):
    """Apply one transition to one instance"""
    action: ScheduleAction
    notes: Optional[str] = None

    @field_validator("action")
    @classmethod
    def check_action(cls, v):
        return admin_action(v)

class TransitionResult(BaseModel):
    """Outcome of a single transition"""
    schedule_id: int
    action: ScheduleAction
    previous_state: LifecycleState
    state: LifecycleState
    cancelled_bookings: int = 0
    schedule: ScheduleInstance

class BulkTransitionRequest(BaseModel):
    """Apply one transition to many instances"""
    schedule_ids: List[int] = Field(..., min_length=1)
    action: ScheduleAction
    notes: Optional[str] = None

    @field_validator("action")
    @classmethod
    def check_action(cls, v):
        return admin_action(v)

class RangeTransitionRequest(BaseModel):
    """Apply one transition to every instance of a route within a date range"""
    route_id: int
    start_date: date
    end_date: date
    action: ScheduleAction
    notes: Optional[str] = None

    @field_validator("action")
    @classmethod
    def check_action(cls, v):
        return admin_action(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

class BulkItemFailure(BaseModel):
    """Per-item failure in a bulk transition"""
    schedule_id: int
    error: str
    detail: str

class BulkTransitionResult(BaseModel):
    """Aggregate outcome of a best-effort bulk transition"""
    action: ScheduleAction
    succeeded: List[int] = []
    failed: List[BulkItemFailure] = []
    skipped: List[int] = []
    cancelled_bookings_total: int = 0
    completed_at: datetime

    @property
    def message(self) -> str:
        return (
            f"{len(self.succeeded)} succeeded, {len(self.failed)} failed, "
            + (f"{len(self.skipped)} skipped, " if self.skipped else "")
            + f"{self.cancelled_bookings_total} bookings cancelled"
        )

# Lifecycle planning (pure state machine output)
class BookingRef(BaseModel):
    """Confirmed booking the state machine may need to cancel"""
    booking_id: int
    student_id: int

class ScheduleSnapshot(BaseModel):
    """Fields of an instance the state machine decides on"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    schedule_date: date
    lifecycle_state: LifecycleState
    admin_scheduling_enabled: bool
    booking_enabled: bool
    booking_deadline: Optional[datetime] = None
    booked_seats: int = 0

class CancelBooking(BaseModel):
    """Effect: cancel one confirmed booking and release its seat"""
    kind: Literal["cancel_booking"] = "cancel_booking"
    booking_id: int
    student_id: int
    reason: str

class Notify(BaseModel):
    """Effect: tell a rider their booking was cancelled"""
    kind: Literal["notify"] = "notify"
    booking_id: int
    student_id: int
    schedule_id: int
    reason: str

class CompleteBookings(BaseModel):
    """Effect: mark all confirmed bookings of a finished trip completed"""
    kind: Literal["complete_bookings"] = "complete_bookings"
    schedule_id: int

Effect = Union[CancelBooking, Notify, CompleteBookings]

class TransitionPlan(BaseModel):
    """What a transition changes and which side effects follow it"""
    action: ScheduleAction
    previous_state: LifecycleState
    state: LifecycleState
    changes: Dict[str, Any] = {}
    effects: List[Effect] = []

    @property
    def is_noop(self) -> bool:
        return not self.changes and not self.effects

# Calendar
class InstanceSummary(BaseModel):
    """Compact instance row for planning views"""
    id: int
    route_id: int
    route_number: Optional[str] = None
    route_name: Optional[str] = None
    departure_time: time
    arrival_time: time
    total_seats: int
    booked_seats: int
    available_seats: int
    lifecycle_state: LifecycleState
    status: ScheduleStatus
    admin_scheduling_enabled: bool
    booking_enabled: bool

class CalendarDaySummary(BaseModel):
    """Per-day rollup for calendar grids"""
    date: date
    schedules: List[InstanceSummary] = []
    total_schedules: int = 0
    enabled_schedules: int = 0
    total_bookings: int = 0
    total_capacity: int = 0

class RouteInfo(BaseModel):
    """Route header shown next to its schedule summary"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_number: str
    route_name: str
    start_location: str
    end_location: str
    total_capacity: int
    fare: Optional[Decimal] = None

class RouteScheduleSummary(BaseModel):
    """Next trip and month rollup for one route"""
    route: RouteInfo
    next_instance: Optional[ScheduleInstance] = None
    instances_this_month: int = 0
    bookings_this_month: int = 0

# Completion sweep
class AutoCompleteResult(BaseModel):
    """Outcome of one completion sweep"""
    completed_schedule_ids: List[int] = []
    completed_at: datetime

    @property
    def message(self) -> str:
        if not self.completed_schedule_ids:
            return "No trips found that require completion"
        return f"Completed {len(self.completed_schedule_ids)} trips"

# Passengers
class Passenger(BaseModel):
    """Rider holding a confirmed seat on a trip"""
    booking_id: int
    student_id: int
    student_name: str
    roll_number: str
    email: Optional[str] = None
    mobile: Optional[str] = None
    seat_number: Optional[str] = None
    boarding_stop: Optional[str] = None
    booked_at: Optional[datetime] = None
