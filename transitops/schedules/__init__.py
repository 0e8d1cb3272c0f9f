"""
Trip Schedule Lifecycle & Booking Availability Module

This module turns route definitions into dated trip instances and governs
whether riders can see and book them. It includes:

- Date policy deciding which dates may be scheduled or opened for booking
- Seat ledger keeping booked seats within capacity under concurrent access
- Lifecycle state machine (approve, enable/disable booking, cancel, complete)
- Cascading cancellation of bookings when a trip stops being bookable
- Best-effort bulk transitions and all-or-nothing bulk creation
- Calendar and per-route rollups for planning views
- Periodic completion of trips whose date has passed

Key Components:
- date_policy.py: Lead-time and booking-deadline rules (pure functions)
- seat_ledger.py: Atomic reserve/release of seats
- lifecycle.py: Pure transition planning returning field changes and effects
- cascade.py: Executes booking cancellations and rider notifications
- service.py: Applies transitions to storage under per-instance locks
- bulk.py: Bulk transition and bulk creation orchestration
- calendar_service.py: Per-day and per-route read models
- sweeper.py: Background completion sweep
- router.py: FastAPI endpoints for administrators
- schemas.py: Pydantic models for schedules, transitions and summaries
"""

from .router import router
from .service import ScheduleLifecycleService
from .bulk import BulkOrchestrator
from .calendar_service import CalendarAggregator
from .seat_ledger import SeatLedger
from .date_policy import DatePolicy, can_enable_for_date, minimum_schedule_date
from .sweeper import CompletionSweeper
from .schemas import (
    LifecycleState, ScheduleStatus, ScheduleAction, ScheduleInstance, ScheduleInstanceCreate,
    CreateInstancesRequest, CreateInstancesResult, TransitionResult, BulkTransitionResult,
    CalendarDaySummary, RouteScheduleSummary, DatePolicyDecision
)

__all__ = [
    "router",
    "ScheduleLifecycleService",
    "BulkOrchestrator",
    "CalendarAggregator",
    "SeatLedger",
    "DatePolicy",
    "can_enable_for_date",
    "minimum_schedule_date",
    "CompletionSweeper",
    "LifecycleState",
    "ScheduleStatus",
    "ScheduleAction",
    "ScheduleInstance",
    "ScheduleInstanceCreate",
    "CreateInstancesRequest",
    "CreateInstancesResult",
    "TransitionResult",
    "BulkTransitionResult",
    "CalendarDaySummary",
    "RouteScheduleSummary",
    "DatePolicyDecision"
]
