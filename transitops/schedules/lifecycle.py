"""
Schedule instance state machine.

``plan_transition`` is pure: it looks at a snapshot of an instance, the
confirmed bookings on it and the current time, and returns a
``TransitionPlan`` describing the field changes and the side effects
(booking cancellations, rider notifications) the caller must carry out. It
never touches storage, so every rule below can be exercised without a
database.

    pending_approval --approve--> approved --enable_booking--> open_for_booking
    approved / open_for_booking --disable_all--> disabled --re_enable or approve--> approved
    open_for_booking --disable_booking--> approved
    any non-terminal --cancel--> cancelled
    approved / open_for_booking --complete--> completed   (date in the past)
"""
from datetime import datetime
from typing import List, Optional

from transitops.schedules.date_policy import DatePolicy
from transitops.exceptions import (
    InvalidDate, NotApproved, DeadlinePassed, InvalidTransition
)
from transitops.schedules.schemas import (
    LifecycleState, ScheduleStatus, ScheduleAction, ScheduleSnapshot, BookingRef,
    TransitionPlan, CancelBooking, Notify, CompleteBookings, TERMINAL_STATES
)

CANCELLATION_REASONS = {
    ScheduleAction.DISABLE_BOOKING: "Booking for this trip was closed by the transport office",
    ScheduleAction.DISABLE_ALL: "This trip was withdrawn by the transport office",
    ScheduleAction.CANCEL: "This trip has been cancelled",
}


def is_terminal(state: LifecycleState) -> bool:
    return state in TERMINAL_STATES


def cascade_effects(
    schedule_id: int,
    bookings: List[BookingRef],
    reason: str
) -> list:
    """One cancel and one notify effect per confirmed booking"""
    effects = []
    for booking in bookings:
        effects.append(CancelBooking(
            booking_id=booking.booking_id,
            student_id=booking.student_id,
            reason=reason
        ))
        effects.append(Notify(
            booking_id=booking.booking_id,
            student_id=booking.student_id,
            schedule_id=schedule_id,
            reason=reason
        ))
    return effects


def plan_transition(
    snapshot: ScheduleSnapshot,
    action: ScheduleAction,
    now: datetime,
    policy: DatePolicy,
    confirmed_bookings: Optional[List[BookingRef]] = None,
    reason: Optional[str] = None
) -> TransitionPlan:
    """Decide the outcome of ``action`` on ``snapshot`` without side effects"""
    confirmed_bookings = confirmed_bookings or []
    state = snapshot.lifecycle_state

    if is_terminal(state):
        raise InvalidTransition(
            f"Schedule {snapshot.id} is {state.value}; no further changes are allowed",
            schedule_id=snapshot.id,
            state=state.value,
            action=action.value,
        )

    planner = _PLANNERS[action]
    return planner(snapshot, now, policy, confirmed_bookings, reason)


def _plan(snapshot, action, state, changes=None, effects=None) -> TransitionPlan:
    return TransitionPlan(
        action=action,
        previous_state=snapshot.lifecycle_state,
        state=state,
        changes=changes or {},
        effects=effects or [],
    )


def _invalid(snapshot, action, expected: str) -> InvalidTransition:
    return InvalidTransition(
        f"Cannot {action.value.replace('_', ' ')} schedule {snapshot.id} while it is "
        f"{snapshot.lifecycle_state.value}; it must be {expected}",
        schedule_id=snapshot.id,
        state=snapshot.lifecycle_state.value,
        action=action.value,
    )


def _approve(snapshot, now, policy, bookings, reason):
    state = snapshot.lifecycle_state
    if state in (LifecycleState.APPROVED, LifecycleState.OPEN_FOR_BOOKING):
        return _plan(snapshot, ScheduleAction.APPROVE, state)
    # Disabled trips are approved back the same way re_enable does
    return _plan(
        snapshot,
        ScheduleAction.APPROVE,
        LifecycleState.APPROVED,
        changes={
            "admin_scheduling_enabled": True,
            "lifecycle_state": LifecycleState.APPROVED.value,
        },
    )


def _re_enable(snapshot, now, policy, bookings, reason):
    if snapshot.lifecycle_state != LifecycleState.DISABLED:
        raise _invalid(snapshot, ScheduleAction.RE_ENABLE, "disabled")
    return _plan(
        snapshot,
        ScheduleAction.RE_ENABLE,
        LifecycleState.APPROVED,
        changes={
            "admin_scheduling_enabled": True,
            "lifecycle_state": LifecycleState.APPROVED.value,
        },
    )


def _enable_booking(snapshot, now, policy, bookings, reason):
    state = snapshot.lifecycle_state
    if not snapshot.admin_scheduling_enabled:
        raise NotApproved(
            "This trip must be approved before booking can be enabled",
            schedule_id=snapshot.id,
        )

    decision = policy.can_enable_for_date(snapshot.schedule_date, now)
    if not decision.allowed:
        raise InvalidDate(
            decision.reason,
            schedule_id=snapshot.id,
            schedule_date=snapshot.schedule_date.isoformat(),
            minimum_date=decision.minimum_date.isoformat(),
        )

    deadline = snapshot.booking_deadline or policy.default_booking_deadline(snapshot.schedule_date)
    if policy.is_deadline_passed(deadline, now):
        raise DeadlinePassed(
            f"The booking deadline ({deadline.strftime('%d %b %Y %H:%M')}) has already passed",
            schedule_id=snapshot.id,
            booking_deadline=deadline.isoformat(),
        )

    # Open trips are a no-op once the checks pass
    if state == LifecycleState.OPEN_FOR_BOOKING:
        return _plan(snapshot, ScheduleAction.ENABLE_BOOKING, state)

    changes = {
        "booking_enabled": True,
        "lifecycle_state": LifecycleState.OPEN_FOR_BOOKING.value,
    }
    if snapshot.booking_deadline is None:
        changes["booking_deadline"] = deadline
    return _plan(snapshot, ScheduleAction.ENABLE_BOOKING, LifecycleState.OPEN_FOR_BOOKING, changes=changes)


def _disable_booking(snapshot, now, policy, bookings, reason):
    if snapshot.lifecycle_state != LifecycleState.OPEN_FOR_BOOKING:
        raise _invalid(snapshot, ScheduleAction.DISABLE_BOOKING, "open for booking")
    reason = reason or CANCELLATION_REASONS[ScheduleAction.DISABLE_BOOKING]
    return _plan(
        snapshot,
        ScheduleAction.DISABLE_BOOKING,
        LifecycleState.APPROVED,
        changes={
            "booking_enabled": False,
            "lifecycle_state": LifecycleState.APPROVED.value,
        },
        effects=cascade_effects(snapshot.id, bookings, reason),
    )


def _disable_all(snapshot, now, policy, bookings, reason):
    reason = reason or CANCELLATION_REASONS[ScheduleAction.DISABLE_ALL]
    changes = {}
    if snapshot.admin_scheduling_enabled:
        changes["admin_scheduling_enabled"] = False
    if snapshot.booking_enabled:
        changes["booking_enabled"] = False
    if snapshot.lifecycle_state != LifecycleState.DISABLED:
        changes["lifecycle_state"] = LifecycleState.DISABLED.value
    return _plan(
        snapshot,
        ScheduleAction.DISABLE_ALL,
        LifecycleState.DISABLED,
        changes=changes,
        effects=cascade_effects(snapshot.id, bookings, reason),
    )


def _cancel(snapshot, now, policy, bookings, reason):
    reason = reason or CANCELLATION_REASONS[ScheduleAction.CANCEL]
    return _plan(
        snapshot,
        ScheduleAction.CANCEL,
        LifecycleState.CANCELLED,
        changes={
            "admin_scheduling_enabled": False,
            "booking_enabled": False,
            "lifecycle_state": LifecycleState.CANCELLED.value,
            "status": ScheduleStatus.CANCELLED.value,
        },
        effects=cascade_effects(snapshot.id, bookings, reason),
    )


def _complete(snapshot, now, policy, bookings, reason):
    if snapshot.lifecycle_state not in (LifecycleState.APPROVED, LifecycleState.OPEN_FOR_BOOKING):
        raise _invalid(snapshot, ScheduleAction.COMPLETE, "approved or open for booking")
    if snapshot.schedule_date >= now.date():
        raise InvalidTransition(
            "Cannot complete a trip that has not occurred yet",
            schedule_id=snapshot.id,
            schedule_date=snapshot.schedule_date.isoformat(),
        )
    return _plan(
        snapshot,
        ScheduleAction.COMPLETE,
        LifecycleState.COMPLETED,
        changes={
            "booking_enabled": False,
            "lifecycle_state": LifecycleState.COMPLETED.value,
            "status": ScheduleStatus.COMPLETED.value,
            "completed_at": now,
            "completion_notes": reason or "Auto-completed by system",
        },
        effects=[CompleteBookings(schedule_id=snapshot.id)],
    )


_PLANNERS = {
    ScheduleAction.APPROVE: _approve,
    ScheduleAction.ENABLE_BOOKING: _enable_booking,
    ScheduleAction.DISABLE_BOOKING: _disable_booking,
    ScheduleAction.DISABLE_ALL: _disable_all,
    ScheduleAction.RE_ENABLE: _re_enable,
    ScheduleAction.CANCEL: _cancel,
    ScheduleAction.COMPLETE: _complete,
}
