"""
Typed failures raised by the scheduling engine and its collaborators.

Every error carries a stable machine ``code`` and a human readable
``detail`` that can be shown to an administrator as-is.
"""
from typing import Any, Dict, Optional


class ScheduleError(Exception):
    """Base class for expected, recoverable scheduling failures"""
    code = "schedule_error"
    status_code = 400

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": self.code, "detail": self.detail}
        if self.context:
            data["context"] = self.context
        return data


class NotFound(ScheduleError):
    code = "not_found"
    status_code = 404


class InvalidDate(ScheduleError):
    code = "invalid_date"


class NotApproved(ScheduleError):
    code = "not_approved"


class DeadlinePassed(ScheduleError):
    code = "deadline_passed"


class InsufficientCapacity(ScheduleError):
    code = "insufficient_capacity"
    status_code = 409


class NotBookable(ScheduleError):
    code = "not_bookable"


class DeletionBlocked(ScheduleError):
    code = "deletion_blocked"
    status_code = 409


class InvalidTransition(ScheduleError):
    code = "invalid_transition"
    status_code = 409


class InvalidSchedule(ScheduleError):
    code = "invalid_schedule"


class ScheduleConflict(ScheduleError):
    code = "schedule_conflict"
    status_code = 409


class InvalidDateRange(ScheduleError):
    code = "invalid_date_range"


class DuplicateBooking(ScheduleError):
    code = "duplicate_booking"
    status_code = 409


def error_code(exc: Optional[BaseException]) -> str:
    """Machine code for any exception reported in a bulk result"""
    if isinstance(exc, ScheduleError):
        return exc.code
    return "storage_error"
