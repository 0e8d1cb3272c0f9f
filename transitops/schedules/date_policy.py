"""
Date policy for schedule creation and booking enablement.

Pure functions only: every decision is derived from the target date, the
caller supplied ``now`` and the configured lead time. No storage access.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel

from transitops.config import settings
from transitops.schedules.schemas import DatePolicyDecision


def format_hour(hour: int) -> str:
    """Render an hour of day as a 12-hour clock label"""
    if hour == 0:
        return "12:00 AM"
    if hour < 12:
        return f"{hour}:00 AM"
    if hour == 12:
        return "12:00 PM"
    return f"{hour - 12}:00 PM"


class DatePolicy(BaseModel):
    """Lead-time and booking-deadline rules"""
    min_lead_days: int = 1
    booking_window_days_before: int = 1
    booking_cutoff_hour: int = 19

    @classmethod
    def from_settings(cls, config=settings) -> "DatePolicy":
        return cls(
            min_lead_days=config.MIN_LEAD_DAYS,
            booking_window_days_before=config.BOOKING_WINDOW_DAYS_BEFORE,
            booking_cutoff_hour=config.BOOKING_CUTOFF_HOUR,
        )

    def minimum_schedule_date(self, now: datetime) -> date:
        """Earliest date a new instance may be created or enabled for"""
        return now.date() + timedelta(days=max(self.min_lead_days, 1))

    def can_enable_for_date(self, target: date, now: datetime) -> DatePolicyDecision:
        """Decide whether an administrator may create or enable a trip on ``target``"""
        minimum = self.minimum_schedule_date(now)
        if target >= minimum:
            return DatePolicyDecision(
                allowed=True,
                minimum_date=minimum,
                booking_window=self.describe_booking_window(target),
            )
        return DatePolicyDecision(
            allowed=False,
            reason=self.restriction_reason(target, now),
            minimum_date=minimum,
        )

    def restriction_reason(self, target: date, now: datetime) -> Optional[str]:
        """Human readable reason ``target`` is refused, or None when allowed"""
        today = now.date()
        minimum = self.minimum_schedule_date(now)
        if target >= minimum:
            return None
        earliest = minimum.strftime("%d %b %Y")
        if target < today:
            return (
                f"{target.isoformat()} is in the past. "
                f"Trips can only be scheduled for {earliest} or later."
            )
        if target == today:
            return (
                "Cannot schedule or enable booking for today. Students must book at "
                f"least one day in advance; the earliest allowed date is {earliest}."
            )
        return (
            f"{target.isoformat()} is inside the {self.min_lead_days}-day scheduling lead time. "
            f"The earliest allowed date is {earliest}."
        )

    def default_booking_deadline(self, target: date) -> datetime:
        """Cutoff for rider bookings: the configured hour on the booking day before the trip"""
        booking_day = target - timedelta(days=self.booking_window_days_before)
        return datetime.combine(booking_day, time(self.booking_cutoff_hour, 0))

    def is_deadline_passed(self, deadline: Optional[datetime], now: datetime) -> bool:
        if deadline is None:
            return False
        return now >= deadline

    def describe_booking_window(self, target: date) -> str:
        deadline = self.default_booking_deadline(target)
        if self.booking_window_days_before == 1:
            when = "the day before"
        else:
            when = f"{self.booking_window_days_before} days before"
        return (
            f"Bookings close at {format_hour(self.booking_cutoff_hour)} {when} the trip "
            f"({deadline.strftime('%d %b %Y %H:%M')})."
        )


default_policy = DatePolicy.from_settings()


def can_enable_for_date(target: date, now: datetime, policy: Optional[DatePolicy] = None) -> DatePolicyDecision:
    return (policy or default_policy).can_enable_for_date(target, now)


def minimum_schedule_date(now: datetime, policy: Optional[DatePolicy] = None) -> date:
    return (policy or default_policy).minimum_schedule_date(now)
