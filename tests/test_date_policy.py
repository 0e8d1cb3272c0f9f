from datetime import date, datetime, timedelta

from transitops.schedules.date_policy import DatePolicy, format_hour

from conftest import NOW, TODAY, TOMORROW


def test_tomorrow_is_the_earliest_date(policy):
    assert policy.minimum_schedule_date(NOW) == TOMORROW

    decision = policy.can_enable_for_date(TOMORROW, NOW)
    assert decision.allowed
    assert decision.reason is None
    assert decision.minimum_date == TOMORROW


def test_today_is_refused_with_advance_booking_reason(policy):
    decision = policy.can_enable_for_date(TODAY, NOW)

    assert not decision.allowed
    assert "today" in decision.reason
    assert decision.minimum_date == TOMORROW


def test_past_dates_are_refused(policy):
    decision = policy.can_enable_for_date(TODAY - timedelta(days=3), NOW)

    assert not decision.allowed
    assert "in the past" in decision.reason


def test_late_evening_still_allows_tomorrow(policy):
    late = datetime(2024, 4, 20, 23, 59)
    assert policy.can_enable_for_date(date(2024, 4, 21), late).allowed
    assert not policy.can_enable_for_date(date(2024, 4, 20), late).allowed


def test_longer_lead_time_moves_minimum_date():
    policy = DatePolicy(min_lead_days=3)

    assert policy.minimum_schedule_date(NOW) == date(2024, 4, 23)
    decision = policy.can_enable_for_date(date(2024, 4, 22), NOW)
    assert not decision.allowed
    assert "lead time" in decision.reason
    assert policy.can_enable_for_date(date(2024, 4, 23), NOW).allowed


def test_zero_lead_time_never_allows_today():
    policy = DatePolicy(min_lead_days=0)

    assert policy.minimum_schedule_date(NOW) == TOMORROW
    assert not policy.can_enable_for_date(TODAY, NOW).allowed


def test_default_deadline_is_seven_pm_the_day_before(policy):
    assert policy.default_booking_deadline(date(2024, 4, 25)) == datetime(2024, 4, 24, 19, 0)


def test_deadline_is_passed_at_the_cutoff_instant(policy):
    deadline = datetime(2024, 4, 20, 19, 0)

    assert not policy.is_deadline_passed(deadline, datetime(2024, 4, 20, 18, 59))
    assert policy.is_deadline_passed(deadline, deadline)
    assert not policy.is_deadline_passed(None, NOW)


def test_booking_window_description(policy):
    text = policy.describe_booking_window(date(2024, 4, 25))

    assert "7:00 PM the day before" in text
    assert "24 Apr 2024 19:00" in text


def test_format_hour():
    assert format_hour(0) == "12:00 AM"
    assert format_hour(9) == "9:00 AM"
    assert format_hour(12) == "12:00 PM"
    assert format_hour(19) == "7:00 PM"


def test_allowed_decision_describes_the_booking_window(policy):
    allowed = policy.can_enable_for_date(date(2024, 4, 25), NOW)
    refused = policy.can_enable_for_date(TODAY, NOW)

    assert allowed.booking_window == policy.describe_booking_window(date(2024, 4, 25))
    assert refused.booking_window is None
