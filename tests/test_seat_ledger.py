import threading
from datetime import datetime

import pytest

from transitops import models
from transitops.exceptions import InsufficientCapacity, NotBookable, NotFound
from transitops.schedules.seat_ledger import SeatLedger

from conftest import NOW


def test_reserve_and_release(db, locks, make_route, make_instance):
    instance = make_instance(make_route(capacity=5), state="open_for_booking")
    ledger = SeatLedger(db, locks=locks)

    assert ledger.reserve(instance.id, 2, now=NOW) == 2
    assert ledger.release(instance.id, 1) == 1
    db.commit()

    db.refresh(instance)
    assert instance.booked_seats == 1
    assert instance.available_seats == 4


def test_reserve_beyond_capacity_is_refused(db, locks, make_route, make_instance):
    instance = make_instance(make_route(capacity=3), state="open_for_booking", booked_seats=2)
    ledger = SeatLedger(db, locks=locks)

    with pytest.raises(InsufficientCapacity) as excinfo:
        ledger.reserve(instance.id, 2, now=NOW)

    assert excinfo.value.context["available"] == 1
    db.refresh(instance)
    assert instance.booked_seats == 2


def test_reserve_requires_booking_enabled(db, locks, make_route, make_instance):
    instance = make_instance(make_route(), state="approved")

    with pytest.raises(NotBookable):
        SeatLedger(db, locks=locks).reserve(instance.id, now=NOW)


def test_reserve_after_deadline_is_refused(db, locks, make_route, make_instance):
    instance = make_instance(
        make_route(), state="open_for_booking", booking_deadline=datetime(2024, 4, 20, 9, 0)
    )

    with pytest.raises(NotBookable) as excinfo:
        SeatLedger(db, locks=locks).reserve(instance.id, now=NOW)

    assert "closed" in excinfo.value.detail


def test_release_never_goes_below_zero(db, locks, make_route, make_instance):
    instance = make_instance(make_route(), state="open_for_booking", booked_seats=1)

    assert SeatLedger(db, locks=locks).release(instance.id, 3) == 0


def test_unknown_instance(db, locks):
    ledger = SeatLedger(db, locks=locks)

    with pytest.raises(NotFound):
        ledger.reserve(999, now=NOW)
    with pytest.raises(NotFound):
        ledger.release(999)


def test_count_must_be_positive(db, locks):
    with pytest.raises(ValueError):
        SeatLedger(db, locks=locks).reserve(1, 0, now=NOW)


def test_concurrent_reservations_never_oversell(db, session_factory, locks, make_route, make_instance):
    """
    Eight riders race for seven seats: exactly one is turned away.
    """
    capacity = 7
    instance = make_instance(make_route(capacity=capacity), state="open_for_booking")
    start = threading.Barrier(capacity + 1)
    outcomes = []
    outcomes_lock = threading.Lock()

    def book():
        session = session_factory()
        ledger = SeatLedger(session, locks=locks)
        start.wait()
        try:
            with ledger.locked(instance.id):
                ledger.reserve(instance.id, now=NOW)
                session.commit()
            outcome = "booked"
        except InsufficientCapacity:
            session.rollback()
            outcome = "full"
        finally:
            session.close()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=book) for _ in range(capacity + 1)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["booked"] * capacity + ["full"]
    db.expire_all()
    assert db.get(models.ScheduleInstance, instance.id).booked_seats == capacity
