import itertools
from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from transitops import models
from transitops.database import Base, build_engine, get_db
from transitops.dependencies import get_notifier, get_session_factory
from transitops.notifications import Notifier
from transitops.schedules.date_policy import DatePolicy
from transitops.schedules.locks import InstanceLockRegistry

# Fixed clock for service level tests: Saturday morning
NOW = datetime(2024, 4, 20, 10, 0)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)


class RecordingNotifier(Notifier):
    """Keeps emitted events in memory"""

    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)


@pytest.fixture()
def engine(tmp_path):
    """
    File backed SQLite so worker threads share one database.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'transitops-test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def locks():
    return InstanceLockRegistry()


@pytest.fixture()
def policy():
    return DatePolicy(min_lead_days=1, booking_window_days_before=1, booking_cutoff_hour=19)


@pytest.fixture()
def make_route(db):
    counter = itertools.count(1)

    def _make(capacity=40, status="active", **overrides):
        n = next(counter)
        route = models.Route(
            route_number=overrides.pop("route_number", f"R{n:02d}"),
            route_name=overrides.pop("route_name", f"Route {n}"),
            start_location="Central Station",
            end_location="Campus",
            total_capacity=capacity,
            fare=25,
            status=status,
            **overrides,
        )
        db.add(route)
        db.commit()
        db.refresh(route)
        return route

    return _make


@pytest.fixture()
def make_student(db):
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        student = models.Student(
            student_name=overrides.get("student_name", f"Student {n}"),
            roll_number=overrides.get("roll_number", f"STU{n:04d}"),
            email=f"stu{n:04d}@example.edu",
            mobile=f"+1555{n:07d}",
        )
        db.add(student)
        db.commit()
        db.refresh(student)
        return student

    return _make


@pytest.fixture()
def make_instance(db):
    """
    Inserts an instance directly in the requested state, bypassing the
    date policy so past and present dates can be set up.
    """
    def _make(route, schedule_date=None, state="pending_approval", departure=time(7, 30), **overrides):
        admin = state in ("approved", "open_for_booking")
        booking = state == "open_for_booking"
        status = {"cancelled": "cancelled", "completed": "completed"}.get(state, "scheduled")
        schedule_date = schedule_date or TOMORROW + timedelta(days=4)
        values = dict(
            route_id=route.id,
            schedule_date=schedule_date,
            departure_time=departure,
            arrival_time=time(departure.hour + 1, departure.minute),
            total_seats=route.total_capacity,
            booked_seats=0,
            admin_scheduling_enabled=admin,
            booking_enabled=booking,
            booking_deadline=datetime.combine(schedule_date - timedelta(days=1), time(19, 0)) if booking else None,
            lifecycle_state=state,
            status=status,
        )
        values.update(overrides)
        instance = models.ScheduleInstance(**values)
        db.add(instance)
        db.commit()
        db.refresh(instance)
        return instance

    return _make


@pytest.fixture()
def make_booking(db, make_student):
    """
    Adds a booking and, for confirmed ones, takes the seat it holds.
    """
    def _make(instance, student=None, status="confirmed"):
        student = student or make_student()
        booking = models.Booking(schedule_id=instance.id, student_id=student.id, status=status)
        db.add(booking)
        if status == "confirmed":
            instance.booked_seats = instance.booked_seats + 1
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture()
def client(session_factory, notifier):
    from transitops.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers():
    return {"X-Actor-Id": "admin-7"}
