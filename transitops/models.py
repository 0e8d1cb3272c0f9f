from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Time, Text, ForeignKey, Numeric, JSON,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from transitops.database import Base, BigIntPK

# ================================
# Master Data (read-only to the scheduling engine)
# ================================
class Route(Base):
    __tablename__ = "routes"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    route_number = Column(String(20), unique=True, nullable=False, index=True)
    route_name = Column(String(255), nullable=False)
    start_location = Column(String(255), nullable=False)
    end_location = Column(String(255), nullable=False)
    total_capacity = Column(Integer, nullable=False)
    fare = Column(Numeric(10, 2), default=0.00)
    status = Column(String(20), default='active', index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    schedules = relationship("ScheduleInstance", back_populates="route")

class Vehicle(Base):
    __tablename__ = "vehicles"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    registration_number = Column(String(50), unique=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(String(20), default='active')
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    schedules = relationship("ScheduleInstance", back_populates="vehicle")

class Student(Base):
    __tablename__ = "students"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    student_name = Column(String(255), nullable=False)
    roll_number = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255))
    mobile = Column(String(20))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    bookings = relationship("Booking", back_populates="student")

# ================================
# Schedule Instances (dated trips)
# ================================
class ScheduleInstance(Base):
    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint("booked_seats >= 0", name="ck_schedules_booked_non_negative"),
        CheckConstraint("booked_seats <= total_seats", name="ck_schedules_booked_within_capacity"),
        CheckConstraint("arrival_time > departure_time", name="ck_schedules_arrival_after_departure"),
        UniqueConstraint("route_id", "schedule_date", "departure_time", name="uq_schedules_route_date_departure"),
    )
    
    id = Column(BigIntPK, primary_key=True, index=True)
    route_id = Column(BigIntPK, ForeignKey("routes.id"), nullable=False, index=True)
    vehicle_id = Column(BigIntPK, ForeignKey("vehicles.id"))
    driver_id = Column(String(64))
    schedule_date = Column(Date, nullable=False, index=True)
    departure_time = Column(Time, nullable=False)
    arrival_time = Column(Time, nullable=False)
    total_seats = Column(Integer, nullable=False)
    booked_seats = Column(Integer, nullable=False, default=0)
    admin_scheduling_enabled = Column(Boolean, nullable=False, default=False)
    booking_enabled = Column(Boolean, nullable=False, default=False)
    booking_deadline = Column(DateTime)
    lifecycle_state = Column(String(30), nullable=False, default='pending_approval', index=True)
    status = Column(String(20), nullable=False, default='scheduled', index=True)
    special_instructions = Column(Text)
    completion_notes = Column(Text)
    completed_at = Column(DateTime)
    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    route = relationship("Route", back_populates="schedules")
    vehicle = relationship("Vehicle", back_populates="schedules")
    bookings = relationship("Booking", back_populates="schedule")
    
    @property
    def available_seats(self) -> int:
        return self.total_seats - self.booked_seats
    
    @property
    def occupancy_percentage(self) -> float:
        if not self.total_seats:
            return 0.0
        return round(self.booked_seats * 100.0 / self.total_seats, 1)

# ================================
# Bookings
# ================================
class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_schedule_status", "schedule_id", "status"),
    )
    
    id = Column(BigIntPK, primary_key=True, index=True)
    schedule_id = Column(BigIntPK, ForeignKey("schedules.id"), nullable=False, index=True)
    student_id = Column(BigIntPK, ForeignKey("students.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='confirmed')
    seat_number = Column(String(10))
    boarding_stop = Column(String(255))
    cancellation_reason = Column(Text)
    cancelled_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    schedule = relationship("ScheduleInstance", back_populates="bookings")
    student = relationship("Student", back_populates="bookings")

# ================================
# Notifications & Audit
# ================================
class Notification(Base):
    __tablename__ = "notifications"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    student_id = Column(BigIntPK, index=True)
    schedule_id = Column(BigIntPK, index=True)
    reason = Column(Text)
    payload = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

class AuditLog(Base):
    __tablename__ = "audit_logs"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    actor_id = Column(String(64), index=True)
    action = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(50))
    details = Column(JSON, default=dict)
    success = Column(Boolean, default=True, index=True)
    error_message = Column(Text)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
