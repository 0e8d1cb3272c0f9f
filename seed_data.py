#!/usr/bin/env python3

from datetime import date, time, timedelta
from decimal import Decimal

from transitops.database import Base, engine, SessionLocal
from transitops.models import Route, Vehicle, Student, ScheduleInstance, Booking, Notification, AuditLog
from transitops.schedules import BulkOrchestrator, CreateInstancesRequest, ScheduleAction

def create_seed_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    
    try:
        print("🚀 Creating seed data for the transport back office...")
        
        # Clear existing data (in reverse dependency order)
        print("Clearing existing data...")
        db.query(Notification).delete()
        db.query(AuditLog).delete()
        db.query(Booking).delete()
        db.query(ScheduleInstance).delete()
        db.query(Student).delete()
        db.query(Vehicle).delete()
        db.query(Route).delete()
        db.commit()
        
        # 1. Create Routes
        print("Creating routes...")
        routes = [
            Route(route_number="R01", route_name="North Campus Loop", start_location="Central Station",
                  end_location="North Campus", total_capacity=40, fare=Decimal("25.00")),
            Route(route_number="R02", route_name="Riverside Express", start_location="Riverside Park",
                  end_location="Main Campus", total_capacity=52, fare=Decimal("30.00")),
            Route(route_number="R03", route_name="Airport Shuttle", start_location="Main Campus",
                  end_location="International Airport", total_capacity=30, fare=Decimal("80.00")),
            Route(route_number="R04", route_name="Old Town Line", start_location="Old Town",
                  end_location="Main Campus", total_capacity=35, fare=Decimal("20.00"), status="inactive"),
        ]
        db.add_all(routes)
        db.flush()
        
        # 2. Create Vehicles
        print("Creating vehicles...")
        vehicles = [
            Vehicle(registration_number="BUS-1001", capacity=40),
            Vehicle(registration_number="BUS-1002", capacity=52),
            Vehicle(registration_number="VAN-2001", capacity=14),
        ]
        db.add_all(vehicles)
        db.flush()
        
        # 3. Create Students
        print("Creating students...")
        students = [
            Student(student_name=name, roll_number=f"STU{index:04d}",
                    email=f"stu{index:04d}@example.edu", mobile=f"+1555000{index:04d}")
            for index, name in enumerate([
                "Alex Morgan", "Sam Rivera", "Jordan Lee", "Taylor Kim", "Casey Nguyen",
                "Riley Chen", "Jamie Patel", "Avery Brooks", "Quinn Silva", "Drew Tanaka"
            ], start=1)
        ]
        db.add_all(students)
        db.commit()
        
        # 4. Create a week of schedules starting tomorrow and approve them
        print("Creating schedules...")
        tomorrow = date.today() + timedelta(days=1)
        orchestrator = BulkOrchestrator(db)
        result = orchestrator.create_instances(CreateInstancesRequest(
            route_ids=[route.id for route in routes if route.status == "active"],
            dates=[tomorrow + timedelta(days=offset) for offset in range(7)],
            departure_time=time(7, 30),
            arrival_time=time(8, 45),
            special_instructions="Seeded morning service"
        ), actor_id="seed")
        
        created_ids = [instance.id for instance in result.created]
        orchestrator.bulk_transition(created_ids, ScheduleAction.APPROVE, actor_id="seed")
        
        print("✅ Successfully created seed data!")
        print(f"Created:")
        print(f"  - {len(routes)} routes")
        print(f"  - {len(vehicles)} vehicles")
        print(f"  - {len(students)} students")
        print(f"  - {len(created_ids)} approved schedules")
        
    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
