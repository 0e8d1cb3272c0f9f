from calendar import monthrange
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from transitops.config import settings
from transitops.models import ScheduleInstance, Route, Booking
from transitops.routes.service import RouteDirectory
from transitops.exceptions import InvalidDateRange
from transitops.schedules.schemas import (
    CalendarDaySummary, InstanceSummary, RouteInfo, RouteScheduleSummary,
    ScheduleInstance as ScheduleInstanceSchema, LifecycleState
)


def month_bounds(day: date):
    """First and last day of the month containing ``day``"""
    last = monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


class CalendarAggregator:
    """Read model for planning calendars and route rollups"""
    
    def __init__(self, db: Session, max_days: Optional[int] = None):
        self.db = db
        self.max_days = max_days or settings.CALENDAR_MAX_DAYS
        self.routes = RouteDirectory(db)
    
    def summarize_range(
        self,
        start_date: date,
        end_date: date,
        route_id: Optional[int] = None
    ) -> List[CalendarDaySummary]:
        """One summary per calendar day in the inclusive range"""
        if end_date < start_date:
            raise InvalidDateRange(
                "End date must not be before start date",
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat()
            )
        day_count = (end_date - start_date).days + 1
        if day_count > self.max_days:
            raise InvalidDateRange(
                f"Date range covers {day_count} days; at most {self.max_days} are allowed",
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat()
            )
        
        query = self.db.query(ScheduleInstance, Route).join(
            Route, Route.id == ScheduleInstance.route_id
        ).filter(
            ScheduleInstance.schedule_date >= start_date,
            ScheduleInstance.schedule_date <= end_date
        )
        if route_id is not None:
            query = query.filter(ScheduleInstance.route_id == route_id)
        rows = query.order_by(
            ScheduleInstance.schedule_date, ScheduleInstance.departure_time, ScheduleInstance.id
        ).all()
        
        by_day: Dict[date, List[InstanceSummary]] = defaultdict(list)
        for instance, route in rows:
            by_day[instance.schedule_date].append(InstanceSummary(
                id=instance.id,
                route_id=instance.route_id,
                route_number=route.route_number,
                route_name=route.route_name,
                departure_time=instance.departure_time,
                arrival_time=instance.arrival_time,
                total_seats=instance.total_seats,
                booked_seats=instance.booked_seats,
                available_seats=instance.available_seats,
                lifecycle_state=instance.lifecycle_state,
                status=instance.status,
                admin_scheduling_enabled=instance.admin_scheduling_enabled,
                booking_enabled=instance.booking_enabled
            ))
        
        days = []
        for offset in range(day_count):
            day = start_date + timedelta(days=offset)
            schedules = by_day.get(day, [])
            days.append(CalendarDaySummary(
                date=day,
                schedules=schedules,
                total_schedules=len(schedules),
                enabled_schedules=sum(1 for s in schedules if s.booking_enabled),
                total_bookings=sum(s.booked_seats for s in schedules),
                total_capacity=sum(s.total_seats for s in schedules)
            ))
        return days
    
    def summarize_route(self, route_id: int, today: Optional[date] = None) -> RouteScheduleSummary:
        """Next upcoming trip and this month's totals for one route"""
        today = today or date.today()
        route = self.routes.get_route(route_id)
        first_day, last_day = month_bounds(today)
        
        next_instance = self.db.query(ScheduleInstance).filter(
            ScheduleInstance.route_id == route_id,
            ScheduleInstance.schedule_date >= today,
            ScheduleInstance.lifecycle_state.notin_([
                LifecycleState.CANCELLED.value, LifecycleState.COMPLETED.value
            ])
        ).order_by(
            ScheduleInstance.schedule_date, ScheduleInstance.departure_time, ScheduleInstance.id
        ).first()
        
        instances_this_month = self.db.query(func.count(ScheduleInstance.id)).filter(
            ScheduleInstance.route_id == route_id,
            ScheduleInstance.schedule_date >= first_day,
            ScheduleInstance.schedule_date <= last_day
        ).scalar()
        
        bookings_this_month = self.db.query(func.count(Booking.id)).join(
            ScheduleInstance, ScheduleInstance.id == Booking.schedule_id
        ).filter(
            ScheduleInstance.route_id == route_id,
            ScheduleInstance.schedule_date >= first_day,
            ScheduleInstance.schedule_date <= last_day,
            Booking.status == "confirmed"
        ).scalar()
        
        return RouteScheduleSummary(
            route=RouteInfo.model_validate(route),
            next_instance=ScheduleInstanceSchema.model_validate(next_instance) if next_instance else None,
            instances_this_month=instances_this_month or 0,
            bookings_this_month=bookings_this_month or 0
        )
    
    def summarize_routes(self, today: Optional[date] = None) -> List[RouteScheduleSummary]:
        """Summaries for every active route, busiest first"""
        today = today or date.today()
        summaries = [self.summarize_route(route.id, today) for route in self.routes.list_routes()]
        
        # Routes with a next trip first, then by bookings, trips and route number
        return sorted(summaries, key=lambda s: (
            s.next_instance is None,
            -s.bookings_this_month,
            -s.instances_this_month,
            s.route.route_number
        ))
