from fastapi import APIRouter, Depends, HTTPException, status, Query, Response
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime, date

from transitops.database import get_db
from transitops.dependencies import get_actor_id, get_notifier, get_session_factory
from transitops.exceptions import ScheduleError
from transitops.notifications import Notifier
from transitops.schedules.schemas import (
    ScheduleInstance, ScheduleInstanceCreate, CreateInstancesRequest, CreateInstancesResult,
    TransitionRequest, TransitionResult, BulkTransitionRequest, BulkTransitionResult, RangeTransitionRequest,
    CalendarDaySummary, RouteScheduleSummary, DatePolicyDecision, AutoCompleteResult, Passenger
)
from transitops.schedules.service import ScheduleLifecycleService
from transitops.schedules.bulk import BulkOrchestrator
from transitops.schedules.calendar_service import CalendarAggregator
from transitops.schedules.date_policy import default_policy

router = APIRouter()


def to_http_exception(error: ScheduleError) -> HTTPException:
    """Translate a scheduling failure into an HTTP error body"""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())

# Planning views
@router.get("/calendar", response_model=List[CalendarDaySummary])
def get_calendar(
    start_date: date = Query(..., description="First day of the range (inclusive)"),
    end_date: date = Query(..., description="Last day of the range (inclusive)"),
    route_filter: Optional[str] = Query(None, description="Route ID, or 'all'"),
    db: Session = Depends(get_db)
):
    """Per-day schedule rollups for a calendar grid"""
    route_id = None
    if route_filter and route_filter != "all":
        try:
            route_id = int(route_filter)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="route_filter must be a route ID or 'all'"
            )
    
    try:
        return CalendarAggregator(db).summarize_range(start_date, end_date, route_id)
    except ScheduleError as e:
        raise to_http_exception(e)

@router.get("/routes/summaries", response_model=List[RouteScheduleSummary])
def get_route_summaries(db: Session = Depends(get_db)):
    """Next trip and month totals for every active route"""
    return CalendarAggregator(db).summarize_routes()

@router.get("/routes/{route_id}/summary", response_model=RouteScheduleSummary)
def get_route_summary(route_id: int, db: Session = Depends(get_db)):
    """Next trip and month totals for one route"""
    try:
        return CalendarAggregator(db).summarize_route(route_id)
    except ScheduleError as e:
        raise to_http_exception(e)

@router.get("/date-policy", response_model=DatePolicyDecision)
def check_date_policy(
    target_date: date = Query(..., alias="date", description="Date to check"),
):
    """Whether a trip may be created or enabled for a date"""
    return default_policy.can_enable_for_date(target_date, datetime.now())

# Creation
@router.post("/", response_model=ScheduleInstance, status_code=status.HTTP_201_CREATED)
def create_schedule(
    request: ScheduleInstanceCreate,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Create a single schedule instance awaiting approval"""
    service = ScheduleLifecycleService(db)
    try:
        return service.create_instance(request, actor_id=actor_id)
    except ScheduleError as e:
        raise to_http_exception(e)

@router.post("/bulk-create", response_model=CreateInstancesResult, status_code=status.HTTP_201_CREATED)
def create_schedules_bulk(
    request: CreateInstancesRequest,
    response: Response,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Create one instance per route and date; rejected as a whole if any date is invalid"""
    orchestrator = BulkOrchestrator(db)
    try:
        result = orchestrator.create_instances(request, actor_id=actor_id)
    except ScheduleError as e:
        raise to_http_exception(e)
    
    if not result.accepted:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result

# Transitions
@router.post("/bulk-transition", response_model=BulkTransitionResult)
def bulk_transition(
    request: BulkTransitionRequest,
    actor_id: str = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
    session_factory = Depends(get_session_factory),
    db: Session = Depends(get_db)
):
    """Apply one action to many schedules; partial success is reported, not raised"""
    orchestrator = BulkOrchestrator(db, notifier=notifier, session_factory=session_factory)
    return orchestrator.bulk_transition(
        request.schedule_ids, request.action, actor_id=actor_id, notes=request.notes
    )

@router.post("/bulk-transition/range", response_model=BulkTransitionResult)
def bulk_transition_range(
    request: RangeTransitionRequest,
    actor_id: str = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
    session_factory = Depends(get_session_factory),
    db: Session = Depends(get_db)
):
    """Apply one action to every schedule of a route within a date range"""
    orchestrator = BulkOrchestrator(db, notifier=notifier, session_factory=session_factory)
    try:
        return orchestrator.bulk_transition_range(
            request.route_id, request.start_date, request.end_date, request.action,
            actor_id=actor_id, notes=request.notes
        )
    except ScheduleError as e:
        raise to_http_exception(e)

@router.post("/auto-complete", response_model=AutoCompleteResult)
def auto_complete(
    actor_id: str = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db)
):
    """Complete every approved or open trip whose date has passed"""
    return ScheduleLifecycleService(db, notifier=notifier).complete_elapsed()

@router.get("/{schedule_id}", response_model=ScheduleInstance)
def get_schedule(schedule_id: int, db: Session = Depends(get_db)):
    """Get one schedule instance"""
    try:
        return ScheduleLifecycleService(db).get_instance(schedule_id)
    except ScheduleError as e:
        raise to_http_exception(e)

@router.get("/{schedule_id}/passengers", response_model=List[Passenger])
def get_passengers(schedule_id: int, db: Session = Depends(get_db)):
    """Riders holding confirmed seats on a trip"""
    try:
        return ScheduleLifecycleService(db).list_passengers(schedule_id)
    except ScheduleError as e:
        raise to_http_exception(e)

@router.post("/{schedule_id}/transition", response_model=TransitionResult)
def transition_schedule(
    schedule_id: int,
    request: TransitionRequest,
    actor_id: str = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db)
):
    """Apply one lifecycle action to a schedule"""
    service = ScheduleLifecycleService(db, notifier=notifier)
    try:
        return service.transition(schedule_id, request.action, actor_id=actor_id, notes=request.notes)
    except ScheduleError as e:
        raise to_http_exception(e)

@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Delete a schedule no booking has ever referenced"""
    try:
        ScheduleLifecycleService(db).delete_instance(schedule_id, actor_id=actor_id)
    except ScheduleError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
