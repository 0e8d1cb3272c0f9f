from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from transitops.database import get_db
from transitops.routes.schemas import Route
from transitops.routes.service import RouteDirectory
from transitops.exceptions import NotFound

router = APIRouter()

@router.get("/", response_model=List[Route])
def list_routes(
    route_status: Optional[str] = Query("active", alias="status", description="Filter by route status"),
    db: Session = Depends(get_db)
):
    """List routes available for scheduling"""
    return RouteDirectory(db).list_routes(status=route_status)

@router.get("/{route_id}", response_model=Route)
def get_route(route_id: int, db: Session = Depends(get_db)):
    """Get a single route"""
    try:
        return RouteDirectory(db).get_route(route_id)
    except NotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.detail
        )
