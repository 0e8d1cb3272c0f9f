from typing import List, Optional
from sqlalchemy.orm import Session

from transitops.models import Route, Vehicle
from transitops.exceptions import NotFound


class RouteDirectory:
    """Read-only lookups of routes and vehicles"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_route(self, route_id: int) -> Route:
        """Get a route or raise NotFound"""
        route = self.db.query(Route).filter(Route.id == route_id).first()
        if not route:
            raise NotFound(f"Route {route_id} not found", route_id=route_id)
        return route
    
    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        """Get a vehicle or raise NotFound"""
        vehicle = self.db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
        if not vehicle:
            raise NotFound(f"Vehicle {vehicle_id} not found", vehicle_id=vehicle_id)
        return vehicle
    
    def list_routes(self, status: Optional[str] = "active") -> List[Route]:
        """List routes ordered by route number"""
        query = self.db.query(Route)
        if status:
            query = query.filter(Route.status == status)
        return query.order_by(Route.route_number).all()
    
    def seat_capacity(self, route_id: int, vehicle_id: Optional[int] = None) -> int:
        """Seats for a new trip: vehicle capacity when assigned, else route capacity"""
        if vehicle_id is not None:
            return self.get_vehicle(vehicle_id).capacity
        return self.get_route(route_id).total_capacity
