from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal

class Route(BaseModel):
    """Route master data"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_number: str
    route_name: str
    start_location: str
    end_location: str
    total_capacity: int
    fare: Optional[Decimal] = None
    status: str
    created_at: Optional[datetime] = None

class Vehicle(BaseModel):
    """Vehicle master data"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    registration_number: str
    capacity: int
    status: str
