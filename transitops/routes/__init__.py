"""
Route Master Data Module

Read-only access to routes and vehicles for the scheduling engine. Route,
driver and vehicle maintenance lives outside this service; the engine only
reads capacity and status from here.
"""

from .router import router
from .service import RouteDirectory
from .schemas import Route, Vehicle

__all__ = [
    "router",
    "RouteDirectory",
    "Route",
    "Vehicle",
]
