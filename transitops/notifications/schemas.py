from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

class NotificationType(str, Enum):
    """Events the scheduling engine emits"""
    BOOKING_CANCELLED = "booking_cancelled"

class NotificationEvent(BaseModel):
    """Event handed to the notification collaborator"""
    type: NotificationType
    student_id: int
    schedule_id: int
    reason: Optional[str] = None
    booking_id: Optional[int] = None
    actor_id: Optional[str] = None
    occurred_at: datetime
    extra: Dict[str, Any] = {}
