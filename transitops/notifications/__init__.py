"""
Rider notification collaborator.

The scheduling engine only needs ``emit(event)``: delivery is fire-and-forget
and a failed delivery never undoes the change that produced the event.

Key Components:
- schemas.py: NotificationEvent payload
- service.py: Notifier base class with database and logging backends
"""

from .schemas import NotificationEvent, NotificationType
from .service import Notifier, DatabaseNotifier, LoggingNotifier, get_notifier

__all__ = [
    "NotificationEvent",
    "NotificationType",
    "Notifier",
    "DatabaseNotifier",
    "LoggingNotifier",
    "get_notifier",
]
