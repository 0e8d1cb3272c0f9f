import logging
from typing import Callable

from sqlalchemy.orm import Session

from transitops.config import settings
from transitops.models import Notification
from transitops.notifications.schemas import NotificationEvent

logger = logging.getLogger(__name__)


class Notifier:
    """Delivery contract for rider notifications"""

    def emit(self, event: NotificationEvent) -> None:
        raise NotImplementedError


class DatabaseNotifier(Notifier):
    """Persists events to the notifications table using its own session"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def emit(self, event: NotificationEvent) -> None:
        db = self.session_factory()
        try:
            db.add(Notification(
                event_type=event.type.value,
                student_id=event.student_id,
                schedule_id=event.schedule_id,
                reason=event.reason,
                payload=event.model_dump(mode="json"),
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class LoggingNotifier(Notifier):
    """Writes events to the application log only"""

    def emit(self, event: NotificationEvent) -> None:
        logger.info(
            "notification %s student=%s schedule=%s reason=%s",
            event.type.value, event.student_id, event.schedule_id, event.reason
        )


def get_notifier() -> Notifier:
    """Notifier selected by NOTIFICATIONS_BACKEND"""
    if settings.NOTIFICATIONS_BACKEND == "log":
        return LoggingNotifier()
    from transitops.database import SessionLocal
    return DatabaseNotifier(SessionLocal)
