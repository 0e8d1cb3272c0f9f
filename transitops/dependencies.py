from fastapi import Header, HTTPException, status

from transitops.notifications import Notifier, get_notifier as _build_notifier

_notifier = None


def get_actor_id(x_actor_id: str = Header(..., alias="X-Actor-Id", description="Acting administrator")) -> str:
    """Administrator identity resolved upstream and passed explicitly"""
    actor_id = x_actor_id.strip()
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required"
        )
    return actor_id


def get_notifier() -> Notifier:
    """Process-wide notifier chosen by NOTIFICATIONS_BACKEND"""
    global _notifier
    if _notifier is None:
        _notifier = _build_notifier()
    return _notifier


def get_session_factory():
    """Factory for sessions opened outside the request scope"""
    from transitops.database import SessionLocal
    return SessionLocal
