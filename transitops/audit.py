from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from transitops.models import AuditLog


def record_audit(
    db: Session,
    actor_id: Optional[str],
    action: str,
    resource_id: Any,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    resource_type: str = "schedule"
) -> AuditLog:
    """Add an audit row to the session; the caller commits"""
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details or {},
        success=success,
        error_message=error_message,
    )
    db.add(entry)
    return entry


def audit_trail(db: Session, resource_id: Any, resource_type: str = "schedule") -> List[AuditLog]:
    """Audit rows for one resource, oldest first"""
    return db.query(AuditLog).filter(
        AuditLog.resource_type == resource_type,
        AuditLog.resource_id == str(resource_id)
    ).order_by(AuditLog.id).all()
