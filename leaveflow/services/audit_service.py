"""
Audit logging service
"""
from sqlalchemy.orm import Session
from leaveflow.models.audit_log import AuditLog
from leaveflow.utils.datetime_utils import now_utc
from leaveflow.utils.json_serializer import sanitize_for_json
from typing import Optional, Dict, Any, Union


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[Union[int, str]] = None,
    meta: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Create an audit log entry

    Args:
        db: Database session
        actor_id: ID of the user performing the action (None for automation)
        action: Action type (e.g., "LEAVE_SUBMIT", "RULE_CREATE")
        entity_type: Type of entity (e.g., "leave_requests", "automation_rules")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)
        commit: Commit immediately (False when the caller owns the transaction)

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=now_utc(),
    )
    db.add(audit_log)
    if commit:
        db.commit()
        db.refresh(audit_log)
    return audit_log
