"""
Audit logging service.
Append-only approval audit trail with integrity hashing, plus the login/logout
session log.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Optional, Dict, List

from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import AuditLog, SessionAuditEvent, User


def _integrity_hash(payload: Dict, secret: str) -> str:
    canonical = {k: v for k, v in payload.items() if v is not None}
    canonical_json = json.dumps(canonical, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def create_audit_log(
    db: Session,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    changes_json: Optional[Dict] = None,
    context: Optional[Dict] = None,
    timestamp: Optional[datetime] = None,
) -> AuditLog:
    """
    Stage an append-only audit entry in the caller's transaction.

    Args:
        db: Database session (the caller commits)
        entity_type: Audited record type (approvalRequest, ...)
        entity_id: Audited record id
        action: SUBMIT|APPROVE|REJECT|ISSUE_PIN|COMPLETE|DELETE|UPDATE
        actor_id: User who performed the action
        actor_role: admin|employee|system
        changes_json: Before/after diff
        context: Target entity and other details

    Returns:
        The pending AuditLog row
    """
    timestamp_utc = timestamp or datetime.now(timezone.utc)
    integrity_hash = None
    if settings.jwt_secret:
        integrity_hash = _integrity_hash(
            {
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action,
                "actor_id": actor_id,
                "actor_role": actor_role,
                "timestamp_utc": timestamp_utc.isoformat(),
                "changes": changes_json,
                "context": context,
            },
            settings.jwt_secret,
        )

    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        actor_role=actor_role,
        changes_json=changes_json,
        timestamp_utc=timestamp_utc,
        context=context,
        integrity_hash=integrity_hash,
    )
    db.add(audit_log)
    return audit_log


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AuditLog]:
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    return query.order_by(AuditLog.timestamp_utc.desc()).limit(limit).offset(offset).all()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """Before/after values for every key whose value changed."""
    diff = {}
    for key in set(before.keys()) | set(after.keys()):
        if before.get(key) != after.get(key):
            diff[key] = {"before": before.get(key), "after": after.get(key)}
    return diff


def record_session_event(db: Session, user: User, action: str, display_name: Optional[str] = None) -> SessionAuditEvent:
    event = SessionAuditEvent(
        user_id=user.id,
        user_display_name=display_name or user.display_name or user.email,
        user_email=user.email,
        action=action,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def list_session_events(
    db: Session,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 200,
) -> List[SessionAuditEvent]:
    query = db.query(SessionAuditEvent)
    if user_id:
        query = query.filter(SessionAuditEvent.user_id == user_id)
    if action:
        query = query.filter(SessionAuditEvent.action == action)
    return query.order_by(SessionAuditEvent.timestamp.desc()).limit(limit).all()
