"""
Approval workflow for protected edit/delete actions.

    pending --reject--------------------------> rejected
    pending --approve-------------------------> approved --(delete executed | edit redeemed)--> completed
    pending --approve + PIN-------------------> pin_issued --(valid PIN consumed)--> completed

Every transition is committed before the target entity is touched, so a failed
deletion leaves the request in its last committed state. Nothing is retried.
"""
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import create_edit_grant
from ..auth.session import SessionContext
from ..config import settings
from ..models.models import ApprovalRequest
from ..schemas.approvals import ActionType, ApprovalStatus, Decision, EntityType
from .approval_targets import MissingParentReference, target_for
from .audit import create_audit_log
from .store import EntityNotFoundError, approval_requests


logger = structlog.get_logger()

PIN_PATTERN = re.compile(r"[0-9]{6}")
ACTIVE_STATUSES = (ApprovalStatus.pending.value, ApprovalStatus.pin_issued.value)
AUTO_DELETE_NOTE = "Entité supprimée automatiquement après approbation."


# =====================
# Errors
# =====================


class ApprovalError(Exception):
    status_code = 400


class ApprovalValidationError(ApprovalError):
    status_code = 400


class ApprovalForbidden(ApprovalError):
    status_code = 403


class TargetNotFound(ApprovalError):
    status_code = 404


class DuplicateApprovalRequest(ApprovalError):
    status_code = 409


class InvalidApprovalTransition(ApprovalError):
    status_code = 409


class PinMismatch(ApprovalError):
    status_code = 403


class PinExpired(ApprovalError):
    status_code = 403


class EntityDeletionFailed(ApprovalError):
    status_code = 409


# =====================
# Outcomes
# =====================


@dataclass
class ProcessOutcome:
    request: ApprovalRequest
    warnings: List[str] = field(default_factory=list)
    manual_cleanup_required: bool = False


@dataclass
class PinOutcome:
    request: ApprovalRequest
    action_type: ActionType
    edit_grant: Optional[str] = None
    resource_path: Optional[str] = None
    deleted: bool = False


# =====================
# Helpers
# =====================


def _utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _now(now: Optional[datetime]) -> datetime:
    return _utc(now) if now is not None else datetime.now(timezone.utc)


def generate_pin() -> str:
    return str(secrets.randbelow(900000) + 100000)


def validate_manual_pin(pin: str) -> str:
    if not isinstance(pin, str) or not PIN_PATTERN.fullmatch(pin):
        raise ApprovalValidationError("Manual PIN must be exactly 6 digits")
    return pin


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def _audit(db: Session, request: ApprovalRequest, action: str, actor: SessionContext, when: datetime, **changes) -> None:
    create_audit_log(
        db,
        entity_type="approvalRequest",
        entity_id=request.id,
        action=action,
        actor_id=actor.uid,
        actor_role=actor.role,
        changes_json=changes or None,
        context={"target_type": request.entity_type, "target_id": request.entity_id, "action_type": request.action_type},
        timestamp=when,
    )


def _mark_completed(request: ApprovalRequest, actor: SessionContext, when: datetime) -> None:
    request.status = ApprovalStatus.completed.value
    request.completed_by_user_id = actor.uid
    request.completed_at = when


def _delete_target(db: Session, request: ApprovalRequest) -> None:
    """Delete the target entity; rolls back and re-raises on failure."""
    try:
        target_for(request.entity_type).delete(db, request)
    except (MissingParentReference, EntityNotFoundError, SQLAlchemyError):
        db.rollback()
        raise


# =====================
# Operations
# =====================


def submit_approval_request(
    db: Session,
    requester: SessionContext,
    entity_type: str,
    entity_id: str,
    description: Optional[str],
    action_type: str,
    reason: str,
    parent_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ApprovalRequest:
    if not reason or not reason.strip():
        raise ApprovalValidationError("A reason is required")
    try:
        entity_type = EntityType(entity_type)
        action_type = ActionType(action_type)
    except ValueError as exc:
        raise ApprovalValidationError(str(exc)) from exc

    active = (
        db.query(ApprovalRequest)
        .filter(
            ApprovalRequest.entity_type == entity_type.value,
            ApprovalRequest.entity_id == entity_id,
            ApprovalRequest.action_type == action_type.value,
            ApprovalRequest.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )
    if active is not None:
        raise DuplicateApprovalRequest(
            f"An active {action_type.value} request already exists for this {entity_type.value} ({active.id})"
        )

    when = _now(now)
    request = ApprovalRequest(
        requested_by_user_id=requester.uid,
        requested_by_user_name=requester.display_name,
        entity_type=entity_type.value,
        entity_id=entity_id,
        entity_description=description,
        parent_id=parent_id,
        action_type=action_type.value,
        reason=reason.strip(),
        status=ApprovalStatus.pending.value,
        created_at=when,
    )

    entity = target_for(entity_type).fetch(db, request)
    if entity is None:
        raise TargetNotFound(f"{entity_type.value} {entity_id} not found")
    if not request.parent_id and getattr(entity, "bl_id", None) and entity_type in (EntityType.container, EntityType.expense):
        request.parent_id = entity.bl_id

    db.add(request)
    db.flush()
    _audit(db, request, "SUBMIT", requester, when, reason=request.reason)
    db.commit()
    db.refresh(request)
    logger.info(
        "approval_request_submitted",
        approval_id=request.id,
        entity_type=request.entity_type,
        entity_id=request.entity_id,
        action_type=request.action_type,
        requested_by=requester.uid,
    )
    return request


def process_approval_request(
    db: Session,
    request: ApprovalRequest,
    admin: SessionContext,
    decision: str,
    admin_notes: Optional[str] = None,
    issue_pin: bool = False,
    manual_pin: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ProcessOutcome:
    if not admin.is_admin:
        raise ApprovalForbidden("Only administrators can process approval requests")
    if request.status != ApprovalStatus.pending.value:
        raise InvalidApprovalTransition(f"Request is already {request.status}")
    try:
        decision = Decision(decision)
    except ValueError as exc:
        raise ApprovalValidationError(str(exc)) from exc

    when = _now(now)
    notes = (admin_notes or "").strip() or None

    if decision is Decision.reject:
        request.status = ApprovalStatus.rejected.value
        request.admin_notes = notes
        request.processed_by_user_id = admin.uid
        request.processed_at = when
        _audit(db, request, "REJECT", admin, when)
        db.commit()
        db.refresh(request)
        logger.info("approval_request_rejected", approval_id=request.id, processed_by=admin.uid)
        return ProcessOutcome(request=request)

    if issue_pin:
        pin = validate_manual_pin(manual_pin) if manual_pin else generate_pin()
        request.status = ApprovalStatus.pin_issued.value
        request.pin_code = pin
        request.pin_expires_at = when + timedelta(hours=settings.pin_ttl_hours)
        request.admin_notes = notes
        request.processed_by_user_id = admin.uid
        request.processed_at = when
        _audit(db, request, "ISSUE_PIN", admin, when, pin_expires_at=request.pin_expires_at.isoformat())
        db.commit()
        db.refresh(request)
        logger.info(
            "approval_pin_issued",
            approval_id=request.id,
            processed_by=admin.uid,
            manual=bool(manual_pin),
        )
        return ProcessOutcome(request=request)

    request.status = ApprovalStatus.approved.value
    request.admin_notes = notes
    request.processed_by_user_id = admin.uid
    request.processed_at = when
    _audit(db, request, "APPROVE", admin, when)
    db.commit()
    db.refresh(request)
    logger.info("approval_request_approved", approval_id=request.id, processed_by=admin.uid)

    if request.action_type != ActionType.delete.value:
        return ProcessOutcome(request=request)

    try:
        _delete_target(db, request)
    except MissingParentReference:
        db.refresh(request)
        logger.warning("approval_delete_missing_parent", approval_id=request.id, entity_id=request.entity_id)
        return ProcessOutcome(
            request=request,
            warnings=[
                f"Approved, but the parent BL of {request.entity_type} {request.entity_id} could not be determined; "
                "delete it manually."
            ],
            manual_cleanup_required=True,
        )
    except (EntityNotFoundError, SQLAlchemyError) as e:
        db.refresh(request)
        logger.warning("approval_delete_failed", approval_id=request.id, entity_id=request.entity_id, error=str(e))
        return ProcessOutcome(
            request=request,
            warnings=[f"Approved, but deleting {request.entity_type} {request.entity_id} failed: {e}. Manual cleanup needed."],
            manual_cleanup_required=True,
        )

    _mark_completed(request, admin, when)
    request.admin_notes = _append_note(request.admin_notes, AUTO_DELETE_NOTE)
    _audit(db, request, "DELETE", admin, when)
    db.commit()
    db.refresh(request)
    logger.info("approval_delete_executed", approval_id=request.id, entity_id=request.entity_id)
    return ProcessOutcome(request=request)


def consume_pin(
    db: Session,
    request: ApprovalRequest,
    submitted_pin: str,
    actor: SessionContext,
    now: Optional[datetime] = None,
) -> PinOutcome:
    if request.status != ApprovalStatus.pin_issued.value or not request.pin_code:
        raise InvalidApprovalTransition("No PIN has been issued for this request")
    if actor.uid != request.requested_by_user_id and not actor.is_admin:
        logger.warning("approval_pin_foreign_actor", approval_id=request.id, actor=actor.uid)
        raise ApprovalForbidden("Only the requester can use this PIN")
    submitted = submitted_pin or ""
    if not secrets.compare_digest(submitted.encode(), request.pin_code.encode()):
        logger.warning("approval_pin_mismatch", approval_id=request.id, actor=actor.uid)
        raise PinMismatch("Incorrect PIN")
    when = _now(now)
    if when >= _utc(request.pin_expires_at):
        logger.warning("approval_pin_expired", approval_id=request.id, actor=actor.uid)
        raise PinExpired("PIN has expired")

    target = target_for(request.entity_type)

    if request.action_type == ActionType.edit.value:
        if target.fetch(db, request) is None:
            raise TargetNotFound(f"{request.entity_type} {request.entity_id} not found")
        grant = create_edit_grant(actor.uid, request.entity_type, request.entity_id, request.id)
        _mark_completed(request, actor, when)
        _audit(db, request, "COMPLETE", actor, when)
        db.commit()
        db.refresh(request)
        logger.info("approval_pin_consumed", approval_id=request.id, action_type="edit", actor=actor.uid)
        return PinOutcome(
            request=request,
            action_type=ActionType.edit,
            edit_grant=grant,
            resource_path=target.resource_path(request),
        )

    try:
        _delete_target(db, request)
    except (MissingParentReference, EntityNotFoundError, SQLAlchemyError) as e:
        db.refresh(request)
        logger.warning("approval_pin_delete_failed", approval_id=request.id, entity_id=request.entity_id, error=str(e))
        raise EntityDeletionFailed(f"Deleting {request.entity_type} {request.entity_id} failed: {e}") from e

    _mark_completed(request, actor, when)
    _audit(db, request, "DELETE", actor, when)
    db.commit()
    db.refresh(request)
    logger.info("approval_pin_consumed", approval_id=request.id, action_type="delete", actor=actor.uid)
    return PinOutcome(request=request, action_type=ActionType.delete, deleted=True)


def redeem_edit_approval(
    db: Session,
    request: ApprovalRequest,
    actor: SessionContext,
    now: Optional[datetime] = None,
) -> PinOutcome:
    """Turn an approved (no PIN) edit request into an edit grant for its requester."""
    if request.action_type != ActionType.edit.value or request.status != ApprovalStatus.approved.value:
        raise InvalidApprovalTransition("Only approved edit requests can be redeemed")
    if actor.uid != request.requested_by_user_id and not actor.is_admin:
        raise ApprovalForbidden("Only the requester can redeem this approval")

    target = target_for(request.entity_type)
    if target.fetch(db, request) is None:
        raise TargetNotFound(f"{request.entity_type} {request.entity_id} not found")

    when = _now(now)
    grant = create_edit_grant(actor.uid, request.entity_type, request.entity_id, request.id)
    _mark_completed(request, actor, when)
    _audit(db, request, "COMPLETE", actor, when)
    db.commit()
    db.refresh(request)
    logger.info("approval_edit_redeemed", approval_id=request.id, actor=actor.uid)
    return PinOutcome(
        request=request,
        action_type=ActionType.edit,
        edit_grant=grant,
        resource_path=target.resource_path(request),
    )


def get_approval_request(db: Session, approval_id: str) -> ApprovalRequest:
    request = approval_requests.get(db, approval_id)
    if request is None:
        raise TargetNotFound("Approval request not found")
    return request


def list_requests_for_admin(db: Session, status: Optional[str] = None) -> List[ApprovalRequest]:
    return approval_requests.list(db, status=status)


def list_requests_for_user(db: Session, user_id: str) -> List[ApprovalRequest]:
    return approval_requests.list(db, requested_by_user_id=user_id)


def find_pin_issued_request(
    db: Session,
    entity_type: str,
    entity_id: str,
    action_type: str,
    user_id: Optional[str] = None,
) -> Optional[ApprovalRequest]:
    """Latest request on the target still waiting for its PIN."""
    matches = approval_requests.list(
        db,
        limit=1,
        entity_type=entity_type,
        entity_id=entity_id,
        action_type=action_type,
        status=ApprovalStatus.pin_issued.value,
        requested_by_user_id=user_id,
    )
    return matches[0] if matches else None
