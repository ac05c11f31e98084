from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..auth.session import SessionContext, get_session_context, require_admin
from ..config import settings
from ..db import get_db
from ..models.models import ApprovalRequest
from ..rate_limit import limiter
from ..schemas.approvals import (
    ENTITY_TYPE_LABELS,
    STATUS_LABELS,
    ActionType,
    ApprovalProcessRequest,
    ApprovalRequestCreate,
    ApprovalRequestResponse,
    ApprovalStatus,
    EntityType,
    PinOutcomeResponse,
    PinSubmission,
    ProcessOutcomeResponse,
)
from ..services import approvals as workflow
from ..services.approvals import ApprovalError, PinOutcome
from ..services.audit import get_audit_logs


router = APIRouter(prefix="/approvals", tags=["approvals"])


def _serialize_request(req: ApprovalRequest, show_pin: bool = True) -> dict:
    entity_type = EntityType(req.entity_type)
    status = ApprovalStatus(req.status)
    return {
        "id": req.id,
        "requested_by_user_id": req.requested_by_user_id,
        "requested_by_user_name": req.requested_by_user_name,
        "entity_type": entity_type,
        "entity_type_label": ENTITY_TYPE_LABELS.get(entity_type),
        "entity_id": req.entity_id,
        "entity_description": req.entity_description,
        "parent_id": req.parent_id,
        "action_type": req.action_type,
        "reason": req.reason,
        "status": status,
        "status_label": STATUS_LABELS.get(status),
        "admin_notes": req.admin_notes,
        "pin_code": req.pin_code if show_pin else None,
        "pin_expires_at": req.pin_expires_at,
        "processed_by_user_id": req.processed_by_user_id,
        "processed_at": req.processed_at,
        "completed_by_user_id": req.completed_by_user_id,
        "completed_at": req.completed_at,
        "created_at": req.created_at,
    }


def _can_see_pin(req: ApprovalRequest, ctx: SessionContext) -> bool:
    return ctx.is_admin or req.requested_by_user_id == ctx.uid


def _serialize_pin_outcome(outcome: PinOutcome, ctx: SessionContext) -> dict:
    return {
        "request": _serialize_request(outcome.request, show_pin=_can_see_pin(outcome.request, ctx)),
        "action_type": outcome.action_type,
        "edit_grant": outcome.edit_grant,
        "resource_path": outcome.resource_path,
        "deleted": outcome.deleted,
    }


def _http_error(exc: ApprovalError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _get_request(db: Session, approval_id: str) -> ApprovalRequest:
    try:
        return workflow.get_approval_request(db, approval_id)
    except ApprovalError as exc:
        raise _http_error(exc) from exc


@router.post("", response_model=ApprovalRequestResponse)
def submit_request(
    body: ApprovalRequestCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    try:
        req = workflow.submit_approval_request(
            db,
            requester=ctx,
            entity_type=body.entity_type,
            entity_id=body.entity_id,
            description=body.entity_description,
            action_type=body.action_type,
            reason=body.reason,
            parent_id=body.parent_id,
        )
    except ApprovalError as exc:
        raise _http_error(exc) from exc
    return _serialize_request(req)


@router.get("", response_model=List[ApprovalRequestResponse])
def list_requests(
    status: Optional[ApprovalStatus] = Query(None),
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    return [_serialize_request(r) for r in workflow.list_requests_for_admin(db, status=status.value if status else None)]


@router.get("/mine", response_model=List[ApprovalRequestResponse])
def list_my_requests(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return [_serialize_request(r) for r in workflow.list_requests_for_user(db, ctx.uid)]


@router.get("/pin-issued", response_model=Optional[ApprovalRequestResponse])
def find_pin_issued(
    entity_type: EntityType,
    entity_id: str,
    action_type: ActionType,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """The caller's request on this entity that is waiting for its PIN, if any."""
    req = workflow.find_pin_issued_request(
        db,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action_type=action_type.value,
        user_id=None if ctx.is_admin else ctx.uid,
    )
    if req is None:
        return None
    return _serialize_request(req)


@router.get("/{approval_id}", response_model=ApprovalRequestResponse)
def get_request(
    approval_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    req = _get_request(db, approval_id)
    if not _can_see_pin(req, ctx):
        raise HTTPException(status_code=403, detail="Forbidden")
    return _serialize_request(req)


@router.get("/{approval_id}/history")
def get_request_history(
    approval_id: str,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    _get_request(db, approval_id)
    return [
        {
            "id": log.id,
            "action": log.action,
            "actor_id": log.actor_id,
            "actor_role": log.actor_role,
            "changes": log.changes_json,
            "context": log.context,
            "timestamp": log.timestamp_utc,
        }
        for log in get_audit_logs(db, entity_type="approvalRequest", entity_id=approval_id)
    ]


@router.post("/{approval_id}/process", response_model=ProcessOutcomeResponse)
def process_request(
    approval_id: str,
    body: ApprovalProcessRequest,
    db: Session = Depends(get_db),
    admin: SessionContext = Depends(require_admin),
):
    req = _get_request(db, approval_id)
    try:
        outcome = workflow.process_approval_request(
            db,
            req,
            admin=admin,
            decision=body.decision,
            admin_notes=body.admin_notes,
            issue_pin=body.issue_pin,
            manual_pin=body.manual_pin,
        )
    except ApprovalError as exc:
        raise _http_error(exc) from exc
    return {
        "request": _serialize_request(outcome.request),
        "warnings": outcome.warnings,
        "manual_cleanup_required": outcome.manual_cleanup_required,
    }


@router.post("/{approval_id}/pin", response_model=PinOutcomeResponse)
@limiter.limit(settings.pin_rate_limit)
def submit_pin(
    request: Request,
    approval_id: str,
    body: PinSubmission,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    req = _get_request(db, approval_id)
    try:
        outcome = workflow.consume_pin(db, req, body.pin, actor=ctx)
    except ApprovalError as exc:
        raise _http_error(exc) from exc
    return _serialize_pin_outcome(outcome, ctx)


@router.post("/{approval_id}/edit-grant", response_model=PinOutcomeResponse)
def redeem_edit_grant(
    approval_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    req = _get_request(db, approval_id)
    try:
        outcome = workflow.redeem_edit_approval(db, req, actor=ctx)
    except ApprovalError as exc:
        raise _http_error(exc) from exc
    return _serialize_pin_outcome(outcome, ctx)
