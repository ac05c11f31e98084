"""
CRUD endpoints for the protected entity collections.

Anyone signed in can list, read and create. Admins edit and delete directly;
everyone else needs an approval: edits carry an `X-Edit-Grant` token obtained
from the approval workflow, deletes go through an approval request + PIN.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth.security import verify_edit_grant
from ..auth.session import SessionContext, get_session_context
from ..config import settings
from ..db import get_db
from ..models.models import SecretaryDocument
from ..schemas.approvals import EntityType
from ..schemas.bls import (
    BillOfLadingCreate,
    BillOfLadingResponse,
    BillOfLadingUpdate,
    ClientCreate,
    ClientResponse,
    ClientUpdate,
    ContainerCreate,
    ContainerResponse,
    ContainerUpdate,
    ExpenseCreate,
    ExpenseResponse,
    ExpenseUpdate,
    WorkTypeCreate,
    WorkTypeResponse,
    WorkTypeUpdate,
)
from ..schemas.fleet import (
    DriverCreate,
    DriverResponse,
    DriverUpdate,
    TransportCreate,
    TransportResponse,
    TransportUpdate,
    TruckCreate,
    TruckResponse,
    TruckUpdate,
)
from ..schemas.office import (
    AccountingEntryCreate,
    AccountingEntryResponse,
    AccountingEntryUpdate,
    SecretaryDocumentCreate,
    SecretaryDocumentResponse,
    SecretaryDocumentUpdate,
)
from ..services import store
from ..services.audit import compute_diff, create_audit_log
from ..services.store import EntityNotFoundError, EntityStore


logger = structlog.get_logger()

router = APIRouter(tags=["entities"])

Prepare = Callable[[Session, Dict[str, Any], SessionContext], Dict[str, Any]]
PrepareUpdate = Callable[[Any, Dict[str, Any]], Dict[str, Any]]


def _plain(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


def authorize_protected_edit(ctx: SessionContext, entity_type: EntityType, entity_id: str, edit_grant: Optional[str]) -> None:
    if ctx.is_admin:
        return
    if not edit_grant:
        raise HTTPException(
            status_code=403,
            detail="Editing requires administrator approval: submit an edit request",
        )
    verify_edit_grant(edit_grant, ctx.uid, entity_type.value, entity_id)


def authorize_protected_delete(ctx: SessionContext) -> None:
    if not ctx.is_admin:
        raise HTTPException(
            status_code=403,
            detail="Deleting requires administrator approval: submit a delete request",
        )


def register_entity_routes(
    api: APIRouter,
    prefix: str,
    entity_type: EntityType,
    entities: EntityStore,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    response_schema: Type[BaseModel],
    filters: Sequence[str] = (),
    prepare_create: Optional[Prepare] = None,
    prepare_update: Optional[PrepareUpdate] = None,
    owner_field: Optional[str] = "created_by_user_id",
) -> None:
    label = entity_type.value

    def list_entities(
        request: Request,
        limit: int = 500,
        db: Session = Depends(get_db),
        ctx: SessionContext = Depends(get_session_context),
    ):
        wanted = {name: request.query_params.get(name) for name in filters}
        return entities.list(db, limit=max(1, min(limit, 1000)), **wanted)

    def get_entity(entity_id: str, db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session_context)):
        obj = entities.get(db, entity_id)
        if obj is None:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return obj

    def create_entity(
        payload: create_schema,  # type: ignore[valid-type]
        db: Session = Depends(get_db),
        ctx: SessionContext = Depends(get_session_context),
    ):
        data = _plain(payload.model_dump(mode="python"))
        if owner_field:
            data[owner_field] = ctx.uid
        if prepare_create:
            data = prepare_create(db, data, ctx)
        try:
            obj = entities.add(db, data)
        except EntityNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        logger.info("entity_created", kind=label, entity_id=obj.id, user_id=ctx.uid)
        return obj

    def update_entity(
        entity_id: str,
        payload: update_schema,  # type: ignore[valid-type]
        db: Session = Depends(get_db),
        ctx: SessionContext = Depends(get_session_context),
        x_edit_grant: Optional[str] = Header(default=None),
    ):
        authorize_protected_edit(ctx, entity_type, entity_id, x_edit_grant)
        obj = entities.get(db, entity_id)
        if obj is None:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        data = _plain(payload.model_dump(mode="python", exclude_unset=True))
        if prepare_update:
            data = prepare_update(obj, data)
        before = jsonable_encoder({k: getattr(obj, k, None) for k in data})
        try:
            obj = entities.update(db, entity_id, data)
        except EntityNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        changes = compute_diff(before, jsonable_encoder({k: getattr(obj, k, None) for k in data}))
        if changes:
            create_audit_log(
                db,
                entity_type=label,
                entity_id=entity_id,
                action="UPDATE",
                actor_id=ctx.uid,
                actor_role=ctx.role,
                changes_json=changes,
                context={"via_grant": not ctx.is_admin},
            )
            db.commit()
        logger.info("entity_updated", kind=label, entity_id=entity_id, user_id=ctx.uid, via_grant=not ctx.is_admin)
        return obj

    def delete_entity(entity_id: str, db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session_context)):
        authorize_protected_delete(ctx)
        try:
            entities.delete(db, entity_id)
        except EntityNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"{label} not found") from exc
        return {"status": "deleted", "id": entity_id}

    for fn in (list_entities, get_entity, create_entity, update_entity, delete_entity):
        fn.__name__ = f"{fn.__name__}_{prefix.strip('/').replace('/', '_').replace('-', '_')}"

    api.add_api_route(prefix, list_entities, methods=["GET"], response_model=List[response_schema])
    api.add_api_route(f"{prefix}/{{entity_id}}", get_entity, methods=["GET"], response_model=response_schema)
    api.add_api_route(prefix, create_entity, methods=["POST"], response_model=response_schema)
    api.add_api_route(f"{prefix}/{{entity_id}}", update_entity, methods=["PATCH"], response_model=response_schema)
    api.add_api_route(f"{prefix}/{{entity_id}}", delete_entity, methods=["DELETE"])


# =====================
# Per-entity tweaks
# =====================


def _prepare_expense(db: Session, data: Dict[str, Any], ctx: SessionContext) -> Dict[str, Any]:
    store.bills_of_lading.require(db, data["bl_id"])
    data["employee_id"] = ctx.uid
    if data.get("date") is None:
        data["date"] = datetime.now(timezone.utc)
    return data


def _prepare_bl(db: Session, data: Dict[str, Any], ctx: SessionContext) -> Dict[str, Any]:
    store.clients.require(db, data["client_id"])
    return data


def _prepare_accounting_entry(db: Session, data: Dict[str, Any], ctx: SessionContext) -> Dict[str, Any]:
    data["currency"] = data.get("currency") or settings.default_currency
    if data.get("total_amount") is None:
        data["total_amount"] = (data.get("amount") or 0.0) + (data.get("tax_amount") or 0.0)
    return data


def _bump_document_version(doc: SecretaryDocument, data: Dict[str, Any]) -> Dict[str, Any]:
    if "content" in data and data["content"] != doc.content:
        data["version"] = (doc.version or 1) + 1
    return data


def _guarded(prepare: Prepare) -> Prepare:
    def _run(db: Session, data: Dict[str, Any], ctx: SessionContext) -> Dict[str, Any]:
        try:
            return prepare(db, data, ctx)
        except EntityNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    return _run


register_entity_routes(
    router, "/clients", EntityType.client, store.clients,
    ClientCreate, ClientUpdate, ClientResponse,
)
register_entity_routes(
    router, "/work-types", EntityType.work_type, store.work_types,
    WorkTypeCreate, WorkTypeUpdate, WorkTypeResponse,
)
register_entity_routes(
    router, "/bls", EntityType.bl, store.bills_of_lading,
    BillOfLadingCreate, BillOfLadingUpdate, BillOfLadingResponse,
    filters=("client_id", "status", "work_type_id"),
    prepare_create=_guarded(_prepare_bl),
)
register_entity_routes(
    router, "/containers", EntityType.container, store.containers,
    ContainerCreate, ContainerUpdate, ContainerResponse,
    filters=("bl_id", "status"),
)
register_entity_routes(
    router, "/expenses", EntityType.expense, store.expenses,
    ExpenseCreate, ExpenseUpdate, ExpenseResponse,
    filters=("bl_id", "employee_id"),
    prepare_create=_guarded(_prepare_expense),
    owner_field=None,
)
register_entity_routes(
    router, "/trucks", EntityType.truck, store.trucks,
    TruckCreate, TruckUpdate, TruckResponse,
    filters=("status",),
)
register_entity_routes(
    router, "/drivers", EntityType.driver, store.drivers,
    DriverCreate, DriverUpdate, DriverResponse,
    filters=("status",),
)
register_entity_routes(
    router, "/transports", EntityType.transport, store.transports,
    TransportCreate, TransportUpdate, TransportResponse,
    filters=("bl_id", "status", "truck_id", "driver_id"),
)
register_entity_routes(
    router, "/accounting/entries", EntityType.accounting_entry, store.accounting_entries,
    AccountingEntryCreate, AccountingEntryUpdate, AccountingEntryResponse,
    filters=("entry_type", "status", "related_bl_id", "related_client_id"),
    prepare_create=_prepare_accounting_entry,
)
register_entity_routes(
    router, "/secretary/documents", EntityType.secretary_document, store.secretary_documents,
    SecretaryDocumentCreate, SecretaryDocumentUpdate, SecretaryDocumentResponse,
    filters=("document_type", "status", "related_client_id", "related_bl_id"),
    prepare_update=_bump_document_version,
)
