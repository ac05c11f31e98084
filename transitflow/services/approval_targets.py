"""
Entities an approval request can point at.

One target class per `EntityType`; each knows how to load, delete and address
its entity. The registry is closed and checked at import time, so adding an
entity type without a target fails loudly instead of silently skipping a
deletion.
"""
import re
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..models.models import ApprovalRequest
from ..schemas.approvals import EntityType
from . import store


LEGACY_BL_REFERENCE = re.compile(r"BL N°\s*([a-zA-Z0-9-]+)")


class MissingParentReference(Exception):
    """The request does not say which BL the entity belongs to."""

    def __init__(self, request_id: str, entity_type: str):
        super().__init__(f"Approval {request_id}: no parent BL reference for {entity_type}")
        self.request_id = request_id
        self.entity_type = entity_type


def parent_bl_id(request: ApprovalRequest) -> Optional[str]:
    """Structured `parent_id` first, then the "(BL N° <id>)" label of older requests."""
    if request.parent_id:
        return request.parent_id
    match = LEGACY_BL_REFERENCE.search(request.entity_description or "")
    return match.group(1) if match else None


class ApprovalTarget:
    entity_type: EntityType
    entities: store.EntityStore
    resource_prefix: str

    def fetch(self, db: Session, request: ApprovalRequest) -> Optional[Any]:
        return self.entities.get(db, request.entity_id)

    def delete(self, db: Session, request: ApprovalRequest) -> None:
        self.entities.delete(db, request.entity_id)

    def resource_path(self, request: ApprovalRequest) -> str:
        return f"{self.resource_prefix}/{request.entity_id}"


class BillOfLadingTarget(ApprovalTarget):
    entity_type = EntityType.bl
    entities = store.bills_of_lading
    resource_prefix = "/bls"


class ClientTarget(ApprovalTarget):
    entity_type = EntityType.client
    entities = store.clients
    resource_prefix = "/clients"


class WorkTypeTarget(ApprovalTarget):
    entity_type = EntityType.work_type
    entities = store.work_types
    resource_prefix = "/work-types"


class ExpenseTarget(ApprovalTarget):
    entity_type = EntityType.expense
    entities = store.expenses
    resource_prefix = "/expenses"


class ContainerTarget(ApprovalTarget):
    entity_type = EntityType.container
    entities = store.containers
    resource_prefix = "/containers"

    def delete(self, db: Session, request: ApprovalRequest) -> None:
        bl_id = parent_bl_id(request)
        if not bl_id:
            raise MissingParentReference(request.id, request.entity_type)
        store.containers.delete_from_bl(db, bl_id, request.entity_id)


class TruckTarget(ApprovalTarget):
    entity_type = EntityType.truck
    entities = store.trucks
    resource_prefix = "/trucks"


class DriverTarget(ApprovalTarget):
    entity_type = EntityType.driver
    entities = store.drivers
    resource_prefix = "/drivers"


class TransportTarget(ApprovalTarget):
    entity_type = EntityType.transport
    entities = store.transports
    resource_prefix = "/transports"


class SecretaryDocumentTarget(ApprovalTarget):
    entity_type = EntityType.secretary_document
    entities = store.secretary_documents
    resource_prefix = "/secretary/documents"


class AccountingEntryTarget(ApprovalTarget):
    entity_type = EntityType.accounting_entry
    entities = store.accounting_entries
    resource_prefix = "/accounting/entries"


TARGETS: Dict[EntityType, ApprovalTarget] = {
    t.entity_type: t
    for t in (
        BillOfLadingTarget(),
        ClientTarget(),
        WorkTypeTarget(),
        ExpenseTarget(),
        ContainerTarget(),
        TruckTarget(),
        DriverTarget(),
        TransportTarget(),
        SecretaryDocumentTarget(),
        AccountingEntryTarget(),
    )
}

_missing = set(EntityType) - set(TARGETS)
if _missing:
    raise RuntimeError(f"No approval target registered for: {sorted(m.value for m in _missing)}")


def target_for(entity_type) -> ApprovalTarget:
    return TARGETS[EntityType(entity_type)]
