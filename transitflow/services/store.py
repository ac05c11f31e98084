"""
Entity store.

Key-based get/list/add/update/delete accessors, one per collection. Every
mutating call commits on its own; there is no cross-entity transaction and no
referential integrity beyond the denormalized id lists kept below.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

import structlog
from sqlalchemy.orm import Session

from ..models.models import (
    AccountingEntry,
    ApprovalRequest,
    BillOfLading,
    ChatMessage,
    Client,
    Container,
    Driver,
    Expense,
    SecretaryDocument,
    SessionAuditEvent,
    TodoItem,
    Transport,
    Truck,
    UserProfile,
    WorkType,
)


logger = structlog.get_logger()

ModelT = TypeVar("ModelT")


class EntityNotFoundError(LookupError):
    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class EntityStore(Generic[ModelT]):
    def __init__(self, model: Type[ModelT], kind: str, order_by: Optional[str] = "created_at", descending: bool = True):
        self.model = model
        self.kind = kind
        self._order_by = order_by
        self._descending = descending

    def get(self, db: Session, entity_id: str) -> Optional[ModelT]:
        if not entity_id:
            return None
        return db.get(self.model, entity_id)

    def require(self, db: Session, entity_id: str) -> ModelT:
        obj = self.get(db, entity_id)
        if obj is None:
            raise EntityNotFoundError(self.kind, entity_id)
        return obj

    def list(self, db: Session, limit: Optional[int] = None, **filters: Any) -> List[ModelT]:
        """Full-collection read with optional equality filters (None values are ignored)."""
        query = db.query(self.model)
        for field, value in filters.items():
            if value is None:
                continue
            query = query.filter(getattr(self.model, field) == value)
        if self._order_by:
            col = getattr(self.model, self._order_by)
            query = query.order_by(col.desc() if self._descending else col.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def add(self, db: Session, data: Dict[str, Any]) -> ModelT:
        obj = self.model(**data)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def update(self, db: Session, entity_id: str, data: Dict[str, Any]) -> ModelT:
        obj = self.require(db, entity_id)
        for key, value in data.items():
            setattr(obj, key, value)
        if hasattr(obj, "updated_at"):
            obj.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(obj)
        return obj

    def delete(self, db: Session, entity_id: str) -> None:
        obj = self.require(db, entity_id)
        db.delete(obj)
        db.commit()
        logger.info("entity_deleted", kind=self.kind, entity_id=entity_id)


def _without(ids: Optional[list], value: str) -> list:
    return [i for i in (ids or []) if i != value]


def _with(ids: Optional[list], value: str) -> list:
    ids = list(ids or [])
    if value not in ids:
        ids.append(value)
    return ids


class BillOfLadingStore(EntityStore[BillOfLading]):
    """Keeps `Client.bl_ids` in step with the BLs that point at the client."""

    def add(self, db: Session, data: Dict[str, Any]) -> BillOfLading:
        bl = BillOfLading(**data)
        db.add(bl)
        db.flush()
        client = clients.get(db, bl.client_id)
        if client is not None:
            client.bl_ids = _with(client.bl_ids, bl.id)
        db.commit()
        db.refresh(bl)
        return bl

    def update(self, db: Session, entity_id: str, data: Dict[str, Any]) -> BillOfLading:
        bl = self.require(db, entity_id)
        new_client_id = data.get("client_id", bl.client_id)
        if new_client_id != bl.client_id:
            new_client = clients.require(db, new_client_id)
            old_client = clients.get(db, bl.client_id)
            if old_client is not None:
                old_client.bl_ids = _without(old_client.bl_ids, bl.id)
            new_client.bl_ids = _with(new_client.bl_ids, bl.id)
        return super().update(db, entity_id, data)

    def delete(self, db: Session, entity_id: str) -> None:
        bl = self.require(db, entity_id)
        client = clients.get(db, bl.client_id)
        if client is not None:
            client.bl_ids = _without(client.bl_ids, bl.id)
        db.delete(bl)
        db.commit()
        logger.info("entity_deleted", kind=self.kind, entity_id=entity_id)


class ContainerStore(EntityStore[Container]):
    """Keeps `BillOfLading.container_ids` in step with its containers."""

    def add(self, db: Session, data: Dict[str, Any]) -> Container:
        bl = bills_of_lading.require(db, data.get("bl_id"))
        container = Container(**data)
        if not container.bl_number:
            container.bl_number = bl.bl_number
        db.add(container)
        db.flush()
        bl.container_ids = _with(bl.container_ids, container.id)
        db.commit()
        db.refresh(container)
        return container

    def delete(self, db: Session, entity_id: str) -> None:
        container = self.require(db, entity_id)
        self.delete_from_bl(db, container.bl_id, entity_id)

    def delete_from_bl(self, db: Session, bl_id: str, container_id: str) -> None:
        """Delete a container addressed through its parent BL."""
        container = self.get(db, container_id)
        if container is None or container.bl_id != bl_id:
            raise EntityNotFoundError(self.kind, container_id)
        bl = bills_of_lading.get(db, bl_id)
        if bl is not None:
            bl.container_ids = _without(bl.container_ids, container_id)
        db.delete(container)
        db.commit()
        logger.info("entity_deleted", kind=self.kind, entity_id=container_id, bl_id=bl_id)


clients: EntityStore[Client] = EntityStore(Client, "client")
work_types: EntityStore[WorkType] = EntityStore(WorkType, "workType", order_by="name", descending=False)
bills_of_lading = BillOfLadingStore(BillOfLading, "bl")
containers = ContainerStore(Container, "container")
expenses: EntityStore[Expense] = EntityStore(Expense, "expense", order_by="date")
trucks: EntityStore[Truck] = EntityStore(Truck, "truck")
drivers: EntityStore[Driver] = EntityStore(Driver, "driver")
transports: EntityStore[Transport] = EntityStore(Transport, "transport")
accounting_entries: EntityStore[AccountingEntry] = EntityStore(AccountingEntry, "accountingEntry", order_by="issue_date")
secretary_documents: EntityStore[SecretaryDocument] = EntityStore(SecretaryDocument, "secretaryDocument")
chat_messages: EntityStore[ChatMessage] = EntityStore(ChatMessage, "chatMessage", order_by="timestamp", descending=False)
todo_items: EntityStore[TodoItem] = EntityStore(TodoItem, "todoItem")
user_profiles: EntityStore[UserProfile] = EntityStore(UserProfile, "userProfile")
session_audit_events: EntityStore[SessionAuditEvent] = EntityStore(SessionAuditEvent, "sessionAuditEvent", order_by="timestamp")
approval_requests: EntityStore[ApprovalRequest] = EntityStore(ApprovalRequest, "approvalRequest")
