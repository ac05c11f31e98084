from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# Enums
class EntityType(str, Enum):
    bl = "bl"
    client = "client"
    work_type = "workType"
    expense = "expense"
    container = "container"
    truck = "truck"
    driver = "driver"
    transport = "transport"
    secretary_document = "secretaryDocument"
    accounting_entry = "accountingEntry"


class ActionType(str, Enum):
    edit = "edit"
    delete = "delete"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    pin_issued = "pin_issued"
    completed = "completed"


class Decision(str, Enum):
    approve = "approve"
    reject = "reject"


ENTITY_TYPE_LABELS = {
    EntityType.bl: "Connaissement",
    EntityType.client: "Client",
    EntityType.work_type: "Type de Travail",
    EntityType.expense: "Dépense",
    EntityType.container: "Conteneur",
    EntityType.truck: "Camion",
    EntityType.driver: "Chauffeur",
    EntityType.transport: "Transport",
    EntityType.secretary_document: "Document (Sec.)",
    EntityType.accounting_entry: "Écriture (Compta.)",
}

STATUS_LABELS = {
    ApprovalStatus.pending: "En attente",
    ApprovalStatus.approved: "Approuvée",
    ApprovalStatus.rejected: "Rejetée",
    ApprovalStatus.pin_issued: "PIN émis",
    ApprovalStatus.completed: "Terminée",
}


class ApprovalRequestCreate(BaseModel):
    entity_type: EntityType
    entity_id: str = Field(min_length=1)
    entity_description: Optional[str] = None
    parent_id: Optional[str] = None
    action_type: ActionType
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("reason is required")
        return v.strip()


class ApprovalProcessRequest(BaseModel):
    decision: Decision
    admin_notes: Optional[str] = None
    issue_pin: bool = False
    manual_pin: Optional[str] = None


class PinSubmission(BaseModel):
    pin: str


class ApprovalRequestResponse(BaseModel):
    id: str
    requested_by_user_id: str
    requested_by_user_name: Optional[str] = None
    entity_type: EntityType
    entity_type_label: Optional[str] = None
    entity_id: str
    entity_description: Optional[str] = None
    parent_id: Optional[str] = None
    action_type: ActionType
    reason: str
    status: ApprovalStatus
    status_label: Optional[str] = None
    admin_notes: Optional[str] = None
    pin_code: Optional[str] = None
    pin_expires_at: Optional[datetime] = None
    processed_by_user_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    completed_by_user_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class ProcessOutcomeResponse(BaseModel):
    request: ApprovalRequestResponse
    warnings: List[str] = []
    manual_cleanup_required: bool = False


class PinOutcomeResponse(BaseModel):
    request: ApprovalRequestResponse
    action_type: ActionType
    edit_grant: Optional[str] = None
    resource_path: Optional[str] = None
    deleted: bool = False
