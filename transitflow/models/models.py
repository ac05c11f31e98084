import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def str_pk() -> Mapped[str]:
    # Opaque string ids, the same shape a document store would hand out
    return mapped_column(String(64), primary_key=True, default=_new_id)


# =====================
# Identity & session
# =====================


class User(Base):
    """Identity-provider account (email/password)."""
    __tablename__ = "users"

    id: Mapped[str] = str_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    profile = relationship("UserProfile", back_populates="user", uselist=False)


class UserProfile(Base):
    """Application profile: role and job title, created lazily on first sign-in."""
    __tablename__ = "user_profiles"

    uid: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="employee", index=True)  # admin|employee
    job_title: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user = relationship("User", back_populates="profile")


class SessionAuditEvent(Base):
    __tablename__ = "session_audit_events"

    id: Mapped[str] = str_pk()
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_display_name: Mapped[Optional[str]] = mapped_column(String(255))
    user_email: Mapped[Optional[str]] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(10), nullable=False)  # login|logout
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)


class CompanyProfile(Base):
    __tablename__ = "company_profile"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default="default")
    app_name: Mapped[Optional[str]] = mapped_column(String(255))
    company_name: Mapped[Optional[str]] = mapped_column(String(255))
    company_address: Mapped[Optional[str]] = mapped_column(String(500))
    company_email: Mapped[Optional[str]] = mapped_column(String(255))
    company_phone: Mapped[Optional[str]] = mapped_column(String(50))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# =====================
# Freight domain
# =====================


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = str_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_person: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    bl_ids: Mapped[list] = mapped_column(JSON, default=list)  # denormalized BL ids
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))


class WorkType(Base):
    __tablename__ = "work_types"

    id: Mapped[str] = str_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))


class BillOfLading(Base):
    __tablename__ = "bills_of_lading"

    id: Mapped[str] = str_pk()
    bl_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    allocated_amount: Mapped[float] = mapped_column(Float, default=0.0)
    work_type_id: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(Text)
    categories: Mapped[list] = mapped_column(JSON, default=list)
    container_ids: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="en cours", index=True)  # en cours|terminé|inactif
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))


class Container(Base):
    __tablename__ = "containers"

    id: Mapped[str] = str_pk()
    bl_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    bl_number: Mapped[Optional[str]] = mapped_column(String(100))
    container_number: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(50))  # 20ft Dry, 40ft HC, Reefer
    seal_number: Mapped[Optional[str]] = mapped_column(String(50))
    shipping_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    discharge_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    truck_loading_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    destination_arrival_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[str] = str_pk()
    bl_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    employee_id: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Truck(Base):
    __tablename__ = "trucks"

    id: Mapped[str] = str_pk()
    registration_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    model: Mapped[Optional[str]] = mapped_column(String(255))
    capacity: Mapped[Optional[str]] = mapped_column(String(100))  # "1x40ft or 2x20ft", "30 Tonnes"
    status: Mapped[str] = mapped_column(String(20), default="available", index=True)
    current_driver_id: Mapped[Optional[str]] = mapped_column(String(64))
    current_driver_name: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))


class Driver(Base):
    __tablename__ = "drivers"

    id: Mapped[str] = str_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    license_number: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default="available", index=True)
    current_truck_id: Mapped[Optional[str]] = mapped_column(String(64))
    current_truck_reg: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))


class Transport(Base):
    __tablename__ = "transports"

    id: Mapped[str] = str_pk()
    transport_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    bl_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    container_ids: Mapped[list] = mapped_column(JSON, default=list)
    truck_id: Mapped[Optional[str]] = mapped_column(String(64))
    truck_registration_number: Mapped[Optional[str]] = mapped_column(String(50))
    driver_id: Mapped[Optional[str]] = mapped_column(String(64))
    driver_name: Mapped[Optional[str]] = mapped_column(String(255))
    origin: Mapped[str] = mapped_column(String(255), nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    planned_departure_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_departure_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    planned_arrival_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_arrival_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), default="planned", index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    total_cost: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class AccountingEntry(Base):
    __tablename__ = "accounting_entries"

    id: Mapped[str] = str_pk()
    entry_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    reference_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    related_bl_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    related_client_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    issue_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), default="XOF")
    tax_amount: Mapped[Optional[float]] = mapped_column(Float)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="brouillon", index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class SecretaryDocument(Base):
    __tablename__ = "secretary_documents"

    id: Mapped[str] = str_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(30), default="brouillon", index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    related_client_id: Mapped[Optional[str]] = mapped_column(String(64))
    related_bl_id: Mapped[Optional[str]] = mapped_column(String(64))
    recipient_email: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# =====================
# Team chat & todos
# =====================


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[str] = str_pk()
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sender_name: Mapped[Optional[str]] = mapped_column(String(255))
    text: Mapped[str] = mapped_column(String(4000), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)


class TodoItem(Base):
    __tablename__ = "todo_items"

    id: Mapped[str] = str_pk()
    text: Mapped[str] = mapped_column(String(1000), nullable=False)
    assigned_to_user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    assigned_to_user_name: Mapped[Optional[str]] = mapped_column(String(255))
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    created_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by_name: Mapped[Optional[str]] = mapped_column(String(255))


# =====================
# Approval workflow
# =====================


class ApprovalRequest(Base):
    """Edit/delete request on a protected entity; never deleted (audit trail)."""
    __tablename__ = "approval_requests"

    id: Mapped[str] = str_pk()
    requested_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    requested_by_user_name: Mapped[Optional[str]] = mapped_column(String(255))

    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_description: Mapped[Optional[str]] = mapped_column(String(500))
    parent_id: Mapped[Optional[str]] = mapped_column(String(64))  # BL id for containers/expenses

    action_type: Mapped[str] = mapped_column(String(10), nullable=False)  # edit|delete
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    pin_code: Mapped[Optional[str]] = mapped_column(String(6))
    pin_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    processed_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_by_user_id: Mapped[Optional[str]] = mapped_column(String(64))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    __table_args__ = (
        Index("idx_approval_target", "entity_type", "entity_id", "action_type"),
    )


class AuditLog(Base):
    """Append-only audit log for approval transitions and protected entity updates"""
    __tablename__ = "audit_logs"

    id: Mapped[str] = str_pk()
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # SUBMIT|APPROVE|REJECT|ISSUE_PIN|COMPLETE|DELETE|UPDATE
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(20))  # admin|employee|system
    changes_json: Mapped[Optional[dict]] = mapped_column(JSON)  # Before/after diff
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 for tamper checks

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )
