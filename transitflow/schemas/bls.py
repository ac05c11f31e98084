from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# Enums
class BLStatus(str, Enum):
    en_cours = "en cours"
    termine = "terminé"
    inactif = "inactif"


# Client Schemas
class ClientBase(BaseModel):
    name: str = Field(min_length=1)
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ClientResponse(ClientBase):
    id: str
    bl_ids: List[str] = []
    created_at: datetime
    created_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


# Work Type Schemas
class WorkTypeBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class WorkTypeCreate(WorkTypeBase):
    pass


class WorkTypeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class WorkTypeResponse(WorkTypeBase):
    id: str
    created_at: datetime
    created_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


# Bill of Lading Schemas
class BillOfLadingBase(BaseModel):
    bl_number: str = Field(min_length=1)
    client_id: str
    allocated_amount: float = Field(default=0.0, ge=0)
    work_type_id: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = []
    status: BLStatus = BLStatus.en_cours


class BillOfLadingCreate(BillOfLadingBase):
    pass


class BillOfLadingUpdate(BaseModel):
    bl_number: Optional[str] = None
    client_id: Optional[str] = None
    allocated_amount: Optional[float] = Field(default=None, ge=0)
    work_type_id: Optional[str] = None
    description: Optional[str] = None
    categories: Optional[List[str]] = None
    status: Optional[BLStatus] = None


class BillOfLadingResponse(BillOfLadingBase):
    id: str
    container_ids: List[str] = []
    created_at: datetime
    created_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


class BLBalanceResponse(BaseModel):
    bl_id: str
    bl_number: str
    allocated_amount: float
    total_expenses: float
    balance: float
    expense_count: int


# Container Schemas
class ContainerBase(BaseModel):
    container_number: str = Field(min_length=1)
    type: Optional[str] = None  # 20ft Dry, 40ft HC, Reefer
    seal_number: Optional[str] = None
    shipping_date: Optional[datetime] = None
    discharge_date: Optional[datetime] = None
    truck_loading_date: Optional[datetime] = None
    destination_arrival_date: Optional[datetime] = None
    status: Optional[str] = None  # At Origin Port, On Vessel, Delivered, ...
    notes: Optional[str] = None


class ContainerCreate(ContainerBase):
    bl_id: str


class ContainerUpdate(BaseModel):
    container_number: Optional[str] = None
    type: Optional[str] = None
    seal_number: Optional[str] = None
    shipping_date: Optional[datetime] = None
    discharge_date: Optional[datetime] = None
    truck_loading_date: Optional[datetime] = None
    destination_arrival_date: Optional[datetime] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class ContainerResponse(ContainerBase):
    id: str
    bl_id: str
    bl_number: Optional[str] = None
    created_at: datetime
    created_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


# Expense Schemas
class ExpenseBase(BaseModel):
    label: str = Field(min_length=1)
    amount: float = Field(gt=0)
    date: Optional[datetime] = None


class ExpenseCreate(ExpenseBase):
    bl_id: str


class ExpenseUpdate(BaseModel):
    label: Optional[str] = None
    amount: Optional[float] = Field(default=None, gt=0)
    date: Optional[datetime] = None


class ExpenseResponse(ExpenseBase):
    id: str
    bl_id: str
    employee_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
