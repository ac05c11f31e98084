from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# Enums
class TruckStatus(str, Enum):
    available = "available"
    in_transit = "in_transit"
    maintenance = "maintenance"
    out_of_service = "out_of_service"


class DriverStatus(str, Enum):
    available = "available"
    on_trip = "on_trip"
    off_duty = "off_duty"
    unavailable = "unavailable"


class TransportStatus(str, Enum):
    planned = "planned"
    in_progress = "in_progress"
    completed = "completed"
    delayed = "delayed"
    cancelled = "cancelled"


# Truck Schemas
class TruckBase(BaseModel):
    registration_number: str = Field(min_length=1)
    model: Optional[str] = None
    capacity: Optional[str] = None  # "1x40ft or 2x20ft", "30 Tonnes"
    status: TruckStatus = TruckStatus.available
    current_driver_id: Optional[str] = None
    current_driver_name: Optional[str] = None
    notes: Optional[str] = None


class TruckCreate(TruckBase):
    pass


class TruckUpdate(BaseModel):
    registration_number: Optional[str] = None
    model: Optional[str] = None
    capacity: Optional[str] = None
    status: Optional[TruckStatus] = None
    current_driver_id: Optional[str] = None
    current_driver_name: Optional[str] = None
    notes: Optional[str] = None


class TruckResponse(TruckBase):
    id: str
    created_at: datetime
    created_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


# Driver Schemas
class DriverBase(BaseModel):
    name: str = Field(min_length=1)
    license_number: str = Field(min_length=1)
    phone: Optional[str] = None
    status: DriverStatus = DriverStatus.available
    current_truck_id: Optional[str] = None
    current_truck_reg: Optional[str] = None
    notes: Optional[str] = None


class DriverCreate(DriverBase):
    pass


class DriverUpdate(BaseModel):
    name: Optional[str] = None
    license_number: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[DriverStatus] = None
    current_truck_id: Optional[str] = None
    current_truck_reg: Optional[str] = None
    notes: Optional[str] = None


class DriverResponse(DriverBase):
    id: str
    created_at: datetime
    created_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


# Transport Schemas
class TransportBase(BaseModel):
    transport_number: str = Field(min_length=1)
    bl_id: str
    container_ids: List[str] = []
    truck_id: Optional[str] = None
    truck_registration_number: Optional[str] = None
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    origin: str
    destination: str
    planned_departure_date: datetime
    actual_departure_date: Optional[datetime] = None
    planned_arrival_date: datetime
    actual_arrival_date: Optional[datetime] = None
    status: TransportStatus = TransportStatus.planned
    notes: Optional[str] = None
    total_cost: Optional[float] = None


class TransportCreate(TransportBase):
    pass


class TransportUpdate(BaseModel):
    transport_number: Optional[str] = None
    bl_id: Optional[str] = None
    container_ids: Optional[List[str]] = None
    truck_id: Optional[str] = None
    truck_registration_number: Optional[str] = None
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    planned_departure_date: Optional[datetime] = None
    actual_departure_date: Optional[datetime] = None
    planned_arrival_date: Optional[datetime] = None
    actual_arrival_date: Optional[datetime] = None
    status: Optional[TransportStatus] = None
    notes: Optional[str] = None
    total_cost: Optional[float] = None


class TransportResponse(TransportBase):
    id: str
    created_at: datetime
    created_by_user_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
