from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from oil_delivery.models import (
    ComplaintCategory,
    ComplaintStatus,
    DeliveryStatus,
    LoadSessionStatus,
    PrincipalRole,
    TaskPriority,
    TaskStatus,
    TransactionType,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ----- Auth -----


class LoginRequest(BaseModel):
    username: str
    password: str


class PrincipalRead(ORMModel):
    id: int
    username: str
    role: PrincipalRole
    display_name: str | None = None
    email: str | None = None
    active: bool


# ----- Reference data -----


class OilTypeCreate(BaseModel):
    name: str
    color: str | None = None


class OilTypeUpdate(BaseModel):
    name: str | None = None
    color: str | None = None
    active: bool | None = None


class OilTypeRead(ORMModel):
    id: int
    name: str
    color: str | None = None
    active: bool
    created_at: datetime
    updated_at: datetime


class OilTankIn(BaseModel):
    capacity: int = Field(ge=0)
    oil_type_id: int
    current_level: int = 0


class OilTankRead(ORMModel):
    id: int
    capacity: int
    oil_type_id: int
    oil_type_name: str
    current_level: int


class BranchCreate(BaseModel):
    name: str
    address: str = ''
    contact_no: str = ''
    oil_tanks: list[OilTankIn] = Field(default_factory=list)


class BranchUpdate(BaseModel):
    name: str | None = None
    address: str | None = None
    contact_no: str | None = None
    active: bool | None = None
    oil_tanks: list[OilTankIn] | None = None


class BranchRead(ORMModel):
    id: int
    name: str
    address: str
    contact_no: str
    active: bool
    oil_tanks: list[OilTankRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CascadeDeleteRead(ORMModel):
    transactions: int
    deliveries: int
    load_sessions: int = 0
    oil_tanks: int = 0


# ----- Drivers -----


class DriverCreate(BaseModel):
    email: str
    password: str
    display_name: str
    emp_no: str | None = None
    driver_licence_no: str | None = None
    tanker_licence_no: str | None = None
    licence_expiry_date: date | None = None


class DriverUpdate(BaseModel):
    email: str | None = None
    display_name: str | None = None
    emp_no: str | None = None
    driver_licence_no: str | None = None
    tanker_licence_no: str | None = None
    licence_expiry_date: date | None = None
    active: bool | None = None


class DriverPasswordChange(BaseModel):
    new_password: str


class DriverRead(ORMModel):
    id: int
    username: str
    email: str | None = None
    display_name: str | None = None
    role: PrincipalRole
    emp_no: str | None = None
    driver_licence_no: str | None = None
    tanker_licence_no: str | None = None
    licence_expiry_date: date | None = None
    active: bool
    created_at: datetime
    last_login_at: datetime | None = None


# ----- Ledger -----


class LoadSessionCreate(BaseModel):
    oil_type_id: int
    total_loaded_liters: Decimal | None = None
    load_location_id: str | None = None
    load_meter_reading: Decimal | None = None
    meter_reading_photo: str | None = None


class LoadSessionRead(ORMModel):
    id: int
    load_session_id: str
    oil_type_id: int
    oil_type_name: str
    total_loaded_liters: Decimal
    remaining_liters: Decimal
    total_supplied: Decimal
    load_count: int
    status: LoadSessionStatus
    load_location_id: str | None = None
    load_meter_reading: Decimal | None = None
    meter_reading_photo: str | None = None
    created_by: str
    created_at: datetime
    timestamp: datetime
    last_supply_at: datetime | None = None
    completed_at: datetime | None = None


class DeliveryCreate(BaseModel):
    load_session_id: str | None = None
    branch_id: int | None = None
    oil_type_id: int | None = None
    delivered_liters: Decimal | None = None
    delivery_order_id: str | None = None
    start_meter_reading: Decimal | None = None
    end_meter_reading: Decimal | None = None
    actual_delivery_start_time: datetime | None = None
    photos: dict[str, str] = Field(default_factory=dict)


class DeliveryRead(ORMModel):
    id: int
    load_session_id: str
    delivery_order_id: str | None = None
    branch_id: int | None = None
    branch_name: str | None = None
    branch_address: str
    oil_type_id: int | None = None
    oil_type_name: str | None = None
    delivered_liters: Decimal
    start_meter_reading: Decimal | None = None
    end_meter_reading: Decimal | None = None
    photos: dict[str, str] = Field(default_factory=dict)
    driver_uid: str
    driver_name: str | None = None
    status: DeliveryStatus
    completed_at: datetime | None = None
    timestamp: datetime


class TransactionRead(ORMModel):
    id: int
    type: TransactionType
    load_session_id: str
    oil_type_id: int | None = None
    oil_type_name: str | None = None
    quantity: Decimal
    driver_uid: str
    driver_name: str | None = None
    photos: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime
    location_id: str | None = None
    meter_reading: Decimal | None = None
    branch_id: int | None = None
    branch_name: str | None = None
    branch_address: str | None = None
    delivery_order_id: str | None = None
    start_meter_reading: Decimal | None = None
    end_meter_reading: Decimal | None = None
    actual_delivery_start_time: datetime | None = None


class UnifiedEntryRead(ORMModel):
    id: int
    source: str
    type: str
    timestamp: datetime | None = None
    driver_name: str
    oil_type_name: str
    quantity: Decimal
    branch_name: str | None = None
    load_session_id: str
    photos: dict[str, str] = Field(default_factory=dict)
    status: str


class WatermarkRepairRequest(BaseModel):
    branch_name: str


class ReconcileRead(ORMModel):
    load_session_id: str
    total_supplied: Decimal
    remaining_liters: Decimal
    status: LoadSessionStatus
    changed: bool


# ----- Tasks & complaints -----


class TaskCreate(BaseModel):
    title: str = ''
    due_date: datetime | None = None
    description: str = ''
    priority: TaskPriority | None = None
    assigned_to: str | None = None


class TaskUpdate(BaseModel):
    title: str | None = None
    due_date: datetime | None = None
    description: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    assigned_to: str | None = None


class TaskRead(ORMModel):
    id: int
    title: str
    description: str
    priority: TaskPriority
    status: TaskStatus
    assigned_to: str | None = None
    complaint_id: int | None = None
    due_date: datetime
    created_at: datetime
    updated_at: datetime


class ComplaintCreate(BaseModel):
    title: str = ''
    description: str = ''
    category: ComplaintCategory = ComplaintCategory.OTHER
    priority: TaskPriority = TaskPriority.MEDIUM
    branch_id: int | None = None
    photos: dict[str, str] = Field(default_factory=dict)


class ComplaintUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: ComplaintCategory | None = None
    priority: TaskPriority | None = None
    status: ComplaintStatus | None = None
    admin_notes: str | None = None


class ComplaintResolve(BaseModel):
    resolution: str


class ComplaintRead(ORMModel):
    id: int
    title: str
    description: str
    category: ComplaintCategory
    priority: TaskPriority
    status: ComplaintStatus
    branch_id: int | None = None
    branch_name: str | None = None
    photos: dict[str, str] = Field(default_factory=dict)
    reported_by: str | None = None
    driver_uid: str
    driver_name: str | None = None
    admin_notes: str | None = None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None


# ----- Maintenance -----


class PurgeRequest(BaseModel):
    collection: str
    start: datetime
    end: datetime


class CollectionUsageRead(ORMModel):
    collection: str
    count: int


class StoreUsageRead(ORMModel):
    collections: list[CollectionUsageRead]
    total_records: int


class PhotoStatisticsRead(ORMModel):
    photo_count: int
    transaction_count: int
