from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')


class Base(DeclarativeBase):
    pass


class PrincipalRole(str, Enum):
    ADMIN = 'ADMIN'
    DRIVER = 'DRIVER'
    USER = 'USER'
    BUSINESS = 'BUSINESS'


class LoadSessionStatus(str, Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'


class TransactionType(str, Enum):
    LOADING = 'loading'
    SUPPLY = 'supply'


class DeliveryStatus(str, Enum):
    COMPLETED = 'completed'


class TaskPriority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


class TaskStatus(str, Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'


class ComplaintCategory(str, Enum):
    EQUIPMENT = 'equipment'
    DELIVERY = 'delivery'
    SAFETY = 'safety'
    CUSTOMER = 'customer'
    OTHER = 'other'


class ComplaintStatus(str, Enum):
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    RESOLVED = 'resolved'
    CLOSED = 'closed'


TASK_PRIORITY_ENUM = SQLEnum(TaskPriority, name='task_priority')


class Principal(Base):
    __tablename__ = 'principals'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(Text)
    display_name: Mapped[str | None] = mapped_column(Text)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(SQLEnum(PrincipalRole, name='principal_role'), nullable=False)
    emp_no: Mapped[str | None] = mapped_column(Text)
    driver_licence_no: Mapped[str | None] = mapped_column(Text)
    tanker_licence_no: Mapped[str | None] = mapped_column(Text)
    licence_expiry_date: Mapped[date | None] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class OilType(Base):
    __tablename__ = 'oil_types'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Branch(Base):
    __tablename__ = 'branches'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    contact_no: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    oil_tanks: Mapped[list[OilTank]] = relationship(order_by='OilTank.id', lazy='selectin', cascade='all, delete-orphan')


class OilTank(Base):
    __tablename__ = 'oil_tanks'
    __table_args__ = (
        CheckConstraint('capacity >= 0', name='oil_tanks_capacity_non_negative_ck'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    branch_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('branches.id'), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    oil_type_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('oil_types.id'), nullable=False)
    oil_type_name: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')


class LoadSession(Base):
    __tablename__ = 'load_sessions'
    __table_args__ = (
        UniqueConstraint('load_session_id', name='load_sessions_load_session_id_key'),
        CheckConstraint('total_loaded_liters > 0', name='load_sessions_total_positive_ck'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    load_session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    oil_type_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('oil_types.id'), nullable=False)
    oil_type_name: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    total_loaded_liters: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    remaining_liters: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    total_supplied: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal('0'), server_default='0')
    load_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    status: Mapped[LoadSessionStatus] = mapped_column(
        SQLEnum(LoadSessionStatus, name='load_session_status'),
        nullable=False,
        default=LoadSessionStatus.ACTIVE,
        server_default='ACTIVE',
    )
    load_location_id: Mapped[str | None] = mapped_column(Text)
    load_meter_reading: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    meter_reading_photo: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_supply_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Transaction(Base):
    """Append-only ledger entry. ``type`` selects the loading or supply shape."""

    __tablename__ = 'transactions'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='transactions_quantity_positive_ck'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    type: Mapped[TransactionType] = mapped_column(SQLEnum(TransactionType, name='transaction_type'), nullable=False)
    load_session_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    oil_type_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('oil_types.id'))
    oil_type_name: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    driver_uid: Mapped[str] = mapped_column(Text, nullable=False)
    driver_name: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __mapper_args__ = {'polymorphic_on': type}


class LoadingTransaction(Transaction):
    location_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    meter_reading: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)

    __mapper_args__ = {'polymorphic_identity': TransactionType.LOADING}


class SupplyTransaction(Transaction):
    branch_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('branches.id'), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    branch_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_order_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_meter_reading: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    end_meter_reading: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    actual_delivery_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {'polymorphic_identity': TransactionType.SUPPLY}


class Delivery(Base):
    __tablename__ = 'deliveries'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    load_session_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    delivery_order_id: Mapped[str | None] = mapped_column(Text)
    branch_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('branches.id'))
    branch_name: Mapped[str | None] = mapped_column(Text)
    branch_address: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    oil_type_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('oil_types.id'))
    oil_type_name: Mapped[str | None] = mapped_column(Text)
    delivered_liters: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    start_meter_reading: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    end_meter_reading: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    photos: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    tank_level_photo: Mapped[str | None] = mapped_column(Text)
    hose_connection_photo: Mapped[str | None] = mapped_column(Text)
    final_tank_level_photo: Mapped[str | None] = mapped_column(Text)
    driver_uid: Mapped[str] = mapped_column(Text, nullable=False)
    driver_name: Mapped[str | None] = mapped_column(Text)
    status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(DeliveryStatus, name='delivery_status'),
        nullable=False,
        default=DeliveryStatus.COMPLETED,
        server_default='COMPLETED',
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Task(Base):
    __tablename__ = 'tasks'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    priority: Mapped[TaskPriority] = mapped_column(
        TASK_PRIORITY_ENUM, nullable=False, default=TaskPriority.MEDIUM, server_default='MEDIUM'
    )
    status: Mapped[TaskStatus] = mapped_column(
        SQLEnum(TaskStatus, name='task_status'), nullable=False, default=TaskStatus.PENDING, server_default='PENDING'
    )
    assigned_to: Mapped[str | None] = mapped_column(Text)
    complaint_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('complaints.id', ondelete='SET NULL'))
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Complaint(Base):
    __tablename__ = 'complaints'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[ComplaintCategory] = mapped_column(
        SQLEnum(ComplaintCategory, name='complaint_category'),
        nullable=False,
        default=ComplaintCategory.OTHER,
        server_default='OTHER',
    )
    priority: Mapped[TaskPriority] = mapped_column(
        TASK_PRIORITY_ENUM, nullable=False, default=TaskPriority.MEDIUM, server_default='MEDIUM'
    )
    status: Mapped[ComplaintStatus] = mapped_column(
        SQLEnum(ComplaintStatus, name='complaint_status'),
        nullable=False,
        default=ComplaintStatus.OPEN,
        server_default='OPEN',
    )
    branch_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('branches.id', ondelete='SET NULL'))
    branch_name: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    reported_by: Mapped[str | None] = mapped_column(Text)
    driver_uid: Mapped[str] = mapped_column(Text, nullable=False)
    driver_name: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    attempted_username: Mapped[str] = mapped_column(Text, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id', ondelete='SET NULL'))
    ip: Mapped[str | None] = mapped_column(Text)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id', ondelete='SET NULL'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(Text)
    entity_id: Mapped[str | None] = mapped_column(Text)
    ip: Mapped[str | None] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id', ondelete='CASCADE'), nullable=False)
    ip: Mapped[str | None] = mapped_column(Text)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
