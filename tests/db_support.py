from __future__ import annotations

import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('PHOTO_STORAGE', 'memory')
os.environ.setdefault('REPORT_TIMEZONE', 'UTC')

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from io import BytesIO  # noqa: E402

from PIL import Image  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from oil_delivery.models import (  # noqa: E402
    Base,
    Branch,
    Delivery,
    DeliveryStatus,
    LoadingTransaction,
    LoadSession,
    LoadSessionStatus,
    OilType,
    Principal,
    PrincipalRole,
    SupplyTransaction,
)


def make_session_factory(*, foreign_keys: bool = False) -> sessionmaker:
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    if foreign_keys:
        # SQLite only enforces foreign keys when asked, Postgres always does.
        @event.listens_for(engine, 'connect')
        def _enable_foreign_keys(dbapi_connection, _record):
            dbapi_connection.execute('PRAGMA foreign_keys=ON')

    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def make_session(*, foreign_keys: bool = False) -> Session:
    return make_session_factory(foreign_keys=foreign_keys)()


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def jpeg_bytes(width: int = 64, height: int = 48, color=(40, 120, 200)) -> bytes:
    buffer = BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format='JPEG')
    return buffer.getvalue()


def add_oil_type(db: Session, name: str = 'Diesel') -> OilType:
    now = datetime.now(tz=timezone.utc)
    oil_type = OilType(name=name, active=True, created_at=now, updated_at=now)
    db.add(oil_type)
    db.flush()
    return oil_type


def add_branch(db: Session, name: str = 'Central Depot', address: str = '12 Harbour Road') -> Branch:
    now = datetime.now(tz=timezone.utc)
    branch = Branch(name=name, address=address, contact_no='555-0101', active=True, created_at=now, updated_at=now)
    db.add(branch)
    db.flush()
    return branch


def add_principal(
    db: Session,
    username: str = 'driver@example.com',
    *,
    role: PrincipalRole = PrincipalRole.DRIVER,
    display_name: str | None = 'Demo Driver',
    password_hash: str = 'not-a-real-hash',
) -> Principal:
    now = datetime.now(tz=timezone.utc)
    principal = Principal(
        username=username,
        email=username,
        display_name=display_name,
        password_hash=password_hash,
        role=role,
        active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(principal)
    db.flush()
    return principal


def add_load_session(
    db: Session,
    oil_type: OilType,
    *,
    load_session_id: str = 'LS_1700000000000_AB12',
    total: str = '1000',
    remaining: str | None = None,
    status: LoadSessionStatus = LoadSessionStatus.ACTIVE,
    created_at: datetime | None = None,
) -> LoadSession:
    moment = created_at or datetime.now(tz=timezone.utc)
    load_session = LoadSession(
        load_session_id=load_session_id,
        oil_type_id=oil_type.id,
        oil_type_name=oil_type.name,
        total_loaded_liters=Decimal(total),
        remaining_liters=Decimal(remaining if remaining is not None else total),
        total_supplied=Decimal('0'),
        load_count=1,
        status=status,
        created_by='1',
        created_at=moment,
        timestamp=moment,
    )
    db.add(load_session)
    db.flush()
    return load_session


def add_loading(
    db: Session,
    oil_type: OilType,
    *,
    load_session_id: str,
    quantity: str = '1000',
    timestamp: datetime | None = None,
    photos: dict | None = None,
    driver_uid: str = '1',
) -> LoadingTransaction:
    moment = timestamp or datetime.now(tz=timezone.utc)
    row = LoadingTransaction(
        load_session_id=load_session_id,
        oil_type_id=oil_type.id,
        oil_type_name=oil_type.name,
        quantity=Decimal(quantity),
        driver_uid=driver_uid,
        photos=photos or {},
        timestamp=moment,
        created_at=moment,
    )
    db.add(row)
    db.flush()
    return row


def add_supply(
    db: Session,
    oil_type: OilType,
    branch: Branch,
    *,
    load_session_id: str,
    quantity: str = '100',
    timestamp: datetime | None = None,
    photos: dict | None = None,
    driver_uid: str = '1',
) -> SupplyTransaction:
    moment = timestamp or datetime.now(tz=timezone.utc)
    row = SupplyTransaction(
        load_session_id=load_session_id,
        oil_type_id=oil_type.id,
        oil_type_name=oil_type.name,
        quantity=Decimal(quantity),
        branch_id=branch.id,
        branch_name=branch.name,
        branch_address=branch.address,
        driver_uid=driver_uid,
        photos=photos or {},
        timestamp=moment,
        created_at=moment,
    )
    db.add(row)
    db.flush()
    return row


def add_delivery(
    db: Session,
    oil_type: OilType,
    branch: Branch,
    *,
    load_session_id: str,
    liters: str = '100',
    timestamp: datetime | None = None,
    photos: dict | None = None,
    driver_uid: str = '1',
    **extra,
) -> Delivery:
    moment = timestamp or datetime.now(tz=timezone.utc)
    row = Delivery(
        load_session_id=load_session_id,
        branch_id=branch.id,
        branch_name=branch.name,
        branch_address=branch.address,
        oil_type_id=oil_type.id,
        oil_type_name=oil_type.name,
        delivered_liters=Decimal(liters),
        photos=photos or {},
        driver_uid=driver_uid,
        status=DeliveryStatus.COMPLETED,
        completed_at=moment,
        timestamp=moment,
        created_at=moment,
        **extra,
    )
    db.add(row)
    db.flush()
    return row
