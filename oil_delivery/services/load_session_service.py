from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from oil_delivery.models import (
    LoadingTransaction,
    LoadSession,
    LoadSessionStatus,
    SupplyTransaction,
)

logger = logging.getLogger(__name__)

LOAD_SESSION_PREFIX = 'LS_'
DIRECT_SUPPLY_PREFIX = 'DIRECT_'
_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


@dataclass(frozen=True)
class ReconcileResult:
    load_session_id: str
    total_supplied: Decimal
    remaining_liters: Decimal
    status: LoadSessionStatus
    changed: bool


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def generate_load_session_id(epoch_millis: int | None = None) -> str:
    millis = epoch_millis if epoch_millis is not None else _epoch_millis()
    suffix = ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f'{LOAD_SESSION_PREFIX}{millis}_{suffix}'


def _unique_load_session_id(db: Session) -> str:
    while True:
        candidate = generate_load_session_id()
        exists = db.execute(select(LoadSession.id).where(LoadSession.load_session_id == candidate)).first()
        if not exists:
            return candidate


def direct_supply_session_id() -> str:
    return f'{DIRECT_SUPPLY_PREFIX}{_epoch_millis()}'


def resolve_supply_session_id(load_session_id: str | None) -> str:
    value = (load_session_id or '').strip()
    return value or direct_supply_session_id()


def create_load_session(
    db: Session,
    *,
    oil_type_id: int,
    oil_type_name: str,
    total_loaded_liters: Decimal,
    load_location_id: str | None,
    load_meter_reading: Decimal | None,
    meter_reading_photo: str | None,
    created_by: str,
    driver_name: str | None = None,
) -> LoadSession:
    """Open a new load session and write its ``loading`` ledger entry.

    A new session is always created, even when the same oil type already has an
    active one. Both rows are added to the same unit of work.
    """
    if total_loaded_liters is None or total_loaded_liters <= 0:
        raise ValueError('Loaded liters must be greater than zero')

    now = _now()
    load_session = LoadSession(
        load_session_id=_unique_load_session_id(db),
        oil_type_id=oil_type_id,
        oil_type_name=oil_type_name,
        total_loaded_liters=total_loaded_liters,
        remaining_liters=total_loaded_liters,
        total_supplied=Decimal('0'),
        load_count=1,
        status=LoadSessionStatus.ACTIVE,
        load_location_id=load_location_id,
        load_meter_reading=load_meter_reading,
        meter_reading_photo=meter_reading_photo,
        created_by=created_by,
        created_at=now,
        timestamp=now,
    )
    db.add(load_session)
    db.add(
        LoadingTransaction(
            load_session_id=load_session.load_session_id,
            oil_type_id=oil_type_id,
            oil_type_name=oil_type_name,
            quantity=total_loaded_liters,
            location_id=load_location_id,
            meter_reading=load_meter_reading,
            photos={'meter_reading_photo': meter_reading_photo} if meter_reading_photo else {},
            driver_uid=created_by,
            driver_name=driver_name,
            timestamp=now,
            created_at=now,
        )
    )
    db.flush()
    logger.info(
        'Load session %s opened: %sL of %s by %s',
        load_session.load_session_id,
        total_loaded_liters,
        oil_type_name,
        created_by,
    )
    return load_session


def get_active_load_sessions(db: Session) -> list[LoadSession]:
    return db.execute(
        select(LoadSession)
        .where(LoadSession.status == LoadSessionStatus.ACTIVE)
        .order_by(LoadSession.created_at.desc(), LoadSession.id.desc())
    ).scalars().all()


def get_load_session(db: Session, load_session_id: str) -> LoadSession | None:
    return db.execute(select(LoadSession).where(LoadSession.load_session_id == load_session_id)).scalar_one_or_none()


def total_supplied_for(db: Session, load_session_id: str) -> Decimal:
    quantities = db.execute(
        select(SupplyTransaction.quantity).where(SupplyTransaction.load_session_id == load_session_id)
    ).scalars().all()
    return sum((Decimal(str(quantity)) for quantity in quantities), Decimal('0'))


def reconcile_load_session(db: Session, load_session: LoadSession, *, supplied_at: datetime | None = None) -> ReconcileResult:
    """Re-derive the session balance from its supply transactions.

    Completed sessions stay completed even when the recomputed balance is
    positive again.
    """
    total_supplied = total_supplied_for(db, load_session.load_session_id)
    remaining = Decimal(str(load_session.total_loaded_liters)) - total_supplied
    previous = (
        Decimal(str(load_session.remaining_liters)),
        Decimal(str(load_session.total_supplied or 0)),
        load_session.status,
    )

    load_session.remaining_liters = remaining
    load_session.total_supplied = total_supplied
    if supplied_at is not None:
        load_session.last_supply_at = supplied_at
    if remaining <= 0 and load_session.status != LoadSessionStatus.COMPLETED:
        load_session.status = LoadSessionStatus.COMPLETED
        load_session.completed_at = supplied_at or _now()

    changed = previous != (remaining, total_supplied, load_session.status)
    return ReconcileResult(
        load_session_id=load_session.load_session_id,
        total_supplied=total_supplied,
        remaining_liters=remaining,
        status=load_session.status,
        changed=changed,
    )


def reconcile_all_load_sessions(db: Session) -> list[ReconcileResult]:
    sessions = db.execute(select(LoadSession).order_by(LoadSession.id.asc())).scalars().all()
    results = [reconcile_load_session(db, load_session) for load_session in sessions]
    db.flush()
    drifted = [result for result in results if result.changed]
    if drifted:
        logger.warning('Reconciled %s load sessions with drifted balances', len(drifted))
    return results
