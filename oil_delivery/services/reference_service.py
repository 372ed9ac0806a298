from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from oil_delivery.models import Branch, Delivery, LoadSession, OilTank, OilType, SupplyTransaction, Transaction

logger = logging.getLogger(__name__)

OIL_TYPE_FIELDS = {'name', 'color', 'active'}
BRANCH_FIELDS = {'name', 'address', 'contact_no', 'active'}


@dataclass(frozen=True)
class OilTankInput:
    capacity: int
    oil_type_id: int
    current_level: int = 0


@dataclass(frozen=True)
class CascadeDeleteResult:
    transactions: int
    deliveries: int
    load_sessions: int = 0
    oil_tanks: int = 0


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _clean_name(value: str | None, label: str) -> str:
    name = (value or '').strip()
    if not name:
        raise ValueError(f'{label} name is required')
    return name


def _bulk_delete(db: Session, stmt) -> int:
    return db.execute(stmt.execution_options(synchronize_session=False)).rowcount


def _apply_changes(target, changes: dict, allowed: set[str]) -> None:
    for key, value in changes.items():
        if key not in allowed:
            continue
        setattr(target, key, value)


# ----- Oil types -----


def create_oil_type(db: Session, *, name: str, color: str | None = None) -> OilType:
    now = _now()
    oil_type = OilType(name=_clean_name(name, 'Oil type'), color=color, active=True, created_at=now, updated_at=now)
    db.add(oil_type)
    db.flush()
    return oil_type


def list_oil_types(db: Session, *, active_only: bool = False) -> list[OilType]:
    stmt = select(OilType).order_by(OilType.name.asc(), OilType.id.asc())
    if active_only:
        stmt = stmt.where(OilType.active.is_(True))
    return db.execute(stmt).scalars().all()


def get_oil_type(db: Session, oil_type_id: int) -> OilType:
    oil_type = db.get(OilType, oil_type_id)
    if not oil_type:
        raise LookupError('Oil type not found')
    return oil_type


def update_oil_type(db: Session, *, oil_type_id: int, changes: dict) -> OilType:
    oil_type = get_oil_type(db, oil_type_id)
    if 'name' in changes:
        changes = {**changes, 'name': _clean_name(changes['name'], 'Oil type')}
    _apply_changes(oil_type, changes, OIL_TYPE_FIELDS)
    oil_type.updated_at = _now()
    db.flush()
    return oil_type


def delete_oil_type(db: Session, *, oil_type_id: int) -> CascadeDeleteResult:
    """Delete an oil type with every transaction, delivery, load session and tank that references it.

    All statements run in the caller's transaction, so a failure part way leaves
    nothing deleted once the session is rolled back.
    """
    oil_type = get_oil_type(db, oil_type_id)
    transactions = _bulk_delete(db, delete(Transaction).where(Transaction.oil_type_id == oil_type_id))
    deliveries = _bulk_delete(db, delete(Delivery).where(Delivery.oil_type_id == oil_type_id))
    load_sessions = _bulk_delete(db, delete(LoadSession).where(LoadSession.oil_type_id == oil_type_id))
    oil_tanks = _bulk_delete(db, delete(OilTank).where(OilTank.oil_type_id == oil_type_id))
    db.delete(oil_type)
    db.flush()
    logger.info(
        'Oil type %s deleted with %s transactions, %s deliveries, %s load sessions, %s tanks',
        oil_type_id,
        transactions,
        deliveries,
        load_sessions,
        oil_tanks,
    )
    return CascadeDeleteResult(
        transactions=transactions,
        deliveries=deliveries,
        load_sessions=load_sessions,
        oil_tanks=oil_tanks,
    )


# ----- Branches -----


def _build_tanks(db: Session, tanks: list[OilTankInput]) -> list[OilTank]:
    built: list[OilTank] = []
    for tank in tanks:
        if tank.capacity < 0:
            raise ValueError('Tank capacity cannot be negative')
        oil_type = get_oil_type(db, tank.oil_type_id)
        built.append(
            OilTank(
                capacity=tank.capacity,
                oil_type_id=oil_type.id,
                oil_type_name=oil_type.name,
                current_level=tank.current_level,
            )
        )
    return built


def create_branch(
    db: Session,
    *,
    name: str,
    address: str = '',
    contact_no: str = '',
    oil_tanks: list[OilTankInput] | None = None,
) -> Branch:
    now = _now()
    branch = Branch(
        name=_clean_name(name, 'Branch'),
        address=(address or '').strip(),
        contact_no=(contact_no or '').strip(),
        active=True,
        created_at=now,
        updated_at=now,
    )
    branch.oil_tanks = _build_tanks(db, oil_tanks or [])
    db.add(branch)
    db.flush()
    return branch


def list_branches(db: Session, *, active_only: bool = False) -> list[Branch]:
    stmt = select(Branch).order_by(Branch.name.asc(), Branch.id.asc())
    if active_only:
        stmt = stmt.where(Branch.active.is_(True))
    return db.execute(stmt).scalars().all()


def get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.get(Branch, branch_id)
    if not branch:
        raise LookupError('Branch not found')
    return branch


def update_branch(
    db: Session,
    *,
    branch_id: int,
    changes: dict,
    oil_tanks: list[OilTankInput] | None = None,
) -> Branch:
    branch = get_branch(db, branch_id)
    if 'name' in changes:
        changes = {**changes, 'name': _clean_name(changes['name'], 'Branch')}
    _apply_changes(branch, changes, BRANCH_FIELDS)
    if oil_tanks is not None:
        branch.oil_tanks = _build_tanks(db, oil_tanks)
    branch.updated_at = _now()
    db.flush()
    return branch


def delete_branch(db: Session, *, branch_id: int) -> CascadeDeleteResult:
    branch = get_branch(db, branch_id)
    transactions = _bulk_delete(db, delete(SupplyTransaction).where(SupplyTransaction.branch_id == branch_id))
    deliveries = _bulk_delete(db, delete(Delivery).where(Delivery.branch_id == branch_id))
    oil_tanks = len(branch.oil_tanks)
    db.delete(branch)
    db.flush()
    logger.info('Branch %s deleted with %s transactions, %s deliveries', branch_id, transactions, deliveries)
    return CascadeDeleteResult(transactions=transactions, deliveries=deliveries, oil_tanks=oil_tanks)
