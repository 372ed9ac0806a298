from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from oil_delivery.models import Branch, Complaint, Delivery, LoadSession, OilType, Principal, Task, Transaction
from oil_delivery.services.reference_service import delete_branch, delete_oil_type

logger = logging.getLogger(__name__)

PURGE_BATCH_SIZE = 500

COLLECTIONS = {
    'users': Principal,
    'deliveries': Delivery,
    'complaints': Complaint,
    'branches': Branch,
    'oil_types': OilType,
    'tasks': Task,
    'load_sessions': LoadSession,
    'transactions': Transaction,
}


def _purge_branch(db: Session, record_id: int) -> None:
    delete_branch(db, branch_id=record_id)


def _purge_oil_type(db: Session, record_id: int) -> None:
    delete_oil_type(db, oil_type_id=record_id)


# Reference rows are referenced by the ledger, so they go through the cascade deletes.
CASCADE_PURGES = {
    'branches': _purge_branch,
    'oil_types': _purge_oil_type,
}


@dataclass(frozen=True)
class CollectionUsage:
    collection: str
    count: int


@dataclass(frozen=True)
class StoreUsage:
    collections: list[CollectionUsage]
    total_records: int


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_collection(collection: str | None) -> str:
    return (collection or '').strip().lower()


def _model_for(collection: str):
    model = COLLECTIONS.get(_normalize_collection(collection))
    if model is None:
        raise ValueError(f'Unknown collection: {collection}')
    return model


def delete_records_by_date_range(
    db: Session,
    *,
    collection: str,
    start: datetime,
    end: datetime,
    batch_size: int = PURGE_BATCH_SIZE,
) -> int:
    """Hard-delete rows of ``collection`` created within ``[start, end]``.

    Branches and oil types are removed one by one with their dependent ledger
    rows and tanks, in the caller's transaction.
    """
    model = _model_for(collection)
    start, end = _as_utc(start), _as_utc(end)
    if start > end:
        raise ValueError('Start date must be on or before end date')

    ids = db.execute(
        select(model.id).where(model.created_at >= start, model.created_at <= end).order_by(model.id.asc())
    ).scalars().all()

    cascade = CASCADE_PURGES.get(_normalize_collection(collection))
    if cascade is not None:
        for record_id in ids:
            cascade(db, record_id)
        db.flush()
        logger.info('Purged %s %s records with their references', len(ids), collection)
        return len(ids)

    deleted = 0
    for offset in range(0, len(ids), batch_size):
        batch = ids[offset : offset + batch_size]
        deleted += db.execute(
            delete(model).where(model.id.in_(batch)).execution_options(synchronize_session=False)
        ).rowcount
    db.flush()
    logger.info('Purged %s %s records created between %s and %s', deleted, collection, start, end)
    return deleted


def get_store_usage(db: Session) -> StoreUsage:
    counts = [
        CollectionUsage(collection=name, count=db.execute(select(func.count()).select_from(model)).scalar_one())
        for name, model in COLLECTIONS.items()
    ]
    return StoreUsage(collections=counts, total_records=sum(item.count for item in counts))
