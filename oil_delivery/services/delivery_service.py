from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from oil_delivery.models import Branch, Delivery, DeliveryStatus, SupplyTransaction, Transaction, TransactionType
from oil_delivery.services import load_session_service
from oil_delivery.services.photo_service import add_watermark
from oil_delivery.services.photo_storage import DELIVERY_PHOTOS_FOLDER, LOADING_PHOTOS_FOLDER, PhotoStorage

logger = logging.getLogger(__name__)

SUPPLY_PHOTO_KEYS = ('tank_level_before', 'hose_connection', 'tank_level_after')


class SupplyValidationError(ValueError):
    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title
        self.message = message


@dataclass
class DeliveryRecord:
    load_session_id: str
    branch_id: int
    branch_name: str
    oil_type_id: int
    oil_type_name: str
    delivered_liters: Decimal
    driver_uid: str
    driver_name: str | None = None
    delivery_order_id: str | None = None
    start_meter_reading: Decimal | None = None
    end_meter_reading: Decimal | None = None
    actual_delivery_start_time: datetime | None = None
    photos: dict[str, str] = field(default_factory=dict)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def validate_supply_input(
    *,
    delivered_liters: Decimal | None,
    branch_id: int | None,
    oil_type_id: int | None,
    start_meter_reading: Decimal | None = None,
    end_meter_reading: Decimal | None = None,
) -> None:
    if delivered_liters is None or delivered_liters <= 0 or not branch_id or not oil_type_id:
        raise SupplyValidationError(
            'Missing Information',
            'Please fill in all required fields: oil supplied, branch and oil type.',
        )
    if start_meter_reading is not None and end_meter_reading is not None and start_meter_reading > end_meter_reading:
        raise SupplyValidationError(
            'Invalid Meter Readings',
            'Start meter reading cannot be greater than end meter reading.',
        )


def _branch_address(db: Session, branch_id: int) -> str:
    try:
        branch = db.get(Branch, branch_id)
    except Exception:
        logger.warning('Branch address lookup failed for branch %s', branch_id, exc_info=True)
        return ''
    if branch is None:
        return ''
    return branch.address or ''


def complete_delivery(db: Session, record: DeliveryRecord) -> Delivery:
    """Record a supply and bring its load session balance up to date.

    The delivery, its mirror ``supply`` transaction and the session update all
    land in the caller's unit of work. Supplies against an unknown session id
    (direct supplies) are stored without touching any session.
    Meter readings are checked by the caller with ``validate_supply_input``
    before this runs; only the liters, branch and oil type are re-checked here.
    """
    validate_supply_input(
        delivered_liters=record.delivered_liters,
        branch_id=record.branch_id,
        oil_type_id=record.oil_type_id,
    )

    now = _now()
    branch_address = _branch_address(db, record.branch_id)
    photos = {key: url for key, url in (record.photos or {}).items() if url}

    delivery = Delivery(
        load_session_id=record.load_session_id,
        delivery_order_id=record.delivery_order_id,
        branch_id=record.branch_id,
        branch_name=record.branch_name,
        branch_address=branch_address,
        oil_type_id=record.oil_type_id,
        oil_type_name=record.oil_type_name,
        delivered_liters=record.delivered_liters,
        start_meter_reading=record.start_meter_reading,
        end_meter_reading=record.end_meter_reading,
        photos=photos,
        tank_level_photo=photos.get('tank_level_before'),
        hose_connection_photo=photos.get('hose_connection'),
        final_tank_level_photo=photos.get('tank_level_after'),
        driver_uid=record.driver_uid,
        driver_name=record.driver_name,
        status=DeliveryStatus.COMPLETED,
        completed_at=now,
        timestamp=now,
        created_at=now,
    )
    db.add(delivery)
    db.add(
        SupplyTransaction(
            load_session_id=record.load_session_id,
            oil_type_id=record.oil_type_id,
            oil_type_name=record.oil_type_name,
            quantity=record.delivered_liters,
            branch_id=record.branch_id,
            branch_name=record.branch_name,
            branch_address=branch_address,
            delivery_order_id=record.delivery_order_id,
            start_meter_reading=record.start_meter_reading,
            end_meter_reading=record.end_meter_reading,
            actual_delivery_start_time=record.actual_delivery_start_time,
            photos=dict(photos),
            driver_uid=record.driver_uid,
            driver_name=record.driver_name,
            timestamp=now,
            created_at=now,
        )
    )
    db.flush()

    load_session = load_session_service.get_load_session(db, record.load_session_id)
    if load_session is None:
        logger.debug('No load session %s, balance update skipped', record.load_session_id)
    else:
        result = load_session_service.reconcile_load_session(db, load_session, supplied_at=now)
        logger.info(
            'Delivery of %sL to %s recorded against %s, remaining %sL (%s)',
            record.delivered_liters,
            record.branch_name,
            record.load_session_id,
            result.remaining_liters,
            result.status.value,
        )
        db.flush()
    return delivery


def update_photos_with_correct_watermarks(
    db: Session,
    *,
    transaction: Transaction,
    branch_name: str,
    storage: PhotoStorage,
) -> dict[str, str]:
    """Re-stamp every photo of ``transaction`` with ``branch_name``.

    Each photo is downloaded, watermarked again and uploaded as a new object in
    the folder of the transaction type (``loading-photos`` for loadings,
    ``delivery-photos`` otherwise). A photo that fails at any step keeps its
    original URL.
    """
    folder = LOADING_PHOTOS_FOLDER if transaction.type == TransactionType.LOADING else DELIVERY_PHOTOS_FOLDER
    updated: dict[str, str] = {}
    for key, url in (transaction.photos or {}).items():
        if not url:
            continue
        try:
            original = storage.download_photo(url)
            stamped = add_watermark(original, branch_name=branch_name, taken_at=transaction.timestamp)
            updated[key] = storage.upload_photo(stamped, folder)
        except Exception:
            logger.warning('Watermark repair failed for %s photo of transaction %s', key, transaction.id, exc_info=True)
            updated[key] = url
    transaction.photos = updated
    db.flush()
    return updated
