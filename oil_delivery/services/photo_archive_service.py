from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from io import BytesIO
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from oil_delivery.config import settings
from oil_delivery.models import SupplyTransaction, Transaction
from oil_delivery.services.photo_storage import MANAGED_PHOTO_FOLDERS, PhotoStorage

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9._-]')


@dataclass(frozen=True)
class PhotoStatistics:
    photo_count: int
    transaction_count: int


@dataclass(frozen=True)
class PhotoArchive:
    filename: str
    content: bytes
    photo_count: int
    skipped: int


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def date_range_bounds(start: date, end: date, *, tz: str | None = None) -> tuple[datetime, datetime]:
    """Whole-day bounds: ``start`` at midnight through the last microsecond of ``end``."""
    if start > end:
        raise ValueError('Start date must be on or before end date')
    zone = ZoneInfo(tz or settings.report_timezone)
    return (
        datetime.combine(start, time.min, tzinfo=zone),
        datetime.combine(end, time.max, tzinfo=zone),
    )


def effective_timestamp(transaction: Transaction) -> datetime | None:
    moment = transaction.timestamp or transaction.created_at
    if moment is None and isinstance(transaction, SupplyTransaction):
        moment = transaction.actual_delivery_start_time
    return _as_utc(moment)


def transactions_in_range(db: Session, start: date, end: date) -> list[Transaction]:
    lower, upper = date_range_bounds(start, end)
    rows = db.execute(select(Transaction).order_by(Transaction.id.asc())).scalars().all()
    found = []
    for row in rows:
        moment = effective_timestamp(row)
        if moment is not None and lower <= moment <= upper:
            found.append(row)
    return found


def _photo_items(transaction: Transaction) -> list[tuple[str, str]]:
    return [(key, url) for key, url in (transaction.photos or {}).items() if isinstance(url, str) and url]


def archive_entry_name(transaction: Transaction, photo_type: str) -> str:
    moment = effective_timestamp(transaction)
    day = moment.date().isoformat() if moment else 'unknown'
    branch_name = getattr(transaction, 'branch_name', None) or 'Unknown'
    return _UNSAFE_FILENAME_CHARS.sub('_', f'{day}_{branch_name}_{photo_type}_{transaction.id}.jpg')


def get_photo_statistics(db: Session, *, start: date, end: date) -> PhotoStatistics:
    transactions = transactions_in_range(db, start, end)
    photo_count = sum(len(_photo_items(row)) for row in transactions)
    return PhotoStatistics(photo_count=photo_count, transaction_count=len(transactions))


def download_photos_in_date_range(db: Session, *, storage: PhotoStorage, start: date, end: date) -> PhotoArchive:
    """Bundle every transaction photo in the range into a ZIP archive.

    Raises ``LookupError`` when the range holds no transactions or no photos.
    Photos that cannot be downloaded are left out of the archive.
    """
    transactions = transactions_in_range(db, start, end)
    if not transactions:
        raise LookupError('No transactions found in the selected date range')

    photos = [
        (archive_entry_name(row, photo_type), url)
        for row in transactions
        for photo_type, url in _photo_items(row)
    ]
    if not photos:
        raise LookupError('No photos found in the selected date range')

    buffer = BytesIO()
    written = 0
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        for entry_name, url in photos:
            try:
                data = storage.download_photo(url)
            except Exception:
                logger.warning('Skipping photo %s in archive, download failed', url, exc_info=True)
                continue
            zf.writestr(entry_name, data)
            written += 1

    return PhotoArchive(
        filename=f'photos_{start.isoformat()}_to_{end.isoformat()}.zip',
        content=buffer.getvalue(),
        photo_count=written,
        skipped=len(photos) - written,
    )


def delete_photos_in_date_range(db: Session, *, storage: PhotoStorage, start: date, end: date) -> int:
    """Delete stored photos of transactions in the range and clear their photo maps.

    Only objects in the managed photo folders are removed. Returns the number of
    deleted objects.
    """
    deleted = 0
    for transaction in transactions_in_range(db, start, end):
        items = _photo_items(transaction)
        if not items:
            continue
        for photo_type, url in items:
            if storage.folder_of(url) not in MANAGED_PHOTO_FOLDERS:
                logger.info('Skipping photo outside managed folders: %s', url)
                continue
            try:
                storage.delete_photo(url)
            except Exception:
                logger.warning('Failed to delete %s photo of transaction %s', photo_type, transaction.id, exc_info=True)
                continue
            deleted += 1
        transaction.photos = {}
    db.flush()
    logger.info('Deleted %s photos between %s and %s', deleted, start, end)
    return deleted
