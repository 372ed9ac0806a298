from __future__ import annotations

import csv
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from oil_delivery.config import settings
from oil_delivery.models import Branch, Delivery, OilType, Principal, SupplyTransaction, Transaction, TransactionType

UNKNOWN_DRIVER = 'Unknown Driver'
UNKNOWN_BRANCH = 'Unknown Branch'
UNKNOWN_OIL_TYPE = 'Unknown Oil Type'
UNKNOWN_DATE = 'Unknown Date'

CSV_HEADERS = [
    'Transaction ID',
    'Type',
    'Date',
    'Driver Name',
    'Oil Type',
    'Quantity (L)',
    'Branch',
    'Start Meter',
    'End Meter',
    'Delivery Order',
    'Tank Level Photo',
    'Hose Connection Photo',
    'Final Tank Photo',
    'Status',
]
CSV_MEDIA_TYPE = 'text/csv;charset=utf-8'

# Older records carry photos under these alternate keys.
_TANK_BEFORE_KEYS = ('tank_level_before', 'tank_level')
_HOSE_KEYS = ('hose_connection',)
_TANK_AFTER_KEYS = ('tank_level_after', 'final_tank_level')


@dataclass
class ReferenceLookup:
    drivers: dict[str, Principal] = field(default_factory=dict)
    branches: dict[int, Branch] = field(default_factory=dict)
    oil_types: dict[int, OilType] = field(default_factory=dict)


@dataclass
class UnifiedEntry:
    id: int
    source: str
    type: str
    timestamp: datetime | None
    driver_uid: str | None
    driver_name: str
    oil_type_name: str
    quantity: Decimal
    branch_name: str | None
    load_session_id: str
    start_meter_reading: Decimal | None = None
    end_meter_reading: Decimal | None = None
    delivery_order_id: str | None = None
    photos: dict[str, str] = field(default_factory=dict)
    status: str = 'completed'


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _report_zone(tz: str | None = None) -> ZoneInfo:
    return ZoneInfo(tz or settings.report_timezone)


def load_reference_lookup(db: Session) -> ReferenceLookup:
    return ReferenceLookup(
        drivers={str(row.id): row for row in db.execute(select(Principal)).scalars().all()},
        branches={row.id: row for row in db.execute(select(Branch)).scalars().all()},
        oil_types={row.id: row for row in db.execute(select(OilType)).scalars().all()},
    )


def resolve_driver_name(lookup: ReferenceLookup, driver_uid: str | None, recorded_name: str | None = None) -> str:
    driver = lookup.drivers.get(driver_uid) if driver_uid else None
    if driver is not None and (driver.display_name or driver.email):
        return driver.display_name or driver.email
    return recorded_name or driver_uid or UNKNOWN_DRIVER


def resolve_branch_name(lookup: ReferenceLookup, branch_id: int | None, recorded_name: str | None = None) -> str:
    branch = lookup.branches.get(branch_id) if branch_id is not None else None
    if branch is not None and branch.name:
        return branch.name
    return recorded_name or UNKNOWN_BRANCH


def resolve_oil_type_name(lookup: ReferenceLookup, oil_type_id: int | None, recorded_name: str | None = None) -> str:
    oil_type = lookup.oil_types.get(oil_type_id) if oil_type_id is not None else None
    if oil_type is not None and oil_type.name:
        return oil_type.name
    return recorded_name or UNKNOWN_OIL_TYPE


def get_all_transactions(db: Session, *, driver_uid: str | None = None) -> list[Transaction]:
    stmt = select(Transaction).order_by(Transaction.timestamp.desc(), Transaction.id.desc())
    if driver_uid is not None:
        stmt = stmt.where(Transaction.driver_uid == driver_uid)
    return db.execute(stmt).scalars().all()


def get_all_deliveries(db: Session) -> list[Delivery]:
    return db.execute(select(Delivery).order_by(Delivery.timestamp.desc(), Delivery.id.desc())).scalars().all()


def get_recent_deliveries(db: Session, *, limit: int = 5) -> list[Delivery]:
    return db.execute(
        select(Delivery).order_by(Delivery.timestamp.desc(), Delivery.id.desc()).limit(limit)
    ).scalars().all()


def _delivery_photos(delivery: Delivery) -> dict[str, str]:
    photos = {key: url for key, url in (delivery.photos or {}).items() if url}
    legacy = (
        ('tank_level', _TANK_BEFORE_KEYS, delivery.tank_level_photo),
        ('hose_connection', _HOSE_KEYS, delivery.hose_connection_photo),
        ('tank_level_after', _TANK_AFTER_KEYS, delivery.final_tank_level_photo),
    )
    # Legacy columns only fill photo slots the map does not already cover.
    for key, aliases, url in legacy:
        if url and not any(alias in photos for alias in aliases):
            photos[key] = url
    return photos


def delivery_entry(delivery: Delivery, lookup: ReferenceLookup) -> UnifiedEntry:
    status = delivery.status.value if delivery.status else 'completed'
    return UnifiedEntry(
        id=delivery.id,
        source='delivery',
        type=TransactionType.SUPPLY.value,
        timestamp=_as_utc(delivery.completed_at or delivery.timestamp or delivery.created_at),
        driver_uid=delivery.driver_uid,
        driver_name=resolve_driver_name(lookup, delivery.driver_uid, delivery.driver_name),
        oil_type_name=resolve_oil_type_name(lookup, delivery.oil_type_id, delivery.oil_type_name),
        quantity=Decimal(str(delivery.delivered_liters)),
        branch_name=resolve_branch_name(lookup, delivery.branch_id, delivery.branch_name),
        load_session_id=delivery.load_session_id,
        start_meter_reading=delivery.start_meter_reading,
        end_meter_reading=delivery.end_meter_reading,
        delivery_order_id=delivery.delivery_order_id,
        photos=_delivery_photos(delivery),
        status=status,
    )


def transaction_entry(transaction: Transaction, lookup: ReferenceLookup) -> UnifiedEntry:
    entry = UnifiedEntry(
        id=transaction.id,
        source='transaction',
        type=transaction.type.value,
        timestamp=_as_utc(transaction.timestamp or transaction.created_at),
        driver_uid=transaction.driver_uid,
        driver_name=resolve_driver_name(lookup, transaction.driver_uid, transaction.driver_name),
        oil_type_name=resolve_oil_type_name(lookup, transaction.oil_type_id, transaction.oil_type_name),
        quantity=Decimal(str(transaction.quantity)),
        branch_name=None,
        load_session_id=transaction.load_session_id,
        photos={key: url for key, url in (transaction.photos or {}).items() if url},
    )
    if isinstance(transaction, SupplyTransaction):
        entry.branch_name = resolve_branch_name(lookup, transaction.branch_id, transaction.branch_name)
        entry.start_meter_reading = transaction.start_meter_reading
        entry.end_meter_reading = transaction.end_meter_reading
        entry.delivery_order_id = transaction.delivery_order_id
    return entry


def build_unified_entries(
    deliveries: list[Delivery],
    transactions: list[Transaction],
    lookup: ReferenceLookup,
) -> list[UnifiedEntry]:
    """Deliveries first, then transactions. Mirror rows are kept as duplicates."""
    return [delivery_entry(row, lookup) for row in deliveries] + [transaction_entry(row, lookup) for row in transactions]


def _sort_key(entry: UnifiedEntry):
    return entry.timestamp or datetime.min.replace(tzinfo=timezone.utc)


def recent_activity(entries: list[UnifiedEntry], *, limit: int = 10) -> list[UnifiedEntry]:
    return sorted(entries, key=_sort_key, reverse=True)[:limit]


def daily_oil_totals(entries: list[UnifiedEntry], day: date, *, tz: str | None = None) -> dict[str, Decimal]:
    """Sum supplied liters per oil type for entries dated ``day`` in the report timezone."""
    zone = _report_zone(tz)
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal('0'))
    for entry in entries:
        if entry.type != TransactionType.SUPPLY.value or entry.timestamp is None:
            continue
        if entry.timestamp.astimezone(zone).date() != day:
            continue
        totals[entry.oil_type_name] += entry.quantity
    return dict(totals)


def today_in_report_zone(tz: str | None = None) -> date:
    return datetime.now(tz=_report_zone(tz)).date()


def _first_photo(photos: dict[str, str], keys: tuple[str, ...]) -> str:
    for key in keys:
        if photos.get(key):
            return photos[key]
    return ''


def format_report_date(value: datetime | None, *, tz: str | None = None) -> str:
    if value is None:
        return UNKNOWN_DATE
    local = _as_utc(value).astimezone(_report_zone(tz))
    return f'{local:%m/%d/%Y, %I:%M:%S %p}'


def _plain(value) -> str:
    if value is None:
        return ''
    if isinstance(value, Decimal):
        return format(value.normalize(), 'f')
    return str(value)


def csv_row(entry: UnifiedEntry, *, tz: str | None = None) -> list[str]:
    return [
        str(entry.id),
        'Supply' if entry.source == 'delivery' else entry.type,
        format_report_date(entry.timestamp, tz=tz),
        entry.driver_name,
        entry.oil_type_name,
        _plain(entry.quantity),
        entry.branch_name or '',
        _plain(entry.start_meter_reading),
        _plain(entry.end_meter_reading),
        entry.delivery_order_id or '',
        _first_photo(entry.photos, _TANK_BEFORE_KEYS),
        _first_photo(entry.photos, _HOSE_KEYS),
        _first_photo(entry.photos, _TANK_AFTER_KEYS),
        entry.status or 'completed',
    ]


def build_transactions_csv(entries: list[UnifiedEntry], *, tz: str | None = None) -> str:
    sio = StringIO()
    writer = csv.writer(sio, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        writer.writerow(csv_row(entry, tz=tz))
    return sio.getvalue()


def export_transactions_csv(db: Session) -> tuple[str, int]:
    lookup = load_reference_lookup(db)
    entries = build_unified_entries(get_all_deliveries(db), get_all_transactions(db), lookup)
    return build_transactions_csv(entries), len(entries)


def transactions_csv_filename(today: date | None = None) -> str:
    day = today or datetime.now(tz=timezone.utc).date()
    return f'oil_transactions_{day.isoformat()}.csv'
