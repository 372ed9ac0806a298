from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from oil_delivery.models import Branch, Complaint, ComplaintCategory, ComplaintStatus, Task, TaskPriority
from oil_delivery.services.task_service import create_task

logger = logging.getLogger(__name__)

FOLLOW_UP_DAYS = {
    TaskPriority.CRITICAL: 2,
    TaskPriority.HIGH: 4,
}
DEFAULT_FOLLOW_UP_DAYS = 7
COMPLAINT_FIELDS = {'title', 'description', 'category', 'priority', 'status', 'admin_notes'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def follow_up_due_date(priority: TaskPriority, *, now: datetime | None = None) -> datetime:
    days = FOLLOW_UP_DAYS.get(priority, DEFAULT_FOLLOW_UP_DAYS)
    return (now or _now()) + timedelta(days=days)


def create_complaint(
    db: Session,
    *,
    title: str,
    description: str,
    driver_uid: str,
    driver_name: str | None = None,
    category: ComplaintCategory = ComplaintCategory.OTHER,
    priority: TaskPriority = TaskPriority.MEDIUM,
    branch_id: int | None = None,
    photos: dict[str, str] | None = None,
) -> tuple[Complaint, Task]:
    """File a complaint and open its follow-up task in the same unit of work."""
    title = (title or '').strip()
    description = (description or '').strip()
    if not title or not description:
        raise ValueError('Please fill in all required fields')

    branch_name = None
    if branch_id is not None:
        branch = db.get(Branch, branch_id)
        if branch is None:
            raise LookupError('Branch not found')
        branch_name = branch.name

    now = _now()
    complaint = Complaint(
        title=title,
        description=description,
        category=category,
        priority=priority,
        status=ComplaintStatus.OPEN,
        branch_id=branch_id,
        branch_name=branch_name,
        photos=photos or {},
        reported_by=driver_name or driver_uid,
        driver_uid=driver_uid,
        driver_name=driver_name,
        created_at=now,
        updated_at=now,
    )
    db.add(complaint)
    db.flush()

    task = create_task(
        db,
        title=f'Complaint: {title}',
        description=f'Priority: {priority.value.upper()} - {description}',
        priority=priority,
        due_date=follow_up_due_date(priority, now=now),
        complaint_id=complaint.id,
    )
    logger.info('Complaint %s filed by %s with follow-up task %s', complaint.id, driver_uid, task.id)
    return complaint, task


def list_complaints(
    db: Session,
    *,
    status: ComplaintStatus | None = None,
    driver_uid: str | None = None,
) -> list[Complaint]:
    stmt = select(Complaint).order_by(Complaint.created_at.desc(), Complaint.id.desc())
    if status is not None:
        stmt = stmt.where(Complaint.status == status)
    if driver_uid is not None:
        stmt = stmt.where(Complaint.driver_uid == driver_uid)
    return db.execute(stmt).scalars().all()


def get_complaint(db: Session, complaint_id: int) -> Complaint:
    complaint = db.get(Complaint, complaint_id)
    if not complaint:
        raise LookupError('Complaint not found')
    return complaint


def update_complaint(db: Session, *, complaint_id: int, changes: dict) -> Complaint:
    complaint = get_complaint(db, complaint_id)
    for key, value in changes.items():
        if key in COMPLAINT_FIELDS:
            setattr(complaint, key, value)
    if complaint.status == ComplaintStatus.RESOLVED and complaint.resolved_at is None:
        complaint.resolved_at = _now()
    complaint.updated_at = _now()
    db.flush()
    return complaint


def resolve_complaint(db: Session, *, complaint_id: int, resolution: str) -> Complaint:
    resolution = (resolution or '').strip()
    if not resolution:
        raise ValueError('Please provide resolution details')
    complaint = get_complaint(db, complaint_id)
    now = _now()
    complaint.status = ComplaintStatus.RESOLVED
    complaint.admin_notes = resolution
    complaint.resolved_at = now
    complaint.updated_at = now
    db.flush()
    return complaint


def delete_complaint(db: Session, *, complaint_id: int) -> None:
    db.delete(get_complaint(db, complaint_id))
    db.flush()
