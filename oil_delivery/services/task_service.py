from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from oil_delivery.models import Task, TaskPriority, TaskStatus

TASK_FIELDS = {'title', 'description', 'priority', 'status', 'assigned_to', 'due_date'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def create_task(
    db: Session,
    *,
    title: str,
    due_date: datetime | None,
    description: str = '',
    priority: TaskPriority | None = None,
    assigned_to: str | None = None,
    complaint_id: int | None = None,
) -> Task:
    title = (title or '').strip()
    if not title or due_date is None:
        raise ValueError('Title and due date are required')

    now = _now()
    task = Task(
        title=title,
        description=description or '',
        priority=priority or TaskPriority.MEDIUM,
        status=TaskStatus.PENDING,
        assigned_to=assigned_to or None,
        complaint_id=complaint_id,
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )
    db.add(task)
    db.flush()
    return task


def list_tasks(db: Session, *, status: TaskStatus | None = None) -> list[Task]:
    stmt = select(Task).order_by(Task.created_at.desc(), Task.id.desc())
    if status is not None:
        stmt = stmt.where(Task.status == status)
    return db.execute(stmt).scalars().all()


def get_task(db: Session, task_id: int) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise LookupError('Task not found')
    return task


def update_task(db: Session, *, task_id: int, changes: dict) -> Task:
    task = get_task(db, task_id)
    if 'title' in changes and not (changes['title'] or '').strip():
        raise ValueError('Title and due date are required')
    if 'due_date' in changes and changes['due_date'] is None:
        raise ValueError('Title and due date are required')
    for key, value in changes.items():
        if key in TASK_FIELDS:
            setattr(task, key, value)
    task.updated_at = _now()
    db.flush()
    return task


def delete_task(db: Session, *, task_id: int) -> None:
    db.delete(get_task(db, task_id))
    db.flush()
