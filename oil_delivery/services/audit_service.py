from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from oil_delivery.models import AuditLog, AuthEvent

logger = logging.getLogger(__name__)


def _json_safe(value):
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Decimal):
        return format(value.normalize(), 'f')
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def log_auth_event(
    db: Session,
    *,
    attempted_username: str,
    success: bool,
    ip: str | None,
    user_agent: str | None,
    principal_id: int | None = None,
    failure_reason: str | None = None,
) -> None:
    if not success:
        logger.warning('Failed login for %s from %s: %s', attempted_username, ip, failure_reason)
    db.add(
        AuthEvent(
            attempted_username=attempted_username,
            success=success,
            failure_reason=failure_reason,
            principal_id=principal_id,
            ip=ip,
            user_agent=user_agent,
        )
    )


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    ip: str | None,
    entity_type: str | None = None,
    entity_id: object | None = None,
    metadata: dict | None = None,
) -> AuditLog:
    """Queue an audit row in the caller's unit of work; it is written on commit."""
    entry = AuditLog(
        actor_principal_id=actor_principal_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        meta=_json_safe(metadata or {}),
    )
    db.add(entry)
    logger.info('audit %s by %s on %s:%s', action, actor_principal_id, entity_type or '-', entry.entity_id or '-')
    return entry
