from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from oil_delivery.auth import Principal, Role
from oil_delivery.config import settings
from oil_delivery.db import SessionLocal
from oil_delivery.models import Principal as PrincipalModel
from oil_delivery.models import WebSession

logger = logging.getLogger(__name__)

AUTH_EXEMPT_PATHS = frozenset({'/login', '/robots.txt', '/health'})
# Photo URLs are embedded in exports and shared outside the dashboard.
AUTH_EXEMPT_PREFIXES = ('/photos/',)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _session_expiry(now: datetime | None = None) -> datetime:
    return (now or _now()) + timedelta(minutes=settings.session_ttl_minutes)


def create_web_session(db: Session, principal_id: int, ip: str | None, user_agent: str | None) -> str:
    token = secrets.token_urlsafe(48)
    now = _now()
    db.add(
        WebSession(
            session_token=token,
            principal_id=principal_id,
            ip=ip,
            user_agent=user_agent,
            created_at=now,
            last_seen_at=now,
            expires_at=_session_expiry(now),
        )
    )
    db.flush()
    return token


def revoke_web_session(db: Session, token: str) -> None:
    web_session = db.execute(select(WebSession).where(WebSession.session_token == token)).scalar_one_or_none()
    if web_session is None or web_session.revoked_at is not None:
        return
    web_session.revoked_at = _now()


def revoke_principal_sessions(db: Session, principal_id: int) -> int:
    """Revoke every live session of a principal, e.g. after a password change."""
    result = db.execute(
        update(WebSession)
        .where(WebSession.principal_id == principal_id, WebSession.revoked_at.is_(None))
        .values(revoked_at=_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def _as_principal(row: PrincipalModel) -> Principal:
    return Principal(
        id=row.id,
        username=row.username,
        role=Role(row.role.value),
        display_name=row.display_name,
        email=row.email,
        active=row.active,
    )


def load_principal_from_token(db: Session, token: str | None) -> Principal | None:
    """Resolve a session cookie to a principal and slide its expiry forward."""
    if not token:
        return None

    row = db.execute(
        select(WebSession, PrincipalModel)
        .join(PrincipalModel, PrincipalModel.id == WebSession.principal_id)
        .where(WebSession.session_token == token)
    ).one_or_none()
    if row is None:
        return None

    web_session, principal = row
    now = _now()
    if web_session.revoked_at is not None:
        return None
    if _as_utc(web_session.expires_at) <= now:
        logger.debug('Session for principal %s expired', principal.id)
        return None

    web_session.last_seen_at = now
    web_session.expires_at = _session_expiry(now)
    return _as_principal(principal)


def is_auth_exempt(path: str) -> bool:
    return path in AUTH_EXEMPT_PATHS or path.startswith(AUTH_EXEMPT_PREFIXES)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token = request.cookies.get(settings.session_cookie_name)
        with SessionLocal() as db:
            request.state.principal = load_principal_from_token(db, token)
            db.commit()

        if request.state.principal is None and not is_auth_exempt(request.url.path):
            return JSONResponse({'detail': 'Not authenticated'}, status_code=401)
        return await call_next(request)
