from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from oil_delivery.auth import Principal, get_current_principal, home_path_for
from oil_delivery.config import settings
from oil_delivery.db import get_db
from oil_delivery.dependencies import get_client_ip
from oil_delivery.models import Principal as PrincipalModel
from oil_delivery.schemas import LoginRequest
from oil_delivery.security.csrf import verify_csrf
from oil_delivery.security.passwords import verify_and_rehash
from oil_delivery.security.sessions import create_web_session, revoke_web_session
from oil_delivery.services.audit_service import log_audit, log_auth_event

router = APIRouter(tags=['auth'])


def _invalid_login() -> JSONResponse:
    return JSONResponse({'detail': 'Invalid username or password'}, status_code=401)


@router.post('/login')
def login_submit(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    username = payload.username.strip().lower()
    ip = get_client_ip(request)
    user_agent = request.headers.get('user-agent')

    principal = db.execute(
        select(PrincipalModel).where(func.lower(PrincipalModel.username) == username)
    ).scalar_one_or_none()

    failure_reason = None
    rehashed = None
    if not principal:
        failure_reason = 'UNKNOWN_USERNAME'
    elif not principal.active:
        failure_reason = 'INACTIVE_PRINCIPAL'
    else:
        valid, rehashed = verify_and_rehash(payload.password, principal.password_hash)
        if not valid:
            failure_reason = 'BAD_PASSWORD'

    if failure_reason:
        log_auth_event(
            db,
            attempted_username=username,
            success=False,
            failure_reason=failure_reason,
            principal_id=principal.id if principal else None,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        return _invalid_login()

    token = create_web_session(db, principal.id, ip=ip, user_agent=user_agent)
    principal.last_login_at = datetime.now(tz=timezone.utc)
    if rehashed:
        principal.password_hash = rehashed
    log_auth_event(
        db,
        attempted_username=username,
        success=True,
        failure_reason=None,
        principal_id=principal.id,
        ip=ip,
        user_agent=user_agent,
    )
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='AUTH_LOGIN',
        ip=ip,
        metadata={'username': username},
    )
    db.commit()

    response = JSONResponse(
        {
            'id': principal.id,
            'username': principal.username,
            'role': principal.role.value,
            'display_name': principal.display_name,
            'home': home_path_for(principal.role),
        }
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    principal = getattr(request.state, 'principal', None)
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        revoke_web_session(db, token)

    log_audit(
        db,
        actor_principal_id=principal.id if principal else None,
        action='AUTH_LOGOUT',
        ip=get_client_ip(request),
        metadata={},
    )
    db.commit()

    response = JSONResponse({'ok': True})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return {
        'id': principal.id,
        'username': principal.username,
        'role': principal.role.value,
        'display_name': principal.display_name,
        'email': principal.email,
        'home': home_path_for(principal.role),
    }
