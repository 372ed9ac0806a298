from __future__ import annotations

import logging
import secrets

from fastapi import HTTPException, Request, status

from oil_delivery.config import settings

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = 'csrf_token'
CSRF_HEADER_NAME = 'x-csrf-token'
CSRF_FORM_FIELD = 'csrf_token'
SAFE_METHODS = frozenset({'GET', 'HEAD', 'OPTIONS'})


def install_csrf_cookie_middleware(app) -> None:
    @app.middleware('http')
    async def csrf_cookie_middleware(request: Request, call_next):
        issued = request.cookies.get(CSRF_COOKIE_NAME) or secrets.token_urlsafe(24)
        request.state.csrf_token = issued

        response = await call_next(request)
        if request.cookies.get(CSRF_COOKIE_NAME) != issued:
            # Readable by the dashboard scripts so they can echo it back.
            response.set_cookie(
                key=CSRF_COOKIE_NAME,
                value=issued,
                httponly=False,
                secure=settings.session_cookie_secure,
                samesite='lax',
            )
        return response


async def _submitted_token(request: Request) -> str | None:
    token = request.headers.get(CSRF_HEADER_NAME)
    if token:
        return token
    content_type = request.headers.get('content-type', '')
    if content_type.startswith(('multipart/form-data', 'application/x-www-form-urlencoded')):
        form = await request.form()
        value = form.get(CSRF_FORM_FIELD)
        return value if isinstance(value, str) else None
    return None


async def verify_csrf(request: Request) -> None:
    """Double-submit check: the header (or multipart field) must echo the cookie."""
    if request.method in SAFE_METHODS:
        return

    submitted = await _submitted_token(request)
    expected = request.cookies.get(CSRF_COOKIE_NAME)
    if not submitted or not expected or not secrets.compare_digest(submitted, expected):
        logger.warning('CSRF check failed for %s %s', request.method, request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Invalid CSRF token')
