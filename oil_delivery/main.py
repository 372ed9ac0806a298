import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import OperationalError

from oil_delivery.auth import get_current_principal, home_path_for
from oil_delivery.config import settings
from oil_delivery.routers import admin, auth, driver
from oil_delivery.security.csrf import install_csrf_cookie_middleware
from oil_delivery.security.headers import install_security_headers
from oil_delivery.security.sessions import install_auth_session_middleware
from oil_delivery.services.local_photo_storage import LocalPhotoStorage
from oil_delivery.services.provider_factory import get_photo_storage

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = FastAPI(title='Oil Delivery Dashboard')
app.state.photo_storage = get_photo_storage()

if isinstance(app.state.photo_storage, LocalPhotoStorage):
    app.state.photo_storage.base_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.photo_base_url.rstrip('/'),
        StaticFiles(directory=str(app.state.photo_storage.base_dir)),
        name='photos',
    )

install_security_headers(app)
install_csrf_cookie_middleware(app)
install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(driver.router)
app.include_router(admin.router)


@app.exception_handler(OperationalError)
async def store_unavailable(request: Request, exc: OperationalError):
    logger.error('Store error on %s %s: %s', request.method, request.url.path, exc)
    return JSONResponse({'detail': 'Service temporarily unavailable. Please try again.'}, status_code=503)


@app.get('/')
def root(request: Request):
    principal = get_current_principal(request)
    return RedirectResponse(home_path_for(principal.role), status_code=303)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
