from fastapi import FastAPI, Request
from starlette.responses import Response

from oil_delivery.config import settings


ROBOTS_HEADER = "noindex, nofollow, noarchive"
PHOTO_CACHE_CONTROL = "private, max-age=86400"


def install_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Robots-Tag"] = ROBOTS_HEADER
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "same-origin"
        if request.url.path.startswith(f"{settings.photo_base_url.rstrip('/')}/"):
            response.headers["Cache-Control"] = PHOTO_CACHE_CONTROL
        else:
            response.headers.setdefault("Cache-Control", "no-store")
        return response
