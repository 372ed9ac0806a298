from fastapi import Request

from oil_delivery.services.photo_storage import PhotoStorage


def get_photo_storage(request: Request) -> PhotoStorage:
    return request.app.state.photo_storage


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None
