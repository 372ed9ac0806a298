from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from typing import Protocol

DELIVERY_PHOTOS_FOLDER = 'delivery-photos'
LOADING_PHOTOS_FOLDER = 'loading-photos'
MANAGED_PHOTO_FOLDERS = (DELIVERY_PHOTOS_FOLDER, LOADING_PHOTOS_FOLDER)

_BASE36 = string.digits + string.ascii_lowercase


class PhotoNotFoundError(LookupError):
    pass


class PhotoStorage(Protocol):
    def upload_photo(self, data: bytes, folder: str) -> str: ...

    def download_photo(self, url: str) -> bytes: ...

    def delete_photo(self, url: str) -> None: ...

    def folder_of(self, url: str) -> str | None: ...


def generate_photo_filename(now: datetime | None = None) -> str:
    moment = now or datetime.now(tz=timezone.utc)
    stamp = moment.isoformat().replace(':', '-').replace('.', '-')
    suffix = ''.join(secrets.choice(_BASE36) for _ in range(9))
    return f'{stamp}-{suffix}.jpg'
