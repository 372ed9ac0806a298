from __future__ import annotations

from functools import lru_cache

from oil_delivery.config import settings
from oil_delivery.services.local_photo_storage import LocalPhotoStorage
from oil_delivery.services.memory_photo_storage import MemoryPhotoStorage


@lru_cache(maxsize=1)
def get_photo_storage():
    provider = settings.photo_storage.strip().lower()
    if provider == 'memory':
        return MemoryPhotoStorage()
    return LocalPhotoStorage(settings.photo_storage_dir, base_url=settings.photo_base_url)
