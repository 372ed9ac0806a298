from __future__ import annotations

from oil_delivery.services.photo_storage import PhotoNotFoundError, generate_photo_filename

URL_SCHEME = 'memory://'


class MemoryPhotoStorage:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    def upload_photo(self, data: bytes, folder: str) -> str:
        url = f'{URL_SCHEME}{folder.strip("/")}/{generate_photo_filename()}'
        self.objects[url] = data
        return url

    def download_photo(self, url: str) -> bytes:
        try:
            return self.objects[url]
        except KeyError as exc:
            raise PhotoNotFoundError(f'Photo not found: {url}') from exc

    def delete_photo(self, url: str) -> None:
        self.objects.pop(url, None)

    def folder_of(self, url: str) -> str | None:
        if not url.startswith(URL_SCHEME):
            return None
        relative = url[len(URL_SCHEME) :]
        if '/' not in relative:
            return None
        return relative.split('/', 1)[0]
