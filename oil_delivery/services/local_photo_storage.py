from __future__ import annotations

from pathlib import Path

from oil_delivery.services.photo_storage import PhotoNotFoundError, generate_photo_filename


class LocalPhotoStorage:
    """Stores photos on disk; URLs are ``<base_url>/<folder>/<filename>``."""

    def __init__(self, base_dir: str | Path, base_url: str = '/photos') -> None:
        self.base_dir = Path(base_dir).resolve()
        self.base_url = base_url.rstrip('/')

    def _path_for(self, url: str) -> Path:
        prefix = f'{self.base_url}/'
        if not url.startswith(prefix):
            raise PhotoNotFoundError(f'Photo URL is not managed by this storage: {url}')
        path = (self.base_dir / url[len(prefix) :]).resolve()
        if self.base_dir not in path.parents:
            raise PhotoNotFoundError(f'Photo URL is outside the storage root: {url}')
        return path

    def upload_photo(self, data: bytes, folder: str) -> str:
        folder = folder.strip('/')
        filename = generate_photo_filename()
        target_dir = self.base_dir / folder
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / filename).write_bytes(data)
        return f'{self.base_url}/{folder}/{filename}'

    def download_photo(self, url: str) -> bytes:
        path = self._path_for(url)
        if not path.is_file():
            raise PhotoNotFoundError(f'Photo not found: {url}')
        return path.read_bytes()

    def delete_photo(self, url: str) -> None:
        self._path_for(url).unlink(missing_ok=True)

    def folder_of(self, url: str) -> str | None:
        prefix = f'{self.base_url}/'
        if not url.startswith(prefix):
            return None
        relative = url[len(prefix) :]
        if '/' not in relative:
            return None
        return relative.split('/', 1)[0]
