from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from io import BytesIO
from zoneinfo import ZoneInfo

from PIL import Image, ImageDraw, ImageFont, ImageOps

from oil_delivery.config import settings
from oil_delivery.services.photo_storage import PhotoStorage

logger = logging.getLogger(__name__)

_BOLD_FONT_PATHS = [
    '/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf',
    '/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf',
]


def _load_font(size: int):
    for path in _BOLD_FONT_PATHS:
        if os.path.exists(path):
            return ImageFont.truetype(path, size=size)
    return ImageFont.load_default(size=size)


def _open_rgb(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image = ImageOps.exif_transpose(image)
    if image.mode != 'RGB':
        image = image.convert('RGB')
    return image


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format='JPEG', quality=quality, optimize=True)
    return buffer.getvalue()


def compress_image(data: bytes, *, max_width: int | None = None, quality: int | None = None) -> bytes:
    """Re-encode as JPEG, scaling down to ``max_width`` while keeping the aspect ratio."""
    max_width = max_width or settings.photo_max_width
    quality = quality or settings.photo_jpeg_quality
    image = _open_rgb(data)
    if image.width > max_width:
        height = round(image.height * max_width / image.width)
        image = image.resize((max_width, height), Image.Resampling.LANCZOS)
    return _encode_jpeg(image, quality)


def watermark_text(branch_name: str, taken_at: datetime | None = None) -> str:
    moment = taken_at or datetime.now(tz=timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(ZoneInfo(settings.report_timezone))
    return f'{branch_name} | {local:%m/%d/%Y, %I:%M:%S %p}'


def add_watermark(data: bytes, *, branch_name: str, taken_at: datetime | None = None) -> bytes:
    image = _open_rgb(data)
    draw = ImageDraw.Draw(image)
    font = _load_font(max(16, int(image.width * 0.03)))
    text = watermark_text(branch_name, taken_at)

    left, top, right, bottom = draw.textbbox((0, 0), text, font=font, stroke_width=2)
    x = 20
    y = max(0, image.height - 20 - (bottom - top))
    draw.text(
        (x, y),
        text,
        font=font,
        fill=(255, 255, 255),
        stroke_width=2,
        stroke_fill=(0, 0, 0),
    )
    return _encode_jpeg(image, 90)


def store_photo(storage: PhotoStorage, data: bytes, folder: str) -> str:
    try:
        payload = compress_image(data)
    except Exception:
        # Unreadable images are kept as uploaded.
        logger.warning('Photo compression failed, uploading original bytes', exc_info=True)
        payload = data
    return storage.upload_photo(payload, folder)


def stamp_and_store(
    storage: PhotoStorage,
    data: bytes,
    folder: str,
    *,
    branch_name: str | None = None,
    taken_at: datetime | None = None,
) -> str:
    if branch_name:
        try:
            data = add_watermark(data, branch_name=branch_name, taken_at=taken_at)
        except Exception:
            logger.warning('Watermarking failed, storing photo without it', exc_info=True)
    return store_photo(storage, data, folder)
