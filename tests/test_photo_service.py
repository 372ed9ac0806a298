from __future__ import annotations

import tempfile
import unittest
from io import BytesIO
from unittest.mock import MagicMock, patch

from PIL import Image

from tests.db_support import jpeg_bytes, utc

from oil_delivery.services.local_photo_storage import LocalPhotoStorage
from oil_delivery.services.memory_photo_storage import MemoryPhotoStorage
from oil_delivery.services.photo_service import add_watermark, compress_image, stamp_and_store, store_photo, watermark_text
from oil_delivery.services.photo_storage import PhotoNotFoundError, generate_photo_filename


class PhotoProcessingTests(unittest.TestCase):
    def test_compress_scales_wide_images_to_max_width(self) -> None:
        result = compress_image(jpeg_bytes(2400, 1600), max_width=1200, quality=80)

        with Image.open(BytesIO(result)) as image:
            self.assertEqual(image.size, (1200, 800))
            self.assertEqual(image.format, 'JPEG')

    def test_compress_keeps_narrow_images_size(self) -> None:
        result = compress_image(jpeg_bytes(640, 480), max_width=1200, quality=80)

        with Image.open(BytesIO(result)) as image:
            self.assertEqual(image.size, (640, 480))

    @patch('oil_delivery.services.photo_service.settings')
    def test_watermark_text_uses_report_timezone(self, settings_mock) -> None:
        settings_mock.report_timezone = 'Asia/Dubai'

        self.assertEqual(watermark_text('North Yard', utc(2024, 6, 3, 9, 15)), 'North Yard | 06/03/2024, 01:15:00 PM')

    def test_add_watermark_returns_a_same_size_jpeg(self) -> None:
        stamped = add_watermark(jpeg_bytes(400, 300), branch_name='Central Depot', taken_at=utc(2024, 6, 3))

        with Image.open(BytesIO(stamped)) as image:
            self.assertEqual(image.size, (400, 300))

    def test_store_photo_uploads_original_when_compression_fails(self) -> None:
        storage = MemoryPhotoStorage()

        url = store_photo(storage, b'not an image', 'delivery-photos')

        self.assertEqual(storage.objects[url], b'not an image')
        self.assertEqual(storage.folder_of(url), 'delivery-photos')

    def test_stamp_and_store_skips_watermark_when_it_fails(self) -> None:
        storage = MagicMock()
        storage.upload_photo.return_value = 'memory://delivery-photos/x.jpg'

        with patch('oil_delivery.services.photo_service.add_watermark', side_effect=OSError('bad image')):
            url = stamp_and_store(storage, jpeg_bytes(), 'delivery-photos', branch_name='North Yard')

        self.assertEqual(url, 'memory://delivery-photos/x.jpg')
        storage.upload_photo.assert_called_once()


class PhotoStorageTests(unittest.TestCase):
    def test_filename_pattern(self) -> None:
        name = generate_photo_filename(utc(2024, 6, 3, 9, 15))

        self.assertRegex(name, r'^2024-06-03T09-15-00\+00-00-[0-9a-z]{9}\.jpg$')

    def test_local_storage_round_trip_and_folder(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalPhotoStorage(tmp, base_url='/photos')

            url = storage.upload_photo(b'data', 'loading-photos')

            self.assertTrue(url.startswith('/photos/loading-photos/'))
            self.assertEqual(storage.download_photo(url), b'data')
            self.assertEqual(storage.folder_of(url), 'loading-photos')
            storage.delete_photo(url)
            with self.assertRaises(PhotoNotFoundError):
                storage.download_photo(url)

    def test_local_storage_rejects_paths_outside_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalPhotoStorage(tmp, base_url='/photos')

            with self.assertRaises(PhotoNotFoundError):
                storage.download_photo('/photos/../../etc/passwd')
            with self.assertRaises(PhotoNotFoundError):
                storage.download_photo('https://elsewhere.example.com/a.jpg')

    def test_memory_storage_missing_photo(self) -> None:
        with self.assertRaises(PhotoNotFoundError):
            MemoryPhotoStorage().download_photo('memory://delivery-photos/none.jpg')


if __name__ == '__main__':
    unittest.main()
