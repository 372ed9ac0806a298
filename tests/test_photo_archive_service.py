from __future__ import annotations

import unittest
import zipfile
from datetime import date
from io import BytesIO

from tests.db_support import add_branch, add_loading, add_oil_type, add_supply, make_session, utc

from oil_delivery.services.memory_photo_storage import MemoryPhotoStorage
from oil_delivery.services.photo_archive_service import (
    date_range_bounds,
    delete_photos_in_date_range,
    download_photos_in_date_range,
    get_photo_statistics,
)


class PhotoArchiveTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.storage = MemoryPhotoStorage()
        self.oil_type = add_oil_type(self.db)
        self.branch = add_branch(self.db, 'North Yard #2')

    def tearDown(self) -> None:
        self.db.close()

    def test_archive_names_entries_and_skips_failed_downloads(self) -> None:
        before = self.storage.upload_photo(b'before-bytes', 'delivery-photos')
        supply = add_supply(
            self.db,
            self.oil_type,
            self.branch,
            load_session_id='LS_1_ABCD',
            timestamp=utc(2024, 6, 3, 23, 59),
            photos={'tank_level_before': before, 'hose_connection': 'memory://delivery-photos/missing.jpg'},
        )
        add_supply(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=utc(2024, 6, 5))

        archive = download_photos_in_date_range(
            self.db,
            storage=self.storage,
            start=date(2024, 6, 1),
            end=date(2024, 6, 3),
        )

        with zipfile.ZipFile(BytesIO(archive.content)) as zf:
            names = zf.namelist()
            self.assertEqual(names, [f'2024-06-03_North_Yard__2_tank_level_before_{supply.id}.jpg'])
            self.assertEqual(zf.read(names[0]), b'before-bytes')
        self.assertEqual(archive.filename, 'photos_2024-06-01_to_2024-06-03.zip')
        self.assertEqual((archive.photo_count, archive.skipped), (1, 1))

    def test_loading_photos_use_unknown_branch(self) -> None:
        url = self.storage.upload_photo(b'meter', 'loading-photos')
        loading = add_loading(
            self.db,
            self.oil_type,
            load_session_id='LS_1_ABCD',
            timestamp=utc(2024, 6, 2),
            photos={'meter_reading_photo': url},
        )

        archive = download_photos_in_date_range(self.db, storage=self.storage, start=date(2024, 6, 2), end=date(2024, 6, 2))

        with zipfile.ZipFile(BytesIO(archive.content)) as zf:
            self.assertEqual(zf.namelist(), [f'2024-06-02_Unknown_meter_reading_photo_{loading.id}.jpg'])

    def test_empty_range_and_photo_less_range_raise(self) -> None:
        with self.assertRaises(LookupError) as ctx:
            download_photos_in_date_range(self.db, storage=self.storage, start=date(2024, 1, 1), end=date(2024, 1, 2))
        self.assertEqual(str(ctx.exception), 'No transactions found in the selected date range')

        add_supply(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=utc(2024, 1, 1))
        with self.assertRaises(LookupError) as ctx:
            download_photos_in_date_range(self.db, storage=self.storage, start=date(2024, 1, 1), end=date(2024, 1, 2))
        self.assertEqual(str(ctx.exception), 'No photos found in the selected date range')

    def test_statistics_count_photos_and_transactions_in_range(self) -> None:
        add_supply(
            self.db,
            self.oil_type,
            self.branch,
            load_session_id='LS_1_ABCD',
            timestamp=utc(2024, 6, 3),
            photos={'tank_level_before': 'memory://delivery-photos/a.jpg', 'tank_level_after': 'memory://delivery-photos/b.jpg'},
        )
        add_loading(self.db, self.oil_type, load_session_id='LS_1_ABCD', timestamp=utc(2024, 6, 3))
        add_loading(self.db, self.oil_type, load_session_id='LS_1_ABCD', timestamp=utc(2024, 7, 1))

        stats = get_photo_statistics(self.db, start=date(2024, 6, 1), end=date(2024, 6, 30))

        self.assertEqual((stats.photo_count, stats.transaction_count), (2, 2))

    def test_purge_deletes_only_managed_folders_and_clears_photo_maps(self) -> None:
        managed = self.storage.upload_photo(b'x', 'delivery-photos')
        foreign = self.storage.upload_photo(b'y', 'profile-pictures')
        supply = add_supply(
            self.db,
            self.oil_type,
            self.branch,
            load_session_id='LS_1_ABCD',
            timestamp=utc(2024, 6, 3),
            photos={'tank_level_before': managed, 'hose_connection': foreign},
        )

        deleted = delete_photos_in_date_range(self.db, storage=self.storage, start=date(2024, 6, 3), end=date(2024, 6, 3))

        self.assertEqual(deleted, 1)
        self.assertNotIn(managed, self.storage.objects)
        self.assertIn(foreign, self.storage.objects)
        self.assertEqual(supply.photos, {})

    def test_range_bounds_cover_whole_days(self) -> None:
        lower, upper = date_range_bounds(date(2024, 6, 1), date(2024, 6, 3), tz='UTC')

        self.assertEqual(lower, utc(2024, 6, 1, 0, 0))
        self.assertEqual((upper.hour, upper.minute, upper.second, upper.microsecond), (23, 59, 59, 999999))
        with self.assertRaises(ValueError):
            date_range_bounds(date(2024, 6, 3), date(2024, 6, 1))


if __name__ == '__main__':
    unittest.main()
