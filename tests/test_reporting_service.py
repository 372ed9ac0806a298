from __future__ import annotations

import csv
import unittest
from datetime import date
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace

from tests.db_support import add_branch, add_delivery, add_loading, add_oil_type, add_principal, add_supply, make_session, utc

from oil_delivery.services.reporting_service import (
    CSV_HEADERS,
    ReferenceLookup,
    UnifiedEntry,
    build_transactions_csv,
    build_unified_entries,
    daily_oil_totals,
    delivery_entry,
    export_transactions_csv,
    format_report_date,
    get_all_transactions,
    get_recent_deliveries,
    load_reference_lookup,
    recent_activity,
    resolve_branch_name,
    resolve_driver_name,
    resolve_oil_type_name,
    transactions_csv_filename,
)


def _entry(entry_id: int, oil_type: str, liters: str, when, *, kind: str = 'supply') -> UnifiedEntry:
    return UnifiedEntry(
        id=entry_id,
        source='transaction',
        type=kind,
        timestamp=when,
        driver_uid='1',
        driver_name='Demo Driver',
        oil_type_name=oil_type,
        quantity=Decimal(liters),
        branch_name='Central Depot' if kind == 'supply' else None,
        load_session_id='LS_1_ABCD',
    )


def _rows(content: str) -> list[list[str]]:
    return list(csv.reader(StringIO(content)))


class EnrichmentFallbackTests(unittest.TestCase):
    def setUp(self) -> None:
        self.lookup = ReferenceLookup(
            drivers={
                '1': SimpleNamespace(display_name='Alice Driver', email='alice@example.com'),
                '2': SimpleNamespace(display_name=None, email='bob@example.com'),
                '3': SimpleNamespace(display_name=None, email=None),
            },
            branches={5: SimpleNamespace(name='North Yard')},
            oil_types={9: SimpleNamespace(name='Diesel')},
        )

    def test_driver_name_chain(self) -> None:
        self.assertEqual(resolve_driver_name(self.lookup, '1', 'Recorded'), 'Alice Driver')
        self.assertEqual(resolve_driver_name(self.lookup, '2', 'Recorded'), 'bob@example.com')
        self.assertEqual(resolve_driver_name(self.lookup, '3', 'Recorded'), 'Recorded')
        self.assertEqual(resolve_driver_name(self.lookup, '42', None), '42')
        self.assertEqual(resolve_driver_name(self.lookup, None, None), 'Unknown Driver')

    def test_branch_and_oil_type_chains(self) -> None:
        self.assertEqual(resolve_branch_name(self.lookup, 5, 'Old Name'), 'North Yard')
        self.assertEqual(resolve_branch_name(self.lookup, 6, 'Old Name'), 'Old Name')
        self.assertEqual(resolve_branch_name(self.lookup, None, None), 'Unknown Branch')
        self.assertEqual(resolve_oil_type_name(self.lookup, 9, 'Legacy'), 'Diesel')
        self.assertEqual(resolve_oil_type_name(self.lookup, 10, 'Legacy'), 'Legacy')
        self.assertEqual(resolve_oil_type_name(self.lookup, None, ''), 'Unknown Oil Type')


class DailyTotalsTests(unittest.TestCase):
    def test_sums_supplies_of_the_day_by_oil_type(self) -> None:
        day = date(2024, 6, 3)
        entries = [
            _entry(1, 'A', '100', utc(2024, 6, 3, 8)),
            _entry(2, 'A', '50', utc(2024, 6, 3, 17)),
            _entry(3, 'B', '30', utc(2024, 6, 3, 9)),
            _entry(4, 'A', '999', utc(2024, 6, 2, 9)),
            _entry(5, 'B', '500', utc(2024, 6, 3, 10), kind='loading'),
            _entry(6, 'B', '5', None),
        ]

        self.assertEqual(daily_oil_totals(entries, day), {'A': Decimal('150'), 'B': Decimal('30')})

    def test_day_boundary_follows_report_timezone(self) -> None:
        late_utc = _entry(1, 'A', '10', utc(2024, 6, 3, 23, 30))

        self.assertEqual(daily_oil_totals([late_utc], date(2024, 6, 3), tz='UTC'), {'A': Decimal('10')})
        self.assertEqual(daily_oil_totals([late_utc], date(2024, 6, 4), tz='Asia/Dubai'), {'A': Decimal('10')})
        self.assertEqual(daily_oil_totals([late_utc], date(2024, 6, 3), tz='Asia/Dubai'), {})


class ListingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.oil_type = add_oil_type(self.db, 'Diesel')
        self.branch = add_branch(self.db, 'Central Depot')

    def tearDown(self) -> None:
        self.db.close()

    def test_transactions_newest_first_with_id_tie_break(self) -> None:
        same_time = utc(2024, 6, 3, 9)
        first = add_loading(self.db, self.oil_type, load_session_id='LS_1_ABCD', timestamp=same_time)
        second = add_supply(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=same_time)
        oldest = add_supply(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=utc(2024, 6, 1))

        ids = [row.id for row in get_all_transactions(self.db)]

        self.assertEqual(ids, [second.id, first.id, oldest.id])

    def test_recent_deliveries_defaults_to_five(self) -> None:
        for day in range(1, 8):
            add_delivery(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=utc(2024, 6, day))

        recent = get_recent_deliveries(self.db)

        self.assertEqual(len(recent), 5)
        self.assertEqual(recent[0].timestamp.day, 7)

    def test_unified_list_keeps_mirror_duplicates_and_recent_activity_caps_at_ten(self) -> None:
        for day in range(1, 7):
            when = utc(2024, 6, day)
            add_delivery(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=when)
            add_supply(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', timestamp=when)
        lookup = load_reference_lookup(self.db)

        entries = build_unified_entries(
            get_recent_deliveries(self.db, limit=100),
            get_all_transactions(self.db),
            lookup,
        )
        recent = recent_activity(entries)

        self.assertEqual(len(entries), 12)
        self.assertEqual(len(recent), 10)
        self.assertEqual(recent[0].timestamp, utc(2024, 6, 6))
        self.assertEqual({entry.source for entry in recent[:2]}, {'delivery', 'transaction'})


class CsvExportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.oil_type = add_oil_type(self.db, 'Diesel')
        self.branch = add_branch(self.db, 'Central Depot')
        self.driver = add_principal(self.db, 'driver@example.com', display_name='Demo Driver')

    def tearDown(self) -> None:
        self.db.close()

    def test_two_deliveries_and_their_mirrors_give_four_rows(self) -> None:
        uid = str(self.driver.id)
        for liters in ('100', '250'):
            add_delivery(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', liters=liters, driver_uid=uid)
            add_supply(self.db, self.oil_type, self.branch, load_session_id='LS_1_ABCD', quantity=liters, driver_uid=uid)

        content, count = export_transactions_csv(self.db)
        rows = _rows(content)

        self.assertEqual(count, 4)
        self.assertEqual(rows[0], CSV_HEADERS)
        self.assertEqual(len(rows) - 1, 4)
        self.assertEqual([row[1] for row in rows[1:]], ['Supply', 'Supply', 'supply', 'supply'])
        self.assertTrue(all(row[3] == 'Demo Driver' for row in rows[1:]))
        self.assertTrue(all(row[13] == 'completed' for row in rows[1:]))

    def test_every_field_is_quoted_and_quotes_are_doubled(self) -> None:
        entry = _entry(1, 'Diesel "Premium"', '10.500', utc(2024, 6, 3, 14, 5))

        content = build_transactions_csv([entry], tz='UTC')
        data_line = content.splitlines()[1]

        self.assertTrue(content.splitlines()[0].startswith('"Transaction ID","Type","Date"'))
        self.assertIn('"Diesel ""Premium"""', data_line)
        self.assertIn('"10.5"', data_line)
        self.assertIn('"06/03/2024, 02:05:00 PM"', data_line)
        self.assertEqual(_rows(content)[1][4], 'Diesel "Premium"')

    def test_photo_columns_fall_back_to_legacy_fields(self) -> None:
        add_delivery(
            self.db,
            self.oil_type,
            self.branch,
            load_session_id='LS_1_ABCD',
            photos={'hose_connection': 'memory://delivery-photos/hose.jpg'},
            tank_level_photo='memory://delivery-photos/legacy-before.jpg',
            final_tank_level_photo='memory://delivery-photos/legacy-after.jpg',
        )

        rows = _rows(export_transactions_csv(self.db)[0])

        self.assertEqual(
            rows[1][10:13],
            [
                'memory://delivery-photos/legacy-before.jpg',
                'memory://delivery-photos/hose.jpg',
                'memory://delivery-photos/legacy-after.jpg',
            ],
        )

    def test_legacy_photo_columns_do_not_duplicate_mapped_photos(self) -> None:
        before_url = 'memory://delivery-photos/before.jpg'
        delivery = add_delivery(
            self.db,
            self.oil_type,
            self.branch,
            load_session_id='LS_1_ABCD',
            photos={'tank_level_before': before_url},
            tank_level_photo=before_url,
            final_tank_level_photo='memory://delivery-photos/legacy-after.jpg',
        )

        entry = delivery_entry(delivery, load_reference_lookup(self.db))

        self.assertEqual(
            entry.photos,
            {'tank_level_before': before_url, 'tank_level_after': 'memory://delivery-photos/legacy-after.jpg'},
        )

    def test_missing_date_and_filename(self) -> None:
        self.assertEqual(format_report_date(None), 'Unknown Date')
        self.assertEqual(transactions_csv_filename(date(2024, 6, 3)), 'oil_transactions_2024-06-03.csv')


if __name__ == '__main__':
    unittest.main()
