from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy import func, select

from tests.db_support import (
    add_delivery,
    add_load_session,
    add_loading,
    add_oil_type,
    add_supply,
    make_session,
)

from oil_delivery.models import Branch, Delivery, LoadSession, OilTank, OilType, Transaction
from oil_delivery.services import reference_service
from oil_delivery.services.reference_service import (
    OilTankInput,
    create_branch,
    delete_branch,
    delete_oil_type,
    get_branch,
    get_oil_type,
    update_branch,
    update_oil_type,
)


def _count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class BranchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.diesel = add_oil_type(self.db, 'Diesel')
        self.hydraulic = add_oil_type(self.db, 'Hydraulic Oil')

    def tearDown(self) -> None:
        self.db.close()

    def test_create_branch_resolves_tank_oil_type_names(self) -> None:
        branch = create_branch(
            self.db,
            name='  Central Depot ',
            address='12 Harbour Road',
            oil_tanks=[OilTankInput(capacity=5000, oil_type_id=self.diesel.id)],
        )

        self.assertEqual(branch.name, 'Central Depot')
        self.assertEqual([tank.oil_type_name for tank in branch.oil_tanks], ['Diesel'])

    def test_create_branch_requires_name(self) -> None:
        with self.assertRaises(ValueError):
            create_branch(self.db, name='   ')

    def test_tank_with_unknown_oil_type_is_rejected(self) -> None:
        with self.assertRaises(LookupError):
            create_branch(self.db, name='Yard', oil_tanks=[OilTankInput(capacity=100, oil_type_id=999)])

    def test_update_merges_fields_and_replaces_tanks_when_given(self) -> None:
        branch = create_branch(
            self.db,
            name='Central Depot',
            address='12 Harbour Road',
            oil_tanks=[OilTankInput(capacity=5000, oil_type_id=self.diesel.id)],
        )

        update_branch(self.db, branch_id=branch.id, changes={'contact_no': '555-0199'})
        self.assertEqual(branch.address, '12 Harbour Road')
        self.assertEqual(len(branch.oil_tanks), 1)

        update_branch(
            self.db,
            branch_id=branch.id,
            changes={},
            oil_tanks=[
                OilTankInput(capacity=1000, oil_type_id=self.hydraulic.id),
                OilTankInput(capacity=2000, oil_type_id=self.diesel.id),
            ],
        )
        self.assertEqual(branch.contact_no, '555-0199')
        self.assertEqual(sorted(tank.capacity for tank in branch.oil_tanks), [1000, 2000])
        self.assertEqual(_count(self.db, OilTank), 2)

    def test_get_branch_missing_raises_lookup_error(self) -> None:
        with self.assertRaises(LookupError):
            get_branch(self.db, 404)

    def test_delete_branch_removes_its_supplies_deliveries_and_tanks(self) -> None:
        branch = create_branch(
            self.db,
            name='Central Depot',
            oil_tanks=[OilTankInput(capacity=5000, oil_type_id=self.diesel.id)],
        )
        other = create_branch(self.db, name='North Yard')
        add_loading(self.db, self.diesel, load_session_id='LS_1_ABCD')
        add_supply(self.db, self.diesel, branch, load_session_id='LS_1_ABCD')
        add_supply(self.db, self.diesel, other, load_session_id='LS_1_ABCD')
        add_delivery(self.db, self.diesel, branch, load_session_id='LS_1_ABCD')
        self.db.commit()

        result = delete_branch(self.db, branch_id=branch.id)
        self.db.commit()

        self.assertEqual((result.transactions, result.deliveries, result.oil_tanks), (1, 1, 1))
        self.assertEqual(_count(self.db, Branch), 1)
        self.assertEqual(_count(self.db, Transaction), 2)
        self.assertEqual(_count(self.db, Delivery), 0)
        self.assertEqual(_count(self.db, OilTank), 0)

    def test_failed_branch_cascade_rolls_back_everything(self) -> None:
        branch = create_branch(
            self.db,
            name='Central Depot',
            oil_tanks=[OilTankInput(capacity=5000, oil_type_id=self.diesel.id)],
        )
        add_supply(self.db, self.diesel, branch, load_session_id='LS_1_ABCD')
        add_delivery(self.db, self.diesel, branch, load_session_id='LS_1_ABCD')
        self.db.commit()
        real_bulk_delete = reference_service._bulk_delete
        calls = []

        def failing_bulk_delete(db, stmt):
            calls.append(stmt)
            if len(calls) == 2:
                raise RuntimeError('store went away')
            return real_bulk_delete(db, stmt)

        with patch('oil_delivery.services.reference_service._bulk_delete', side_effect=failing_bulk_delete):
            with self.assertRaises(RuntimeError):
                delete_branch(self.db, branch_id=branch.id)
        self.db.rollback()

        self.assertEqual(_count(self.db, Branch), 1)
        self.assertEqual(_count(self.db, OilTank), 1)
        self.assertEqual(_count(self.db, Transaction), 1)
        self.assertEqual(_count(self.db, Delivery), 1)


class OilTypeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.diesel = add_oil_type(self.db, 'Diesel')
        self.hydraulic = add_oil_type(self.db, 'Hydraulic Oil')
        self.branch = create_branch(
            self.db,
            name='Central Depot',
            oil_tanks=[
                OilTankInput(capacity=5000, oil_type_id=self.diesel.id),
                OilTankInput(capacity=3000, oil_type_id=self.hydraulic.id),
            ],
        )
        add_load_session(self.db, self.diesel, load_session_id='LS_1_DIES')
        add_load_session(self.db, self.hydraulic, load_session_id='LS_2_HYDR')
        add_loading(self.db, self.diesel, load_session_id='LS_1_DIES')
        add_supply(self.db, self.diesel, self.branch, load_session_id='LS_1_DIES')
        add_supply(self.db, self.hydraulic, self.branch, load_session_id='LS_2_HYDR')
        add_delivery(self.db, self.diesel, self.branch, load_session_id='LS_1_DIES')
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_update_is_a_partial_merge(self) -> None:
        update_oil_type(self.db, oil_type_id=self.diesel.id, changes={'color': '#000000'})

        self.assertEqual(self.diesel.name, 'Diesel')
        self.assertEqual(self.diesel.color, '#000000')

    def test_delete_cascades_to_every_referencing_record(self) -> None:
        result = delete_oil_type(self.db, oil_type_id=self.diesel.id)
        self.db.commit()

        self.assertEqual(result.transactions, 2)
        self.assertEqual(result.deliveries, 1)
        self.assertEqual(result.load_sessions, 1)
        self.assertEqual(result.oil_tanks, 1)
        self.assertEqual(self.db.execute(select(OilType.name)).scalars().all(), ['Hydraulic Oil'])
        self.assertEqual(
            self.db.execute(select(func.count()).select_from(Transaction).where(Transaction.oil_type_id == self.diesel.id)).scalar_one(),
            0,
        )
        self.assertEqual(_count(self.db, Transaction), 1)
        self.assertEqual(_count(self.db, LoadSession), 1)
        self.assertEqual(_count(self.db, OilTank), 1)

    def test_failed_cascade_rolls_back_everything(self) -> None:
        real_bulk_delete = reference_service._bulk_delete
        calls = []

        def failing_bulk_delete(db, stmt):
            calls.append(stmt)
            if len(calls) == 3:
                raise RuntimeError('store went away')
            return real_bulk_delete(db, stmt)

        with patch('oil_delivery.services.reference_service._bulk_delete', side_effect=failing_bulk_delete):
            with self.assertRaises(RuntimeError):
                delete_oil_type(self.db, oil_type_id=self.diesel.id)
        self.db.rollback()

        self.assertEqual(_count(self.db, OilType), 2)
        self.assertEqual(_count(self.db, Transaction), 3)
        self.assertEqual(_count(self.db, Delivery), 1)
        self.assertEqual(_count(self.db, LoadSession), 2)

    def test_missing_oil_type_raises_lookup_error(self) -> None:
        with self.assertRaises(LookupError):
            get_oil_type(self.db, 999)


if __name__ == '__main__':
    unittest.main()
