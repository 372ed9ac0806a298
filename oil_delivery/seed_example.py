import argparse

from sqlalchemy import select

from oil_delivery.db import SessionLocal, init_db
from oil_delivery.models import Branch, OilType, Principal, PrincipalRole
from oil_delivery.security.passwords import hash_password
from oil_delivery.services.reference_service import OilTankInput, create_branch, create_oil_type

DEMO_OIL_TYPES = [('Diesel', '#1f2937'), ('Hydraulic Oil', '#b45309'), ('Engine Oil 15W-40', '#2563eb')]
DEMO_BRANCHES = [
    ('Central Depot', '12 Harbour Road', '555-0101'),
    ('North Yard', '88 Ridge Street', '555-0102'),
]


def seed(*, create_tables: bool = False) -> None:
    if create_tables:
        init_db()

    with SessionLocal() as db:
        oil_types = db.execute(select(OilType).order_by(OilType.id.asc())).scalars().all()
        if not oil_types:
            oil_types = [create_oil_type(db, name=name, color=color) for name, color in DEMO_OIL_TYPES]

        has_branches = db.execute(select(Branch.id)).first()
        if not has_branches:
            for name, address, contact_no in DEMO_BRANCHES:
                create_branch(
                    db,
                    name=name,
                    address=address,
                    contact_no=contact_no,
                    oil_tanks=[OilTankInput(capacity=5000, oil_type_id=oil_type.id) for oil_type in oil_types[:2]],
                )

        admin = db.execute(select(Principal).where(Principal.username == 'admin@example.com')).scalar_one_or_none()
        if not admin:
            db.add(
                Principal(
                    username='admin@example.com',
                    email='admin@example.com',
                    display_name='Operations Admin',
                    password_hash=hash_password('adminpass'),
                    role=PrincipalRole.ADMIN,
                    active=True,
                )
            )

        driver = db.execute(select(Principal).where(Principal.username == 'driver@example.com')).scalar_one_or_none()
        if not driver:
            db.add(
                Principal(
                    username='driver@example.com',
                    email='driver@example.com',
                    display_name='Demo Driver',
                    password_hash=hash_password('driverpass'),
                    role=PrincipalRole.DRIVER,
                    emp_no='EMP-001',
                    driver_licence_no='DL-0001',
                    tanker_licence_no='DL-0001',
                    active=True,
                )
            )

        db.commit()


def main() -> None:
    parser = argparse.ArgumentParser(description='Insert demo oil types, branches, an admin and a driver.')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before seeding.')
    args = parser.parse_args()

    seed(create_tables=args.create_tables)
    print('Seed data inserted/verified.')


if __name__ == '__main__':
    main()
