from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from oil_delivery.models import Principal, PrincipalRole, WebSession
from oil_delivery.security.passwords import hash_password, validate_new_password
from oil_delivery.security.sessions import revoke_principal_sessions

DRIVER_FIELDS = {
    'display_name',
    'emp_no',
    'driver_licence_no',
    'tanker_licence_no',
    'licence_expiry_date',
    'active',
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _normalize_email(email: str | None) -> str:
    value = (email or '').strip().lower()
    if '@' not in value or value.startswith('@') or value.endswith('@'):
        raise ValueError('Invalid email address format.')
    return value


def _email_taken(db: Session, email: str, *, exclude_id: int | None = None) -> bool:
    stmt = select(Principal.id).where(func.lower(Principal.username) == email)
    if exclude_id is not None:
        stmt = stmt.where(Principal.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_driver(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    emp_no: str | None = None,
    driver_licence_no: str | None = None,
    tanker_licence_no: str | None = None,
    licence_expiry_date: date | None = None,
) -> Principal:
    email = _normalize_email(email)
    validate_new_password(password)
    if not (display_name or '').strip():
        raise ValueError('Driver name is required')
    if _email_taken(db, email):
        raise ValueError('Email is already registered. Please use a different email address.')

    now = _now()
    driver = Principal(
        username=email,
        email=email,
        display_name=display_name.strip(),
        password_hash=hash_password(password),
        role=PrincipalRole.DRIVER,
        emp_no=emp_no,
        driver_licence_no=driver_licence_no,
        tanker_licence_no=tanker_licence_no or driver_licence_no,
        licence_expiry_date=licence_expiry_date,
        active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(driver)
    db.flush()
    return driver


def list_drivers(db: Session) -> list[Principal]:
    return db.execute(
        select(Principal)
        .where(Principal.role == PrincipalRole.DRIVER)
        .order_by(Principal.display_name.asc(), Principal.id.asc())
    ).scalars().all()


def list_people(db: Session) -> list[Principal]:
    return db.execute(select(Principal).order_by(Principal.id.asc())).scalars().all()


def get_driver(db: Session, driver_id: int) -> Principal:
    driver = db.get(Principal, driver_id)
    if not driver or driver.role != PrincipalRole.DRIVER:
        raise LookupError('Driver not found')
    return driver


def update_driver(db: Session, *, driver_id: int, changes: dict) -> Principal:
    driver = get_driver(db, driver_id)
    if 'email' in changes and changes['email'] is not None:
        email = _normalize_email(changes['email'])
        if _email_taken(db, email, exclude_id=driver.id):
            raise ValueError('Email is already registered. Please use a different email address.')
        driver.email = email
        driver.username = email
    for key, value in changes.items():
        if key in DRIVER_FIELDS:
            setattr(driver, key, value)
    driver.updated_at = _now()
    db.flush()
    return driver


def change_driver_password(db: Session, *, driver_id: int, new_password: str) -> Principal:
    driver = get_driver(db, driver_id)
    validate_new_password(new_password)
    driver.password_hash = hash_password(new_password)
    driver.updated_at = _now()
    revoke_principal_sessions(db, driver.id)
    db.flush()
    return driver


def delete_driver(db: Session, *, driver_id: int) -> None:
    driver = get_driver(db, driver_id)
    db.execute(
        delete(WebSession)
        .where(WebSession.principal_id == driver.id)
        .execution_options(synchronize_session=False)
    )
    db.delete(driver)
    db.flush()
