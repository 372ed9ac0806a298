from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from oil_delivery.auth import Principal, Role, current_user_id, require_role
from oil_delivery.config import settings
from oil_delivery.db import get_db, run_with_retry
from oil_delivery.dependencies import get_client_ip, get_photo_storage
from oil_delivery.schemas import (
    BranchRead,
    ComplaintCreate,
    ComplaintRead,
    DeliveryCreate,
    DeliveryRead,
    LoadSessionCreate,
    LoadSessionRead,
    OilTypeRead,
    TransactionRead,
    UnifiedEntryRead,
)
from oil_delivery.security.csrf import verify_csrf
from oil_delivery.services.audit_service import log_audit
from oil_delivery.services.complaint_service import create_complaint, list_complaints
from oil_delivery.services.delivery_service import (
    DeliveryRecord,
    SupplyValidationError,
    complete_delivery,
    validate_supply_input,
)
from oil_delivery.services.load_session_service import (
    create_load_session,
    get_active_load_sessions,
    resolve_supply_session_id,
)
from oil_delivery.services.photo_service import stamp_and_store
from oil_delivery.services.photo_storage import DELIVERY_PHOTOS_FOLDER, LOADING_PHOTOS_FOLDER, PhotoStorage
from oil_delivery.services.reference_service import get_branch, get_oil_type, list_branches, list_oil_types
from oil_delivery.services.reporting_service import (
    build_unified_entries,
    daily_oil_totals,
    get_all_transactions,
    load_reference_lookup,
    recent_activity,
    today_in_report_zone,
)

router = APIRouter(prefix='/driver', tags=['driver'])
driver_access = require_role(Role.DRIVER, Role.ADMIN)

PHOTO_FOLDERS = {'delivery': DELIVERY_PHOTOS_FOLDER, 'loading': LOADING_PHOTOS_FOLDER}


def _driver_name(principal: Principal) -> str | None:
    return principal.display_name or principal.email


@router.get('/dashboard')
def dashboard(
    principal: Principal = Depends(driver_access),
    db: Session = Depends(get_db),
):
    driver_uid = current_user_id(principal)

    def _load():
        transactions = get_all_transactions(db, driver_uid=driver_uid)
        entries = build_unified_entries([], transactions, load_reference_lookup(db))
        return entries, get_active_load_sessions(db)

    entries, active_sessions = run_with_retry(db, _load)
    totals = daily_oil_totals(entries, today_in_report_zone())
    return {
        'active_load_sessions': [LoadSessionRead.model_validate(row) for row in active_sessions],
        'recent_transactions': [UnifiedEntryRead.model_validate(entry) for entry in recent_activity(entries)],
        'today_totals': totals,
        'today_total_liters': sum(totals.values()),
    }


@router.get('/oil-types', response_model=list[OilTypeRead])
def oil_types(_: Principal = Depends(driver_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: list_oil_types(db, active_only=True))


@router.get('/branches', response_model=list[BranchRead])
def branches(_: Principal = Depends(driver_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: list_branches(db, active_only=True))


@router.get('/load-sessions/active', response_model=list[LoadSessionRead])
def active_load_sessions(_: Principal = Depends(driver_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: get_active_load_sessions(db))


@router.post('/load-sessions', response_model=LoadSessionRead, status_code=201)
def start_load_session(
    payload: LoadSessionCreate,
    request: Request,
    principal: Principal = Depends(driver_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        oil_type = get_oil_type(db, payload.oil_type_id)
        load_session = create_load_session(
            db,
            oil_type_id=oil_type.id,
            oil_type_name=oil_type.name,
            total_loaded_liters=payload.total_loaded_liters,
            load_location_id=payload.load_location_id,
            load_meter_reading=payload.load_meter_reading,
            meter_reading_photo=payload.meter_reading_photo,
            created_by=current_user_id(principal),
            driver_name=_driver_name(principal),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='LOAD_SESSION_CREATED',
            ip=get_client_ip(request),
            entity_type='load_session',
            entity_id=load_session.load_session_id,
            metadata={'oil_type_id': oil_type.id, 'total_loaded_liters': str(payload.total_loaded_liters)},
        )
        db.commit()
        return load_session

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post('/deliveries', response_model=DeliveryRead, status_code=201)
def record_delivery(
    payload: DeliveryCreate,
    request: Request,
    principal: Principal = Depends(driver_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        validate_supply_input(
            delivered_liters=payload.delivered_liters,
            branch_id=payload.branch_id,
            oil_type_id=payload.oil_type_id,
            start_meter_reading=payload.start_meter_reading,
            end_meter_reading=payload.end_meter_reading,
        )
    except SupplyValidationError as exc:
        raise HTTPException(status_code=400, detail={'title': exc.title, 'message': exc.message}) from exc

    if not (payload.load_session_id or '').strip() and not settings.allow_direct_supply:
        raise HTTPException(status_code=400, detail='Select an active load session')

    def _write():
        branch = get_branch(db, payload.branch_id)
        oil_type = get_oil_type(db, payload.oil_type_id)
        delivery = complete_delivery(
            db,
            DeliveryRecord(
                load_session_id=resolve_supply_session_id(payload.load_session_id),
                branch_id=branch.id,
                branch_name=branch.name,
                oil_type_id=oil_type.id,
                oil_type_name=oil_type.name,
                delivered_liters=payload.delivered_liters,
                driver_uid=current_user_id(principal),
                driver_name=_driver_name(principal),
                delivery_order_id=payload.delivery_order_id,
                start_meter_reading=payload.start_meter_reading,
                end_meter_reading=payload.end_meter_reading,
                actual_delivery_start_time=payload.actual_delivery_start_time,
                photos=payload.photos,
            ),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='DELIVERY_COMPLETED',
            ip=get_client_ip(request),
            entity_type='delivery',
            entity_id=delivery.id,
            metadata={
                'load_session_id': delivery.load_session_id,
                'branch_id': branch.id,
                'delivered_liters': str(payload.delivered_liters),
            },
        )
        db.commit()
        return delivery

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SupplyValidationError as exc:
        raise HTTPException(status_code=400, detail={'title': exc.title, 'message': exc.message}) from exc


@router.post('/photos', status_code=201)
async def upload_photo(
    kind: str = Form('delivery'),
    branch_name: str | None = Form(None),
    photo: UploadFile = File(...),
    _: Principal = Depends(driver_access),
    storage: PhotoStorage = Depends(get_photo_storage),
    __: None = Depends(verify_csrf),
):
    folder = PHOTO_FOLDERS.get(kind)
    if folder is None:
        raise HTTPException(status_code=400, detail='Photo kind must be delivery or loading')
    data = await photo.read()
    if not data:
        raise HTTPException(status_code=400, detail='Photo is empty')
    try:
        url = stamp_and_store(storage, data, folder, branch_name=branch_name)
    except OSError as exc:
        raise HTTPException(status_code=503, detail='Failed to upload photo. Please try again.') from exc
    return {'url': url}


@router.get('/transactions', response_model=list[TransactionRead])
def my_transactions(principal: Principal = Depends(driver_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: get_all_transactions(db, driver_uid=current_user_id(principal)))


@router.get('/complaints', response_model=list[ComplaintRead])
def my_complaints(principal: Principal = Depends(driver_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: list_complaints(db, driver_uid=current_user_id(principal)))


@router.post('/complaints', response_model=ComplaintRead, status_code=201)
def file_complaint(
    payload: ComplaintCreate,
    request: Request,
    principal: Principal = Depends(driver_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        complaint, task = create_complaint(
            db,
            title=payload.title,
            description=payload.description,
            driver_uid=current_user_id(principal),
            driver_name=_driver_name(principal),
            category=payload.category,
            priority=payload.priority,
            branch_id=payload.branch_id,
            photos=payload.photos,
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='COMPLAINT_FILED',
            ip=get_client_ip(request),
            entity_type='complaint',
            entity_id=complaint.id,
            metadata={'task_id': task.id, 'priority': complaint.priority.value},
        )
        db.commit()
        return complaint

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
