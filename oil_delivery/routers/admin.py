from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from oil_delivery.auth import Principal, Role, require_role
from oil_delivery.db import get_db, run_with_retry
from oil_delivery.dependencies import get_client_ip, get_photo_storage
from oil_delivery.models import ComplaintStatus, TaskStatus, Transaction
from oil_delivery.schemas import (
    BranchCreate,
    BranchRead,
    BranchUpdate,
    CascadeDeleteRead,
    ComplaintRead,
    ComplaintResolve,
    ComplaintUpdate,
    DeliveryRead,
    DriverCreate,
    DriverPasswordChange,
    DriverRead,
    DriverUpdate,
    LoadSessionRead,
    OilTypeCreate,
    OilTypeRead,
    OilTypeUpdate,
    PhotoStatisticsRead,
    PurgeRequest,
    ReconcileRead,
    StoreUsageRead,
    TaskCreate,
    TaskRead,
    TaskUpdate,
    TransactionRead,
    UnifiedEntryRead,
    WatermarkRepairRequest,
)
from oil_delivery.security.csrf import verify_csrf
from oil_delivery.services import (
    complaint_service,
    driver_service,
    photo_archive_service,
    purge_service,
    reference_service,
    reporting_service,
    task_service,
)
from oil_delivery.services.audit_service import log_audit
from oil_delivery.services.delivery_service import update_photos_with_correct_watermarks
from oil_delivery.services.load_session_service import get_active_load_sessions, reconcile_all_load_sessions
from oil_delivery.services.photo_storage import PhotoStorage
from oil_delivery.services.reference_service import OilTankInput

router = APIRouter(prefix='/admin', tags=['admin'])
admin_access = require_role(Role.ADMIN)


def _tank_inputs(tanks) -> list[OilTankInput] | None:
    if tanks is None:
        return None
    return [OilTankInput(capacity=t.capacity, oil_type_id=t.oil_type_id, current_level=t.current_level) for t in tanks]


# ----- Dashboard & ledger views -----


@router.get('/dashboard')
def dashboard(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    def _load():
        lookup = reporting_service.load_reference_lookup(db)
        deliveries = reporting_service.get_all_deliveries(db)
        transactions = reporting_service.get_all_transactions(db)
        return lookup, deliveries, transactions, get_active_load_sessions(db)

    lookup, deliveries, transactions, active_sessions = run_with_retry(db, _load)
    delivery_entries = [reporting_service.delivery_entry(row, lookup) for row in deliveries]
    unified = reporting_service.build_unified_entries(deliveries, transactions, lookup)
    totals = reporting_service.daily_oil_totals(delivery_entries, reporting_service.today_in_report_zone())
    return {
        'counts': {
            'drivers': sum(1 for p in lookup.drivers.values() if p.role == Role.DRIVER),
            'branches': len(lookup.branches),
            'oil_types': len(lookup.oil_types),
            'deliveries': len(deliveries),
            'transactions': len(transactions),
            'active_load_sessions': len(active_sessions),
        },
        'today_totals': totals,
        'today_total_liters': sum(totals.values()),
        'recent_deliveries': [UnifiedEntryRead.model_validate(entry) for entry in delivery_entries[:5]],
        'recent_activity': [UnifiedEntryRead.model_validate(entry) for entry in reporting_service.recent_activity(unified)],
    }


@router.get('/transactions', response_model=list[TransactionRead])
def transactions(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: reporting_service.get_all_transactions(db))


@router.get('/deliveries', response_model=list[DeliveryRead])
def deliveries(limit: int | None = None, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    if limit is not None:
        return run_with_retry(db, lambda: reporting_service.get_recent_deliveries(db, limit=limit))
    return run_with_retry(db, lambda: reporting_service.get_all_deliveries(db))


@router.get('/activity', response_model=list[UnifiedEntryRead])
def activity(limit: int = 10, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    def _load():
        lookup = reporting_service.load_reference_lookup(db)
        return reporting_service.build_unified_entries(
            reporting_service.get_all_deliveries(db),
            reporting_service.get_all_transactions(db),
            lookup,
        )

    return reporting_service.recent_activity(run_with_retry(db, _load), limit=limit)


@router.get('/load-sessions/active', response_model=list[LoadSessionRead])
def active_load_sessions(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: get_active_load_sessions(db))


@router.post('/load-sessions/reconcile', response_model=list[ReconcileRead])
def reconcile_load_sessions(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        results = reconcile_all_load_sessions(db)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='LOAD_SESSIONS_RECONCILED',
            ip=get_client_ip(request),
            metadata={'sessions': len(results), 'changed': sum(1 for r in results if r.changed)},
        )
        db.commit()
        return results

    return run_with_retry(db, _write)


@router.post('/transactions/{transaction_id}/watermarks', response_model=TransactionRead)
def repair_watermarks(
    transaction_id: int,
    payload: WatermarkRepairRequest,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    storage: PhotoStorage = Depends(get_photo_storage),
    _: None = Depends(verify_csrf),
):
    transaction = run_with_retry(db, lambda: db.get(Transaction, transaction_id))
    if transaction is None:
        raise HTTPException(status_code=404, detail='Transaction not found')

    photos = update_photos_with_correct_watermarks(
        db,
        transaction=transaction,
        branch_name=payload.branch_name,
        storage=storage,
    )
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='TRANSACTION_WATERMARKS_UPDATED',
        ip=get_client_ip(request),
        entity_type='transaction',
        entity_id=transaction_id,
        metadata={'photos': len(photos), 'branch_name': payload.branch_name},
    )
    db.commit()
    return transaction


# ----- Exports -----


@router.get('/exports/transactions.csv')
def export_transactions_csv(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    content, rows = run_with_retry(db, lambda: reporting_service.export_transactions_csv(db))
    if rows == 0:
        raise HTTPException(status_code=404, detail='No transactions available to download')

    log_audit(
        db,
        actor_principal_id=principal.id,
        action='TRANSACTIONS_EXPORTED_CSV',
        ip=get_client_ip(request),
        metadata={'rows': rows},
    )
    db.commit()

    filename = reporting_service.transactions_csv_filename()
    return StreamingResponse(
        iter([content]),
        media_type=reporting_service.CSV_MEDIA_TYPE,
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@router.get('/exports/photos.zip')
def export_photos_zip(
    start: date,
    end: date,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    try:
        archive = run_with_retry(
            db,
            lambda: photo_archive_service.download_photos_in_date_range(db, storage=storage, start=start, end=end),
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    log_audit(
        db,
        actor_principal_id=principal.id,
        action='PHOTOS_EXPORTED_ZIP',
        ip=get_client_ip(request),
        metadata={'start': start.isoformat(), 'end': end.isoformat(), 'photos': archive.photo_count},
    )
    db.commit()
    return Response(
        content=archive.content,
        media_type='application/zip',
        headers={'Content-Disposition': f'attachment; filename={archive.filename}'},
    )


@router.get('/photos/statistics', response_model=PhotoStatisticsRead)
def photo_statistics(start: date, end: date, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    try:
        return run_with_retry(db, lambda: photo_archive_service.get_photo_statistics(db, start=start, end=end))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post('/photos/purge')
def purge_photos(
    start: date,
    end: date,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    storage: PhotoStorage = Depends(get_photo_storage),
    _: None = Depends(verify_csrf),
):
    def _write():
        deleted = photo_archive_service.delete_photos_in_date_range(db, storage=storage, start=start, end=end)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='PHOTOS_PURGED',
            ip=get_client_ip(request),
            metadata={'start': start.isoformat(), 'end': end.isoformat(), 'deleted': deleted},
        )
        db.commit()
        return deleted

    try:
        return {'deleted': run_with_retry(db, _write)}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ----- Maintenance -----


@router.get('/maintenance/usage', response_model=StoreUsageRead)
def store_usage(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: purge_service.get_store_usage(db))


@router.post('/maintenance/purge')
def purge_records(
    payload: PurgeRequest,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        deleted = purge_service.delete_records_by_date_range(
            db,
            collection=payload.collection,
            start=payload.start,
            end=payload.end,
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='RECORDS_PURGED',
            ip=get_client_ip(request),
            entity_type=payload.collection,
            metadata={'start': payload.start.isoformat(), 'end': payload.end.isoformat(), 'deleted': deleted},
        )
        db.commit()
        return deleted

    try:
        return {'deleted': run_with_retry(db, _write)}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ----- Oil types -----


@router.get('/oil-types', response_model=list[OilTypeRead])
def oil_types(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: reference_service.list_oil_types(db))


@router.post('/oil-types', response_model=OilTypeRead, status_code=201)
def create_oil_type(
    payload: OilTypeCreate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        oil_type = reference_service.create_oil_type(db, name=payload.name, color=payload.color)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='OIL_TYPE_CREATED',
            ip=get_client_ip(request),
            entity_type='oil_type',
            entity_id=oil_type.id,
            metadata={'name': oil_type.name},
        )
        db.commit()
        return oil_type

    try:
        return run_with_retry(db, _write)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch('/oil-types/{oil_type_id}', response_model=OilTypeRead)
def update_oil_type(
    oil_type_id: int,
    payload: OilTypeUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    changes = payload.model_dump(exclude_unset=True)

    def _write():
        oil_type = reference_service.update_oil_type(db, oil_type_id=oil_type_id, changes=changes)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='OIL_TYPE_UPDATED',
            ip=get_client_ip(request),
            entity_type='oil_type',
            entity_id=oil_type_id,
            metadata={'fields': sorted(changes)},
        )
        db.commit()
        return oil_type

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete('/oil-types/{oil_type_id}', response_model=CascadeDeleteRead)
def delete_oil_type(
    oil_type_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        result = reference_service.delete_oil_type(db, oil_type_id=oil_type_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='OIL_TYPE_DELETED',
            ip=get_client_ip(request),
            entity_type='oil_type',
            entity_id=oil_type_id,
            metadata=asdict(result),
        )
        db.commit()
        return result

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


# ----- Branches -----


@router.get('/branches', response_model=list[BranchRead])
def branches(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: reference_service.list_branches(db))


@router.get('/branches/{branch_id}', response_model=BranchRead)
def branch_detail(branch_id: int, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    try:
        return run_with_retry(db, lambda: reference_service.get_branch(db, branch_id))
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post('/branches', response_model=BranchRead, status_code=201)
def create_branch(
    payload: BranchCreate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        branch = reference_service.create_branch(
            db,
            name=payload.name,
            address=payload.address,
            contact_no=payload.contact_no,
            oil_tanks=_tank_inputs(payload.oil_tanks),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='BRANCH_CREATED',
            ip=get_client_ip(request),
            entity_type='branch',
            entity_id=branch.id,
            metadata={'name': branch.name, 'tanks': len(branch.oil_tanks)},
        )
        db.commit()
        return branch

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch('/branches/{branch_id}', response_model=BranchRead)
def update_branch(
    branch_id: int,
    payload: BranchUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    changes = payload.model_dump(exclude_unset=True, exclude={'oil_tanks'})

    def _write():
        branch = reference_service.update_branch(
            db,
            branch_id=branch_id,
            changes=changes,
            oil_tanks=_tank_inputs(payload.oil_tanks),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='BRANCH_UPDATED',
            ip=get_client_ip(request),
            entity_type='branch',
            entity_id=branch_id,
            metadata={'fields': sorted(changes), 'tanks_replaced': payload.oil_tanks is not None},
        )
        db.commit()
        return branch

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete('/branches/{branch_id}', response_model=CascadeDeleteRead)
def delete_branch(
    branch_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        result = reference_service.delete_branch(db, branch_id=branch_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='BRANCH_DELETED',
            ip=get_client_ip(request),
            entity_type='branch',
            entity_id=branch_id,
            metadata=asdict(result),
        )
        db.commit()
        return result

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


# ----- Drivers -----


@router.get('/drivers', response_model=list[DriverRead])
def drivers(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: driver_service.list_drivers(db))


@router.post('/drivers', response_model=DriverRead, status_code=201)
def create_driver(
    payload: DriverCreate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        driver = driver_service.create_driver(db, **payload.model_dump())
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='DRIVER_CREATED',
            ip=get_client_ip(request),
            entity_type='principal',
            entity_id=driver.id,
            metadata={'email': driver.email},
        )
        db.commit()
        return driver

    try:
        return run_with_retry(db, _write)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch('/drivers/{driver_id}', response_model=DriverRead)
def update_driver(
    driver_id: int,
    payload: DriverUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    changes = payload.model_dump(exclude_unset=True)

    def _write():
        driver = driver_service.update_driver(db, driver_id=driver_id, changes=changes)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='DRIVER_UPDATED',
            ip=get_client_ip(request),
            entity_type='principal',
            entity_id=driver_id,
            metadata={'fields': sorted(changes)},
        )
        db.commit()
        return driver

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post('/drivers/{driver_id}/password')
def change_driver_password(
    driver_id: int,
    payload: DriverPasswordChange,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        driver_service.change_driver_password(db, driver_id=driver_id, new_password=payload.new_password)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='DRIVER_PASSWORD_CHANGED',
            ip=get_client_ip(request),
            entity_type='principal',
            entity_id=driver_id,
        )
        db.commit()

    try:
        run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'ok': True}


@router.delete('/drivers/{driver_id}')
def delete_driver(
    driver_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        driver_service.delete_driver(db, driver_id=driver_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='DRIVER_DELETED',
            ip=get_client_ip(request),
            entity_type='principal',
            entity_id=driver_id,
        )
        db.commit()

    try:
        run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {'ok': True}


# ----- Tasks -----


@router.get('/tasks', response_model=list[TaskRead])
def tasks(status: TaskStatus | None = None, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return run_with_retry(db, lambda: task_service.list_tasks(db, status=status))


@router.post('/tasks', response_model=TaskRead, status_code=201)
def create_task(
    payload: TaskCreate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        task = task_service.create_task(db, **payload.model_dump())
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='TASK_CREATED',
            ip=get_client_ip(request),
            entity_type='task',
            entity_id=task.id,
            metadata={'priority': task.priority.value},
        )
        db.commit()
        return task

    try:
        return run_with_retry(db, _write)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch('/tasks/{task_id}', response_model=TaskRead)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    changes = payload.model_dump(exclude_unset=True)

    def _write():
        task = task_service.update_task(db, task_id=task_id, changes=changes)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='TASK_UPDATED',
            ip=get_client_ip(request),
            entity_type='task',
            entity_id=task_id,
            metadata={'fields': sorted(changes)},
        )
        db.commit()
        return task

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete('/tasks/{task_id}')
def delete_task(
    task_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        task_service.delete_task(db, task_id=task_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='TASK_DELETED',
            ip=get_client_ip(request),
            entity_type='task',
            entity_id=task_id,
        )
        db.commit()

    try:
        run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {'ok': True}


# ----- Complaints -----


@router.get('/complaints', response_model=list[ComplaintRead])
def complaints(
    status: ComplaintStatus | None = None,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    return run_with_retry(db, lambda: complaint_service.list_complaints(db, status=status))


@router.patch('/complaints/{complaint_id}', response_model=ComplaintRead)
def update_complaint(
    complaint_id: int,
    payload: ComplaintUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    changes = payload.model_dump(exclude_unset=True)

    def _write():
        complaint = complaint_service.update_complaint(db, complaint_id=complaint_id, changes=changes)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='COMPLAINT_UPDATED',
            ip=get_client_ip(request),
            entity_type='complaint',
            entity_id=complaint_id,
            metadata={'fields': sorted(changes)},
        )
        db.commit()
        return complaint

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post('/complaints/{complaint_id}/resolve', response_model=ComplaintRead)
def resolve_complaint(
    complaint_id: int,
    payload: ComplaintResolve,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        complaint = complaint_service.resolve_complaint(db, complaint_id=complaint_id, resolution=payload.resolution)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='COMPLAINT_RESOLVED',
            ip=get_client_ip(request),
            entity_type='complaint',
            entity_id=complaint_id,
            metadata={'resolution_length': len(payload.resolution)},
        )
        db.commit()
        return complaint

    try:
        return run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete('/complaints/{complaint_id}')
def delete_complaint(
    complaint_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    def _write():
        complaint_service.delete_complaint(db, complaint_id=complaint_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='COMPLAINT_DELETED',
            ip=get_client_ip(request),
            entity_type='complaint',
            entity_id=complaint_id,
        )
        db.commit()

    try:
        run_with_retry(db, _write)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {'ok': True}
