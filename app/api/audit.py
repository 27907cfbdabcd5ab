"""
Endpoints de la bitácora de auditoría
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.database import get_db
from app.core.dependencies import (
    get_pagination_params,
    get_date_range_params,
    PaginationParams,
    DateRangeParams
)
from app.models.audit_log import AuditAction
from app.schemas.audit import AuditLogResponse
from app.services.audit_service import AuditService
from app.services.medication_service import MedicationService

router = APIRouter()


@router.get("/", response_model=List[AuditLogResponse])
async def list_audit_logs(
        pagination: PaginationParams = Depends(get_pagination_params),
        date_range: DateRangeParams = Depends(get_date_range_params),
        medicine_id: Optional[int] = Query(None),
        action: Optional[AuditAction] = Query(None),
        quantity_filter: Optional[str] = Query(None, description="positive, negative o zero"),
        sort_by: str = Query("created_at"),
        sort_direction: str = Query("desc"),
        db: Session = Depends(get_db)
):
    """
    Listar registros de auditoría
    """
    audit_service = AuditService(db)

    return audit_service.get_audit_logs(
        skip=pagination.skip,
        limit=pagination.limit,
        medicine_id=medicine_id,
        action=action,
        start_date=date_range.start_datetime,
        end_date=date_range.end_datetime,
        quantity_filter=quantity_filter,
        sort_by=sort_by,
        sort_direction=sort_direction
    )


@router.get("/stats")
async def audit_stats(
        medicine_id: Optional[int] = Query(None),
        db: Session = Depends(get_db)
):
    audit_service = AuditService(db)
    return audit_service.get_audit_stats(medicine_id)


@router.get("/activity")
async def daily_activity(
        start_date: str = Query(..., description="YYYY-MM-DD"),
        end_date: str = Query(..., description="YYYY-MM-DD"),
        medicine_id: Optional[int] = Query(None),
        db: Session = Depends(get_db)
):
    audit_service = AuditService(db)
    return audit_service.get_daily_activity(start_date, end_date, medicine_id)


@router.get("/export")
async def export_audit_logs(
        date_range: DateRangeParams = Depends(get_date_range_params),
        medicine_id: Optional[int] = Query(None),
        action: Optional[AuditAction] = Query(None),
        db: Session = Depends(get_db)
):
    audit_service = AuditService(db)
    return audit_service.export_logs(
        medicine_id=medicine_id,
        action=action,
        start_date=date_range.start_datetime,
        end_date=date_range.end_datetime
    )


@router.get("/medications/{medication_id}/ledger")
async def medication_ledger(
        medication_id: int,
        limit: int = Query(100, ge=1, le=1000),
        db: Session = Depends(get_db)
):
    """
    Historial de inventario y verificación del saldo de la bitácora
    """
    medication = MedicationService(db).get_medication_by_id(medication_id)
    audit_service = AuditService(db)

    return {
        "verification": audit_service.verify_inventory_ledger(medication.id, medication.total_tablets),
        "timeline": audit_service.get_inventory_timeline(medication.id, limit)
    }


@router.get("/medications/{medication_id}/compliance")
async def medication_compliance(
        medication_id: int,
        start_date: str = Query(..., description="YYYY-MM-DD"),
        end_date: str = Query(..., description="YYYY-MM-DD"),
        db: Session = Depends(get_db)
):
    medication = MedicationService(db).get_medication_by_id(medication_id)
    audit_service = AuditService(db)
    return audit_service.get_compliance_data(medication.id, start_date, end_date)


@router.get("/{audit_id}", response_model=AuditLogResponse)
async def get_audit_log(
        audit_id: int,
        db: Session = Depends(get_db)
):
    audit_service = AuditService(db)
    return audit_service.get_audit_log_by_id(audit_id)
