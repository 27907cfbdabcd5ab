"""
Endpoints de medicamentos, inventario, dosis y fechas omitidas
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from app.core.database import get_db
from app.core.dependencies import get_pagination_params, PaginationParams
from app.schemas.dose import DoseCreate, DoseResponse
from app.schemas.medication import (
    MedicationCreate,
    MedicationUpdate,
    MedicationResponse,
    MedicationDetail,
    InventoryUpdate,
    DoseGiven,
    DoseGivenResult,
    DeleteResult
)
from app.schemas.skip_date import SkipDateCreate, SkipDateResponse
from app.services.dose_service import DoseService
from app.services.medication_service import MedicationService
from app.services.schedule_service import ScheduleService
from app.services.skip_date_service import SkipDateService

router = APIRouter()


@router.get("/", response_model=List[MedicationResponse])
async def list_medications(
        pagination: PaginationParams = Depends(get_pagination_params),
        search: Optional[str] = Query(None, description="Buscar por nombre, concentración o notas"),
        active_on: Optional[date] = Query(None, description="Solo vigentes en esta fecha"),
        sort_by: str = Query("name"),
        sort_direction: str = Query("asc"),
        db: Session = Depends(get_db)
):
    """
    Listar medicamentos
    """
    medication_service = MedicationService(db)

    return medication_service.get_medications(
        skip=pagination.skip,
        limit=pagination.limit,
        search=search,
        active_on=active_on,
        sort_by=sort_by,
        sort_direction=sort_direction
    )


@router.post("/", response_model=MedicationDetail, status_code=status.HTTP_201_CREATED)
async def create_medication(
        medication_data: MedicationCreate,
        db: Session = Depends(get_db)
):
    """
    Crear nuevo medicamento con sus dosis
    """
    medication_service = MedicationService(db)
    return medication_service.create_medication(medication_data)


@router.get("/low-inventory")
async def low_inventory(
        days_ahead: int = Query(1, ge=1, le=30),
        db: Session = Depends(get_db)
):
    """
    Medicamentos vigentes que se agotan pronto
    """
    medication_service = MedicationService(db)
    return medication_service.get_low_inventory_medications(days_ahead)


@router.get("/{medication_id}", response_model=MedicationDetail)
async def get_medication(
        medication_id: int,
        db: Session = Depends(get_db)
):
    """
    Obtener detalles de un medicamento específico
    """
    medication_service = MedicationService(db)
    return medication_service.get_medication_by_id(medication_id)


@router.put("/{medication_id}", response_model=MedicationResponse)
async def update_medication(
        medication_id: int,
        medication_update: MedicationUpdate,
        db: Session = Depends(get_db)
):
    """
    Actualizar información del medicamento (el inventario se cambia en /inventory)
    """
    medication_service = MedicationService(db)
    return medication_service.update_medication(
        medication_id=medication_id,
        medication_update=medication_update
    )


@router.delete("/{medication_id}", response_model=DeleteResult)
async def delete_medication(
        medication_id: int,
        db: Session = Depends(get_db)
):
    """
    Eliminar medicamento. Si está vigente hoy se desactiva en lugar de borrarse
    """
    medication_service = MedicationService(db)
    return medication_service.delete_medication(medication_id)


@router.post("/{medication_id}/inventory", response_model=MedicationResponse)
async def update_inventory(
        medication_id: int,
        inventory_data: InventoryUpdate,
        db: Session = Depends(get_db)
):
    """
    Actualizar inventario por total de tabletas, blísters o tabletas agregadas
    """
    medication_service = MedicationService(db)
    return medication_service.update_inventory(
        medication_id,
        total_tablets=inventory_data.total_tablets,
        sheet_count=inventory_data.sheet_count,
        add_tablets=inventory_data.add_tablets,
        reason=inventory_data.reason
    )


@router.get("/{medication_id}/inventory/status")
async def inventory_status(
        medication_id: int,
        db: Session = Depends(get_db)
):
    medication_service = MedicationService(db)
    return medication_service.get_inventory_status(medication_id)


@router.post("/{medication_id}/dose-given", response_model=DoseGivenResult)
async def dose_given(
        medication_id: int,
        dose_data: DoseGiven,
        db: Session = Depends(get_db)
):
    """
    Registrar una toma y descontar el inventario
    """
    medication_service = MedicationService(db)
    return medication_service.mark_dose_given(
        medication_id,
        dose_data.dose_amount,
        timestamp=dose_data.timestamp,
        dose_id=dose_data.dose_id
    )


@router.get("/{medication_id}/active-days")
async def active_days(
        medication_id: int,
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        db: Session = Depends(get_db)
):
    schedule_service = ScheduleService(db)
    return schedule_service.calculate_active_days(medication_id, start_date, end_date)


@router.get("/{medication_id}/next-dose")
async def next_dose(
        medication_id: int,
        db: Session = Depends(get_db)
):
    schedule_service = ScheduleService(db)
    return {"next_dose": schedule_service.get_next_scheduled_dose(medication_id)}


# ===== DOSIS =====

@router.get("/{medication_id}/doses", response_model=List[DoseResponse])
async def list_doses(
        medication_id: int,
        db: Session = Depends(get_db)
):
    dose_service = DoseService(db)
    return dose_service.get_doses_for_medication(medication_id)


@router.post("/{medication_id}/doses", response_model=DoseResponse, status_code=status.HTTP_201_CREATED)
async def create_dose(
        medication_id: int,
        dose_data: DoseCreate,
        db: Session = Depends(get_db)
):
    dose_service = DoseService(db)
    return dose_service.create_dose(medication_id, dose_data)


# ===== FECHAS OMITIDAS =====

@router.get("/{medication_id}/skip-dates", response_model=List[SkipDateResponse])
async def list_skip_dates(
        medication_id: int,
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        db: Session = Depends(get_db)
):
    skip_date_service = SkipDateService(db)
    return skip_date_service.get_skip_dates(medication_id, start_date, end_date)


@router.post("/{medication_id}/skip-dates", response_model=SkipDateResponse, status_code=status.HTTP_201_CREATED)
async def create_skip_date(
        medication_id: int,
        skip_data: SkipDateCreate,
        db: Session = Depends(get_db)
):
    skip_date_service = SkipDateService(db)
    return skip_date_service.create_skip_date(medication_id, skip_data.skip_date, skip_data.reason)
