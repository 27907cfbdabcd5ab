"""
Endpoints de dosis
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.dose import DoseUpdate, DoseResponse
from app.services.dose_service import DoseService

router = APIRouter()


@router.get("/{dose_id}", response_model=DoseResponse)
async def get_dose(
        dose_id: int,
        db: Session = Depends(get_db)
):
    dose_service = DoseService(db)
    return dose_service.get_dose_by_id(dose_id)


@router.put("/{dose_id}", response_model=DoseResponse)
async def update_dose(
        dose_id: int,
        dose_update: DoseUpdate,
        db: Session = Depends(get_db)
):
    """
    Actualizar cantidad, hora o indicaciones de una dosis
    """
    dose_service = DoseService(db)
    return dose_service.update_dose(dose_id, dose_update)


@router.delete("/{dose_id}")
async def delete_dose(
        dose_id: int,
        db: Session = Depends(get_db)
):
    dose_service = DoseService(db)
    dose_service.delete_dose(dose_id)
    return {"message": "Dosis eliminada exitosamente"}
