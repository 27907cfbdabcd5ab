"""
Endpoints de fechas omitidas
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from app.core.database import get_db
from app.schemas.skip_date import SkipDateResponse
from app.services.skip_date_service import SkipDateService

router = APIRouter()


@router.get("/", response_model=List[SkipDateResponse])
async def list_skip_dates(
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        db: Session = Depends(get_db)
):
    """
    Fechas omitidas de todos los medicamentos en un rango
    """
    skip_date_service = SkipDateService(db)
    return skip_date_service.get_skip_dates(start_date=start_date, end_date=end_date)


@router.delete("/{skip_date_id}")
async def delete_skip_date(
        skip_date_id: int,
        db: Session = Depends(get_db)
):
    skip_date_service = SkipDateService(db)
    skip_date_service.delete_skip_date(skip_date_id)
    return {"message": "Fecha omitida eliminada exitosamente"}
