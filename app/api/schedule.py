"""
Endpoints de horarios
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.core.database import get_db
from app.services.schedule_service import ScheduleService

router = APIRouter()


@router.get("/range")
async def multi_day_schedule(
        start_date: str = Query(..., description="YYYY-MM-DD"),
        end_date: str = Query(..., description="YYYY-MM-DD"),
        db: Session = Depends(get_db)
):
    """
    Horarios de un rango de hasta 31 días
    """
    schedule_service = ScheduleService(db)
    return schedule_service.generate_multi_day_schedule(start_date, end_date)


@router.get("/week")
async def weekly_schedule(
        date: Optional[str] = Query(None, description="Fecha de referencia YYYY-MM-DD"),
        db: Session = Depends(get_db)
):
    schedule_service = ScheduleService(db)
    return schedule_service.get_weekly_schedule(date)


@router.get("/{schedule_date}")
async def daily_schedule(
        schedule_date: str,
        db: Session = Depends(get_db)
):
    """
    Horario del día con el estado de cada dosis
    """
    schedule_service = ScheduleService(db)
    return schedule_service.generate_daily_schedule(schedule_date)


@router.get("/{schedule_date}/summary")
async def daily_schedule_summary(
        schedule_date: str,
        db: Session = Depends(get_db)
):
    schedule_service = ScheduleService(db)
    return schedule_service.get_schedule_summary(schedule_date)
