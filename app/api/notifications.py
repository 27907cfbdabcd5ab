"""
Endpoints de notificaciones y trabajos en segundo plano
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.database import get_db
from app.core.dependencies import (
    get_pagination_params,
    get_date_range_params,
    get_scheduler,
    PaginationParams,
    DateRangeParams
)
from app.models.notification import NotificationType
from app.schemas.notification import NotificationResponse, NotificationIds
from app.services.job_scheduler import Scheduler
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get("/", response_model=List[NotificationResponse])
async def list_notifications(
        pagination: PaginationParams = Depends(get_pagination_params),
        date_range: DateRangeParams = Depends(get_date_range_params),
        medicine_id: Optional[int] = Query(None),
        type: Optional[NotificationType] = Query(None, description="Filtrar por tipo"),
        is_read: Optional[bool] = Query(None),
        sort_by: str = Query("created_at"),
        sort_direction: str = Query("desc"),
        db: Session = Depends(get_db)
):
    """
    Listar notificaciones con filtros
    """
    notification_service = NotificationService(db)

    return notification_service.get_notifications(
        skip=pagination.skip,
        limit=pagination.limit,
        medicine_id=medicine_id,
        notification_type=type,
        is_read=is_read,
        start_date=date_range.start_datetime,
        end_date=date_range.end_datetime,
        sort_by=sort_by,
        sort_direction=sort_direction
    )


@router.get("/unread", response_model=List[NotificationResponse])
async def list_unread_notifications(
        medicine_id: Optional[int] = Query(None),
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.get_unread_notifications(medicine_id)


@router.get("/stats")
async def notification_stats(
        medicine_id: Optional[int] = Query(None),
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.get_notification_stats(medicine_id)


@router.get("/summary")
async def notification_summary(db: Session = Depends(get_db)):
    notification_service = NotificationService(db)
    return notification_service.get_notification_summary()


# ===== REGLAS =====

@router.post("/generate/buy-soon")
async def generate_buy_soon(
        days_ahead: int = Query(1, description="Días de anticipación (1-30)"),
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    result = notification_service.generate_buy_soon_alerts(days_ahead)
    result["notifications"] = [NotificationResponse.model_validate(n) for n in result["notifications"]]
    return result


@router.post("/generate/dose-due")
async def generate_dose_due(
        minutes_ahead: int = Query(15, description="Minutos de anticipación (1-120)"),
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    result = notification_service.generate_dose_due_notifications(minutes_ahead)
    result["notifications"] = [NotificationResponse.model_validate(n) for n in result["notifications"]]
    return result


@router.post("/generate/missed-dose")
async def generate_missed_dose(
        hours_overdue: int = Query(1, description="Horas de retraso (1-24)"),
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    result = notification_service.generate_missed_dose_notifications(hours_overdue)
    result["notifications"] = [NotificationResponse.model_validate(n) for n in result["notifications"]]
    return result


@router.post("/check-now")
async def check_now(db: Session = Depends(get_db)):
    """
    Ejecutar las tres reglas una vez
    """
    notification_service = NotificationService(db)
    return notification_service.trigger_immediate_notification_check()


# ===== GESTIÓN =====

@router.put("/read-multiple")
async def mark_multiple_as_read(
        payload: NotificationIds,
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.mark_multiple_notifications_as_read(payload.ids)


@router.put("/read-all/{medicine_id}")
async def mark_all_as_read_for_medication(
        medicine_id: int,
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.mark_all_notifications_as_read_for_medication(medicine_id)


@router.delete("/cleanup")
async def cleanup_notifications(
        days_old: int = Query(30, description="Antigüedad mínima en días (1-365)"),
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.cleanup_old_notifications(days_old)


# ===== TRABAJOS =====

@router.post("/jobs/start-all")
async def start_all_jobs(scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.start_all_background_jobs()


@router.post("/jobs/stop-all")
async def stop_all_jobs(scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.stop_all_background_jobs()


@router.post("/jobs/restart-all")
async def restart_all_jobs(scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.restart_all_background_jobs()


@router.get("/jobs/status")
async def jobs_status(scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.get_background_job_status()


@router.post("/jobs/{job_name}/start")
async def start_job(job_name: str, scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.start_job(job_name)


@router.post("/jobs/{job_name}/stop")
async def stop_job(job_name: str, scheduler: Scheduler = Depends(get_scheduler)):
    return scheduler.stop_job(job_name)


@router.post("/jobs/{job_name}/run")
async def run_job(job_name: str, scheduler: Scheduler = Depends(get_scheduler)):
    """
    Ejecutar un trabajo una vez sin esperar su intervalo
    """
    return await scheduler.run_job_now(job_name)


# ===== POR ID =====

@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
        notification_id: int,
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.get_notification_by_id(notification_id)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
        notification_id: int,
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.mark_notification_as_read(notification_id)


@router.delete("/{notification_id}")
async def delete_notification(
        notification_id: int,
        db: Session = Depends(get_db)
):
    notification_service = NotificationService(db)
    return notification_service.delete_notification(notification_id)
