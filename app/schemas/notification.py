"""
Esquemas Pydantic para Notificaciones
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.notification import NotificationType


# Payloads tipados por tipo de notificación
class BuySoonPayload(BaseModel):
    """Inventario bajo"""
    medication_name: str
    medication_strength: Optional[str] = None
    current_tablets: float
    daily_consumption: float
    days_remaining: int
    days_ahead: int
    alert_level: str


class DoseDuePayload(BaseModel):
    """Dosis próxima"""
    medication_name: str
    medication_strength: Optional[str] = None
    dose_id: int
    dose_amount: float
    time_of_day: str
    scheduled_date: str
    scheduled_time: str
    route: Optional[str] = None
    instructions: Optional[str] = None


class MissedDosePayload(DoseDuePayload):
    """Dosis omitida"""
    hours_overdue: int


PAYLOAD_MODELS = {
    NotificationType.BUY_SOON: BuySoonPayload,
    NotificationType.DOSE_DUE: DoseDuePayload,
    NotificationType.MISSED_DOSE: MissedDosePayload,
}


def parse_payload(notification_type: NotificationType, data: Optional[Dict[str, Any]]):
    """Reconstruir el payload tipado desde el JSON almacenado"""
    if data is None:
        return None
    return PAYLOAD_MODELS[NotificationType(notification_type)](**data)


class NotificationResponse(BaseModel):
    id: int
    medicine_id: Optional[int] = None
    medication_name: Optional[str] = None
    type: NotificationType
    message: str
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationIds(BaseModel):
    ids: List[int] = Field(..., min_length=1)
