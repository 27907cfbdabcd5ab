"""
Servicio de notificaciones: reglas de inventario bajo, dosis próxima y
dosis omitida, más la gestión de notificaciones existentes
"""
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime, timedelta
from contextlib import contextmanager
import threading

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, ValidationError
from app.core.timeutils import local_now, start_of_day
from app.core.validation import validate_id, validate_id_list, validate_int_range, validate_sort
from app.models.medication import Medication
from app.models.notification import Notification, NotificationType
from app.schemas.notification import BuySoonPayload, DoseDuePayload, MissedDosePayload
from app.services.medication_service import MedicationService
from app.services.schedule_service import ScheduleService, DoseStatus
import logging

logger = logging.getLogger(__name__)

NOTIFICATION_SORT_FIELDS = ("created_at", "type", "is_read")

# Un candado por (tipo, medicamento) alrededor de verificar-e-insertar
_dedup_locks: Dict[Tuple[str, Optional[int]], threading.Lock] = {}
_dedup_registry_lock = threading.Lock()


@contextmanager
def dedup_lock(notification_type: NotificationType, medicine_id: Optional[int]):
    key = (NotificationType(notification_type).value, medicine_id)
    with _dedup_registry_lock:
        lock = _dedup_locks.setdefault(key, threading.Lock())
    with lock:
        yield


def _format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class NotificationService:
    """Servicio para generar y gestionar notificaciones"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.medications = MedicationService(db)
        self.schedules = ScheduleService(db)

    # ===== REGLAS =====

    def generate_buy_soon_alerts(self, days_ahead: int = 1, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Alertas para medicamentos vigentes cuyo inventario dura days_ahead días o menos"""
        validate_int_range(days_ahead, 1, 30, "days_ahead")
        now = now or local_now()

        active = self.medications.find_active_by_date(now.date())
        notifications = []

        for medication in active:
            alert = self.medications.calculate_medication_alert(medication, days_ahead)
            if not alert["needs_refill"]:
                continue

            notification = self.create_buy_soon_notification(medication.id, alert, now=now)
            if notification:
                notifications.append(notification)

        logger.info(
            f"Alertas de inventario: {len(active)} medicamentos revisados, {len(notifications)} notificaciones creadas"
        )
        return {
            "alerts_checked": len(active),
            "notifications_created": len(notifications),
            "notifications": notifications
        }

    def generate_dose_due_notifications(self, minutes_ahead: int = 15, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Notificar dosis de hoy programadas dentro de [now, now + minutes_ahead]"""
        validate_int_range(minutes_ahead, 1, 120, "minutes_ahead")
        now = now or local_now()
        window_end = now + timedelta(minutes=minutes_ahead)

        schedule = self.schedules.generate_daily_schedule(now.date(), now=now)
        notifications = []

        for medication in schedule["medications"]:
            for entry in medication["doses"]:
                if entry["status"] == DoseStatus.GIVEN.value:
                    continue
                scheduled_at = datetime.fromisoformat(entry["scheduled_at"])
                if now <= scheduled_at <= window_end:
                    notification = self.create_dose_due_notification(medication["id"], entry, now=now)
                    if notification:
                        notifications.append(notification)

        logger.info(
            f"Notificaciones de dosis próximas: {schedule['total_medications']} medicamentos revisados, "
            f"{len(notifications)} notificaciones creadas"
        )
        return {
            "medications_checked": schedule["total_medications"],
            "notifications_created": len(notifications),
            "notifications": notifications
        }

    def generate_missed_dose_notifications(self, hours_overdue: int = 1, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Notificar dosis de hoy con más de hours_overdue horas de retraso sin toma registrada"""
        validate_int_range(hours_overdue, 1, 24, "hours_overdue")
        now = now or local_now()
        threshold = now - timedelta(hours=hours_overdue)

        schedule = self.schedules.generate_daily_schedule(now.date(), now=now)
        notifications = []

        for medication in schedule["medications"]:
            for entry in medication["doses"]:
                if entry["status"] == DoseStatus.GIVEN.value:
                    continue
                scheduled_at = datetime.fromisoformat(entry["scheduled_at"])
                if scheduled_at <= threshold:
                    notification = self.create_missed_dose_notification(medication["id"], entry, now=now)
                    if notification:
                        notifications.append(notification)

        logger.info(
            f"Notificaciones de dosis omitidas: {schedule['total_medications']} medicamentos revisados, "
            f"{len(notifications)} notificaciones creadas"
        )
        return {
            "medications_checked": schedule["total_medications"],
            "notifications_created": len(notifications),
            "notifications": notifications
        }

    def trigger_immediate_notification_check(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Ejecutar las tres reglas una vez con los parámetros por defecto"""
        now = now or local_now()

        buy_soon = self.generate_buy_soon_alerts(self.settings.BUY_SOON_DAYS_AHEAD, now=now)
        dose_due = self.generate_dose_due_notifications(self.settings.DOSE_DUE_MINUTES_AHEAD, now=now)
        missed = self.generate_missed_dose_notifications(self.settings.MISSED_DOSE_HOURS_OVERDUE, now=now)

        return {
            "message": "Verificación de notificaciones completada",
            "timestamp": now.isoformat(),
            "results": [
                {"type": "buy_soon", "count": buy_soon["notifications_created"],
                 "checked": buy_soon["alerts_checked"]},
                {"type": "dose_due", "count": dose_due["notifications_created"],
                 "checked": dose_due["medications_checked"]},
                {"type": "missed_dose", "count": missed["notifications_created"],
                 "checked": missed["medications_checked"]}
            ]
        }

    # ===== CONSTRUCTORES =====

    def create_buy_soon_notification(
            self,
            medicine_id: int,
            alert: Dict[str, Any],
            now: Optional[datetime] = None
    ) -> Optional[Notification]:
        """Crear alerta de inventario salvo que exista otra dentro de la ventana de deduplicación"""
        now = now or local_now()
        payload = BuySoonPayload(
            medication_name=alert["medication_name"],
            medication_strength=alert.get("medication_strength"),
            current_tablets=alert["current_tablets"],
            daily_consumption=alert["daily_consumption"],
            days_remaining=alert["days_remaining"],
            days_ahead=alert["days_ahead"],
            alert_level=alert["alert_level"]
        )
        message = (
            f"{payload.medication_name} se está agotando. Quedan "
            f"{_format_amount(payload.current_tablets)} tabletas ({payload.days_remaining} días)."
        )

        with dedup_lock(NotificationType.BUY_SOON, medicine_id):
            window_start = now - timedelta(hours=self.settings.NOTIFICATION_DEDUP_WINDOW_HOURS)
            exists = self.db.query(Notification.id).filter(
                Notification.type == NotificationType.BUY_SOON,
                Notification.medicine_id == medicine_id,
                Notification.created_at > window_start
            ).first()
            if exists:
                logger.debug(f"Alerta de inventario duplicada omitida para medicamento {medicine_id}")
                return None

            return self._insert(medicine_id, NotificationType.BUY_SOON, message, payload.dict(), now)

    def create_dose_due_notification(
            self,
            medicine_id: int,
            entry: Dict[str, Any],
            now: Optional[datetime] = None
    ) -> Optional[Notification]:
        """Crear notificación de dosis próxima (una por dosis por día)"""
        payload = DoseDuePayload(**self._dose_payload_fields(entry))
        message = (
            f"Hora de tomar {payload.medication_name} - "
            f"{_format_amount(payload.dose_amount)} tabletas a las {payload.time_of_day}."
        )
        return self._create_dose_notification(NotificationType.DOSE_DUE, medicine_id, payload, message, now)

    def create_missed_dose_notification(
            self,
            medicine_id: int,
            entry: Dict[str, Any],
            now: Optional[datetime] = None
    ) -> Optional[Notification]:
        """Crear notificación de dosis omitida (una por dosis por día)"""
        now = now or local_now()
        scheduled_at = datetime.fromisoformat(entry["scheduled_at"])
        hours_overdue = int((now - scheduled_at).total_seconds() // 3600)

        payload = MissedDosePayload(hours_overdue=hours_overdue, **self._dose_payload_fields(entry))
        message = (
            f"Dosis omitida: {payload.medication_name} - "
            f"{_format_amount(payload.dose_amount)} tabletas a las {payload.time_of_day}."
        )
        return self._create_dose_notification(NotificationType.MISSED_DOSE, medicine_id, payload, message, now)

    @staticmethod
    def _dose_payload_fields(entry: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "medication_name": entry["medication_name"],
            "medication_strength": entry.get("medication_strength"),
            "dose_id": entry["dose_id"],
            "dose_amount": entry["dose_amount"],
            "time_of_day": entry["time_of_day"],
            "scheduled_date": entry["scheduled_at"][:10],
            "scheduled_time": entry["scheduled_at"],
            "route": entry.get("route"),
            "instructions": entry.get("instructions")
        }

    def _create_dose_notification(
            self,
            notification_type: NotificationType,
            medicine_id: int,
            payload: DoseDuePayload,
            message: str,
            now: Optional[datetime]
    ) -> Optional[Notification]:
        now = now or local_now()
        scheduled_day = datetime.fromisoformat(payload.scheduled_date).date()

        with dedup_lock(notification_type, medicine_id):
            existing = self.db.query(Notification).filter(
                Notification.type == notification_type,
                Notification.medicine_id == medicine_id,
                Notification.created_at >= start_of_day(scheduled_day)
            ).all()
            for notification in existing:
                data = notification.payload or {}
                if data.get("dose_id") == payload.dose_id and data.get("scheduled_date") == payload.scheduled_date:
                    logger.debug(
                        f"Notificación {notification_type.value} duplicada omitida para dosis {payload.dose_id}"
                    )
                    return None

            return self._insert(medicine_id, notification_type, message, payload.dict(), now)

    def _insert(
            self,
            medicine_id: Optional[int],
            notification_type: NotificationType,
            message: str,
            payload: Dict[str, Any],
            now: datetime
    ) -> Notification:
        try:
            notification = Notification(
                medicine_id=medicine_id,
                type=notification_type,
                message=message,
                payload=payload,
                is_read=False,
                created_at=now
            )
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando notificación {notification_type.value}: {e}")
            raise

        logger.info(f"Notificación creada: {notification_type.value} medicamento {medicine_id} (ID: {notification.id})")
        return notification

    # ===== CONSULTAS =====

    def get_notifications(
            self,
            skip: int = 0,
            limit: Optional[int] = 100,
            medicine_id: Optional[int] = None,
            notification_type: Optional[str] = None,
            is_read: Optional[bool] = None,
            start_date: Optional[datetime] = None,
            end_date: Optional[datetime] = None,
            sort_by: str = "created_at",
            sort_direction: str = "desc"
    ) -> List[Notification]:
        """Obtener notificaciones con filtros"""
        validate_sort(sort_by, sort_direction, NOTIFICATION_SORT_FIELDS)

        query = self.db.query(Notification)

        if medicine_id:
            query = query.filter(Notification.medicine_id == validate_id(medicine_id, "ID de medicamento"))

        if notification_type:
            try:
                query = query.filter(Notification.type == NotificationType(notification_type))
            except ValueError:
                raise ValidationError(f"Tipo de notificación inválido: {notification_type}")

        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)

        if start_date:
            query = query.filter(Notification.created_at >= start_date)

        if end_date:
            query = query.filter(Notification.created_at <= end_date)

        column = getattr(Notification, sort_by)
        if sort_direction.lower() == "asc":
            query = query.order_by(column.asc(), Notification.id.asc())
        else:
            query = query.order_by(column.desc(), Notification.id.desc())

        if skip:
            query = query.offset(skip)
        if limit:
            query = query.limit(limit)

        return query.all()

    def get_unread_notifications(self, medicine_id: Optional[int] = None) -> List[Notification]:
        return self.get_notifications(limit=None, medicine_id=medicine_id, is_read=False)

    def get_notification_by_id(self, notification_id: int) -> Notification:
        notification_id = validate_id(notification_id, "ID de notificación")
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notificación no encontrada")
        return notification

    def get_notification_stats(self, medicine_id: Optional[int] = None) -> Dict[str, Any]:
        """Estadísticas de notificaciones"""

        def count_when(condition):
            return func.sum(case((condition, 1), else_=0))

        query = self.db.query(
            func.count(Notification.id),
            count_when(Notification.is_read.is_(False)),
            count_when(Notification.is_read.is_(True)),
            count_when(Notification.type == NotificationType.BUY_SOON),
            count_when(Notification.type == NotificationType.DOSE_DUE),
            count_when(Notification.type == NotificationType.MISSED_DOSE),
            func.min(Notification.created_at),
            func.max(Notification.created_at)
        )

        if medicine_id:
            query = query.filter(Notification.medicine_id == validate_id(medicine_id, "ID de medicamento"))

        row = query.one()

        return {
            "total_notifications": int(row[0] or 0),
            "unread_count": int(row[1] or 0),
            "read_count": int(row[2] or 0),
            "buy_soon_count": int(row[3] or 0),
            "dose_due_count": int(row[4] or 0),
            "missed_dose_count": int(row[5] or 0),
            "earliest_notification": row[6].isoformat() if row[6] else None,
            "latest_notification": row[7].isoformat() if row[7] else None
        }

    def get_notification_summary(self) -> List[Dict[str, Any]]:
        """Resumen por tipo"""
        rows = self.db.query(
            Notification.type,
            func.count(Notification.id),
            func.sum(case((Notification.is_read.is_(False), 1), else_=0)),
            func.max(Notification.created_at)
        ).group_by(Notification.type).all()

        summary = [
            {
                "type": NotificationType(row[0]).value,
                "total_count": int(row[1] or 0),
                "unread_count": int(row[2] or 0),
                "latest_notification": row[3].isoformat() if row[3] else None
            }
            for row in rows
        ]
        return sorted(summary, key=lambda s: s["type"])

    # ===== GESTIÓN =====

    def mark_notification_as_read(self, notification_id: int) -> Notification:
        notification = self.get_notification_by_id(notification_id)

        try:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error marcando notificación {notification_id} como leída: {e}")
            raise

        return notification

    def mark_multiple_notifications_as_read(self, notification_ids: List[int]) -> Dict[str, Any]:
        ids = validate_id_list(notification_ids, "ID de notificación")

        try:
            updated = self.db.query(Notification).filter(
                Notification.id.in_(ids),
                Notification.is_read.is_(False)
            ).update({Notification.is_read: True}, synchronize_session=False)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error marcando notificaciones como leídas: {e}")
            raise

        logger.info(f"Notificaciones marcadas como leídas: {updated}")
        return {"updated_count": updated}

    def mark_all_notifications_as_read_for_medication(self, medicine_id: int) -> Dict[str, Any]:
        medicine_id = validate_id(medicine_id, "ID de medicamento")
        if not self.db.query(Medication.id).filter(Medication.id == medicine_id).first():
            raise NotFoundError("Medicamento no encontrado")

        try:
            updated = self.db.query(Notification).filter(
                Notification.medicine_id == medicine_id,
                Notification.is_read.is_(False)
            ).update({Notification.is_read: True}, synchronize_session=False)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error marcando notificaciones del medicamento {medicine_id}: {e}")
            raise

        logger.info(f"Notificaciones del medicamento {medicine_id} marcadas como leídas: {updated}")
        return {"medicine_id": medicine_id, "updated_count": updated}

    def delete_notification(self, notification_id: int) -> Dict[str, Any]:
        notification = self.get_notification_by_id(notification_id)

        try:
            self.db.delete(notification)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error eliminando notificación {notification_id}: {e}")
            raise

        logger.info(f"Notificación eliminada: {notification_id}")
        return {"deleted": True, "id": notification_id}

    def cleanup_old_notifications(self, days_old: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Eliminar notificaciones con más de days_old días"""
        validate_int_range(days_old, 1, 365, "days_old")
        now = now or local_now()
        cutoff = now - timedelta(days=days_old)

        try:
            deleted = self.db.query(Notification).filter(
                Notification.created_at < cutoff
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error limpiando notificaciones: {e}")
            raise

        logger.info(f"Notificaciones antiguas eliminadas: {deleted}")
        return {"deleted_count": deleted, "cleanup_date": now.isoformat()}
