"""
Servicio de bitácora de auditoría (ledger de inventario)

Los métodos log_* agregan el registro a la sesión sin hacer commit: el
servicio que origina el cambio confirma ambos en la misma transacción.
"""
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from typing import List, Optional, Dict, Any
from datetime import date, datetime, timedelta

from app.core.exceptions import NotFoundError, ValidationError
from app.core.timeutils import local_now, day_bounds, parse_date
from app.core.validation import validate_id, validate_int_range, validate_sort
from app.models.audit_log import AuditLog, AuditAction
import logging

logger = logging.getLogger(__name__)

AUDIT_SORT_FIELDS = ("created_at", "action", "quantity_change")
QUANTITY_FILTERS = ("positive", "negative", "zero")


class AuditService:
    """Servicio para registrar y consultar la bitácora"""

    def __init__(self, db: Session):
        self.db = db

    # ===== ESCRITURA =====

    def record(
            self,
            medicine_id: Optional[int],
            action: AuditAction,
            old_values: Optional[Dict[str, Any]] = None,
            new_values: Optional[Dict[str, Any]] = None,
            quantity_change: Optional[float] = None,
            created_at: Optional[datetime] = None
    ) -> AuditLog:
        """Agregar un registro a la transacción actual"""
        entry = AuditLog(
            medicine_id=medicine_id,
            action=AuditAction(action),
            old_values=old_values,
            new_values=new_values,
            quantity_change=quantity_change,
            created_at=created_at or local_now()
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def log_created(self, medicine_id: int, snapshot: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.CREATED, new_values=snapshot)

    def log_updated(self, medicine_id: int, old: Dict[str, Any], new: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.UPDATED, old_values=old, new_values=new)

    def log_deleted(self, medicine_id: int, snapshot: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.DELETED, old_values=snapshot)

    def log_soft_deleted(self, medicine_id: int, old: Dict[str, Any], new: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.SOFT_DELETED, old_values=old, new_values=new)

    def log_dose_given(
            self,
            medicine_id: int,
            dose_data: Dict[str, Any],
            consumed: float,
            timestamp: datetime
    ) -> AuditLog:
        return self.record(
            medicine_id,
            AuditAction.DOSE_GIVEN,
            new_values=dose_data,
            quantity_change=-abs(consumed),
            created_at=timestamp
        )

    def log_inventory_update(
            self,
            medicine_id: int,
            old_total: float,
            new_total: float,
            reason: Optional[str] = None
    ) -> AuditLog:
        return self.record(
            medicine_id,
            AuditAction.INVENTORY_UPDATED,
            old_values={"total_tablets": old_total},
            new_values={"total_tablets": new_total, "reason": reason},
            quantity_change=new_total - old_total
        )

    def log_skip_date_created(self, medicine_id: int, skip: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.SKIP_DATE_CREATED, new_values=skip)

    def log_skip_date_deleted(self, medicine_id: int, skip: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.SKIP_DATE_DELETED, old_values=skip)

    def log_dose_created(self, medicine_id: int, dose: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.DOSE_CREATED, new_values=dose)

    def log_dose_updated(self, medicine_id: int, old: Dict[str, Any], new: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.DOSE_UPDATED, old_values=old, new_values=new)

    def log_dose_deleted(self, medicine_id: int, dose: Dict[str, Any]) -> AuditLog:
        return self.record(medicine_id, AuditAction.DOSE_DELETED, old_values=dose)

    # ===== CONSULTA =====

    def get_audit_logs(
            self,
            skip: int = 0,
            limit: Optional[int] = 100,
            medicine_id: Optional[int] = None,
            action: Optional[AuditAction] = None,
            start_date: Optional[datetime] = None,
            end_date: Optional[datetime] = None,
            quantity_filter: Optional[str] = None,
            sort_by: str = "created_at",
            sort_direction: str = "desc"
    ) -> List[AuditLog]:
        """Obtener registros con filtros, orden y paginación"""
        validate_sort(sort_by, sort_direction, AUDIT_SORT_FIELDS)

        query = self.db.query(AuditLog)

        if medicine_id:
            query = query.filter(AuditLog.medicine_id == validate_id(medicine_id, "ID de medicamento"))

        if action:
            try:
                query = query.filter(AuditLog.action == AuditAction(action))
            except ValueError:
                raise ValidationError(f"Acción inválida: {action}")

        if start_date:
            query = query.filter(AuditLog.created_at >= start_date)

        if end_date:
            query = query.filter(AuditLog.created_at <= end_date)

        if quantity_filter:
            if quantity_filter not in QUANTITY_FILTERS:
                raise ValidationError(f"Filtro de cantidad inválido. Debe ser uno de: {', '.join(QUANTITY_FILTERS)}")
            if quantity_filter == "positive":
                query = query.filter(AuditLog.quantity_change > 0)
            elif quantity_filter == "negative":
                query = query.filter(AuditLog.quantity_change < 0)
            else:
                query = query.filter(AuditLog.quantity_change == 0)

        column = getattr(AuditLog, sort_by)
        ordering = column.asc() if sort_direction.lower() == "asc" else column.desc()
        query = query.order_by(ordering, AuditLog.id.asc() if sort_direction.lower() == "asc" else AuditLog.id.desc())

        if skip:
            query = query.offset(skip)
        if limit:
            query = query.limit(limit)

        return query.all()

    def get_audit_log_by_id(self, audit_id: int) -> AuditLog:
        entry = self.db.query(AuditLog).filter(AuditLog.id == validate_id(audit_id, "ID de auditoría")).first()
        if not entry:
            raise NotFoundError("Registro de auditoría no encontrado")
        return entry

    def get_doses_given_on(self, medicine_ids: List[int], target_date: date) -> List[AuditLog]:
        """Registros DOSE_GIVEN de una fecha para varios medicamentos"""
        if not medicine_ids:
            return []
        start, end = day_bounds(target_date)
        return self.db.query(AuditLog).filter(
            AuditLog.medicine_id.in_(medicine_ids),
            AuditLog.action == AuditAction.DOSE_GIVEN,
            AuditLog.created_at >= start,
            AuditLog.created_at < end
        ).order_by(AuditLog.created_at, AuditLog.id).all()

    def get_quantity_balance(self, medicine_id: int) -> float:
        """Suma de quantity_change de un medicamento"""
        total = self.db.query(func.coalesce(func.sum(AuditLog.quantity_change), 0)).filter(
            AuditLog.medicine_id == medicine_id
        ).scalar()
        return float(total or 0)

    def verify_inventory_ledger(self, medicine_id: int, current_total: float) -> Dict[str, Any]:
        """
        Comprobar que la suma de cambios de la bitácora explica el inventario
        actual a partir del inventario registrado al crear el medicamento
        """
        medicine_id = validate_id(medicine_id, "ID de medicamento")
        created = self.db.query(AuditLog).filter(
            AuditLog.medicine_id == medicine_id,
            AuditLog.action == AuditAction.CREATED
        ).order_by(AuditLog.id).first()

        if not created:
            raise NotFoundError("No existe registro de creación para el medicamento")

        initial_total = float((created.new_values or {}).get("total_tablets") or 0)
        balance = self.get_quantity_balance(medicine_id)
        expected = initial_total + balance

        return {
            "medicine_id": medicine_id,
            "initial_total": initial_total,
            "quantity_balance": balance,
            "expected_total": expected,
            "current_total": current_total,
            "is_consistent": abs(expected - current_total) < 1e-6
        }

    def get_audit_stats(self, medicine_id: Optional[int] = None) -> Dict[str, Any]:
        """Estadísticas de la bitácora"""

        def count_action(action: AuditAction):
            return func.sum(case((AuditLog.action == action, 1), else_=0))

        query = self.db.query(
            func.count(AuditLog.id),
            count_action(AuditAction.DOSE_GIVEN),
            count_action(AuditAction.INVENTORY_UPDATED),
            count_action(AuditAction.CREATED),
            count_action(AuditAction.UPDATED),
            count_action(AuditAction.DELETED) + count_action(AuditAction.SOFT_DELETED),
            func.coalesce(func.sum(AuditLog.quantity_change), 0),
            func.coalesce(func.sum(case((AuditLog.quantity_change > 0, AuditLog.quantity_change), else_=0)), 0),
            func.coalesce(func.sum(case((AuditLog.quantity_change < 0, -AuditLog.quantity_change), else_=0)), 0),
            func.min(AuditLog.created_at),
            func.max(AuditLog.created_at)
        )

        if medicine_id:
            query = query.filter(AuditLog.medicine_id == validate_id(medicine_id, "ID de medicamento"))

        row = query.one()

        return {
            "total_logs": int(row[0] or 0),
            "dose_given_count": int(row[1] or 0),
            "inventory_updated_count": int(row[2] or 0),
            "created_count": int(row[3] or 0),
            "updated_count": int(row[4] or 0),
            "deleted_count": int(row[5] or 0),
            "total_quantity_change": float(row[6] or 0),
            "total_quantity_added": float(row[7] or 0),
            "total_quantity_consumed": float(row[8] or 0),
            "earliest_log": row[9].isoformat() if row[9] else None,
            "latest_log": row[10].isoformat() if row[10] else None
        }

    def get_daily_activity(
            self,
            start_date,
            end_date,
            medicine_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Resumen de actividad por día en un rango"""
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start > end:
            raise ValidationError("La fecha de inicio debe ser menor o igual a la fecha de fin")

        logs = self.get_audit_logs(
            limit=None,
            medicine_id=medicine_id,
            start_date=day_bounds(start)[0],
            end_date=day_bounds(end)[1] - timedelta(microseconds=1),
            sort_by="created_at",
            sort_direction="asc"
        )

        days: Dict[date, Dict[str, Any]] = {}
        for log in logs:
            day = log.created_at.date()
            bucket = days.setdefault(day, {
                "date": day.isoformat(),
                "total_activities": 0,
                "doses_given": 0,
                "inventory_updates": 0,
                "tablets_consumed": 0.0
            })
            bucket["total_activities"] += 1
            if log.action == AuditAction.DOSE_GIVEN:
                bucket["doses_given"] += 1
            elif log.action == AuditAction.INVENTORY_UPDATED:
                bucket["inventory_updates"] += 1
            if log.quantity_change and log.quantity_change < 0:
                bucket["tablets_consumed"] += -log.quantity_change

        return [days[d] for d in sorted(days, reverse=True)]

    def get_compliance_data(self, medicine_id: int, start_date, end_date) -> List[Dict[str, Any]]:
        """Dosis registradas por día para un medicamento"""
        activity = self.get_daily_activity(start_date, end_date, medicine_id=medicine_id)
        logs = self.get_audit_logs(
            limit=None,
            medicine_id=medicine_id,
            action=AuditAction.DOSE_GIVEN,
            start_date=day_bounds(parse_date(start_date, "start_date"))[0],
            end_date=day_bounds(parse_date(end_date, "end_date"))[1] - timedelta(microseconds=1),
            sort_by="created_at",
            sort_direction="asc"
        )

        amounts: Dict[str, float] = {}
        for log in logs:
            key = log.created_at.date().isoformat()
            amounts[key] = amounts.get(key, 0.0) + float((log.new_values or {}).get("dose_amount") or 0)

        return [
            {
                "date": day["date"],
                "doses_taken": day["doses_given"],
                "total_dose_amount": amounts.get(day["date"], 0.0)
            }
            for day in sorted(activity, key=lambda d: d["date"])
            if day["doses_given"] > 0
        ]

    def get_inventory_timeline(self, medicine_id: int, limit: int = 100) -> List[Dict[str, Any]]:
        """Cambios de inventario, en orden de registro, con el saldo resultante después de cada uno"""
        medicine_id = validate_id(medicine_id, "ID de medicamento")
        logs = self.db.query(AuditLog).filter(
            AuditLog.medicine_id == medicine_id,
            AuditLog.action.in_([AuditAction.CREATED, AuditAction.INVENTORY_UPDATED, AuditAction.DOSE_GIVEN])
        ).order_by(AuditLog.id).all()

        timeline = []
        running = None
        for log in logs:
            if log.action == AuditAction.CREATED:
                running = float((log.new_values or {}).get("total_tablets") or 0)
            elif log.quantity_change is not None:
                running = (running or 0) + log.quantity_change
            timeline.append({
                "id": log.id,
                "action": log.action.value,
                "quantity_change": log.quantity_change,
                "inventory_after": running,
                "created_at": log.created_at.isoformat()
            })

        return list(reversed(timeline))[:limit]

    def export_logs(self, **filters) -> Dict[str, Any]:
        logs = self.get_audit_logs(limit=None, **filters)
        return {
            "export_date": local_now().isoformat(),
            "total_records": len(logs),
            "filters": {k: (v.isoformat() if isinstance(v, (date, datetime)) else v) for k, v in filters.items()},
            "logs": [
                {
                    "id": log.id,
                    "medicine_id": log.medicine_id,
                    "action": log.action.value,
                    "old_values": log.old_values,
                    "new_values": log.new_values,
                    "quantity_change": log.quantity_change,
                    "created_at": log.created_at.isoformat()
                }
                for log in logs
            ]
        }

    # ===== MANTENIMIENTO =====

    def cleanup_old_logs(self, days_old: int = 365, now: Optional[datetime] = None) -> int:
        """Eliminar registros más antiguos que days_old días"""
        validate_int_range(days_old, 1, 3650, "days_old")
        cutoff = (now or local_now()) - timedelta(days=days_old)

        try:
            deleted = self.db.query(AuditLog).filter(
                AuditLog.created_at < cutoff
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error limpiando bitácora: {e}")
            raise

        logger.info(f"Registros de auditoría eliminados: {deleted} (anteriores a {cutoff.isoformat()})")
        return deleted
