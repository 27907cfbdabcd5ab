"""
Servicio de gestión de medicamentos e inventario
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import and_, or_, func
from typing import List, Optional, Dict, Any
from datetime import date, datetime, timedelta
import math

from app.core.exceptions import NotFoundError, ValidationError
from app.core.timeutils import local_now, local_today, parse_date, parse_time_of_day, to_local
from app.core.validation import validate_id, validate_sort
from app.models.catalog import Route, Frequency
from app.models.medication import Medication
from app.models.dose import MedicineDose
from app.models.skip_date import SkipDate
from app.schemas.medication import MedicationCreate, MedicationUpdate
from app.services.audit_service import AuditService
import logging

logger = logging.getLogger(__name__)

MEDICATION_SORT_FIELDS = ("name", "start_date", "end_date", "total_tablets", "created_at")
MAX_TOTAL_TABLETS = 100000
LARGE_INVENTORY_INCREASE = 1000


class MedicationService:
    """Servicio para gestión de medicamentos"""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # ===== CONSULTAS =====

    def get_medications(
            self,
            skip: int = 0,
            limit: int = 100,
            search: Optional[str] = None,
            active_on: Optional[date] = None,
            sort_by: str = "name",
            sort_direction: str = "asc"
    ) -> List[Medication]:
        """Obtener medicamentos con filtros"""
        validate_sort(sort_by, sort_direction, MEDICATION_SORT_FIELDS)

        query = self.db.query(Medication)

        # Filtro de búsqueda
        if search:
            search_term = f"%{search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Medication.name).like(search_term),
                    func.lower(Medication.strength).like(search_term),
                    func.lower(Medication.notes).like(search_term)
                )
            )

        # Filtro por vigencia
        if active_on:
            query = self._filter_active_on(query, parse_date(active_on, "active_on"))

        column = getattr(Medication, sort_by)
        ordering = column.asc() if sort_direction.lower() == "asc" else column.desc()

        return query.order_by(ordering, Medication.id).offset(skip).limit(limit).all()

    def get_medication_by_id(self, medication_id: int) -> Medication:
        """Obtener medicamento por ID"""
        medication_id = validate_id(medication_id, "ID de medicamento")
        medication = self.db.query(Medication).filter(Medication.id == medication_id).first()
        if not medication:
            raise NotFoundError("Medicamento no encontrado")
        return medication

    def find_active_by_date(self, target_date: date) -> List[Medication]:
        """Medicamentos vigentes en una fecha, ordenados por nombre"""
        query = self.db.query(Medication).options(
            selectinload(Medication.doses),
            selectinload(Medication.skip_dates)
        )
        return self._filter_active_on(query, target_date).order_by(Medication.name, Medication.id).all()

    @staticmethod
    def _filter_active_on(query, target_date: date):
        return query.filter(
            and_(
                Medication.start_date <= target_date,
                or_(Medication.end_date.is_(None), Medication.end_date >= target_date)
            )
        )

    # ===== ALTA, CAMBIOS Y BAJA =====

    def create_medication(self, medication_data: MedicationCreate) -> Medication:
        """Crear nuevo medicamento con sus dosis"""
        self.validate_medication_business_rules(medication_data.dict())

        try:
            db_medication = Medication(
                name=medication_data.name,
                strength=medication_data.strength,
                route_id=medication_data.route_id,
                frequency_id=medication_data.frequency_id,
                start_date=medication_data.start_date,
                end_date=medication_data.end_date,
                sheet_size=medication_data.sheet_size,
                total_tablets=medication_data.total_tablets,
                notes=medication_data.notes
            )

            for dose_data in medication_data.doses:
                db_medication.doses.append(MedicineDose(
                    dose_amount=dose_data.dose_amount,
                    time_of_day=parse_time_of_day(dose_data.time_of_day),
                    route_override=dose_data.route_override,
                    instructions=dose_data.instructions
                ))

            self.db.add(db_medication)
            self.db.flush()

            snapshot = db_medication.to_dict()
            snapshot["doses"] = [dose.to_dict() for dose in db_medication.doses]
            self.audit.log_created(db_medication.id, snapshot)

            self.db.commit()
            self.db.refresh(db_medication)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando medicamento: {e}")
            raise

        logger.info(f"Medicamento creado: {db_medication.full_name} (ID: {db_medication.id})")
        return db_medication

    def update_medication(self, medication_id: int, medication_update: MedicationUpdate) -> Medication:
        """Actualizar medicamento (sin inventario)"""

        medication = self.get_medication_by_id(medication_id)
        update_data = medication_update.dict(exclude_unset=True)

        self.validate_medication_business_rules(update_data, medication)

        old_values = medication.to_dict()

        try:
            for field, value in update_data.items():
                if hasattr(medication, field):
                    setattr(medication, field, value)

            self.db.flush()
            self.audit.log_updated(medication.id, old_values, medication.to_dict())

            self.db.commit()
            self.db.refresh(medication)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error actualizando medicamento {medication_id}: {e}")
            raise

        logger.info(f"Medicamento actualizado: {medication.full_name} (ID: {medication.id})")
        return medication

    def delete_medication(self, medication_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Eliminar medicamento.

        Si está vigente hoy se desactiva (end_date = ayer) conservando su
        historial; si no, se elimina junto con dosis, fechas omitidas y
        notificaciones.
        """
        medication = self.get_medication_by_id(medication_id)
        today = today or local_today()
        old_values = medication.to_dict()

        try:
            if medication.is_active_on(today):
                yesterday = today - timedelta(days=1)

                # Las fechas omitidas deben quedar dentro del nuevo rango
                removed_skips = []
                for skip in list(medication.skip_dates):
                    if skip.skip_date > yesterday:
                        removed_skips.append(skip.to_dict())
                        medication.skip_dates.remove(skip)

                if yesterday < medication.start_date:
                    # Empezó hoy: no hay rango previo que conservar
                    return self._hard_delete(medication, old_values)

                medication.end_date = yesterday
                self.db.flush()
                new_values = medication.to_dict()
                new_values["removed_skip_dates"] = removed_skips
                self.audit.log_soft_deleted(medication.id, old_values, new_values)
                self.db.commit()
                self.db.refresh(medication)

                logger.info(f"Medicamento desactivado: {medication.full_name} (ID: {medication.id})")
                return {"deleted": True, "soft": True, "medication": medication}

            return self._hard_delete(medication, old_values)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error eliminando medicamento {medication_id}: {e}")
            raise

    def _hard_delete(self, medication: Medication, old_values: Dict[str, Any]) -> Dict[str, Any]:
        medication_id = medication.id
        self.db.delete(medication)
        self.db.flush()
        self.audit.log_deleted(medication_id, old_values)
        self.db.commit()

        logger.info(f"Medicamento eliminado: {old_values['name']} (ID: {medication_id})")
        return {"deleted": True, "soft": False, "medication": None}

    # ===== INVENTARIO =====

    def update_inventory(
            self,
            medication_id: int,
            total_tablets: Optional[float] = None,
            sheet_count: Optional[int] = None,
            add_tablets: Optional[float] = None,
            reason: Optional[str] = None
    ) -> Medication:
        """
        Actualizar inventario por total de tabletas, número de blísters o
        tabletas agregadas
        """
        medication = self.get_medication_by_id(medication_id)
        old_total = medication.total_tablets

        if total_tablets is not None:
            new_total = total_tablets
            reason = reason or "Actualización manual"
        elif sheet_count is not None:
            new_total = self.convert_sheets_to_tablets(sheet_count, medication.sheet_size)
            reason = reason or f"Actualizado por blísters: {sheet_count} blísters"
        elif add_tablets is not None:
            if isinstance(add_tablets, bool) or not isinstance(add_tablets, (int, float)):
                raise ValidationError("add_tablets debe ser numérico")
            new_total = old_total + add_tablets
            reason = reason or f"Se agregaron {add_tablets} tabletas"
        else:
            raise ValidationError("Debe indicar total_tablets, sheet_count o add_tablets")

        if isinstance(new_total, bool) or not isinstance(new_total, (int, float)) or new_total < 0:
            raise ValidationError("El total de tabletas debe ser un número no negativo")
        if new_total > MAX_TOTAL_TABLETS:
            raise ValidationError(f"El total de tabletas no puede exceder {MAX_TOTAL_TABLETS}")

        if new_total - old_total > LARGE_INVENTORY_INCREASE:
            logger.warning(
                f"Incremento grande de inventario: {new_total - old_total} tabletas para medicamento {medication.id}"
            )

        try:
            medication.total_tablets = new_total
            self.db.flush()
            self.audit.log_inventory_update(medication.id, old_total, new_total, reason)
            self.db.commit()
            self.db.refresh(medication)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error actualizando inventario del medicamento {medication_id}: {e}")
            raise

        logger.info(f"Inventario actualizado: {medication.full_name} {old_total} -> {new_total} ({reason})")
        return medication

    def mark_dose_given(
            self,
            medication_id: int,
            dose_amount: float,
            timestamp: Optional[datetime] = None,
            dose_id: Optional[int] = None,
            now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Registrar una toma y descontar inventario.

        Un timestamp con zona horaria se convierte a la hora local
        configurada. No se aceptan tomas posteriores a now.
        """
        medication = self.get_medication_by_id(medication_id)

        if isinstance(dose_amount, bool) or not isinstance(dose_amount, (int, float)) or dose_amount <= 0:
            raise ValidationError("Se requiere una cantidad de dosis válida")

        now = now or local_now()
        timestamp = to_local(timestamp) if timestamp else now
        if timestamp > now:
            raise ValidationError("No se puede registrar una dosis en el futuro")
        dose_date = timestamp.date()

        if not medication.is_active_on(dose_date):
            raise ValidationError("No se puede registrar una dosis de un medicamento inactivo en esa fecha")

        if any(skip.skip_date == dose_date for skip in medication.skip_dates):
            raise ValidationError("No se puede registrar una dosis en una fecha omitida")

        if dose_id is not None:
            dose_id = validate_id(dose_id, "ID de dosis")
            if not any(dose.id == dose_id for dose in medication.doses):
                raise NotFoundError("Dosis no encontrada para este medicamento")

        original_total = medication.total_tablets
        consumed = min(dose_amount, original_total)
        remaining = max(0.0, original_total - dose_amount)
        was_short = original_total < dose_amount

        try:
            medication.total_tablets = remaining
            self.db.flush()
            self.audit.log_dose_given(
                medication.id,
                {
                    "dose_amount": dose_amount,
                    "dose_id": dose_id,
                    "consumed": consumed,
                    "remaining": remaining,
                    "was_short": was_short,
                    "timestamp": timestamp.isoformat()
                },
                consumed=consumed,
                timestamp=timestamp
            )
            self.db.commit()
            self.db.refresh(medication)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registrando dosis del medicamento {medication_id}: {e}")
            raise

        if was_short:
            logger.warning(f"Inventario insuficiente para {medication.full_name}: se pidió {dose_amount}, había {original_total}")

        logger.info(f"Dosis registrada: {medication.full_name} -{consumed} (quedan {remaining})")
        return {
            "medication": medication,
            "consumed": consumed,
            "remaining": remaining,
            "was_short": was_short,
            "timestamp": timestamp.isoformat()
        }

    @staticmethod
    def convert_sheets_to_tablets(sheet_count: int, sheet_size: int) -> int:
        """Conversión de blísters a tabletas"""
        if isinstance(sheet_count, bool) or not isinstance(sheet_count, int) or sheet_count < 0:
            raise ValidationError("El número de blísters debe ser un entero no negativo")
        if isinstance(sheet_size, bool) or not isinstance(sheet_size, int) or sheet_size <= 0:
            raise ValidationError("El tamaño de blíster debe ser un entero positivo")
        return sheet_count * sheet_size

    @staticmethod
    def convert_tablets_to_sheets(total_tablets: float, sheet_size: int) -> Dict[str, float]:
        """Conversión de tabletas a blísters"""
        if total_tablets is None or total_tablets < 0:
            raise ValidationError("El total de tabletas debe ser un número no negativo")
        if sheet_size is None or sheet_size <= 0:
            raise ValidationError("El tamaño de blíster debe ser un entero positivo")

        return {
            "full_sheets": math.floor(total_tablets / sheet_size),
            "remaining_tablets": total_tablets % sheet_size,
            "total_sheets": total_tablets / sheet_size
        }

    @staticmethod
    def calculate_medication_alert(medication: Medication, days_ahead: int = 1) -> Dict[str, Any]:
        """
        Días de inventario restantes: floor(total / consumo diario). Sin
        consumo diario el inventario no se agota y no hay alerta.
        """
        daily_consumption = medication.daily_consumption

        alert = {
            "medication_id": medication.id,
            "medication_name": medication.name,
            "medication_strength": medication.strength,
            "current_tablets": medication.total_tablets,
            "daily_consumption": daily_consumption,
            "days_remaining": None,
            "days_ahead": days_ahead,
            "needs_refill": False,
            "alert_level": "none"
        }

        if daily_consumption <= 0:
            return alert

        days_remaining = math.floor(medication.total_tablets / daily_consumption)
        alert["days_remaining"] = days_remaining
        alert["needs_refill"] = days_remaining <= days_ahead

        if days_remaining == 0:
            alert["alert_level"] = "critical"
        elif days_remaining == 1:
            alert["alert_level"] = "urgent"
        elif days_remaining <= days_ahead:
            alert["alert_level"] = "warning"

        return alert

    def get_inventory_status(self, medication_id: int) -> Dict[str, Any]:
        """Estado de inventario de un medicamento"""
        medication = self.get_medication_by_id(medication_id)
        sheets = self.convert_tablets_to_sheets(medication.total_tablets, medication.sheet_size)
        alert = self.calculate_medication_alert(medication, 1)

        return {
            "medication_id": medication.id,
            "medication_name": medication.name,
            "total_tablets": medication.total_tablets,
            "sheet_size": medication.sheet_size,
            **sheets,
            "daily_consumption": alert["daily_consumption"],
            "days_remaining": alert["days_remaining"],
            "is_low_inventory": alert["needs_refill"],
            "alert_level": alert["alert_level"]
        }

    def get_low_inventory_medications(self, days_ahead: int = 1, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Medicamentos vigentes que se agotan dentro de days_ahead días"""
        alerts = [
            self.calculate_medication_alert(medication, days_ahead)
            for medication in self.find_active_by_date(today or local_today())
        ]
        alerts = [a for a in alerts if a["needs_refill"]]
        return sorted(alerts, key=lambda a: a["days_remaining"])

    # ===== REGLAS DE NEGOCIO =====

    def validate_medication_business_rules(
            self,
            medication_data: Dict[str, Any],
            existing_medication: Optional[Medication] = None
    ) -> None:
        """Validaciones que no cubre el esquema"""

        start_date = medication_data.get("start_date") or (existing_medication.start_date if existing_medication else None)
        if "end_date" in medication_data:
            end_date = medication_data.get("end_date")
        else:
            end_date = existing_medication.end_date if existing_medication else None

        if medication_data.get("start_date"):
            one_year_from_now = local_today() + timedelta(days=365)
            if medication_data["start_date"] > one_year_from_now:
                raise ValidationError("La fecha de inicio no puede ser mayor a un año en el futuro")

        if start_date and end_date:
            if end_date < start_date:
                raise ValidationError("La fecha de fin debe ser mayor o igual a la fecha de inicio")
            if end_date > start_date + timedelta(days=3652):
                raise ValidationError("La fecha de fin no puede ser mayor a 10 años desde el inicio")

        sheet_size = medication_data.get("sheet_size")
        if sheet_size is not None and (sheet_size < 1 or sheet_size > 1000):
            raise ValidationError("El tamaño de blíster debe estar entre 1 y 1000")

        total_tablets = medication_data.get("total_tablets")
        if total_tablets is not None and (total_tablets < 0 or total_tablets > MAX_TOTAL_TABLETS):
            raise ValidationError(f"El total de tabletas debe estar entre 0 y {MAX_TOTAL_TABLETS}")

        if medication_data.get("route_id") is not None:
            if not self.db.query(Route).filter(Route.id == medication_data["route_id"]).first():
                raise ValidationError("Vía de administración no encontrada")

        if medication_data.get("frequency_id") is not None:
            if not self.db.query(Frequency).filter(Frequency.id == medication_data["frequency_id"]).first():
                raise ValidationError("Frecuencia no encontrada")

        # Las fechas omitidas existentes deben seguir dentro del rango
        if existing_medication and start_date:
            bounds = [SkipDate.skip_date < start_date]
            if end_date:
                bounds.append(SkipDate.skip_date > end_date)
            out_of_range = self.db.query(SkipDate).filter(
                SkipDate.medicine_id == existing_medication.id,
                or_(*bounds)
            ).count()
            if out_of_range:
                raise ValidationError("Hay fechas omitidas fuera del nuevo rango del medicamento")
