"""
Servicio de dosis programadas
"""
from sqlalchemy.orm import Session
from typing import List

from app.core.exceptions import NotFoundError, ValidationError
from app.core.timeutils import parse_time_of_day
from app.core.validation import validate_id
from app.models.catalog import Route
from app.models.dose import MedicineDose
from app.schemas.dose import DoseCreate, DoseUpdate
from app.services.audit_service import AuditService
from app.services.medication_service import MedicationService
import logging

logger = logging.getLogger(__name__)


class DoseService:
    """Servicio para gestión de dosis de un medicamento"""

    def __init__(self, db: Session):
        self.db = db
        self.medications = MedicationService(db)
        self.audit = AuditService(db)

    def get_doses_for_medication(self, medication_id: int) -> List[MedicineDose]:
        medication = self.medications.get_medication_by_id(medication_id)
        return self.db.query(MedicineDose).filter(
            MedicineDose.medicine_id == medication.id
        ).order_by(MedicineDose.time_of_day, MedicineDose.id).all()

    def get_dose_by_id(self, dose_id: int) -> MedicineDose:
        dose_id = validate_id(dose_id, "ID de dosis")
        dose = self.db.query(MedicineDose).filter(MedicineDose.id == dose_id).first()
        if not dose:
            raise NotFoundError("Dosis no encontrada")
        return dose

    def _check_route(self, route_id) -> None:
        if route_id is not None and not self.db.query(Route).filter(Route.id == route_id).first():
            raise ValidationError("Vía de administración no encontrada")

    def create_dose(self, medication_id: int, dose_data: DoseCreate) -> MedicineDose:
        """Agregar una dosis diaria"""
        medication = self.medications.get_medication_by_id(medication_id)
        time_of_day = parse_time_of_day(dose_data.time_of_day)
        self._check_route(dose_data.route_override)

        try:
            dose = MedicineDose(
                medicine_id=medication.id,
                dose_amount=dose_data.dose_amount,
                time_of_day=time_of_day,
                route_override=dose_data.route_override,
                instructions=dose_data.instructions
            )
            self.db.add(dose)
            self.db.flush()
            self.audit.log_dose_created(medication.id, dose.to_dict())
            self.db.commit()
            self.db.refresh(dose)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando dosis para medicamento {medication_id}: {e}")
            raise

        logger.info(f"Dosis creada: {medication.full_name} {dose.time_label} x{dose.dose_amount} (ID: {dose.id})")
        return dose

    def update_dose(self, dose_id: int, dose_update: DoseUpdate) -> MedicineDose:
        dose = self.get_dose_by_id(dose_id)
        update_data = dose_update.dict(exclude_unset=True)

        if update_data.get("time_of_day") is not None:
            update_data["time_of_day"] = parse_time_of_day(update_data["time_of_day"])
        if "dose_amount" in update_data and update_data["dose_amount"] is None:
            raise ValidationError("La cantidad de la dosis es requerida")
        if "time_of_day" in update_data and update_data["time_of_day"] is None:
            raise ValidationError("La hora de la dosis es requerida")
        self._check_route(update_data.get("route_override"))
        old_values = dose.to_dict()

        try:
            for field, value in update_data.items():
                setattr(dose, field, value)
            self.db.flush()
            self.audit.log_dose_updated(dose.medicine_id, old_values, dose.to_dict())
            self.db.commit()
            self.db.refresh(dose)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error actualizando dosis {dose_id}: {e}")
            raise

        logger.info(f"Dosis actualizada: {dose.id}")
        return dose

    def delete_dose(self, dose_id: int) -> bool:
        dose = self.get_dose_by_id(dose_id)
        old_values = dose.to_dict()

        try:
            self.db.delete(dose)
            self.db.flush()
            self.audit.log_dose_deleted(old_values["medicine_id"], old_values)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error eliminando dosis {dose_id}: {e}")
            raise

        logger.info(f"Dosis eliminada: {dose_id}")
        return True
