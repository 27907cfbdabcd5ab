"""
Servicio de fechas omitidas
"""
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.exceptions import NotFoundError, ValidationError
from app.core.timeutils import parse_date
from app.core.validation import validate_id
from app.models.skip_date import SkipDate
from app.services.audit_service import AuditService
from app.services.medication_service import MedicationService
import logging

logger = logging.getLogger(__name__)


class SkipDateService:
    """Servicio para días en que se suspenden las dosis de un medicamento"""

    def __init__(self, db: Session):
        self.db = db
        self.medications = MedicationService(db)
        self.audit = AuditService(db)

    def get_skip_dates(
            self,
            medication_id: Optional[int] = None,
            start_date=None,
            end_date=None
    ) -> List[SkipDate]:
        """Fechas omitidas filtradas por medicamento y rango"""
        query = self.db.query(SkipDate)

        if medication_id:
            medication = self.medications.get_medication_by_id(medication_id)
            query = query.filter(SkipDate.medicine_id == medication.id)

        if start_date:
            query = query.filter(SkipDate.skip_date >= parse_date(start_date, "start_date"))

        if end_date:
            query = query.filter(SkipDate.skip_date <= parse_date(end_date, "end_date"))

        return query.order_by(SkipDate.skip_date, SkipDate.medicine_id).all()

    def get_skip_date_by_id(self, skip_date_id: int) -> SkipDate:
        skip_date_id = validate_id(skip_date_id, "ID de fecha omitida")
        skip = self.db.query(SkipDate).filter(SkipDate.id == skip_date_id).first()
        if not skip:
            raise NotFoundError("Fecha omitida no encontrada")
        return skip

    def create_skip_date(self, medication_id: int, skip_date, reason: Optional[str] = None) -> SkipDate:
        """Omitir las dosis de un medicamento en una fecha de su rango"""
        medication = self.medications.get_medication_by_id(medication_id)
        skip_day = parse_date(skip_date, "skip_date")

        if not medication.is_active_on(skip_day):
            raise ValidationError("La fecha omitida debe estar dentro del rango del medicamento")

        duplicate = self.db.query(SkipDate).filter(
            SkipDate.medicine_id == medication.id,
            SkipDate.skip_date == skip_day
        ).first()
        if duplicate:
            raise ValidationError("Ya existe una fecha omitida para ese día")

        try:
            skip = SkipDate(medicine_id=medication.id, skip_date=skip_day, reason=reason)
            self.db.add(skip)
            self.db.flush()
            self.audit.log_skip_date_created(medication.id, skip.to_dict())
            self.db.commit()
            self.db.refresh(skip)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando fecha omitida para medicamento {medication_id}: {e}")
            raise

        logger.info(f"Fecha omitida creada: {medication.full_name} {skip_day.isoformat()}")
        return skip

    def delete_skip_date(self, skip_date_id: int) -> bool:
        skip = self.get_skip_date_by_id(skip_date_id)
        snapshot = skip.to_dict()

        try:
            self.db.delete(skip)
            self.db.flush()
            self.audit.log_skip_date_deleted(snapshot["medicine_id"], snapshot)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error eliminando fecha omitida {skip_date_id}: {e}")
            raise

        logger.info(f"Fecha omitida eliminada: medicamento {snapshot['medicine_id']} {snapshot['skip_date']}")
        return True
