"""
Modelo de Bitácora de auditoría
"""
from sqlalchemy import Column, Integer, Float, DateTime, Enum, JSON
import enum

from app.core.database import Base
from app.core.timeutils import local_now


class AuditAction(str, enum.Enum):
    """Acciones registradas en la bitácora"""
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    SOFT_DELETED = "SOFT_DELETED"
    DOSE_GIVEN = "DOSE_GIVEN"
    INVENTORY_UPDATED = "INVENTORY_UPDATED"
    SKIP_DATE_CREATED = "SKIP_DATE_CREATED"
    SKIP_DATE_DELETED = "SKIP_DATE_DELETED"
    DOSE_CREATED = "DOSE_CREATED"
    DOSE_UPDATED = "DOSE_UPDATED"
    DOSE_DELETED = "DOSE_DELETED"


class AuditLog(Base):
    """
    Registro inmutable de un cambio sobre un medicamento.

    medicine_id no es llave foránea: el historial sobrevive al borrado físico
    del medicamento.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, nullable=True, index=True)
    action = Column(Enum(AuditAction), nullable=False, index=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    quantity_change = Column(Float, nullable=True)
    created_at = Column(DateTime, default=local_now, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, medicine_id={self.medicine_id}, action={self.action})>"
