"""
Modelo de Notificación
"""
from sqlalchemy import Column, Integer, Text, DateTime, Boolean, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.timeutils import local_now


class NotificationType(str, enum.Enum):
    """Tipos de notificación"""
    BUY_SOON = "BUY_SOON"
    DOSE_DUE = "DOSE_DUE"
    MISSED_DOSE = "MISSED_DOSE"


class Notification(Base):
    """Modelo de Notificación"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medications.id", ondelete="CASCADE"), nullable=True, index=True)
    type = Column(Enum(NotificationType), nullable=False, index=True)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=local_now, index=True)

    medication = relationship("Medication", back_populates="notifications")

    def __repr__(self):
        return f"<Notification(id={self.id}, type={self.type}, medicine_id={self.medicine_id})>"

    @property
    def medication_name(self):
        return self.medication.name if self.medication else None
