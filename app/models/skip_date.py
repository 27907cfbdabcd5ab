"""
Modelo de Fecha omitida
"""
from sqlalchemy import Column, Integer, Date, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.timeutils import local_now


class SkipDate(Base):
    """Día en que se suspenden todas las dosis de un medicamento"""
    __tablename__ = "skip_dates"
    __table_args__ = (
        UniqueConstraint("medicine_id", "skip_date", name="uq_skip_dates_medicine_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medications.id", ondelete="CASCADE"), nullable=False, index=True)
    skip_date = Column(Date, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=local_now)

    medication = relationship("Medication", back_populates="skip_dates")

    def __repr__(self):
        return f"<SkipDate(medicine_id={self.medicine_id}, skip_date={self.skip_date})>"

    def to_dict(self):
        return {
            "id": self.id,
            "medicine_id": self.medicine_id,
            "skip_date": self.skip_date.isoformat(),
            "reason": self.reason
        }
