"""
Modelo de Dosis programada
"""
from sqlalchemy import Column, Integer, Float, Time, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.timeutils import local_now, format_time_of_day


class MedicineDose(Base):
    """Una toma diaria de un medicamento a una hora fija"""
    __tablename__ = "medicine_doses"
    __table_args__ = (
        CheckConstraint("dose_amount > 0", name="ck_medicine_doses_amount"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medications.id", ondelete="CASCADE"), nullable=False, index=True)
    dose_amount = Column(Float, nullable=False)
    time_of_day = Column(Time, nullable=False)
    route_override = Column(Integer, ForeignKey("routes.id"), nullable=True)
    instructions = Column(Text, nullable=True)
    created_at = Column(DateTime, default=local_now)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now)

    medication = relationship("Medication", back_populates="doses")
    route = relationship("Route")

    def __repr__(self):
        return f"<MedicineDose(id={self.id}, medicine_id={self.medicine_id}, time={self.time_of_day})>"

    @property
    def time_label(self) -> str:
        return format_time_of_day(self.time_of_day)

    def to_dict(self):
        """Convertir a diccionario para serialización"""
        return {
            "id": self.id,
            "medicine_id": self.medicine_id,
            "dose_amount": self.dose_amount,
            "time_of_day": self.time_label,
            "route_override": self.route_override,
            "instructions": self.instructions or ""
        }
