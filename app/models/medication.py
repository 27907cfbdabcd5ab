"""
Modelo de Medicamento
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Float, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import date
from typing import Any, Dict, Optional

from app.core.database import Base
from app.core.timeutils import local_now, local_today


class Medication(Base):
    """Modelo de Medicamento con inventario en tabletas"""
    __tablename__ = "medications"
    __table_args__ = (
        CheckConstraint("sheet_size > 0", name="ck_medications_sheet_size"),
        CheckConstraint("total_tablets >= 0", name="ck_medications_total_tablets"),
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="ck_medications_date_range"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Información básica
    name = Column(String(255), nullable=False, index=True)
    strength = Column(String(100), nullable=True)  # ej: "500mg"
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=True)
    frequency_id = Column(Integer, ForeignKey("frequencies.id"), nullable=True)

    # Vigencia (end_date inclusivo, NULL = sin fin)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    # Inventario
    sheet_size = Column(Integer, nullable=False, default=10)
    total_tablets = Column(Float, nullable=False, default=0)

    notes = Column(Text, nullable=True)

    # Metadatos
    created_at = Column(DateTime, default=local_now)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now)

    # Relaciones
    route = relationship("Route")
    frequency = relationship("Frequency")
    doses = relationship(
        "MedicineDose",
        back_populates="medication",
        cascade="all, delete-orphan",
        order_by="MedicineDose.time_of_day"
    )
    skip_dates = relationship(
        "SkipDate",
        back_populates="medication",
        cascade="all, delete-orphan",
        order_by="SkipDate.skip_date"
    )
    notifications = relationship("Notification", back_populates="medication", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Medication(id={self.id}, name='{self.name}', total_tablets={self.total_tablets})>"

    @property
    def full_name(self) -> str:
        """Nombre completo del medicamento"""
        return f"{self.name} {self.strength}" if self.strength else self.name

    @property
    def route_name(self) -> Optional[str]:
        return self.route.name if self.route else None

    def is_active_on(self, target_date: date) -> bool:
        """Verificar si el medicamento está vigente en una fecha"""
        if target_date < self.start_date:
            return False
        return self.end_date is None or target_date <= self.end_date

    @property
    def is_active(self) -> bool:
        """Vigente hoy"""
        return self.is_active_on(local_today())

    @property
    def daily_consumption(self) -> float:
        """Tabletas consumidas por día según las dosis configuradas"""
        return sum(dose.dose_amount for dose in self.doses)

    def to_dict(self) -> Dict[str, Any]:
        """Instantánea serializable para la bitácora"""
        return {
            "id": self.id,
            "name": self.name,
            "strength": self.strength,
            "route_id": self.route_id,
            "frequency_id": self.frequency_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "sheet_size": self.sheet_size,
            "total_tablets": self.total_tablets,
            "notes": self.notes,
        }
