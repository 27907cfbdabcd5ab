"""
Catálogos de vías de administración y frecuencias
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from app.core.database import Base


class Route(Base):
    """Vía de administración (oral, sublingual, ...)"""
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Route(id={self.id}, name='{self.name}')>"


class Frequency(Base):
    """Frecuencia de toma"""
    __tablename__ = "frequencies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Frequency(id={self.id}, name='{self.name}')>"


DEFAULT_ROUTES = [
    ("Oral", "Taken by mouth"),
    ("Sublingual", "Under the tongue"),
    ("Topical", "Applied to skin"),
    ("Inhaled", "Breathed in through lungs"),
    ("Subcutaneous", "Injected under the skin"),
    ("Intramuscular", "Injected into muscle"),
    ("Intravenous", "Injected into vein"),
    ("Rectal", "Inserted into rectum"),
    ("Ophthalmic", "Applied to eyes"),
    ("Otic", "Applied to ears"),
]

DEFAULT_FREQUENCIES = [
    ("Once daily", "Take once per day"),
    ("Twice daily", "Take twice per day"),
    ("Three times daily", "Take three times per day"),
    ("Four times daily", "Take four times per day"),
    ("Every 4 hours", "Take every 4 hours"),
    ("Every 6 hours", "Take every 6 hours"),
    ("Every 8 hours", "Take every 8 hours"),
    ("Every 12 hours", "Take every 12 hours"),
    ("As needed", "Take as needed"),
    ("Weekly", "Take once per week"),
    ("Twice weekly", "Take twice per week"),
    ("Monthly", "Take once per month"),
]
