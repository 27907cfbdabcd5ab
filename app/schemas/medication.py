"""
Esquemas Pydantic para Medicamentos e inventario
"""
from pydantic import BaseModel, validator, Field
from typing import Optional, List
from datetime import date, datetime

from app.schemas.dose import DoseCreate, DoseResponse


class MedicationBase(BaseModel):
    """Base para esquemas de medicamento"""
    name: str = Field(..., min_length=1, max_length=255, description="Nombre del medicamento")
    strength: Optional[str] = Field(None, max_length=100, description="Concentración (ej: 500mg)")
    route_id: Optional[int] = Field(None, description="Vía de administración")
    frequency_id: Optional[int] = Field(None, description="Frecuencia")
    start_date: date = Field(..., description="Fecha de inicio")
    end_date: Optional[date] = Field(None, description="Fecha de fin (inclusiva)")
    sheet_size: int = Field(10, ge=1, le=1000, description="Tabletas por blíster")
    notes: Optional[str] = Field(None, max_length=2000)

    @validator('name')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('El nombre del medicamento es requerido')
        return v.strip()

    @validator('end_date')
    def validate_end_date(cls, v, values):
        start = values.get('start_date')
        if v is not None and start is not None and v < start:
            raise ValueError('La fecha de fin debe ser mayor o igual a la fecha de inicio')
        return v


class MedicationCreate(MedicationBase):
    """Esquema para crear medicamento"""
    total_tablets: float = Field(0, ge=0, le=100000, description="Inventario inicial en tabletas")
    doses: List[DoseCreate] = Field(default=[], description="Dosis diarias")


class MedicationUpdate(BaseModel):
    """
    Esquema para actualizar medicamento.

    El inventario no se modifica aquí; usar la actualización de inventario.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    strength: Optional[str] = Field(None, max_length=100)
    route_id: Optional[int] = None
    frequency_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sheet_size: Optional[int] = Field(None, ge=1, le=1000)
    notes: Optional[str] = Field(None, max_length=2000)

    @validator('name')
    def validate_name(cls, v):
        if v is not None:
            if not v.strip():
                raise ValueError('El nombre del medicamento es requerido')
            return v.strip()
        return v


class MedicationResponse(MedicationBase):
    """Esquema de respuesta de medicamento"""
    id: int
    total_tablets: float
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MedicationDetail(MedicationResponse):
    """Medicamento con sus dosis"""
    doses: List[DoseResponse] = []
    daily_consumption: float = 0

    class Config:
        from_attributes = True


class InventoryUpdate(BaseModel):
    """
    Actualización de inventario. Se usa el primer modo presente en este orden:
    total_tablets, sheet_count, add_tablets
    """
    total_tablets: Optional[float] = Field(None, description="Nuevo total en tabletas")
    sheet_count: Optional[int] = Field(None, description="Número de blísters completos")
    add_tablets: Optional[float] = Field(None, description="Tabletas a sumar (o restar)")
    reason: Optional[str] = Field(None, max_length=500)


class DoseGiven(BaseModel):
    """Registro de una toma"""
    dose_amount: float = Field(..., gt=0)
    dose_id: Optional[int] = None
    timestamp: Optional[datetime] = None


class DeleteResult(BaseModel):
    deleted: bool
    soft: bool
    medication: Optional[MedicationResponse] = None


class DoseGivenResult(BaseModel):
    """Resultado de registrar una toma"""
    medication: MedicationResponse
    consumed: float
    remaining: float
    was_short: bool
    timestamp: str
