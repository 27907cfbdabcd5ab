"""
Esquemas Pydantic para Dosis
"""
from pydantic import BaseModel, validator, Field
from typing import Optional
from datetime import datetime, time


def _validate_hhmm(v):
    try:
        datetime.strptime(v, "%H:%M")
        return v
    except (TypeError, ValueError):
        raise ValueError('La hora debe estar en formato HH:MM')


class DoseCreate(BaseModel):
    """Esquema para crear dosis"""
    dose_amount: float = Field(..., gt=0, description="Tabletas por toma")
    time_of_day: str = Field(..., description="Hora en formato HH:MM")
    route_override: Optional[int] = None
    instructions: Optional[str] = Field(None, max_length=1000)

    @validator('time_of_day')
    def validate_time_format(cls, v):
        return _validate_hhmm(v)


class DoseUpdate(BaseModel):
    """Esquema para actualizar dosis"""
    dose_amount: Optional[float] = Field(None, gt=0)
    time_of_day: Optional[str] = None
    route_override: Optional[int] = None
    instructions: Optional[str] = Field(None, max_length=1000)

    @validator('time_of_day')
    def validate_time_format(cls, v):
        if v is not None:
            return _validate_hhmm(v)
        return v


class DoseResponse(BaseModel):
    id: int
    medicine_id: int
    dose_amount: float
    time_of_day: str
    route_override: Optional[int] = None
    instructions: Optional[str] = None

    @validator('time_of_day', pre=True)
    def format_time(cls, v):
        if isinstance(v, time):
            return v.strftime("%H:%M")
        return v

    class Config:
        from_attributes = True
