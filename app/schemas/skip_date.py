"""
Esquemas Pydantic para Fechas omitidas
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date


class SkipDateCreate(BaseModel):
    skip_date: date = Field(..., description="Fecha a omitir (YYYY-MM-DD)")
    reason: Optional[str] = Field(None, max_length=500)


class SkipDateResponse(BaseModel):
    id: int
    medicine_id: int
    skip_date: date
    reason: Optional[str] = None

    class Config:
        from_attributes = True
