"""
Esquemas Pydantic para catálogos (vías de administración y frecuencias)
"""
from pydantic import BaseModel, validator, Field
from typing import Optional


class CatalogItemCreate(BaseModel):
    """Vía o frecuencia nueva o actualizada"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)

    @validator('name')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('El nombre es requerido')
        return v.strip()

    @validator('description')
    def validate_description(cls, v):
        if v is not None:
            return v.strip() or None
        return v


class CatalogItemResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True
