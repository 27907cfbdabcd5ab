"""
Esquemas Pydantic para la bitácora de auditoría
"""
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime

from app.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    id: int
    medicine_id: Optional[int] = None
    action: AuditAction
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    quantity_change: Optional[float] = None
    created_at: datetime

    class Config:
        from_attributes = True
