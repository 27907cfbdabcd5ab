# app/models/__init__.py

from .catalog import Route, Frequency
from .medication import Medication
from .dose import MedicineDose
from .skip_date import SkipDate
from .notification import Notification, NotificationType
from .audit_log import AuditLog, AuditAction

__all__ = [
    "Route",
    "Frequency",
    "Medication",
    "MedicineDose",
    "SkipDate",
    "Notification",
    "NotificationType",
    "AuditLog",
    "AuditAction"
]
