"""
Utilidades de fecha y hora en la zona horaria de la aplicación
"""
from datetime import date, datetime, time, timedelta
from typing import Union
from zoneinfo import ZoneInfo

from app.core.config import get_settings
from app.core.exceptions import ValidationError


def local_now() -> datetime:
    """Fecha y hora actual (naive) en la zona horaria configurada"""
    tz = ZoneInfo(get_settings().DEFAULT_TIMEZONE)
    return datetime.now(tz).replace(tzinfo=None, microsecond=0)


def local_today() -> date:
    return local_now().date()


def to_local(value: datetime) -> datetime:
    """
    Fecha y hora naive en la zona horaria configurada. Un valor con zona
    horaria se convierte; uno naive se toma como hora local
    """
    if value.tzinfo is None:
        return value
    tz = ZoneInfo(get_settings().DEFAULT_TIMEZONE)
    return value.astimezone(tz).replace(tzinfo=None)


def parse_date(value: Union[str, date, datetime], field_name: str = "date") -> date:
    """
    Convertir a fecha de calendario. Acepta date o texto YYYY-MM-DD
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"El campo '{field_name}' debe tener formato YYYY-MM-DD")

    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"El campo '{field_name}' debe tener formato YYYY-MM-DD")


def parse_time_of_day(value: Union[str, time]) -> time:
    """Convertir texto HH:MM (o HH:MM:SS) a time"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(str(value).strip(), fmt).time().replace(second=0)
        except ValueError:
            continue
    raise ValidationError(f"Formato de hora inválido: {value}. Use HH:MM")


def format_time_of_day(value: time) -> str:
    return value.strftime("%H:%M")


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def day_bounds(day: date):
    """Inicio del día y del día siguiente"""
    start = start_of_day(day)
    return start, start + timedelta(days=1)
