"""
Validaciones de parámetros comunes a los servicios
"""
from typing import Any, Iterable, List

from app.core.exceptions import ValidationError


def validate_id(value: Any, label: str = "ID") -> int:
    """Validar un ID entero positivo (acepta texto numérico)"""
    if isinstance(value, bool):
        raise ValidationError(f"Se requiere un {label} válido")

    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Se requiere un {label} válido")

    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"Se requiere un {label} válido")
    if parsed <= 0:
        raise ValidationError(f"Se requiere un {label} válido")
    return parsed


def validate_id_list(values: Iterable[Any], label: str = "ID") -> List[int]:
    if not isinstance(values, (list, tuple)) or len(values) == 0:
        raise ValidationError(f"Se requiere una lista de {label}s")
    return [validate_id(v, label) for v in values]


def validate_int_range(value: Any, minimum: int, maximum: int, label: str) -> int:
    """
    Validar un parámetro entero acotado. No se aceptan bool, float ni texto
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} debe ser un entero entre {minimum} y {maximum}")
    if value < minimum or value > maximum:
        raise ValidationError(f"{label} debe ser un entero entre {minimum} y {maximum}")
    return value


def validate_sort(sort_by: str, sort_direction: str, allowed: Iterable[str]) -> None:
    allowed = list(allowed)
    if sort_by not in allowed:
        raise ValidationError(f"Campo de ordenamiento inválido. Debe ser uno de: {', '.join(allowed)}")
    if sort_direction.lower() not in ("asc", "desc"):
        raise ValidationError('La dirección de ordenamiento debe ser "asc" o "desc"')
