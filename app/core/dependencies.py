"""
Dependencias globales de la aplicación
"""
from fastapi import HTTPException, Request, status
from typing import Optional


def get_scheduler(request: Request):
    """
    Planificador de trabajos creado al construir la aplicación
    """
    return request.app.state.scheduler


# Dependencias para paginación
class PaginationParams:
    def __init__(self, skip: int = 0, limit: int = 100):
        self.skip = max(0, skip)
        self.limit = max(1, min(limit, 1000))  # Máximo 1000 registros por página


def get_pagination_params(skip: int = 0, limit: int = 100) -> PaginationParams:
    """
    Parámetros de paginación
    """
    return PaginationParams(skip=skip, limit=limit)


# Dependencias para filtros comunes
class DateRangeParams:
    def __init__(
            self,
            start_date: Optional[str] = None,
            end_date: Optional[str] = None
    ):
        from datetime import datetime

        self.start_date = None
        self.end_date = None

        if start_date:
            try:
                self.start_date = datetime.strptime(start_date, "%Y-%m-%d").date()
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Formato de fecha inválido. Use YYYY-MM-DD"
                )

        if end_date:
            try:
                self.end_date = datetime.strptime(end_date, "%Y-%m-%d").date()
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Formato de fecha inválido. Use YYYY-MM-DD"
                )

        # Validar que start_date <= end_date
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La fecha de inicio debe ser menor o igual a la fecha de fin"
            )

    @property
    def start_datetime(self):
        from app.core.timeutils import day_bounds
        return day_bounds(self.start_date)[0] if self.start_date else None

    @property
    def end_datetime(self):
        from datetime import timedelta
        from app.core.timeutils import day_bounds
        return day_bounds(self.end_date)[1] - timedelta(microseconds=1) if self.end_date else None


def get_date_range_params(
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
) -> DateRangeParams:
    """
    Parámetros de rango de fechas
    """
    return DateRangeParams(start_date=start_date, end_date=end_date)
