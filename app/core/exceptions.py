"""
Excepciones de dominio compartidas por servicios y rutas
"""


class MedTrackError(Exception):
    """Error base de la aplicación"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MedTrackError):
    """Datos de entrada inválidos; no se aplicó ningún cambio"""


class NotFoundError(MedTrackError):
    """El registro solicitado no existe"""


class ConflictError(MedTrackError):
    """El cambio choca con el estado actual (nombre duplicado, registro en uso)"""
