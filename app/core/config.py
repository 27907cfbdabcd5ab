"""
Configuración de la aplicación (base de datos, zona horaria y motor de notificaciones)
"""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # Información del proyecto
    PROJECT_NAME: str = Field(default="MedTrack API", env="PROJECT_NAME")
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", env="ENVIRONMENT")
    DEBUG: bool = Field(default=False, env="DEBUG")

    # Configuración del servidor
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=8081, env="PORT")

    # Base de datos: DATABASE_URL tiene prioridad sobre los campos MySQL
    DATABASE_URL: Optional[str] = Field(default=None, env="DATABASE_URL")
    DB_HOST: str = Field(default="localhost", env="DB_HOST")
    DB_PORT: int = Field(default=3306, env="DB_PORT")
    DB_NAME: str = Field(default="medtrack", env="DB_NAME")
    DB_USER: str = Field(default="medtrack_user", env="DB_USER")
    DB_PASSWORD: str = Field(default="", env="DB_PASSWORD")
    DB_CHARSET: str = Field(default="utf8mb4", env="DB_CHARSET")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173"
        ],
        env="CORS_ORIGINS"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")

    # Timezone
    DEFAULT_TIMEZONE: str = Field(default="America/Mexico_City", env="DEFAULT_TIMEZONE")

    # Horario de dosis
    DOSE_DUE_WINDOW_MINUTES: int = Field(default=15, env="DOSE_DUE_WINDOW_MINUTES")
    MISSED_DOSE_THRESHOLD_MINUTES: int = Field(default=60, env="MISSED_DOSE_THRESHOLD_MINUTES")

    # Reglas de notificación
    NOTIFICATION_DEDUP_WINDOW_HOURS: int = Field(default=24, env="NOTIFICATION_DEDUP_WINDOW_HOURS")
    BUY_SOON_DAYS_AHEAD: int = Field(default=1, env="BUY_SOON_DAYS_AHEAD")
    DOSE_DUE_MINUTES_AHEAD: int = Field(default=15, env="DOSE_DUE_MINUTES_AHEAD")
    MISSED_DOSE_HOURS_OVERDUE: int = Field(default=1, env="MISSED_DOSE_HOURS_OVERDUE")

    # Trabajos en segundo plano (intervalos en segundos)
    BACKGROUND_JOBS_ENABLED: bool = Field(default=True, env="BACKGROUND_JOBS_ENABLED")
    BUY_SOON_JOB_INTERVAL_SECONDS: float = Field(default=86400, env="BUY_SOON_JOB_INTERVAL_SECONDS")
    DOSE_DUE_JOB_INTERVAL_SECONDS: float = Field(default=900, env="DOSE_DUE_JOB_INTERVAL_SECONDS")
    MISSED_DOSE_JOB_INTERVAL_SECONDS: float = Field(default=7200, env="MISSED_DOSE_JOB_INTERVAL_SECONDS")
    CLEANUP_JOB_INTERVAL_SECONDS: float = Field(default=604800, env="CLEANUP_JOB_INTERVAL_SECONDS")

    # Retención de historial
    NOTIFICATION_RETENTION_DAYS: int = Field(default=30, env="NOTIFICATION_RETENTION_DAYS")
    AUDIT_RETENTION_DAYS: int = Field(default=365, env="AUDIT_RETENTION_DAYS")

    @property
    def database_url(self) -> str:
        """Construir URL de conexión"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            f"?charset={self.DB_CHARSET}"
        )

    @property
    def is_production(self) -> bool:
        """Verificar si estamos en producción"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Obtener configuración con cache"""
    return Settings()
