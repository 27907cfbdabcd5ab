"""
Archivo principal de la aplicación FastAPI - MedTrack
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.core.config import get_settings
from app.core.database import create_tables, test_connection, get_db_info
from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.core.timeutils import local_now
from app.api import api_router
from app.services.job_scheduler import Scheduler
import logging

settings = get_settings()

# Configurar logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestión del ciclo de vida de la aplicación"""
    # Startup
    logger.info("🚀 Iniciando MedTrack API...")
    logger.info(f"🌍 Ambiente: {settings.ENVIRONMENT}")
    logger.info(f"🕒 Zona horaria: {settings.DEFAULT_TIMEZONE}")

    # Verificar conexión a la base de datos
    if test_connection():
        try:
            create_tables()
            logger.info("✅ Esquema de base de datos verificado")
        except Exception as e:
            logger.error(f"❌ Error al verificar esquema: {e}")
    else:
        logger.warning("⚠️ La aplicación continuará pero sin base de datos")

    if settings.BACKGROUND_JOBS_ENABLED:
        app.state.scheduler.start_all_background_jobs()
        logger.info("⏱️ Trabajos en segundo plano iniciados")
    else:
        logger.info("⏸️ Trabajos en segundo plano deshabilitados")

    logger.info("🎯 MedTrack API lista para recibir requests")
    yield

    # Shutdown
    logger.info("🛑 Cerrando MedTrack API...")
    await app.state.scheduler.shutdown()


def create_application(scheduler: Scheduler = None) -> FastAPI:
    """Factory function para crear la aplicación FastAPI"""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="""
## MedTrack API

Horarios de medicación, inventario con bitácora de auditoría y notificaciones.

### Características principales:
- 💊 Medicamentos, dosis y fechas omitidas
- 📅 Horario diario con estado de cada dosis
- 📦 Inventario en tabletas o blísters con historial auditable
- 🔔 Alertas de compra, dosis próximas y dosis omitidas
- ⏱️ Trabajos periódicos con control de inicio y parada
        """,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # Planificador único de la aplicación; no inicia trabajos al construirse
    app.state.scheduler = scheduler or Scheduler()

    setup_middlewares(app)
    setup_exception_handlers(app)
    setup_routes(app)

    return app


def setup_middlewares(app: FastAPI):
    """Configurar middlewares de la aplicación"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )
    logger.info(f"🌐 Orígenes permitidos: {settings.CORS_ORIGINS}")


def setup_exception_handlers(app: FastAPI):
    """Traducir errores de dominio a respuestas HTTP"""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message})

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(ConflictError)
    async def conflict_error_handler(request: Request, exc: ConflictError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})


def setup_routes(app: FastAPI):
    """Configurar rutas de la aplicación"""

    # Endpoint raíz
    @app.get("/")
    async def root():
        return {
            "message": "💊 MedTrack API",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "documentation": "/docs",
            "health": "/health",
            "api": "/api"
        }

    # Health check general
    @app.get("/health")
    async def health_check():
        """Health check completo de la aplicación"""
        db_status = "connected" if test_connection() else "disconnected"

        health_status = {
            "status": "healthy" if db_status == "connected" else "degraded",
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "database": {
                "status": db_status
            },
            "background_jobs": app.state.scheduler.get_background_job_status(),
            "timestamp": local_now().isoformat()
        }

        # Información adicional en desarrollo
        if settings.DEBUG:
            db_info = get_db_info()
            if db_info:
                health_status["database"].update(db_info)

        return health_status

    app.include_router(
        api_router,
        prefix="/api"
    )

    logger.info("🛣️ Rutas configuradas correctamente")


# Crear la aplicación
app = create_application()


# Solo para desarrollo con uvicorn run
if __name__ == "__main__":
    import uvicorn

    uvicorn_config = {
        "app": "app.main:app",
        "host": settings.HOST,
        "port": settings.PORT,
        "reload": settings.DEBUG,
        "log_level": settings.LOG_LEVEL.lower(),
        "access_log": settings.DEBUG,
    }

    logger.info("🚀 Iniciando servidor de desarrollo...")
    logger.info(f"🌐 URL: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"📚 Docs: http://{settings.HOST}:{settings.PORT}/docs")

    uvicorn.run(**uvicorn_config)
