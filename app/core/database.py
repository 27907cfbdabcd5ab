"""
Configuración de base de datos con SQLAlchemy
"""
from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool
import logging

# Crear Base ANTES de importar config para evitar import circular
Base = declarative_base()

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def build_engine(database_url: str, echo: bool = False):
    """Crear engine con el pool adecuado para el motor de base de datos"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=20,
        max_overflow=30,
        pool_pre_ping=True,
        pool_recycle=3600,  # Reciclar conexiones cada hora
        echo=echo,
    )


engine = build_engine(settings.database_url, echo=settings.DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency para obtener sesión de base de datos
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory=None):
    """
    Sesión para trabajos fuera de una request (jobs, scripts)
    """
    factory = session_factory or SessionLocal
    db = factory()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Crear todas las tablas si no existen
    """
    target = bind or engine

    try:
        # Importar todos los modelos para que se registren
        from app.models import catalog, medication, dose, skip_date, notification, audit_log  # noqa: F401

        Base.metadata.create_all(bind=target)
        logger.info("✅ Tablas creadas/verificadas exitosamente")

    except Exception as e:
        logger.error(f"❌ Error al crear tablas: {e}")
        raise


def drop_tables(bind=None):
    """
    Eliminar todas las tablas (usar con cuidado)
    """
    try:
        Base.metadata.drop_all(bind=bind or engine)
        logger.warning("⚠️ Todas las tablas han sido eliminadas")
    except Exception as e:
        logger.error(f"❌ Error al eliminar tablas: {e}")
        raise


def test_connection():
    """
    Probar conexión a la base de datos
    """
    try:
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        logger.info("✅ Conexión a la base de datos exitosa")
        return True
    except Exception as e:
        logger.error(f"❌ Error de conexión a la base de datos: {e}")
        return False


def get_db_info():
    """
    Obtener información de la base de datos
    """
    try:
        info = {
            "dialect": engine.dialect.name,
            "driver": engine.dialect.driver,
        }
        if engine.dialect.name == "mysql":
            with engine.connect() as conn:
                info["mysql_version"] = conn.execute(text("SELECT VERSION()")).fetchone()[0]
                info["database_name"] = conn.execute(text("SELECT DATABASE()")).fetchone()[0]
            info.update({
                "host": settings.DB_HOST,
                "port": settings.DB_PORT,
                "charset": settings.DB_CHARSET
            })
        return info
    except Exception as e:
        logger.error(f"Error al obtener info de DB: {e}")
        return None
