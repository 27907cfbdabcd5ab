"""
Fixtures compartidas: base SQLite en memoria por prueba y fábrica de medicamentos
"""
import os

# Antes de importar la aplicación: sin MySQL y sin trabajos al arrancar
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BACKGROUND_JOBS_ENABLED"] = "false"

from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import create_tables
from app.core.timeutils import local_today
from app.schemas.dose import DoseCreate
from app.schemas.medication import MedicationCreate
from app.services.medication_service import MedicationService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today() -> date:
    return local_today()


@pytest.fixture
def at(today):
    """Fecha y hora de hoy a la hora indicada"""

    def _at(hour: int, minute: int = 0, day: Optional[date] = None) -> datetime:
        return datetime.combine(day or today, time(hour, minute))

    return _at


@pytest.fixture
def make_medication(db, today):
    def _make(
            name: str = "Paracetamol",
            strength: Optional[str] = "500mg",
            total_tablets: float = 30,
            doses: List[Tuple[str, float]] = (("08:00", 1), ("20:00", 1)),
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            sheet_size: int = 10,
    ):
        data = MedicationCreate(
            name=name,
            strength=strength,
            start_date=start_date or today - timedelta(days=5),
            end_date=end_date,
            sheet_size=sheet_size,
            total_tablets=total_tablets,
            doses=[DoseCreate(time_of_day=t, dose_amount=amount) for t, amount in doses],
        )
        return MedicationService(db).create_medication(data)

    return _make
