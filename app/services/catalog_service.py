"""
Servicio de catálogos de vías de administración y frecuencias
"""
from sqlalchemy.orm import Session
from typing import Dict, List

from app.core.exceptions import ConflictError, NotFoundError
from app.core.validation import validate_id
from app.models.catalog import Route, Frequency, DEFAULT_ROUTES, DEFAULT_FREQUENCIES
from app.models.dose import MedicineDose
from app.models.medication import Medication
from app.schemas.catalog import CatalogItemCreate
import logging

logger = logging.getLogger(__name__)

LABELS = {Route: "Vía de administración", Frequency: "Frecuencia"}


class CatalogService:
    """Servicio para datos maestros"""

    def __init__(self, db: Session):
        self.db = db

    def get_routes(self) -> List[Route]:
        return self.db.query(Route).order_by(Route.name).all()

    def get_frequencies(self) -> List[Frequency]:
        return self.db.query(Frequency).order_by(Frequency.name).all()

    def get_route_by_id(self, route_id: int) -> Route:
        return self._get(Route, route_id)

    def get_frequency_by_id(self, frequency_id: int) -> Frequency:
        return self._get(Frequency, frequency_id)

    def create_route(self, data: CatalogItemCreate) -> Route:
        return self._create(Route, data)

    def create_frequency(self, data: CatalogItemCreate) -> Frequency:
        return self._create(Frequency, data)

    def update_route(self, route_id: int, data: CatalogItemCreate) -> Route:
        return self._update(Route, route_id, data)

    def update_frequency(self, frequency_id: int, data: CatalogItemCreate) -> Frequency:
        return self._update(Frequency, frequency_id, data)

    def delete_route(self, route_id: int) -> bool:
        """Eliminar una vía que ningún medicamento ni dosis use"""
        route = self._get(Route, route_id)
        used_by_medication = self.db.query(Medication.id).filter(Medication.route_id == route.id).first()
        used_by_dose = self.db.query(MedicineDose.id).filter(MedicineDose.route_override == route.id).first()
        if used_by_medication or used_by_dose:
            raise ConflictError("No se puede eliminar una vía usada por medicamentos")
        return self._delete(route)

    def delete_frequency(self, frequency_id: int) -> bool:
        """Eliminar una frecuencia que ningún medicamento use"""
        frequency = self._get(Frequency, frequency_id)
        if self.db.query(Medication.id).filter(Medication.frequency_id == frequency.id).first():
            raise ConflictError("No se puede eliminar una frecuencia usada por medicamentos")
        return self._delete(frequency)

    def _get(self, model, item_id: int):
        item_id = validate_id(item_id, f"ID de {LABELS[model].lower()}")
        item = self.db.query(model).filter(model.id == item_id).first()
        if not item:
            raise NotFoundError(f"{LABELS[model]} no encontrada")
        return item

    def _check_unique_name(self, model, name: str, exclude_id: int = None) -> None:
        query = self.db.query(model.id).filter(model.name == name)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first():
            raise ConflictError(f"{LABELS[model]} con ese nombre ya existe")

    def _create(self, model, data: CatalogItemCreate):
        self._check_unique_name(model, data.name)

        try:
            item = model(name=data.name, description=data.description)
            self.db.add(item)
            self.db.commit()
            self.db.refresh(item)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando {LABELS[model].lower()} '{data.name}': {e}")
            raise

        logger.info(f"{LABELS[model]} creada: {item.name} (ID: {item.id})")
        return item

    def _update(self, model, item_id: int, data: CatalogItemCreate):
        item = self._get(model, item_id)
        self._check_unique_name(model, data.name, exclude_id=item.id)

        try:
            item.name = data.name
            item.description = data.description
            self.db.commit()
            self.db.refresh(item)

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error actualizando {LABELS[model].lower()} {item_id}: {e}")
            raise

        logger.info(f"{LABELS[model]} actualizada: {item.name} (ID: {item.id})")
        return item

    def _delete(self, item) -> bool:
        item_id = item.id
        label = LABELS[type(item)]

        try:
            self.db.delete(item)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error eliminando {label.lower()} {item_id}: {e}")
            raise

        logger.info(f"{label} eliminada: {item_id}")
        return True

    def seed_defaults(self) -> Dict[str, int]:
        """Insertar los valores por defecto que falten"""
        created = {"routes": 0, "frequencies": 0}

        try:
            existing_routes = {name for (name,) in self.db.query(Route.name).all()}
            for name, description in DEFAULT_ROUTES:
                if name not in existing_routes:
                    self.db.add(Route(name=name, description=description))
                    created["routes"] += 1

            existing_frequencies = {name for (name,) in self.db.query(Frequency.name).all()}
            for name, description in DEFAULT_FREQUENCIES:
                if name not in existing_frequencies:
                    self.db.add(Frequency(name=name, description=description))
                    created["frequencies"] += 1

            self.db.commit()

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cargando catálogos: {e}")
            raise

        logger.info(f"Catálogos cargados: {created['routes']} vías, {created['frequencies']} frecuencias")
        return created
