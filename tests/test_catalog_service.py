"""
Pruebas de los catálogos de vías de administración y frecuencias
"""
import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.catalog import Route, DEFAULT_ROUTES, DEFAULT_FREQUENCIES
from app.schemas.catalog import CatalogItemCreate
from app.schemas.dose import DoseCreate
from app.services.catalog_service import CatalogService
from app.services.dose_service import DoseService


@pytest.fixture
def catalog(db):
    return CatalogService(db)


class TestSeed:

    def test_seed_is_idempotent(self, catalog):
        first = catalog.seed_defaults()
        second = catalog.seed_defaults()

        assert first == {"routes": len(DEFAULT_ROUTES), "frequencies": len(DEFAULT_FREQUENCIES)}
        assert second == {"routes": 0, "frequencies": 0}


class TestRoutes:

    def test_create_trims_and_lists_by_name(self, catalog):
        catalog.create_route(CatalogItemCreate(name="  Sublingual ", description="  "))
        catalog.create_route(CatalogItemCreate(name="Oral", description="Por la boca"))

        routes = catalog.get_routes()

        assert [r.name for r in routes] == ["Oral", "Sublingual"]
        assert routes[1].description is None

    def test_duplicate_name_is_conflict(self, catalog):
        catalog.create_route(CatalogItemCreate(name="Oral"))

        with pytest.raises(ConflictError):
            catalog.create_route(CatalogItemCreate(name="Oral"))

    def test_update_renames(self, catalog):
        route = catalog.create_route(CatalogItemCreate(name="Oral"))

        updated = catalog.update_route(route.id, CatalogItemCreate(name="Vía oral", description="Tragar"))

        assert updated.name == "Vía oral"
        assert catalog.get_route_by_id(route.id).description == "Tragar"

    def test_update_to_existing_name_is_conflict(self, catalog):
        catalog.create_route(CatalogItemCreate(name="Oral"))
        topical = catalog.create_route(CatalogItemCreate(name="Tópica"))

        with pytest.raises(ConflictError):
            catalog.update_route(topical.id, CatalogItemCreate(name="Oral"))

    def test_keeping_own_name_is_allowed(self, catalog):
        route = catalog.create_route(CatalogItemCreate(name="Oral"))

        assert catalog.update_route(route.id, CatalogItemCreate(name="Oral", description="x")).description == "x"

    def test_delete_unused_route(self, db, catalog):
        route = catalog.create_route(CatalogItemCreate(name="Ótica"))

        assert catalog.delete_route(route.id) is True
        assert db.query(Route).count() == 0

    def test_route_used_by_dose_cannot_be_deleted(self, db, catalog, make_medication):
        route = catalog.create_route(CatalogItemCreate(name="Sublingual"))
        medication = make_medication(doses=())
        DoseService(db).create_dose(
            medication.id,
            DoseCreate(dose_amount=1, time_of_day="08:00", route_override=route.id)
        )

        with pytest.raises(ConflictError):
            catalog.delete_route(route.id)

        assert catalog.get_route_by_id(route.id).name == "Sublingual"

    def test_missing_route(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.get_route_by_id(99)

    @pytest.mark.parametrize("bad_id", [0, -1, "abc", True])
    def test_invalid_id(self, catalog, bad_id):
        with pytest.raises(ValidationError):
            catalog.delete_route(bad_id)


class TestFrequencies:

    def test_crud(self, catalog):
        frequency = catalog.create_frequency(CatalogItemCreate(name="Cada 8 horas"))
        catalog.update_frequency(frequency.id, CatalogItemCreate(name="Cada 12 horas"))

        assert [f.name for f in catalog.get_frequencies()] == ["Cada 12 horas"]
        assert catalog.delete_frequency(frequency.id) is True
        assert catalog.get_frequencies() == []

    def test_frequency_used_by_medication_cannot_be_deleted(self, db, catalog, make_medication):
        frequency = catalog.create_frequency(CatalogItemCreate(name="Diaria"))
        medication = make_medication()
        medication.frequency_id = frequency.id
        db.commit()

        with pytest.raises(ConflictError):
            catalog.delete_frequency(frequency.id)

    def test_missing_frequency(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.update_frequency(42, CatalogItemCreate(name="Semanal"))
