"""
Pruebas de inventario, registro de tomas, bitácora y eliminación de medicamentos
"""
from datetime import timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.audit_log import AuditLog, AuditAction
from app.models.medication import Medication
from app.schemas.medication import MedicationUpdate
from app.services.audit_service import AuditService
from app.services.medication_service import MedicationService
from app.services.skip_date_service import SkipDateService


def audit_actions(db, medicine_id):
    return [
        log.action for log in
        db.query(AuditLog).filter(AuditLog.medicine_id == medicine_id).order_by(AuditLog.id).all()
    ]


def quantity_sum(db, medicine_id):
    return db.query(func.coalesce(func.sum(AuditLog.quantity_change), 0)).filter(
        AuditLog.medicine_id == medicine_id
    ).scalar()


class TestCreateAndUpdate:

    def test_create_writes_created_entry_with_snapshot(self, db, make_medication):
        medication = make_medication(total_tablets=24)

        logs = db.query(AuditLog).filter(AuditLog.medicine_id == medication.id).all()
        assert len(logs) == 1
        assert logs[0].action == AuditAction.CREATED
        assert logs[0].quantity_change is None
        assert logs[0].new_values["total_tablets"] == 24
        assert len(logs[0].new_values["doses"]) == 2

    def test_get_missing_medication_raises_not_found(self, db):
        with pytest.raises(NotFoundError):
            MedicationService(db).get_medication_by_id(999)

    @pytest.mark.parametrize("bad_id", [0, -3, "abc", True, 1.5])
    def test_get_with_invalid_id_raises_validation(self, db, bad_id):
        with pytest.raises(ValidationError):
            MedicationService(db).get_medication_by_id(bad_id)

    def test_update_writes_updated_entry(self, db, make_medication):
        medication = make_medication()
        MedicationService(db).update_medication(medication.id, MedicationUpdate(notes="Tomar con comida"))

        assert audit_actions(db, medication.id) == [AuditAction.CREATED, AuditAction.UPDATED]
        entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATED).one()
        assert entry.old_values["notes"] is None
        assert entry.new_values["notes"] == "Tomar con comida"

    def test_update_rejects_range_that_leaves_skip_dates_outside(self, db, make_medication, today):
        medication = make_medication(start_date=today - timedelta(days=2))
        SkipDateService(db).create_skip_date(medication.id, today + timedelta(days=3))

        with pytest.raises(ValidationError):
            MedicationService(db).update_medication(
                medication.id,
                MedicationUpdate(end_date=today + timedelta(days=1))
            )

    def test_start_date_more_than_a_year_ahead_is_rejected(self, make_medication, today):
        with pytest.raises(ValidationError):
            make_medication(start_date=today + timedelta(days=400))


class TestInventory:

    def test_sheet_count_multiplies_by_sheet_size(self, db, make_medication):
        medication = make_medication(total_tablets=0, sheet_size=10)

        updated = MedicationService(db).update_inventory(medication.id, sheet_count=20)

        assert updated.total_tablets == 200

    def test_add_tablets_adds_to_current_total(self, db, make_medication):
        medication = make_medication(total_tablets=35)

        updated = MedicationService(db).update_inventory(medication.id, add_tablets=50)

        assert updated.total_tablets == 85
        entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.INVENTORY_UPDATED).one()
        assert entry.quantity_change == 50
        assert entry.old_values == {"total_tablets": 35}
        assert entry.new_values["total_tablets"] == 85

    def test_total_tablets_takes_precedence(self, db, make_medication):
        medication = make_medication(total_tablets=5)

        updated = MedicationService(db).update_inventory(medication.id, total_tablets=12, sheet_count=3)

        assert updated.total_tablets == 12

    def test_no_update_mode_fails_without_writing(self, db, make_medication):
        medication = make_medication()

        with pytest.raises(ValidationError):
            MedicationService(db).update_inventory(medication.id)

        assert audit_actions(db, medication.id) == [AuditAction.CREATED]

    def test_negative_result_fails_without_writing(self, db, make_medication):
        medication = make_medication(total_tablets=10)

        with pytest.raises(ValidationError):
            MedicationService(db).update_inventory(medication.id, add_tablets=-11)

        db.expire_all()
        assert db.get(Medication, medication.id).total_tablets == 10
        assert audit_actions(db, medication.id) == [AuditAction.CREATED]

    def test_audit_failure_rolls_back_inventory_change(self, db, make_medication):
        medication = make_medication(total_tablets=10)
        service = MedicationService(db)

        def failing_log(*args, **kwargs):
            raise RuntimeError("audit store unavailable")

        service.audit.log_inventory_update = failing_log

        with pytest.raises(RuntimeError):
            service.update_inventory(medication.id, total_tablets=99)

        db.expire_all()
        assert db.get(Medication, medication.id).total_tablets == 10

    def test_conversions(self):
        assert MedicationService.convert_sheets_to_tablets(3, 14) == 42
        sheets = MedicationService.convert_tablets_to_sheets(25, 10)
        assert sheets["full_sheets"] == 2
        assert sheets["remaining_tablets"] == 5

        with pytest.raises(ValidationError):
            MedicationService.convert_sheets_to_tablets(-1, 10)

    def test_inventory_status(self, db, make_medication):
        medication = make_medication(total_tablets=3, doses=(("08:00", 2),))

        status = MedicationService(db).get_inventory_status(medication.id)

        assert status["days_remaining"] == 1
        assert status["is_low_inventory"] is True
        assert status["alert_level"] == "urgent"


class TestDoseGiven:

    def test_dose_given_decrements_and_logs_negative_change(self, db, make_medication, at):
        medication = make_medication(total_tablets=10)

        result = MedicationService(db).mark_dose_given(medication.id, 2, timestamp=at(8, 5), now=at(23, 59))

        assert result["remaining"] == 8
        entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.DOSE_GIVEN).one()
        assert entry.quantity_change == -2
        assert entry.new_values["dose_amount"] == 2
        assert entry.created_at == at(8, 5)

    def test_shortfall_floors_inventory_at_zero(self, db, make_medication, at):
        medication = make_medication(total_tablets=1)

        result = MedicationService(db).mark_dose_given(medication.id, 3, timestamp=at(8), now=at(23, 59))

        assert result["remaining"] == 0
        assert result["was_short"] is True
        entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.DOSE_GIVEN).one()
        assert entry.quantity_change == -1

    def test_dose_on_skip_date_is_rejected(self, db, make_medication, at, today):
        medication = make_medication()
        SkipDateService(db).create_skip_date(medication.id, today)

        with pytest.raises(ValidationError):
            MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(8), now=at(23, 59))

    def test_dose_outside_range_is_rejected(self, db, make_medication, at, today):
        medication = make_medication(start_date=today + timedelta(days=2))

        with pytest.raises(ValidationError):
            MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(8), now=at(23, 59))

    def test_aware_timestamp_is_stored_as_local_time(self, db, make_medication, at):
        medication = make_medication(doses=(("08:00", 1),))
        local_tz = ZoneInfo(get_settings().DEFAULT_TIMEZONE)
        utc_timestamp = at(8).replace(tzinfo=local_tz).astimezone(timezone.utc)

        result = MedicationService(db).mark_dose_given(medication.id, 1, timestamp=utc_timestamp, now=at(23, 59))

        assert result["timestamp"] == at(8).isoformat()
        entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.DOSE_GIVEN).one()
        assert entry.created_at == at(8)
        assert entry.created_at.tzinfo is None

    def test_future_timestamp_is_rejected(self, db, make_medication, at):
        medication = make_medication(total_tablets=10)

        with pytest.raises(ValidationError):
            MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(20), now=at(12))

        assert MedicationService(db).get_medication_by_id(medication.id).total_tablets == 10
        assert AuditAction.DOSE_GIVEN not in audit_actions(db, medication.id)

    @pytest.mark.parametrize("amount", [0, -1, True, "2"])
    def test_invalid_amount_is_rejected(self, db, make_medication, at, amount):
        medication = make_medication()

        with pytest.raises(ValidationError):
            MedicationService(db).mark_dose_given(medication.id, amount, timestamp=at(8), now=at(23, 59))


class TestLedger:

    def test_quantity_changes_explain_current_total(self, db, make_medication, at):
        medication = make_medication(total_tablets=20, sheet_size=10)
        service = MedicationService(db)

        service.mark_dose_given(medication.id, 1, timestamp=at(8), now=at(23, 59))
        service.update_inventory(medication.id, add_tablets=15)
        service.mark_dose_given(medication.id, 2.5, timestamp=at(20), now=at(23, 59))
        service.update_inventory(medication.id, sheet_count=4)
        service.mark_dose_given(medication.id, 50, timestamp=at(21), now=at(23, 59))
        service.update_inventory(medication.id, total_tablets=7)

        current = service.get_medication_by_id(medication.id).total_tablets
        assert quantity_sum(db, medication.id) == pytest.approx(current - 20)

        verification = AuditService(db).verify_inventory_ledger(medication.id, current)
        assert verification["is_consistent"] is True

    def test_timeline_reports_running_balance(self, db, make_medication, at):
        medication = make_medication(total_tablets=10)
        service = MedicationService(db)
        service.mark_dose_given(medication.id, 1, timestamp=at(8), now=at(23, 59))
        service.update_inventory(medication.id, add_tablets=5)

        timeline = AuditService(db).get_inventory_timeline(medication.id)

        assert [entry["inventory_after"] for entry in reversed(timeline)] == [10, 9, 14]


class TestDelete:

    def test_elapsed_medication_is_hard_deleted(self, db, make_medication, today):
        medication = make_medication(
            start_date=today - timedelta(days=30),
            end_date=today - timedelta(days=10)
        )
        medication_id = medication.id
        service = MedicationService(db)

        result = service.delete_medication(medication_id)

        assert result["deleted"] is True
        assert result["soft"] is False
        with pytest.raises(NotFoundError):
            service.get_medication_by_id(medication_id)
        assert audit_actions(db, medication_id) == [AuditAction.CREATED, AuditAction.DELETED]

    def test_active_medication_is_soft_deleted(self, db, make_medication, today):
        medication = make_medication()
        service = MedicationService(db)

        result = service.delete_medication(medication.id)

        assert result["soft"] is True
        kept = service.get_medication_by_id(medication.id)
        assert kept.end_date == today - timedelta(days=1)
        assert not kept.is_active
        assert audit_actions(db, medication.id)[-1] == AuditAction.SOFT_DELETED

    def test_soft_delete_drops_skip_dates_after_new_end(self, db, make_medication, today):
        medication = make_medication()
        SkipDateService(db).create_skip_date(medication.id, today + timedelta(days=2))

        MedicationService(db).delete_medication(medication.id)

        assert SkipDateService(db).get_skip_dates(medication.id) == []

    def test_soft_delete_records_removed_skip_dates(self, db, make_medication, today):
        medication = make_medication()
        skip_service = SkipDateService(db)
        kept = skip_service.create_skip_date(medication.id, today - timedelta(days=2))
        dropped = skip_service.create_skip_date(medication.id, today + timedelta(days=2), reason="Viaje")
        dropped_id = dropped.id

        MedicationService(db).delete_medication(medication.id)

        entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.SOFT_DELETED).one()
        assert entry.new_values["removed_skip_dates"] == [{
            "id": dropped_id,
            "medicine_id": medication.id,
            "skip_date": (today + timedelta(days=2)).isoformat(),
            "reason": "Viaje",
        }]
        assert [s.id for s in skip_service.get_skip_dates(medication.id)] == [kept.id]
