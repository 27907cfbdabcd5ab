"""
Pruebas de las reglas de notificación y su deduplicación
"""
import math
import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import create_tables
from app.core.exceptions import ValidationError
from app.models.notification import Notification, NotificationType
from app.schemas.dose import DoseCreate
from app.schemas.medication import MedicationCreate
from app.schemas.notification import parse_payload, BuySoonPayload, MissedDosePayload
from app.services.medication_service import MedicationService
from app.services.notification_service import NotificationService, dedup_lock
from app.services.skip_date_service import SkipDateService


def notifications_of(db, notification_type):
    return db.query(Notification).filter(Notification.type == notification_type).all()


class TestBuySoonAlerts:

    @pytest.mark.parametrize("total,doses,expected_days", [
        (10, (("08:00", 2),), 5),
        (7, (("08:00", 1), ("20:00", 1)), 3),
        (1, (("08:00", 1.5),), 0),
        (9.5, (("08:00", 0.5), ("14:00", 0.5), ("20:00", 0.5)), 6),
    ])
    def test_days_remaining_is_floor_of_total_over_consumption(self, make_medication, total, doses, expected_days):
        medication = make_medication(total_tablets=total, doses=doses)

        alert = MedicationService.calculate_medication_alert(medication, days_ahead=3)

        assert alert["days_remaining"] == expected_days
        assert alert["days_remaining"] == math.floor(total / medication.daily_consumption)
        assert alert["needs_refill"] is (expected_days <= 3)

    def test_fires_only_when_days_remaining_within_days_ahead(self, db, make_medication, at):
        low = make_medication(name="Losartan", total_tablets=2, doses=(("08:00", 1), ("20:00", 1)))
        make_medication(name="Metformina", total_tablets=10, doses=(("08:00", 1), ("20:00", 1)))

        result = NotificationService(db).generate_buy_soon_alerts(1, now=at(9))

        assert result["alerts_checked"] == 2
        assert result["notifications_created"] == 1
        notification = result["notifications"][0]
        assert notification.medicine_id == low.id
        payload = parse_payload(notification.type, notification.payload)
        assert isinstance(payload, BuySoonPayload)
        assert payload.days_remaining == 1
        assert payload.current_tablets == 2

    def test_second_run_within_window_creates_nothing(self, db, make_medication, at):
        make_medication(total_tablets=1)
        service = NotificationService(db)

        first = service.generate_buy_soon_alerts(1, now=at(9))
        second = service.generate_buy_soon_alerts(1, now=at(15))

        assert first["notifications_created"] == 1
        assert second["notifications_created"] == 0
        assert len(notifications_of(db, NotificationType.BUY_SOON)) == 1

    def test_alert_repeats_after_window(self, db, make_medication, at):
        make_medication(total_tablets=1)
        service = NotificationService(db)

        service.generate_buy_soon_alerts(1, now=at(0, 30))
        later = service.generate_buy_soon_alerts(1, now=at(0, 30) + timedelta(hours=25))

        assert later["notifications_created"] == 1

    def test_medication_without_doses_is_skipped(self, db, make_medication, at):
        make_medication(total_tablets=0, doses=())

        result = NotificationService(db).generate_buy_soon_alerts(30, now=at(9))

        assert result["notifications_created"] == 0


class TestDoseRules:

    def test_dose_due_within_window(self, db, make_medication, at):
        medication = make_medication(doses=(("12:10", 1), ("12:40", 1), ("08:00", 1)))

        result = NotificationService(db).generate_dose_due_notifications(15, now=at(12))

        assert result["notifications_created"] == 1
        notification = result["notifications"][0]
        assert notification.medicine_id == medication.id
        assert notification.payload["time_of_day"] == "12:10"
        assert "12:10" in notification.message

    def test_dose_due_is_one_per_dose_per_day(self, db, make_medication, at):
        make_medication(doses=(("12:10", 1),))
        service = NotificationService(db)

        service.generate_dose_due_notifications(15, now=at(12))
        again = service.generate_dose_due_notifications(15, now=at(12, 5))

        assert again["notifications_created"] == 0
        assert len(notifications_of(db, NotificationType.DOSE_DUE)) == 1

    def test_dose_due_distinguishes_doses_of_same_medication(self, db, make_medication, at):
        make_medication(doses=(("12:05", 1), ("12:10", 1)))
        service = NotificationService(db)

        service.generate_dose_due_notifications(5, now=at(12))
        result = service.generate_dose_due_notifications(5, now=at(12, 5))

        assert result["notifications_created"] == 1
        assert len(notifications_of(db, NotificationType.DOSE_DUE)) == 2

    def test_given_dose_is_not_notified(self, db, make_medication, at):
        medication = make_medication(doses=(("12:10", 1),))
        MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(11, 58), now=at(23, 59), dose_id=medication.doses[0].id)

        result = NotificationService(db).generate_dose_due_notifications(15, now=at(12))

        assert result["notifications_created"] == 0

    def test_skip_date_suppresses_dose_rules(self, db, make_medication, at, today):
        medication = make_medication(doses=(("08:00", 1), ("12:10", 1)))
        SkipDateService(db).create_skip_date(medication.id, today)
        service = NotificationService(db)

        assert service.generate_dose_due_notifications(15, now=at(12))["notifications_created"] == 0
        assert service.generate_missed_dose_notifications(1, now=at(12))["notifications_created"] == 0

    def test_missed_dose_after_hours_overdue(self, db, make_medication, at):
        make_medication(doses=(("08:00", 1), ("11:30", 1)))

        result = NotificationService(db).generate_missed_dose_notifications(1, now=at(12))

        assert result["notifications_created"] == 1
        notification = result["notifications"][0]
        payload = parse_payload(notification.type, notification.payload)
        assert isinstance(payload, MissedDosePayload)
        assert payload.time_of_day == "08:00"
        assert payload.hours_overdue == 4

    def test_missed_dose_is_one_per_dose_per_day(self, db, make_medication, at):
        make_medication(doses=(("08:00", 1),))
        service = NotificationService(db)

        service.generate_missed_dose_notifications(1, now=at(10))
        again = service.generate_missed_dose_notifications(2, now=at(14))

        assert again["notifications_created"] == 0

    def test_missed_dose_not_raised_once_given(self, db, make_medication, at):
        medication = make_medication(doses=(("08:00", 1),))
        MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(9, 30), now=at(23, 59))

        result = NotificationService(db).generate_missed_dose_notifications(1, now=at(12))

        assert result["notifications_created"] == 0


class TestParameterValidation:

    @pytest.mark.parametrize("value", [0, 121, -5, 1.5, "15", True, None])
    def test_dose_due_range(self, db, value):
        with pytest.raises(ValidationError):
            NotificationService(db).generate_dose_due_notifications(value)

    @pytest.mark.parametrize("value", [0, 25, 2.0, "1", False])
    def test_missed_dose_range(self, db, value):
        with pytest.raises(ValidationError):
            NotificationService(db).generate_missed_dose_notifications(value)

    @pytest.mark.parametrize("value", [0, 31, 0.5])
    def test_buy_soon_range(self, db, value):
        with pytest.raises(ValidationError):
            NotificationService(db).generate_buy_soon_alerts(value)

    def test_invalid_parameter_performs_no_work(self, db, make_medication):
        make_medication(total_tablets=0)

        with pytest.raises(ValidationError):
            NotificationService(db).generate_buy_soon_alerts(31)

        assert db.query(Notification).count() == 0

    @pytest.mark.parametrize("value", [1, 120])
    def test_dose_due_bounds_are_inclusive(self, db, at, value):
        result = NotificationService(db).generate_dose_due_notifications(value, now=at(12))
        assert result["notifications_created"] == 0


class TestImmediateCheck:

    def test_result_shape(self, db, at):
        result = NotificationService(db).trigger_immediate_notification_check(now=at(12))

        assert result["timestamp"] == at(12).isoformat()
        assert "message" in result
        assert [r["type"] for r in result["results"]] == ["buy_soon", "dose_due", "missed_dose"]
        assert all(isinstance(r["count"], int) for r in result["results"])

    def test_counts_reflect_created_notifications(self, db, make_medication, at):
        make_medication(total_tablets=1, doses=(("08:00", 1), ("12:10", 1)))

        result = NotificationService(db).trigger_immediate_notification_check(now=at(12))

        counts = {r["type"]: r["count"] for r in result["results"]}
        assert counts == {"buy_soon": 1, "dose_due": 1, "missed_dose": 1}



class TestConcurrentEvaluation:

    WORKERS = 8

    @pytest.fixture
    def file_session_factory(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'notifications.sqlite'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        create_tables(bind=engine)
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
        engine.dispose()

    def run_concurrently(self, session_factory, action):
        barrier = threading.Barrier(self.WORKERS)
        results = []
        errors = []

        def worker():
            session = session_factory()
            try:
                barrier.wait()
                results.append(action(NotificationService(session)))
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        return results

    def test_parallel_buy_soon_runs_create_one_alert(self, file_session_factory, at, today):
        session = file_session_factory()
        try:
            medication = MedicationService(session).create_medication(MedicationCreate(
                name="Losartan",
                start_date=today - timedelta(days=5),
                total_tablets=1,
                doses=[DoseCreate(time_of_day="08:00", dose_amount=1)],
            ))
            medication_id = medication.id
        finally:
            session.close()

        now = at(9)
        results = self.run_concurrently(
            file_session_factory,
            lambda service: service.generate_buy_soon_alerts(1, now=now)
        )

        assert sum(result["notifications_created"] for result in results) == 1
        session = file_session_factory()
        try:
            rows = session.query(Notification).filter(Notification.type == NotificationType.BUY_SOON).all()
            assert [row.medicine_id for row in rows] == [medication_id]
        finally:
            session.close()

    def test_parallel_dose_due_runs_create_one_per_dose(self, file_session_factory, at, today):
        session = file_session_factory()
        try:
            MedicationService(session).create_medication(MedicationCreate(
                name="Metformina",
                start_date=today - timedelta(days=5),
                total_tablets=30,
                doses=[
                    DoseCreate(time_of_day="12:05", dose_amount=1),
                    DoseCreate(time_of_day="12:10", dose_amount=1),
                ],
            ))
        finally:
            session.close()

        now = at(12)
        self.run_concurrently(
            file_session_factory,
            lambda service: service.generate_dose_due_notifications(15, now=now)
        )

        session = file_session_factory()
        try:
            rows = session.query(Notification).filter(Notification.type == NotificationType.DOSE_DUE).all()
            assert sorted(row.payload["time_of_day"] for row in rows) == ["12:05", "12:10"]
        finally:
            session.close()


def test_dedup_lock_does_not_block_other_keys():
    with dedup_lock(NotificationType.BUY_SOON, 1):
        # Otra clave no queda bloqueada
        with dedup_lock(NotificationType.BUY_SOON, 2):
            pass
        with dedup_lock(NotificationType.DOSE_DUE, 1):
            pass
