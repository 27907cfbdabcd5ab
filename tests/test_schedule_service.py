"""
Pruebas del horario diario
"""
from datetime import timedelta

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.medication_service import MedicationService
from app.services.schedule_service import ScheduleService, time_period
from app.services.skip_date_service import SkipDateService


def statuses(schedule, medication_id):
    medication = next(m for m in schedule["medications"] if m["id"] == medication_id)
    return {entry["time_of_day"]: entry["status"] for entry in medication["doses"]}


class TestDailySchedule:

    def test_status_follows_due_window_and_missed_threshold(self, db, make_medication, at, today):
        medication = make_medication(doses=(("08:00", 1), ("11:50", 1), ("12:10", 1), ("12:30", 1)))

        schedule = ScheduleService(db).generate_daily_schedule(today, now=at(12))

        assert statuses(schedule, medication.id) == {
            "08:00": "missed",
            "11:50": "due",
            "12:10": "due",
            "12:30": "upcoming",
        }

    def test_dose_with_recorded_intake_is_given(self, db, make_medication, at, today):
        medication = make_medication(doses=(("08:00", 1), ("20:00", 1)))
        morning = next(d for d in medication.doses if d.time_label == "08:00")
        MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(8, 10), now=at(23, 59), dose_id=morning.id)

        schedule = ScheduleService(db).generate_daily_schedule(today, now=at(12))

        assert statuses(schedule, medication.id) == {"08:00": "given", "20:00": "upcoming"}

    def test_intake_without_dose_id_covers_earliest_dose(self, db, make_medication, at, today):
        medication = make_medication(doses=(("08:00", 1), ("09:00", 1)))
        MedicationService(db).mark_dose_given(medication.id, 1, timestamp=at(8, 30), now=at(23, 59))

        schedule = ScheduleService(db).generate_daily_schedule(today, now=at(12))

        assert statuses(schedule, medication.id) == {"08:00": "given", "09:00": "missed"}

    def test_skip_date_excludes_medication(self, db, make_medication, at, today):
        skipped = make_medication(name="Ibuprofeno")
        kept = make_medication(name="Omeprazol")
        SkipDateService(db).create_skip_date(skipped.id, today, reason="Ayuno")

        schedule = ScheduleService(db).generate_daily_schedule(today, now=at(12))

        assert [m["id"] for m in schedule["medications"]] == [kept.id]
        assert schedule["skipped_medications"] == [{"id": skipped.id, "name": "Ibuprofeno", "reason": "Ayuno"}]

    def test_medications_sorted_by_name_and_doses_by_time(self, db, make_medication, at, today):
        make_medication(name="Zinc", doses=(("21:00", 1), ("07:00", 1)))
        make_medication(name="Aspirina", doses=(("13:00", 1),))

        schedule = ScheduleService(db).generate_daily_schedule(today, now=at(6))

        assert [m["name"] for m in schedule["medications"]] == ["Aspirina", "Zinc"]
        zinc = schedule["medications"][1]
        assert [d["time_of_day"] for d in zinc["doses"]] == ["07:00", "21:00"]
        assert [e["time_of_day"] for e in schedule["schedule"]["morning"]] == ["07:00"]
        assert [e["time_of_day"] for e in schedule["schedule"]["evening"]] == ["21:00"]

    def test_regenerating_is_idempotent(self, db, make_medication, at, today):
        medication = make_medication()
        SkipDateService(db).create_skip_date(medication.id, today + timedelta(days=1))
        service = ScheduleService(db)

        assert service.generate_daily_schedule(today, now=at(9)) == service.generate_daily_schedule(today, now=at(9))

    def test_inactive_medications_are_left_out(self, db, make_medication, at, today):
        make_medication(start_date=today - timedelta(days=10), end_date=today - timedelta(days=1))

        schedule = ScheduleService(db).generate_daily_schedule(today, now=at(9))

        assert schedule["medications"] == []
        assert schedule["total_doses"] == 0

    def test_empty_schedule_when_nothing_is_active(self, db, at, today):
        schedule = ScheduleService(db).generate_daily_schedule(today.isoformat(), now=at(9))

        assert schedule["total_medications"] == 0
        assert schedule["schedule"] == {"morning": [], "afternoon": [], "evening": [], "night": []}

    @pytest.mark.parametrize("bad_date", ["2024-13-01", "hoy", "2024/01/01", 20240101])
    def test_malformed_date_is_rejected(self, db, bad_date):
        with pytest.raises(ValidationError):
            ScheduleService(db).generate_daily_schedule(bad_date)


class TestSummaryAndRanges:

    def test_summary_counts_statuses(self, db, make_medication, at, today):
        make_medication(total_tablets=1, doses=(("08:00", 1), ("12:05", 1), ("18:00", 1)))

        summary = ScheduleService(db).get_schedule_summary(today, now=at(12))

        assert summary["total_doses"] == 3
        assert summary["status_counts"] == {"upcoming": 1, "due": 1, "given": 0, "missed": 1}
        assert summary["periods"] == {"morning": 1, "afternoon": 1, "evening": 1, "night": 0}
        assert summary["low_inventory_count"] == 3

    def test_multi_day_schedule_limits_range(self, db, today):
        service = ScheduleService(db)

        result = service.generate_multi_day_schedule(today, today + timedelta(days=6))
        assert result["total_days"] == 7

        with pytest.raises(ValidationError):
            service.generate_multi_day_schedule(today, today + timedelta(days=31))
        with pytest.raises(ValidationError):
            service.generate_multi_day_schedule(today, today - timedelta(days=1))

    def test_active_days_subtracts_skip_dates(self, db, make_medication, today):
        medication = make_medication(start_date=today, end_date=today + timedelta(days=9))
        SkipDateService(db).create_skip_date(medication.id, today + timedelta(days=3))

        result = ScheduleService(db).calculate_active_days(medication.id)

        assert result["total_days"] == 10
        assert result["skip_days"] == 1
        assert result["active_days"] == 9

    def test_next_dose_skips_skip_dates(self, db, make_medication, at, today):
        medication = make_medication(doses=(("08:00", 1),))
        SkipDateService(db).create_skip_date(medication.id, today + timedelta(days=1))

        next_dose = ScheduleService(db).get_next_scheduled_dose(medication.id, now=at(9))

        assert next_dose["date"] == (today + timedelta(days=2)).isoformat()
        assert next_dose["time"] == "08:00"

    def test_next_dose_for_missing_medication(self, db):
        with pytest.raises(NotFoundError):
            ScheduleService(db).get_next_scheduled_dose(404)


@pytest.mark.parametrize("hour,period", [(5, "morning"), (11, "morning"), (12, "afternoon"),
                                         (17, "evening"), (22, "night"), (3, "night")])
def test_time_period(hour, period):
    assert time_period(hour) == period
