"""
Servicio de generación de horarios de medicación
"""
from sqlalchemy.orm import Session
from typing import List, Optional, Dict, Any
from datetime import date, datetime, timedelta
import enum

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.timeutils import local_now, parse_date
from app.models.audit_log import AuditLog
from app.models.medication import Medication
from app.services.audit_service import AuditService
from app.services.medication_service import MedicationService
import logging

logger = logging.getLogger(__name__)

MAX_SCHEDULE_RANGE_DAYS = 31
NEXT_DOSE_SEARCH_DAYS = 30


class DoseStatus(str, enum.Enum):
    """Estado de una dosis programada"""
    UPCOMING = "upcoming"
    DUE = "due"
    GIVEN = "given"
    MISSED = "missed"


PERIODS = ("morning", "afternoon", "evening", "night")


def time_period(hour: int) -> str:
    """Periodo del día: mañana 05-11, tarde 12-16, noche 17-21, madrugada 22-04"""
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


class ScheduleService:
    """Servicio para horarios diarios de dosis"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.medications = MedicationService(db)
        self.audit = AuditService(db)

    def generate_daily_schedule(self, target_date, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Generar el horario de un día.

        Incluye los medicamentos vigentes en la fecha que no la tengan como
        fecha omitida. Cada dosis lleva su estado (upcoming, due, given o
        missed) calculado respecto a now.
        """
        target_date = parse_date(target_date, "date")
        now = now or local_now()

        active = self.medications.find_active_by_date(target_date)

        scheduled: List[Medication] = []
        skipped = []
        for medication in active:
            skip = next((s for s in medication.skip_dates if s.skip_date == target_date), None)
            if skip:
                skipped.append({
                    "id": medication.id,
                    "name": medication.name,
                    "reason": skip.reason or "Fecha omitida"
                })
            else:
                scheduled.append(medication)

        given_logs = self.audit.get_doses_given_on([m.id for m in scheduled], target_date)

        medications = []
        entries = []
        for medication in scheduled:
            given_ids = self._match_given_doses(
                medication,
                [log for log in given_logs if log.medicine_id == medication.id]
            )
            daily_consumption = medication.daily_consumption

            medication_entries = []
            for dose in sorted(medication.doses, key=lambda d: (d.time_of_day, d.id)):
                scheduled_at = datetime.combine(target_date, dose.time_of_day)
                entry = {
                    "medication_id": medication.id,
                    "medication_name": medication.name,
                    "medication_strength": medication.strength,
                    "route": dose.route.name if dose.route else medication.route_name,
                    "dose_id": dose.id,
                    "dose_amount": dose.dose_amount,
                    "time_of_day": dose.time_label,
                    "scheduled_at": scheduled_at.isoformat(),
                    "instructions": dose.instructions,
                    "remaining_tablets": medication.total_tablets,
                    "is_low_inventory": medication.total_tablets <= daily_consumption,
                    "status": self._dose_status(scheduled_at, dose.id in given_ids, now).value
                }
                medication_entries.append(entry)

            entries.extend(medication_entries)
            medications.append({
                "id": medication.id,
                "name": medication.name,
                "strength": medication.strength,
                "route": medication.route_name,
                "total_tablets": medication.total_tablets,
                "daily_consumption": daily_consumption,
                "doses": medication_entries
            })

        return {
            "date": target_date.isoformat(),
            "generated_at": now.isoformat(),
            "medications": medications,
            "schedule": self.group_schedule_by_time_period(entries),
            "total_medications": len(medications),
            "total_doses": len(entries),
            "skipped_medications": skipped
        }

    def _dose_status(self, scheduled_at: datetime, given: bool, now: datetime) -> DoseStatus:
        if given:
            return DoseStatus.GIVEN
        due_window = timedelta(minutes=self.settings.DOSE_DUE_WINDOW_MINUTES)
        missed_threshold = timedelta(minutes=self.settings.MISSED_DOSE_THRESHOLD_MINUTES)
        if now < scheduled_at - due_window:
            return DoseStatus.UPCOMING
        if now <= scheduled_at + missed_threshold:
            return DoseStatus.DUE
        return DoseStatus.MISSED

    @staticmethod
    def _match_given_doses(medication: Medication, logs: List[AuditLog]) -> set:
        """
        IDs de dosis con toma registrada. Las tomas sin dose_id cubren las
        dosis pendientes más tempranas.
        """
        dose_ids = [dose.id for dose in sorted(medication.doses, key=lambda d: (d.time_of_day, d.id))]
        given = set()
        unassigned = 0
        for log in logs:
            dose_id = (log.new_values or {}).get("dose_id")
            if dose_id in dose_ids and dose_id not in given:
                given.add(dose_id)
            else:
                unassigned += 1

        for dose_id in dose_ids:
            if unassigned <= 0:
                break
            if dose_id not in given:
                given.add(dose_id)
                unassigned -= 1

        return given

    @staticmethod
    def group_schedule_by_time_period(entries: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        periods = {period: [] for period in PERIODS}
        for entry in entries:
            hour = int(entry["time_of_day"].split(":")[0])
            periods[time_period(hour)].append(entry)

        for period in periods:
            periods[period].sort(key=lambda e: (e["time_of_day"], e["medication_name"], e["medication_id"]))
        return periods

    def get_schedule_summary(self, target_date, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Resumen del horario de un día"""
        schedule = self.generate_daily_schedule(target_date, now=now)
        entries = [entry for medication in schedule["medications"] for entry in medication["doses"]]

        status_counts = {status.value: 0 for status in DoseStatus}
        for entry in entries:
            status_counts[entry["status"]] += 1

        return {
            "date": schedule["date"],
            "total_medications": schedule["total_medications"],
            "total_doses": schedule["total_doses"],
            "status_counts": status_counts,
            "periods": {period: len(items) for period, items in schedule["schedule"].items()},
            "low_inventory_count": sum(1 for entry in entries if entry["is_low_inventory"]),
            "skipped_count": len(schedule["skipped_medications"])
        }

    def generate_multi_day_schedule(self, start_date, end_date, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Horarios de un rango de fechas (máximo 31 días)"""
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")

        if start > end:
            raise ValidationError("La fecha de inicio debe ser menor o igual a la fecha de fin")
        if (end - start).days + 1 > MAX_SCHEDULE_RANGE_DAYS:
            raise ValidationError(f"El rango no puede exceder {MAX_SCHEDULE_RANGE_DAYS} días")

        schedules = []
        current = start
        while current <= end:
            schedules.append(self.generate_daily_schedule(current, now=now))
            current += timedelta(days=1)

        return {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "total_days": len(schedules),
            "schedules": schedules
        }

    def get_weekly_schedule(self, reference_date=None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Horario de lunes a domingo de la semana de reference_date"""
        reference = parse_date(reference_date, "date") if reference_date else (now or local_now()).date()
        monday = reference - timedelta(days=reference.weekday())
        return self.generate_multi_day_schedule(monday, monday + timedelta(days=6), now=now)

    def calculate_active_days(self, medication_id: int, start_date=None, end_date=None,
                              today: Optional[date] = None) -> Dict[str, Any]:
        """Días vigentes de un medicamento descontando fechas omitidas"""
        medication = self.medications.get_medication_by_id(medication_id)

        start = parse_date(start_date, "start_date") if start_date else medication.start_date
        if end_date:
            end = parse_date(end_date, "end_date")
        else:
            end = medication.end_date or today or local_now().date()

        if start > end:
            return {"total_days": 0, "skip_days": 0, "active_days": 0, "skip_dates": []}

        total_days = (end - start).days + 1
        skip_dates = [s.skip_date for s in medication.skip_dates if start <= s.skip_date <= end]

        return {
            "total_days": total_days,
            "skip_days": len(skip_dates),
            "active_days": max(0, total_days - len(skip_dates)),
            "skip_dates": [d.isoformat() for d in skip_dates]
        }

    def get_next_scheduled_dose(self, medication_id: int, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Próxima dosis programada a partir de now (búsqueda de hasta 30 días)"""
        medication = self.medications.get_medication_by_id(medication_id)
        now = now or local_now()

        if not medication.doses:
            return None

        skipped = {s.skip_date for s in medication.skip_dates}
        day = now.date()
        for _ in range(NEXT_DOSE_SEARCH_DAYS + 1):
            if medication.is_active_on(day) and day not in skipped:
                for dose in sorted(medication.doses, key=lambda d: (d.time_of_day, d.id)):
                    scheduled_at = datetime.combine(day, dose.time_of_day)
                    if scheduled_at > now:
                        return {
                            "date": day.isoformat(),
                            "time": dose.time_label,
                            "scheduled_at": scheduled_at.isoformat(),
                            "dose": dose.to_dict(),
                            "medication_id": medication.id,
                            "medication_name": medication.name
                        }
            day += timedelta(days=1)

        return None
