"""
Planificador de trabajos en segundo plano

Cada trabajo es una tarea asyncio que duerme su intervalo y ejecuta la regla
en un hilo con su propia sesión. Las ejecuciones de un mismo trabajo nunca se
solapan: la tarea espera a que termine una antes de volver a dormir.
"""
import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.config import get_settings, Settings
from app.core.database import session_scope
from app.core.exceptions import ValidationError
from app.core.timeutils import local_now
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
import logging

logger = logging.getLogger(__name__)

BUY_SOON_JOB = "buySoonAlerts"
DOSE_DUE_JOB = "doseDueNotifications"
MISSED_DOSE_JOB = "missedDoseNotifications"
CLEANUP_JOB = "cleanup"

JOB_NAMES = (BUY_SOON_JOB, DOSE_DUE_JOB, MISSED_DOSE_JOB, CLEANUP_JOB)


class BackgroundJob:
    """Estado de un trabajo en ejecución"""

    def __init__(self, job_name: str, interval_seconds: float, action: Callable[[], Any]):
        self.job_name = job_name
        self.interval_seconds = interval_seconds
        self.action = action
        self.task: Optional[asyncio.Task] = None
        self.last_run_at: Optional[datetime] = None
        self.run_count = 0
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_name": self.job_name,
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "run_count": self.run_count,
            "last_error": self.last_error
        }


class Scheduler:
    """
    Dueño de los trabajos en segundo plano.

    Construirlo no inicia nada: los trabajos se arrancan explícitamente y deben
    detenerse con shutdown() al cerrar la aplicación. Los métodos start_*
    requieren un event loop en ejecución.
    """

    def __init__(
            self,
            session_factory=None,
            settings: Optional[Settings] = None,
            actions: Optional[Dict[str, Callable[[], Any]]] = None,
            intervals: Optional[Dict[str, float]] = None
    ):
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self.jobs: Dict[str, BackgroundJob] = {}

        self._actions: Dict[str, Callable[[], Any]] = {
            BUY_SOON_JOB: self._run_buy_soon_alerts,
            DOSE_DUE_JOB: self._run_dose_due_notifications,
            MISSED_DOSE_JOB: self._run_missed_dose_notifications,
            CLEANUP_JOB: self._run_cleanup,
        }
        self._actions.update(actions or {})

        self._intervals: Dict[str, float] = {
            BUY_SOON_JOB: self.settings.BUY_SOON_JOB_INTERVAL_SECONDS,
            DOSE_DUE_JOB: self.settings.DOSE_DUE_JOB_INTERVAL_SECONDS,
            MISSED_DOSE_JOB: self.settings.MISSED_DOSE_JOB_INTERVAL_SECONDS,
            CLEANUP_JOB: self.settings.CLEANUP_JOB_INTERVAL_SECONDS,
        }
        self._intervals.update(intervals or {})

    # ===== ACCIONES =====

    @staticmethod
    def _summarize(result: Dict[str, Any]) -> Dict[str, Any]:
        # Las entidades no salen de la sesión del hilo
        summary = {k: v for k, v in result.items() if k != "notifications"}
        summary["notification_ids"] = [n.id for n in result.get("notifications", [])]
        return summary

    def _run_buy_soon_alerts(self):
        with session_scope(self._session_factory) as db:
            return self._summarize(
                NotificationService(db).generate_buy_soon_alerts(self.settings.BUY_SOON_DAYS_AHEAD)
            )

    def _run_dose_due_notifications(self):
        with session_scope(self._session_factory) as db:
            return self._summarize(
                NotificationService(db).generate_dose_due_notifications(self.settings.DOSE_DUE_MINUTES_AHEAD)
            )

    def _run_missed_dose_notifications(self):
        with session_scope(self._session_factory) as db:
            return self._summarize(
                NotificationService(db).generate_missed_dose_notifications(self.settings.MISSED_DOSE_HOURS_OVERDUE)
            )

    def _run_cleanup(self):
        with session_scope(self._session_factory) as db:
            result = NotificationService(db).cleanup_old_notifications(self.settings.NOTIFICATION_RETENTION_DAYS)
            result["audit_deleted_count"] = AuditService(db).cleanup_old_logs(self.settings.AUDIT_RETENTION_DAYS)
            return result

    # ===== CICLO DE VIDA =====

    @staticmethod
    def _check_job_name(job_name: str) -> None:
        if job_name not in JOB_NAMES:
            raise ValidationError(f"Trabajo desconocido: {job_name}. Debe ser uno de: {', '.join(JOB_NAMES)}")

    async def _loop(self, job: BackgroundJob) -> None:
        while True:
            await asyncio.sleep(job.interval_seconds)
            await self._tick(job)

    async def _tick(self, job: BackgroundJob) -> Dict[str, Any]:
        """Ejecutar la acción una vez. Un fallo se registra y no detiene el trabajo"""
        try:
            result = await asyncio.to_thread(job.action)
            job.last_error = None
            created = result.get("notifications_created") if isinstance(result, dict) else None
            if created is not None:
                logger.info(f"Trabajo {job.job_name} completado: {created} notificaciones creadas")
            else:
                logger.info(f"Trabajo {job.job_name} completado")
            return {"job_name": job.job_name, "status": "completed", "result": result}
        except Exception as e:
            job.last_error = str(e)
            logger.exception(f"Falló el trabajo {job.job_name}")
            return {"job_name": job.job_name, "status": "failed", "error": str(e)}
        finally:
            job.last_run_at = local_now()
            job.run_count += 1

    def start_job(self, job_name: str) -> Dict[str, Any]:
        """Iniciar un trabajo; si ya estaba en ejecución se reinicia"""
        self._check_job_name(job_name)
        loop = asyncio.get_running_loop()

        previous = self.jobs.get(job_name)
        if previous:
            self.stop_job(job_name)

        job = BackgroundJob(job_name, self._intervals[job_name], self._actions[job_name])
        if previous:
            job.last_run_at = previous.last_run_at
            job.run_count = previous.run_count
            job.last_error = previous.last_error

        job.task = loop.create_task(self._loop(job), name=f"background-job:{job_name}")
        self.jobs[job_name] = job

        logger.info(f"Trabajo iniciado: {job_name} (cada {job.interval_seconds}s)")
        return {"job_name": job_name, "interval_seconds": job.interval_seconds, "status": "started"}

    def stop_job(self, job_name: str) -> Dict[str, Any]:
        """Cancelar el temporizador. Una ejecución en curso termina en su hilo"""
        self._check_job_name(job_name)
        job = self.jobs.pop(job_name, None)
        if not job:
            return {"job_name": job_name, "status": "not_running"}

        if job.task:
            job.task.cancel()
        logger.info(f"Trabajo detenido: {job_name}")
        return {"job_name": job_name, "status": "stopped"}

    def start_buy_soon_alert_job(self) -> Dict[str, Any]:
        return self.start_job(BUY_SOON_JOB)

    def start_dose_due_notification_job(self) -> Dict[str, Any]:
        return self.start_job(DOSE_DUE_JOB)

    def start_missed_dose_notification_job(self) -> Dict[str, Any]:
        return self.start_job(MISSED_DOSE_JOB)

    def start_cleanup_job(self) -> Dict[str, Any]:
        return self.start_job(CLEANUP_JOB)

    def stop_buy_soon_alert_job(self) -> Dict[str, Any]:
        return self.stop_job(BUY_SOON_JOB)

    def stop_dose_due_notification_job(self) -> Dict[str, Any]:
        return self.stop_job(DOSE_DUE_JOB)

    def stop_missed_dose_notification_job(self) -> Dict[str, Any]:
        return self.stop_job(MISSED_DOSE_JOB)

    def stop_cleanup_job(self) -> Dict[str, Any]:
        return self.stop_job(CLEANUP_JOB)

    def start_all_background_jobs(self) -> Dict[str, Any]:
        jobs = [self.start_job(name) for name in JOB_NAMES]
        return {"message": "Todos los trabajos en segundo plano iniciados", "jobs": jobs}

    def stop_all_background_jobs(self) -> Dict[str, Any]:
        for name in JOB_NAMES:
            self.stop_job(name)
        jobs = [{"job_name": name, "status": "stopped"} for name in JOB_NAMES]
        return {"message": "Todos los trabajos en segundo plano detenidos", "jobs": jobs}

    def restart_all_background_jobs(self) -> Dict[str, Any]:
        self.stop_all_background_jobs()
        result = self.start_all_background_jobs()
        result["message"] = "Todos los trabajos en segundo plano reiniciados"
        return result

    def get_background_job_status(self) -> Dict[str, Any]:
        jobs: List[Dict[str, Any]] = [self.jobs[name].to_dict() for name in JOB_NAMES if name in self.jobs]
        return {"total_jobs": len(jobs), "jobs": jobs}

    async def run_job_now(self, job_name: str) -> Dict[str, Any]:
        """Ejecutar un trabajo una vez fuera de su intervalo"""
        self._check_job_name(job_name)
        job = self.jobs.get(job_name)
        if job is None:
            job = BackgroundJob(job_name, self._intervals[job_name], self._actions[job_name])
        return await self._tick(job)

    async def shutdown(self) -> None:
        """Detener todos los trabajos y esperar la cancelación de sus tareas"""
        tasks = [job.task for job in self.jobs.values() if job.task]
        self.stop_all_background_jobs()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Planificador detenido")
