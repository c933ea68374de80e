"""
Scheduler de sincronizacion periodica (APScheduler).

Un unico job `media_sync` cada SYNC_INTERVAL_MINUTES con el cap chico
de SYNC_RUN_CAP. El job no se solapa consigo mismo (max_instances=1);
si el proceso estuvo ocupado, las ejecuciones atrasadas se colapsan en una.
"""
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from media_sync.application.use_cases.sync_use_cases import run_scheduled_sync
from media_sync.core.config import Settings
from media_sync.infrastructure.external.media_sync.in_flight import InFlightRegistry

SYNC_JOB_ID = "media_sync"


def build_scheduler(settings: Settings, in_flight: Optional[InFlightRegistry] = None) -> BackgroundScheduler:
    """
    Retorna un BackgroundScheduler configurado pero *no iniciado*.
    El caller debe llamar `.start()` y `.shutdown(wait=True)`.
    """
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        run_scheduled_sync,
        trigger=IntervalTrigger(minutes=settings.SYNC_INTERVAL_MINUTES),
        args=[settings, in_flight],
        id=SYNC_JOB_ID,
        name="Sync Drive -> R2",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=settings.SYNC_INTERVAL_MINUTES * 60,
    )
    return scheduler
