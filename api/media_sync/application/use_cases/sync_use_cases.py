"""
Casos de uso de sincronizacion de media (Drive -> R2).

Los tres disparadores usan la misma maquina de estados con distintos
parametros:
- scheduler: cap chico (SYNC_RUN_CAP), ledger configurado, commit al final
- HTTP: cap SYNC_HTTP_RUN_CAP (o el que pida el caller)
- batch CLI: sin cap, por fases (thumbs -> videos), ledger JSON, commit por asset
"""
from typing import Optional

from loguru import logger

from media_sync.core.config import Settings
from media_sync.infrastructure.external.media_sync.in_flight import InFlightRegistry
from media_sync.infrastructure.external.media_sync.ledger import JsonFileLedger
from media_sync.infrastructure.external.media_sync.seed import LedgerSeeder, SeedResult
from media_sync.infrastructure.external.media_sync.sync_service import (
    COMMIT_BATCH,
    COMMIT_PER_ASSET,
    build_catalog_reader,
    build_from_settings,
    build_ledger,
)
from media_sync.infrastructure.external.media_sync.types import RunSummary
from media_sync.shared.exceptions.base import AppException


class MediaSyncUseCases:
    """
    Punto de entrada comun para scheduler, API y scripts.
    Cada corrida construye su propio orquestador desde Settings.
    """

    def __init__(self, settings: Settings, in_flight: Optional[InFlightRegistry] = None):
        self.settings = settings
        self.in_flight = in_flight

    def run_incremental(self, cap: Optional[int] = None) -> RunSummary:
        """
        Corrida acotada (scheduler / HTTP).

        Args:
            cap: maximo de assets; por defecto SYNC_RUN_CAP.
        """
        effective_cap = self.settings.SYNC_RUN_CAP if cap is None else cap
        orchestrator = build_from_settings(self.settings, in_flight=self.in_flight)
        return orchestrator.run_once(
            cap=effective_cap,
            commit_mode=COMMIT_BATCH,
            time_budget_s=self.settings.SYNC_TIME_BUDGET_S,
        )

    def run_batch(self, ledger_backend: str = "json", cap: Optional[int] = None) -> RunSummary:
        """
        Migracion one-shot: sin cap (salvo que se pida), thumbnails primero y
        luego videos, registrando cada asset apenas termina.
        """
        orchestrator = build_from_settings(
            self.settings,
            ledger_backend=ledger_backend,
            in_flight=self.in_flight,
        )
        return orchestrator.run_once(cap=cap, phased=True, commit_mode=COMMIT_PER_ASSET)

    def seed_ledger(self) -> SeedResult:
        """Importa los `completed` del documento JSON al ledger configurado."""
        source = JsonFileLedger(self.settings.LEDGER_STATE_FILE)
        if not source.path.exists():
            raise AppException(
                message=f"No existe {source.path}",
                status_code=404,
                error_code="STATE_FILE_NOT_FOUND",
            )
        target = build_ledger(
            backend=self.settings.LEDGER_BACKEND,
            database_url=self.settings.DATABASE_URL,
            state_file=self.settings.LEDGER_STATE_FILE,
        )
        if isinstance(target, JsonFileLedger) and target.path.resolve() == source.path.resolve():
            raise AppException(
                message="El ledger destino es el mismo documento JSON; configura LEDGER_BACKEND=postgres",
                status_code=400,
                error_code="SEED_SAME_LEDGER",
            )
        seeder = LedgerSeeder(
            source=source,
            target=target,
            reader=build_catalog_reader(self.settings),
        )
        return seeder.run()


def run_scheduled_sync(settings: Settings, in_flight: Optional[InFlightRegistry] = None) -> None:
    """
    Job del scheduler. El resultado se reporta como linea de log; los errores
    de corrida se registran y el job vuelve a intentar en el proximo intervalo.
    """
    logger.info("[sync] Iniciando sync programado...")
    try:
        summary = MediaSyncUseCases(settings, in_flight).run_incremental()
    except AppException as e:
        logger.error(f"[sync] Corrida abortada ({e.error_code}): {e.message}")
        return
    logger.info(
        f"[sync] Listo. Procesados: {summary.processed_count}, "
        f"fallidos: {len(summary.failed_ids)}"
    )
