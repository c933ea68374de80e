"""
Servicio de sincronización Drive -> object storage (R2).

Diseño (resumen):
- Lee el catálogo completo (Sheets) y el set de procesados (ledger)
- Calcula nuevos = catálogo - procesados (por id, en orden de descubrimiento)
- Toma un prefijo acotado por `cap` (backpressure por repetición, no por cola)
- Por asset, secuencial: download -> upload -> (commit)
- Commit al ledger en un solo batch al final, o por asset (modo batch offline)

Estrategia de idempotencia:
- Un asset se marca procesado solo si download Y upload salieron bien.
- Un asset fallido no deja rastro en el ledger: la próxima corrida lo
  reintenta completo (re-descarga, no reanuda).
- Si el commit final falla, la corrida reporta 0 procesados; los uploads
  huérfanos se re-suben (sobrescriben la misma key) en la próxima corrida.
"""

from __future__ import annotations

import time
from contextlib import ExitStack, nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, ContextManager, Iterable, Optional, Protocol, Union

from loguru import logger

from media_sync.shared.exceptions.sync import LedgerWriteError, SyncConfigError

from .catalog_reader import SourceCatalogReader
from .drive_downloader import DriveDownloader
from .in_flight import InFlightRegistry
from .ledger import JsonFileLedger, ProcessedLedger
from .object_store import build_uploader
from .sheets_client import SheetsCatalogSource, SheetsCredentials
from .types import AssetKind, AssetReference, AssetState, LedgerRecord, RunSummary, utc_now


COMMIT_BATCH = "batch"
COMMIT_PER_ASSET = "per_asset"
COMMIT_MODES = (COMMIT_BATCH, COMMIT_PER_ASSET)


class Downloader(Protocol):
    def download(self, file_id: str) -> bytes:
        ...


class Uploader(Protocol):
    def upload(self, key: str, body: bytes, content_type: str) -> None:
        ...


@dataclass
class _RunContext:
    commit_mode: str
    deadline: Optional[float]
    claims: ExitStack
    succeeded: list[AssetReference] = field(default_factory=list)
    committed: int = 0
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    ledger_error: Optional[str] = None
    stopped: bool = False


class SyncOrchestrator:
    """
    Orquestador del pipeline. Recibe sus dependencias al construirse: no hay
    clientes ni caches globales.
    """

    def __init__(
        self,
        *,
        reader: SourceCatalogReader,
        downloader: Downloader,
        uploader: Uploader,
        ledger: ProcessedLedger,
        in_flight: Optional[InFlightRegistry] = None,
        local_thumbs_dir: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reader = reader
        self._downloader = downloader
        self._uploader = uploader
        self._ledger = ledger
        self._in_flight = in_flight
        self._local_thumbs_dir = Path(local_thumbs_dir) if local_thumbs_dir else None
        self._clock = clock

    def run_once(
        self,
        *,
        cap: Optional[int] = None,
        phased: bool = False,
        commit_mode: str = COMMIT_BATCH,
        time_budget_s: Optional[float] = None,
    ) -> RunSummary:
        """
        Ejecuta una corrida completa.

        Args:
            cap: máximo de assets nuevos a procesar (None = todos).
            phased: si True, procesa primero thumbnails y luego videos.
            commit_mode: "batch" (un append al final) o "per_asset".
            time_budget_s: presupuesto de reloj; al agotarse no se inician
                más assets (quedan para la próxima corrida).

        Raises:
            CatalogReadError / LedgerReadError: errores de corrida, antes de
                intentar cualquier asset.
        """
        if commit_mode not in COMMIT_MODES:
            raise ValueError(f"commit_mode inválido: {commit_mode}")
        if cap is not None and cap < 0:
            raise ValueError("cap debe ser >= 0")

        catalog = self._reader.read_assets()
        processed = self._ledger.list_all()
        logger.info(f"Ya sincronizados: {len(processed)} archivo(s)")

        new_assets = [a for a in catalog if a.id not in processed]
        logger.info(f"Archivos nuevos por sincronizar: {len(new_assets)}")

        if not new_assets:
            logger.info("Sin archivos nuevos para sincronizar")
            return RunSummary.empty()

        selected = new_assets if cap is None else new_assets[:cap]
        if len(selected) < len(new_assets):
            logger.info(
                f"Cap={cap}: se procesan {len(selected)}, "
                f"{len(new_assets) - len(selected)} quedan para la próxima corrida"
            )

        self._ledger.begin_run()
        deadline = self._clock() + time_budget_s if time_budget_s else None

        # Los claims en vuelo se liberan recién después del commit: una corrida
        # solapada no debe ver como "nuevo" un asset subido pero aún sin registrar.
        with ExitStack() as claims:
            run = _RunContext(commit_mode=commit_mode, deadline=deadline, claims=claims)

            for label, assets in self._phases(selected, phased):
                if label:
                    logger.info(f"--- Fase {label} ({len(assets)}) ---")
                failed_before = len(run.failed)
                done_before = len(run.succeeded)
                for asset in assets:
                    if self._budget_exhausted(run):
                        break
                    self._process_asset(asset, run)
                    if run.stopped:
                        break
                if label:
                    logger.info(
                        f"Fase {label} terminada. OK: {len(run.succeeded) - done_before}, "
                        f"fallidos: {len(run.failed) - failed_before}"
                    )
                if run.stopped:
                    break

            if run.commit_mode == COMMIT_BATCH:
                self._commit(run.succeeded, run)

        summary = RunSummary(
            processed_count=run.committed,
            failed_ids=list(run.failed),
            skipped_ids=list(run.skipped),
            ledger_error=run.ledger_error,
        )
        message = (
            f"Corrida terminada. Procesados: {summary.processed_count}, "
            f"fallidos: {len(summary.failed_ids)}"
        )
        if summary.failed_ids or summary.ledger_error:
            logger.warning(message)
        else:
            logger.success(message)
        return summary

    def _phases(
        self, selected: list[AssetReference], phased: bool
    ) -> Iterable[tuple[Optional[str], list[AssetReference]]]:
        if not phased:
            return [(None, selected)]
        thumbs = [a for a in selected if a.kind is AssetKind.THUMB]
        videos = [a for a in selected if a.kind is AssetKind.VIDEO]
        return [(label, assets) for label, assets in (("1: Thumbnails", thumbs), ("2: Videos", videos)) if assets]

    def _budget_exhausted(self, run: _RunContext) -> bool:
        if run.deadline is None or self._clock() < run.deadline:
            return False
        logger.warning("Presupuesto de tiempo agotado; el resto queda para la próxima corrida")
        run.stopped = True
        return True

    def _claim(self, file_id: str) -> ContextManager[bool]:
        if self._in_flight is None:
            return nullcontext(True)
        return self._in_flight.claim(file_id)

    def _process_asset(self, asset: AssetReference, run: _RunContext) -> None:
        owned = run.claims.enter_context(self._claim(asset.id))
        if not owned:
            run.skipped.append(asset.id)
            return

        state = AssetState.PENDING
        try:
            state = AssetState.DOWNLOADING
            body = self._fetch(asset)
            state = AssetState.DOWNLOADED

            state = AssetState.UPLOADING
            self._uploader.upload(asset.storage_key, body, asset.content_type)
            state = AssetState.COMPLETED
        except Exception as e:
            reason = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error(f"✗ {asset.id} ({state.value}): {reason}")
            self._fail(asset.id, run)
            return

        run.succeeded.append(asset)
        if run.commit_mode == COMMIT_PER_ASSET:
            self._commit([asset], run)
            if run.stopped:
                return
        logger.info(f"✓ {asset.id} -> {asset.storage_key}")

    def _fetch(self, asset: AssetReference) -> bytes:
        if asset.kind is AssetKind.THUMB and self._local_thumbs_dir is not None:
            local_path = self._local_thumbs_dir / f"{asset.id}.jpg"
            if local_path.is_file():
                logger.debug(f"[local] {local_path.name}")
                return local_path.read_bytes()

        body = self._downloader.download(asset.id)
        if asset.kind is AssetKind.VIDEO:
            logger.debug(f"[drive] {asset.id}.mp4 ({len(body) / 1024 / 1024:.1f}MB)")
        return body

    def _fail(self, file_id: str, run: _RunContext) -> None:
        run.failed.append(file_id)
        self._ledger.mark_failed(file_id)

    def _commit(self, assets: list[AssetReference], run: _RunContext) -> None:
        if not assets:
            return
        synced_at = utc_now()
        records = [LedgerRecord.from_asset(a, synced_at) for a in assets]
        try:
            self._ledger.append_batch(records)
        except LedgerWriteError as e:
            logger.error(f"Commit al ledger falló para {len(records)} asset(s): {e.message}")
            run.ledger_error = e.message
            if run.commit_mode == COMMIT_PER_ASSET:
                # Subido pero sin registro: cuenta como fallido y se corta la corrida.
                for a in assets:
                    run.succeeded.remove(a)
                    self._fail(a.id, run)
                run.stopped = True
            else:
                run.committed = 0
            return
        run.committed += len(records)


def build_ledger(
    *,
    backend: str,
    database_url: str = "",
    state_file: str = "",
) -> ProcessedLedger:
    """Elige el backend del ledger ("postgres" | "json")."""
    backend = (backend or "").strip().lower()
    if backend == "json":
        if not state_file:
            raise SyncConfigError("Falta LEDGER_STATE_FILE para el ledger JSON")
        return JsonFileLedger(state_file)
    if backend == "postgres":
        if not database_url:
            raise SyncConfigError("Falta DATABASE_URL para el ledger Postgres")
        # Import diferido: el modo JSON no necesita el driver de Postgres.
        from .pg_ledger import PostgresLedger

        return PostgresLedger(database_url)
    raise SyncConfigError(f"LEDGER_BACKEND desconocido: {backend!r} (usa 'postgres' o 'json')")


def build_catalog_reader(settings) -> SourceCatalogReader:
    if not settings.GOOGLE_API_KEY or not settings.SPREADSHEET_ID:
        raise SyncConfigError("Faltan GOOGLE_API_KEY o SPREADSHEET_ID")
    source = SheetsCatalogSource(
        SheetsCredentials(api_key=settings.GOOGLE_API_KEY, spreadsheet_id=settings.SPREADSHEET_ID),
        range_a1=settings.sheet_range_a1,
        timeout_s=settings.HTTP_CONNECT_TIMEOUT_S + settings.HTTP_READ_TIMEOUT_S,
    )
    return SourceCatalogReader(source)


def build_from_settings(
    settings,
    *,
    ledger_backend: Optional[str] = None,
    in_flight: Optional[InFlightRegistry] = None,
) -> SyncOrchestrator:
    """
    Constructor "oficial" del pipeline a partir de Settings.

    Requeridas:
    - GOOGLE_API_KEY, SPREADSHEET_ID
    - R2_ENDPOINT, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME
    - DATABASE_URL (ledger postgres) o LEDGER_STATE_FILE (ledger json)
    """
    timeout = (settings.HTTP_CONNECT_TIMEOUT_S, settings.HTTP_READ_TIMEOUT_S)
    reader = build_catalog_reader(settings)
    downloader = DriveDownloader(export_url=settings.DRIVE_EXPORT_URL, timeout=timeout)
    uploader = build_uploader(
        endpoint=settings.R2_ENDPOINT,
        access_key_id=settings.R2_ACCESS_KEY_ID,
        secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        bucket=settings.R2_BUCKET_NAME,
        connect_timeout_s=settings.HTTP_CONNECT_TIMEOUT_S,
        read_timeout_s=settings.HTTP_READ_TIMEOUT_S,
    )
    ledger = build_ledger(
        backend=ledger_backend or settings.LEDGER_BACKEND,
        database_url=settings.DATABASE_URL,
        state_file=settings.LEDGER_STATE_FILE,
    )
    return SyncOrchestrator(
        reader=reader,
        downloader=downloader,
        uploader=uploader,
        ledger=ledger,
        in_flight=in_flight,
        local_thumbs_dir=settings.LOCAL_THUMBS_DIR or None,
    )
