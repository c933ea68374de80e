"""
Tests para SyncOrchestrator.

Verifican las garantías del pipeline con colaboradores en memoria:
- Idempotencia entre corridas y reintento completo de fallidos.
- Un asset solo entra al ledger si download Y upload salieron bien.
- Cap por corrida, commit batch vs por asset, fases y presupuesto de tiempo.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from media_sync.infrastructure.external.media_sync.catalog_reader import SourceCatalogReader
from media_sync.infrastructure.external.media_sync.in_flight import InFlightRegistry
from media_sync.infrastructure.external.media_sync.ledger import JsonFileLedger
from media_sync.infrastructure.external.media_sync.sync_service import (
    COMMIT_PER_ASSET,
    SyncOrchestrator,
    build_ledger,
)
from media_sync.infrastructure.external.media_sync.types import AssetKind, RunSummary
from media_sync.shared.exceptions.sync import (
    CatalogReadError,
    LedgerReadError,
    LedgerWriteError,
    SyncConfigError,
)
from sync_fakes import (
    FakeCatalogSource,
    FakeDownloader,
    FakeUploader,
    InMemoryLedger,
    make_row,
)


def _orchestrator(rows, downloader, uploader, ledger, **kwargs) -> SyncOrchestrator:
    return SyncOrchestrator(
        reader=SourceCatalogReader(FakeCatalogSource(rows=rows)),
        downloader=downloader,
        uploader=uploader,
        ledger=ledger,
        **kwargs,
    )


def _thumb_rows(count: int, prefix: str = "T") -> list[list[str]]:
    return [make_row(static_45=f"{prefix}{i:02d}") for i in range(count)]


class _FakeClock:
    def __init__(self, step: float) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


# ---------------------------------------------------------------------------
# Idempotencia y reintentos
# ---------------------------------------------------------------------------

def test_second_run_with_same_catalog_processes_nothing(downloader, uploader, ledger) -> None:
    rows = [make_row(video_916="V1", static_45="S1", carousel=["C1"])]
    orchestrator = _orchestrator(rows, downloader, uploader, ledger)

    first = orchestrator.run_once()
    records_after_first = list(ledger.records)
    second = orchestrator.run_once()

    assert first.processed_count == 3
    assert second == RunSummary(processed_count=0, failed_ids=[])
    assert ledger.records == records_after_first
    assert len(downloader.calls) == 3


def test_already_synced_asset_is_excluded(downloader, uploader) -> None:
    ledger = InMemoryLedger(initial=["ABC123"])
    rows = [make_row(static_45="ABC123")]

    summary = _orchestrator(rows, downloader, uploader, ledger).run_once()

    assert summary.processed_count == 0
    assert summary.failed_ids == []
    assert downloader.calls == []
    assert ledger.begin_run_calls == 0
    assert ledger.append_calls == 0


def test_upload_failure_gives_no_credit(downloader, uploader, ledger) -> None:
    rows = [make_row(video_916="V1", static_45="S1")]
    uploader.fail_keys.add("videos/V1.mp4")

    summary = _orchestrator(rows, downloader, uploader, ledger).run_once()

    assert summary.failed_ids == ["V1"]
    assert summary.processed_count == 1
    assert "V1" not in ledger.list_all()
    assert "V1" in downloader.calls
    assert ledger.failed_marks == ["V1"]


def test_download_failure_skips_upload(downloader, uploader, ledger) -> None:
    rows = [make_row(static_45="S1")]
    downloader.fail_with_status("S1", 404)

    summary = _orchestrator(rows, downloader, uploader, ledger).run_once()

    assert summary.failed_ids == ["S1"]
    assert uploader.calls == []
    assert ledger.list_all() == set()


def test_failed_asset_is_retried_next_run(downloader, uploader, ledger) -> None:
    rows = [make_row(static_45="S1")]
    orchestrator = _orchestrator(rows, downloader, uploader, ledger)
    uploader.fail_keys.add("thumbs/S1.jpg")

    first = orchestrator.run_once()
    uploader.fail_keys.clear()
    second = orchestrator.run_once()

    assert first.failed_ids == ["S1"]
    assert second.failed_ids == []
    assert second.processed_count == 1
    assert "S1" in ledger.list_all()
    # Reintento completo: se vuelve a descargar
    assert downloader.calls == ["S1", "S1"]


def test_unexpected_error_is_per_asset_failure(downloader, uploader, ledger) -> None:
    rows = [make_row(static_45="S1", carousel=["C1"])]
    downloader.fail["S1"] = RuntimeError("bug inesperado")

    summary = _orchestrator(rows, downloader, uploader, ledger).run_once()

    assert summary.failed_ids == ["S1"]
    assert summary.processed_count == 1


# ---------------------------------------------------------------------------
# Cap y orden
# ---------------------------------------------------------------------------

def test_cap_processes_first_k_in_discovery_order(downloader, uploader, ledger) -> None:
    rows = _thumb_rows(15)
    orchestrator = _orchestrator(rows, downloader, uploader, ledger)

    summary = orchestrator.run_once(cap=10)

    assert summary.processed_count == 10
    assert len(ledger.records) == 10
    assert downloader.calls == [f"T{i:02d}" for i in range(10)]

    rest = orchestrator.run_once(cap=10)
    assert rest.processed_count == 5
    assert len(ledger.records) == 15


def test_cap_zero_processes_nothing(downloader, uploader, ledger) -> None:
    summary = _orchestrator(_thumb_rows(3), downloader, uploader, ledger).run_once(cap=0)

    assert summary.processed_count == 0
    assert downloader.calls == []
    assert ledger.append_calls == 0


def test_negative_cap_is_rejected(downloader, uploader, ledger) -> None:
    with pytest.raises(ValueError):
        _orchestrator(_thumb_rows(1), downloader, uploader, ledger).run_once(cap=-1)


def test_invalid_commit_mode_is_rejected(downloader, uploader, ledger) -> None:
    with pytest.raises(ValueError):
        _orchestrator(_thumb_rows(1), downloader, uploader, ledger).run_once(commit_mode="eventual")


def test_upload_failure_in_middle_of_batch(downloader, uploader, ledger) -> None:
    """Falla el upload del 4to de 6 assets: 5 procesados, 1 fallido."""
    rows = _thumb_rows(6)
    uploader.fail_keys.add("thumbs/T03.jpg")

    summary = _orchestrator(rows, downloader, uploader, ledger).run_once()

    assert summary.processed_count == 5
    assert summary.failed_ids == ["T03"]
    assert len(ledger.records) == 5
    assert ledger.append_calls == 1
    assert "T03" not in ledger.list_all()


# ---------------------------------------------------------------------------
# Keys determinísticas
# ---------------------------------------------------------------------------

def test_assets_are_uploaded_to_kind_specific_keys(downloader, uploader, ledger) -> None:
    rows = [make_row(video_45="Y", carousel=["X"])]

    _orchestrator(rows, downloader, uploader, ledger).run_once()

    assert uploader.objects["thumbs/X.jpg"] == (b"bytes-of-X", "image/jpeg")
    assert uploader.objects["videos/Y.mp4"] == (b"bytes-of-Y", "video/mp4")
    kinds = {r.file_id: r.kind for r in ledger.records}
    assert kinds == {"X": AssetKind.THUMB, "Y": AssetKind.VIDEO}


def test_batch_commit_shares_synced_at(downloader, uploader, ledger) -> None:
    _orchestrator(_thumb_rows(3), downloader, uploader, ledger).run_once()

    assert len({r.synced_at for r in ledger.records}) == 1


# ---------------------------------------------------------------------------
# Errores de corrida
# ---------------------------------------------------------------------------

def test_catalog_error_aborts_before_ledger(downloader, uploader, ledger) -> None:
    orchestrator = SyncOrchestrator(
        reader=SourceCatalogReader(FakeCatalogSource(error=CatalogReadError("403", status=403))),
        downloader=downloader,
        uploader=uploader,
        ledger=ledger,
    )

    with pytest.raises(CatalogReadError):
        orchestrator.run_once()

    assert ledger.begin_run_calls == 0
    assert downloader.calls == []


def test_ledger_read_error_aborts_before_downloads(downloader, uploader) -> None:
    class _BrokenLedger(InMemoryLedger):
        def list_all(self) -> set[str]:
            raise LedgerReadError("postgres caído")

    with pytest.raises(LedgerReadError):
        _orchestrator(_thumb_rows(2), downloader, uploader, _BrokenLedger()).run_once()

    assert downloader.calls == []


def test_ledger_write_failure_reports_zero(downloader, uploader, ledger) -> None:
    ledger.fail_writes = True
    orchestrator = _orchestrator(_thumb_rows(3), downloader, uploader, ledger)

    summary = orchestrator.run_once()

    assert summary.processed_count == 0
    assert summary.ledger_error == "ledger caído"
    assert len(uploader.objects) == 3
    assert ledger.records == []

    # Próxima corrida: re-sube las mismas keys y ahora sí registra
    ledger.fail_writes = False
    retry = orchestrator.run_once()
    assert retry.processed_count == 3
    assert len(uploader.calls) == 6


# ---------------------------------------------------------------------------
# Commit por asset y fases (modo batch)
# ---------------------------------------------------------------------------

def test_per_asset_commit_appends_each_asset(downloader, uploader, ledger) -> None:
    summary = _orchestrator(_thumb_rows(3), downloader, uploader, ledger).run_once(
        commit_mode=COMMIT_PER_ASSET
    )

    assert summary.processed_count == 3
    assert ledger.append_calls == 3


def test_per_asset_commit_failure_stops_run(downloader, uploader, ledger) -> None:
    ledger.fail_writes = True

    summary = _orchestrator(_thumb_rows(3), downloader, uploader, ledger).run_once(
        commit_mode=COMMIT_PER_ASSET
    )

    assert summary.processed_count == 0
    assert summary.failed_ids == ["T00"]
    assert summary.ledger_error is not None
    assert downloader.calls == ["T00"]


def test_phased_run_processes_thumbs_before_videos(downloader, uploader, ledger) -> None:
    rows = [
        make_row(video_916="V1", static_45="S1"),
        make_row(video_45="V2", carousel=["C2"]),
    ]

    summary = _orchestrator(rows, downloader, uploader, ledger).run_once(phased=True)

    assert summary.processed_count == 4
    assert downloader.calls == ["S1", "C2", "V1", "V2"]


def test_phased_run_with_cap_uses_discovery_prefix(downloader, uploader, ledger) -> None:
    rows = [
        make_row(video_916="V1", static_45="S1"),
        make_row(static_45="S2"),
    ]

    _orchestrator(rows, downloader, uploader, ledger).run_once(cap=2, phased=True)

    assert downloader.calls == ["S1", "V1"]


# ---------------------------------------------------------------------------
# Presupuesto de tiempo, en vuelo y thumbs locales
# ---------------------------------------------------------------------------

def test_time_budget_stops_starting_new_assets(downloader, uploader, ledger) -> None:
    # El reloj avanza 1s por lectura: deadline = 0 + 2.5
    clock = _FakeClock(step=1.0)
    orchestrator = _orchestrator(_thumb_rows(5), downloader, uploader, ledger, clock=clock)

    summary = orchestrator.run_once(time_budget_s=2.5)

    assert summary.processed_count == 2
    assert summary.failed_ids == []
    assert downloader.calls == ["T00", "T01"]


def test_asset_in_flight_is_skipped(downloader, uploader, ledger) -> None:
    registry = InFlightRegistry()
    registry.try_claim("T01")
    orchestrator = _orchestrator(_thumb_rows(3), downloader, uploader, ledger, in_flight=registry)

    summary = orchestrator.run_once()

    assert summary.skipped_ids == ["T01"]
    assert summary.processed_count == 2
    assert "T01" not in ledger.list_all()
    assert registry.active_count() == 1


def test_claims_are_released_after_run(downloader, uploader, ledger) -> None:
    registry = InFlightRegistry()
    uploader.fail_keys.add("thumbs/T00.jpg")

    _orchestrator(_thumb_rows(2), downloader, uploader, ledger, in_flight=registry).run_once()

    assert registry.active_count() == 0


class _OverlappingUploader(FakeUploader):
    """Dispara otra corrida (mismo ledger y registro) al subir `trigger_key`."""

    def __init__(self, trigger_key: str) -> None:
        super().__init__()
        self.trigger_key = trigger_key
        self.on_trigger = None
        self.overlap_summary: RunSummary | None = None

    def upload(self, key: str, body: bytes, content_type: str) -> None:
        super().upload(key, body, content_type)
        if key == self.trigger_key and self.on_trigger is not None:
            trigger, self.on_trigger = self.on_trigger, None
            self.overlap_summary = trigger()


def test_claims_are_held_until_batch_commit(downloader, ledger) -> None:
    registry = InFlightRegistry()
    uploader = _OverlappingUploader("thumbs/T01.jpg")
    first = _orchestrator(_thumb_rows(2), downloader, uploader, ledger, in_flight=registry)
    second = _orchestrator(_thumb_rows(2), FakeDownloader(), FakeUploader(), ledger, in_flight=registry)
    uploader.on_trigger = second.run_once

    summary = first.run_once()

    # T00 ya estaba subido pero sin commit: la corrida solapada no lo repite.
    assert uploader.overlap_summary.processed_count == 0
    assert uploader.overlap_summary.skipped_ids == ["T00", "T01"]
    assert summary.processed_count == 2
    assert [r.file_id for r in ledger.records] == ["T00", "T01"]
    assert registry.active_count() == 0


def test_local_thumb_is_used_instead_of_download(tmp_path: Path, downloader, uploader, ledger) -> None:
    (tmp_path / "S1.jpg").write_bytes(b"local-jpeg")
    rows = [make_row(video_916="S1-video", static_45="S1", carousel=["C1"])]
    orchestrator = _orchestrator(rows, downloader, uploader, ledger, local_thumbs_dir=tmp_path)

    summary = orchestrator.run_once()

    assert summary.processed_count == 3
    assert uploader.objects["thumbs/S1.jpg"] == (b"local-jpeg", "image/jpeg")
    assert downloader.calls == ["S1-video", "C1"]


# ---------------------------------------------------------------------------
# Ledger JSON de punta a punta
# ---------------------------------------------------------------------------

def test_json_ledger_records_completed_and_failed(tmp_path: Path, downloader, uploader) -> None:
    ledger = JsonFileLedger(tmp_path / "migration-state.json")
    uploader.fail_keys.add("videos/V1.mp4")
    rows = [make_row(video_916="V1", static_45="S1")]
    orchestrator = _orchestrator(rows, downloader, uploader, ledger)

    orchestrator.run_once(phased=True, commit_mode=COMMIT_PER_ASSET)

    state = JsonFileLedger(tmp_path / "migration-state.json").state
    assert state.completed == ["S1"]
    assert state.failed == ["V1"]

    uploader.fail_keys.clear()
    orchestrator.run_once(phased=True, commit_mode=COMMIT_PER_ASSET)

    state = JsonFileLedger(tmp_path / "migration-state.json").state
    assert state.completed == ["S1", "V1"]
    assert state.failed == []


class _FirstAppendFailsLedger(JsonFileLedger):
    """Ledger JSON real cuya primera escritura de append falla."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.pending_failures = 1
        self._appending = False

    def append_batch(self, records) -> None:
        self._appending = True
        try:
            super().append_batch(records)
        finally:
            self._appending = False

    def _save(self, state) -> None:
        if self._appending and self.pending_failures:
            self.pending_failures -= 1
            raise LedgerWriteError("disco lleno")
        super()._save(state)


def test_json_ledger_write_failure_leaves_asset_unrecorded(tmp_path: Path, downloader, uploader) -> None:
    path = tmp_path / "migration-state.json"
    ledger = _FirstAppendFailsLedger(path)
    orchestrator = _orchestrator(_thumb_rows(2), downloader, uploader, ledger)

    summary = orchestrator.run_once(commit_mode=COMMIT_PER_ASSET)

    assert summary.processed_count == 0
    assert summary.failed_ids == ["T00"]
    assert summary.ledger_error == "disco lleno"
    assert "thumbs/T00.jpg" in uploader.objects
    state = JsonFileLedger(path).state
    assert state.completed == []
    assert state.failed == ["T00"]
    assert ledger.list_all() == set()

    retry = orchestrator.run_once(commit_mode=COMMIT_PER_ASSET)

    assert retry.processed_count == 2
    assert downloader.calls == ["T00", "T00", "T01"]
    state = JsonFileLedger(path).state
    assert state.completed == ["T00", "T01"]
    assert state.failed == []


# ---------------------------------------------------------------------------
# Construcción del ledger
# ---------------------------------------------------------------------------

def test_build_ledger_json(tmp_path: Path) -> None:
    ledger = build_ledger(backend="json", state_file=str(tmp_path / "s.json"))
    assert isinstance(ledger, JsonFileLedger)


def test_build_ledger_requires_database_url() -> None:
    with pytest.raises(SyncConfigError):
        build_ledger(backend="postgres", database_url="")


def test_build_ledger_unknown_backend() -> None:
    with pytest.raises(SyncConfigError):
        build_ledger(backend="redis")
