"""
Fakes en memoria para los colaboradores del pipeline (catálogo, Drive, R2,
ledger), para testear el orquestador sin red.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence


from media_sync.infrastructure.external.media_sync.ledger import ProcessedLedger
from media_sync.infrastructure.external.media_sync.types import LedgerRecord
from media_sync.shared.exceptions.sync import (
    DownloadError,
    LedgerWriteError,
    UploadError,
)


ROW_WIDTH = 30  # A..AD


def drive_url(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view?usp=sharing"


def make_row(
    *,
    video_916: Optional[str] = None,
    video_45: Optional[str] = None,
    static_45: Optional[str] = None,
    carousel: Sequence[Optional[str]] = (),
    name: str = "Creative",
) -> list[str]:
    """Construye una fila A..AD con links de Drive en las columnas X..AD."""
    row = [""] * ROW_WIDTH
    row[0] = name
    if video_916:
        row[23] = drive_url(video_916)
    if video_45:
        row[24] = drive_url(video_45)
    if static_45:
        row[25] = drive_url(static_45)
    for offset, file_id in enumerate(carousel[:4]):
        if file_id:
            row[26 + offset] = drive_url(file_id)
    return row


class FakeCatalogSource:
    def __init__(self, rows: Optional[list[list[str]]] = None, error: Optional[Exception] = None) -> None:
        self.rows = rows or []
        self.error = error
        self.calls = 0

    def fetch_rows(self) -> list[list[str]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rows


class FakeDownloader:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail: dict[str, Exception] = {}

    def download(self, file_id: str) -> bytes:
        self.calls.append(file_id)
        if file_id in self.fail:
            raise self.fail[file_id]
        return f"bytes-of-{file_id}".encode()

    def fail_with_status(self, file_id: str, status: int = 404) -> None:
        self.fail[file_id] = DownloadError(file_id, status=status)


class FakeUploader:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.calls: list[str] = []
        self.fail_keys: set[str] = set()

    def upload(self, key: str, body: bytes, content_type: str) -> None:
        self.calls.append(key)
        if key in self.fail_keys:
            raise UploadError(key, "AccessDenied")
        self.objects[key] = (body, content_type)


class InMemoryLedger(ProcessedLedger):
    def __init__(self, initial: Iterable[str] = ()) -> None:
        self.records: list[LedgerRecord] = []
        self.preloaded = list(initial)
        self.append_calls = 0
        self.begin_run_calls = 0
        self.failed_marks: list[str] = []
        self.fail_writes = False

    def list_all(self) -> set[str]:
        return set(self.preloaded) | {r.file_id for r in self.records}

    def append_batch(self, records: Iterable[LedgerRecord]) -> None:
        self.append_calls += 1
        records = list(records)
        if self.fail_writes:
            raise LedgerWriteError("ledger caído", [r.file_id for r in records])
        self.records.extend(records)

    def begin_run(self) -> None:
        self.begin_run_calls += 1

    def mark_failed(self, file_id: str) -> None:
        self.failed_marks.append(file_id)
