"""
Tipos y utilidades puras para el pipeline Drive -> object storage.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


class AssetKind(str, Enum):
    """Tipo de asset; define key y content type en el object store."""

    THUMB = "thumb"
    VIDEO = "video"


class AssetState(str, Enum):
    """
    Estados por asset dentro de una corrida.

    FAILED es terminal solo para la corrida actual: el asset queda fuera del
    ledger y la próxima corrida lo reintenta completo.
    """

    PENDING = "pending"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


_KEY_TEMPLATES: dict[AssetKind, tuple[str, str]] = {
    AssetKind.THUMB: ("thumbs/{file_id}.jpg", "image/jpeg"),
    AssetKind.VIDEO: ("videos/{file_id}.mp4", "video/mp4"),
}


@dataclass(frozen=True)
class AssetReference:
    """
    Referencia a un archivo de Drive descubierta en el catálogo.

    La identidad es `id`; `kind` lo fija la primera columna donde apareció.
    """

    id: str
    kind: AssetKind

    @property
    def storage_key(self) -> str:
        return _KEY_TEMPLATES[self.kind][0].format(file_id=self.id)

    @property
    def content_type(self) -> str:
        return _KEY_TEMPLATES[self.kind][1]


@dataclass(frozen=True)
class LedgerRecord:
    """Prueba durable de que un asset fue descargado y subido sin error."""

    file_id: str
    kind: AssetKind
    synced_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_asset(cls, asset: AssetReference, synced_at: Optional[datetime] = None) -> "LedgerRecord":
        return cls(file_id=asset.id, kind=asset.kind, synced_at=synced_at or utc_now())


@dataclass
class RunState:
    """
    Documento del ledger JSON (variante batch/offline).

    - completed: mismo conjunto que los LedgerRecord.
    - failed: pista best-effort, se limpia y reconstruye en cada corrida.
    """

    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunState":
        return cls(
            completed=[str(x) for x in data.get("completed") or []],
            failed=[str(x) for x in data.get("failed") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {"completed": list(self.completed), "failed": list(self.failed)}


@dataclass(frozen=True)
class RunSummary:
    """
    Resultado de una corrida (efímero, no se persiste).

    - skipped_ids: assets que otra corrida del mismo proceso tenía en vuelo.
    - ledger_error: mensaje si el commit final falló (processed_count queda en 0).
    """

    processed_count: int
    failed_ids: list[str]
    skipped_ids: list[str] = field(default_factory=list)
    ledger_error: Optional[str] = None

    @classmethod
    def empty(cls) -> "RunSummary":
        return cls(processed_count=0, failed_ids=[])
