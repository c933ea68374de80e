"""
DTOs de la API de sincronización de media (Drive -> R2).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from media_sync.infrastructure.external.media_sync.seed import SeedResult
from media_sync.infrastructure.external.media_sync.types import RunSummary


class SyncResultDTO(BaseModel):
    """Resultado de una corrida disparada vía HTTP."""

    processed: int = Field(..., description="Assets descargados, subidos y registrados en el ledger")
    failed: list[str] = Field(default_factory=list, description="Ids que fallaron en esta corrida")
    skipped: list[str] = Field(default_factory=list, description="Ids en vuelo en otra corrida")
    message: str
    ledger_error: Optional[str] = None

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "SyncResultDTO":
        if summary.processed_count == 0 and not summary.failed_ids and not summary.ledger_error:
            message = "Sin archivos nuevos para sincronizar"
        else:
            message = f"Sincronizados {summary.processed_count} archivo(s)"
            if summary.failed_ids:
                message += f", {len(summary.failed_ids)} fallido(s)"
            if summary.ledger_error:
                message += " (commit al ledger falló)"
        return cls(
            processed=summary.processed_count,
            failed=list(summary.failed_ids),
            skipped=list(summary.skipped_ids),
            message=message,
            ledger_error=summary.ledger_error,
        )


class SeedResultDTO(BaseModel):
    """Resultado del seed del ledger durable."""

    seeded: int
    existing: int
    message: str

    @classmethod
    def from_result(cls, result: SeedResult) -> "SeedResultDTO":
        message = (
            f"Seed de {result.seeded} registro(s) en el ledger"
            if result.seeded
            else "Nada que importar al ledger"
        )
        return cls(seeded=result.seeded, existing=result.existing, message=message)
