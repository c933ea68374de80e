"""
Seed del ledger durable a partir del documento de la migración batch.

Caso de uso: la migración inicial corre offline con el ledger JSON; después,
los ids `completed` se importan al ledger Postgres para que el scheduler no
los vuelva a subir.

- El kind se toma del catálogo actual con la última aparición del id como
  ganadora (a diferencia del sync, que usa la primera); si el id ya no está
  en el catálogo se asume thumb.
- Solo se agregan ids ausentes en el ledger destino (el ledger no deduplica).
- Se insertan en lotes de `batch_size`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .catalog_reader import SourceCatalogReader
from .ledger import JsonFileLedger, ProcessedLedger
from .types import AssetKind, LedgerRecord, utc_now


@dataclass(frozen=True)
class SeedResult:
    seeded: int
    existing: int


class LedgerSeeder:
    def __init__(
        self,
        *,
        source: JsonFileLedger,
        target: ProcessedLedger,
        reader: Optional[SourceCatalogReader] = None,
        batch_size: int = 100,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size debe ser > 0")
        self._source = source
        self._target = target
        self._reader = reader
        self._batch_size = batch_size

    def run(self) -> SeedResult:
        completed = list(dict.fromkeys(self._source.state.completed))
        existing = self._target.list_all()
        if not completed:
            logger.info(f"{self._source.path} no tiene migraciones completadas para seed")
            return SeedResult(seeded=0, existing=len(existing))

        new_ids = [file_id for file_id in completed if file_id not in existing]
        if not new_ids:
            logger.info("Todas las migraciones ya estaban en el ledger")
            return SeedResult(seeded=0, existing=len(existing))

        kinds: dict[str, AssetKind] = {}
        if self._reader is not None:
            kinds = self._reader.read_kind_map()

        synced_at = utc_now()
        records = [
            LedgerRecord(file_id=file_id, kind=kinds.get(file_id, AssetKind.THUMB), synced_at=synced_at)
            for file_id in new_ids
        ]

        seeded = 0
        for start in range(0, len(records), self._batch_size):
            batch = records[start:start + self._batch_size]
            self._target.append_batch(batch)
            seeded += len(batch)

        logger.success(f"Seed: {seeded} registro(s) agregados al ledger ({len(existing)} ya existían)")
        return SeedResult(seeded=seeded, existing=len(existing))
