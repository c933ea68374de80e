"""
Ledger de procesados: registro append-only de qué assets ya se migraron.

Contrato común a los backends:
- list_all() -> set de file_id
- append_batch(records) -> None; LedgerWriteError si el store no responde

El ledger NO deduplica: el orquestador es responsable de no agregar un id que
ya vino en list_all() dentro de la misma corrida.
"""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Union

from loguru import logger

from media_sync.shared.exceptions.sync import LedgerReadError, LedgerWriteError

from .types import LedgerRecord, RunState


class ProcessedLedger(ABC):
    """Capacidad común; el backend se elige al construir el orquestador."""

    @abstractmethod
    def list_all(self) -> set[str]:
        ...

    @abstractmethod
    def append_batch(self, records: Iterable[LedgerRecord]) -> None:
        ...

    def begin_run(self) -> None:
        """Hook al inicio de una corrida con trabajo. No-op por defecto."""

    def mark_failed(self, file_id: str) -> None:
        """Hook de fallo por asset (pista para logging/reintento). No-op por defecto."""


class JsonFileLedger(ProcessedLedger):
    """
    Ledger local: documento RunState leído y escrito completo.

    Se reescribe tras cada cambio de estado (append o fallo). La escritura va
    a un archivo temporal en el mismo directorio y luego `os.replace`, para que
    una interrupción nunca deje el documento a medias.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._state: RunState | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def state(self) -> RunState:
        if self._state is None:
            self._state = self._load()
        return self._state

    def list_all(self) -> set[str]:
        return set(self.state.completed)

    def append_batch(self, records: Iterable[LedgerRecord]) -> None:
        # Se trabaja sobre una copia: si la escritura falla, el estado en
        # memoria no incluye ids que no llegaron a disco.
        updated = self._copy_state()
        for record in records:
            updated.completed.append(record.file_id)
            if record.file_id in updated.failed:
                updated.failed.remove(record.file_id)
        self._save(updated)
        self._state = updated

    def begin_run(self) -> None:
        updated = self._copy_state()
        if updated.failed:
            logger.info(f"Reintentando {len(updated.failed)} asset(s) fallidos en la corrida anterior")
        updated.failed = []
        self._save(updated)
        self._state = updated

    def mark_failed(self, file_id: str) -> None:
        state = self.state
        if file_id in state.failed:
            return
        state.failed.append(file_id)
        try:
            self._save(state)
        except LedgerWriteError as e:
            # `failed` es solo una pista; no debe tumbar la corrida.
            logger.warning(f"No se pudo registrar fallo de {file_id} en {self._path}: {e.message}")

    def _copy_state(self) -> RunState:
        state = self.state
        return RunState(completed=list(state.completed), failed=list(state.failed))

    def _load(self) -> RunState:
        if not self._path.exists():
            return RunState()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LedgerReadError(f"No se pudo leer el ledger {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise LedgerReadError(f"Ledger {self._path} no contiene un objeto JSON")
        return RunState.from_dict(data)

    def _save(self, state: RunState) -> None:
        payload = json.dumps(state.to_dict(), indent=2)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LedgerWriteError(f"No se pudo escribir el ledger {self._path}: {e}") from e
