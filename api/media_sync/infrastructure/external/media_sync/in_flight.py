"""
Guardia "en vuelo" por asset.

Motivacion:
- El scheduler y el endpoint HTTP pueden disparar corridas que se solapan y
  ver el mismo asset como "nuevo".
- No es un requisito de correctitud (upload idempotente, ledger aditivo),
  solo evita trabajo duplicado dentro del mismo proceso.

Caracteristicas:
- Claim no bloqueante por file_id: si otra corrida lo tiene, se salta.
- Instancia explicita (se crea en el startup y se pasa al orquestador).
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from loguru import logger


class InFlightRegistry:
    def __init__(self) -> None:
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    def try_claim(self, file_id: str) -> bool:
        """Marca el asset como en vuelo. False si ya estaba tomado."""
        with self._lock:
            if file_id in self._ids:
                return False
            self._ids.add(file_id)
            return True

    def release(self, file_id: str) -> None:
        with self._lock:
            self._ids.discard(file_id)

    @contextmanager
    def claim(self, file_id: str) -> Iterator[bool]:
        """
        Context manager: produce True si se obtuvo el claim.

        Ejemplo:
            with registry.claim(asset.id) as owned:
                if not owned:
                    return  # otra corrida lo esta procesando
                ...
        """
        owned = self.try_claim(file_id)
        if not owned:
            logger.debug(f"Asset {file_id} ya esta en vuelo en otra corrida")
        try:
            yield owned
        finally:
            if owned:
                self.release(file_id)

    def active_count(self) -> int:
        """Numero de assets en vuelo (para monitoreo)."""
        with self._lock:
            return len(self._ids)
