"""
Cliente mínimo de Google Sheets values API (sin SDKs externos).

Requisitos cubiertos:
- requests
- lectura completa de un rango fijo (p.ej. "Sheet1!A2:AD")
- rate-limit/backoff (429, 5xx)

El pipeline trata el catálogo como solo-lectura: una llamada "dame todas las filas".
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import requests
from loguru import logger

from media_sync.shared.exceptions.sync import CatalogReadError


@dataclass(frozen=True)
class SheetsCredentials:
    api_key: str
    spreadsheet_id: str


class SheetsCatalogSource:
    """
    Fuente de catálogo respaldada por una hoja de Google Sheets.

    Importante:
    - No interpreta celdas: devuelve filas como listas de strings.
    - Filas cortas se devuelven tal cual (Sheets omite celdas vacías al final).
    """

    def __init__(
        self,
        credentials: SheetsCredentials,
        *,
        range_a1: str = "Sheet1!A2:AD",
        session: Optional[requests.Session] = None,
        base_url: str = "https://sheets.googleapis.com/v4/spreadsheets",
        timeout_s: float = 30,
        max_retries: int = 4,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
    ) -> None:
        self._creds = credentials
        self._range_a1 = range_a1
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()

    def fetch_rows(self) -> list[list[str]]:
        """Trae todas las filas del rango configurado."""
        url = (
            f"{self._base_url}/{self._creds.spreadsheet_id}"
            f"/values/{quote(self._range_a1, safe='')}"
        )
        payload = self._request_json(url, params={"key": self._creds.api_key})

        values = payload.get("values") or []
        if not isinstance(values, list):
            raise CatalogReadError("Sheets devolvió 'values' con formato inesperado")

        rows: list[list[str]] = []
        for raw in values:
            if not isinstance(raw, list):
                raise CatalogReadError("Sheets devolvió una fila que no es lista")
            rows.append(["" if cell is None else str(cell) for cell in raw])

        logger.debug(f"Sheets: {len(rows)} fila(s) leídas de {self._range_a1}")
        return rows

    def _request_json(self, url: str, *, params: dict[str, Any]) -> dict[str, Any]:
        """
        GET con backoff para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no backoff exponencial con margen fijo del 15%.
        - 5xx: backoff exponencial con margen fijo del 15%.
        - 4xx (no 429): error inmediato (API key / spreadsheet mal configurados).
        """
        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.get(url, params=params, timeout=self._timeout_s)
            except requests.RequestException as e:
                raise CatalogReadError(f"Sheets no accesible: {e}") from e

            if 200 <= resp.status_code < 300:
                try:
                    data = resp.json()
                except ValueError as e:
                    raise CatalogReadError("Sheets devolvió un body que no es JSON") from e
                if not isinstance(data, dict):
                    raise CatalogReadError("Sheets devolvió un JSON inesperado")
                return data

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise CatalogReadError(
                        f"Sheets API error {resp.status_code} tras {attempt} reintentos",
                        status=resp.status_code,
                    )

                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = self._min_backoff_s
                else:
                    base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
                    sleep_s = base + (0.15 * base)

                logger.warning(f"Sheets respondió {resp.status_code}; reintento en {sleep_s:.1f}s")
                time.sleep(sleep_s)
                continue

            # Errores no recuperables
            raise CatalogReadError(
                f"Sheets API error {resp.status_code}: {resp.text[:500]}",
                status=resp.status_code,
            )

        raise CatalogReadError("Sheets API: reintentos agotados")
