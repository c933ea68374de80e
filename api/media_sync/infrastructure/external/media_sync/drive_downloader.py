"""
Descarga de archivos públicos de Google Drive.

Protocolo:
- GET <export-url>?export=download&id=<id>, siguiendo redirects.
- Si la respuesta es HTML (archivo grande), Drive pide confirmación: se busca
  `confirm=<token>` en el body y se repite la request con ese token.
- Sin reintentos internos: un fallo es terminal para ese intento; la
  próxima corrida lo reintenta desde cero.
"""

from __future__ import annotations

import re
from typing import Optional, Union

import requests
from loguru import logger

from media_sync.shared.exceptions.sync import DownloadError

CONFIRM_TOKEN_REGEX = re.compile(r"confirm=([a-zA-Z0-9_-]+)")

Timeout = Union[float, tuple[float, float]]


def extract_confirm_token(html: str) -> Optional[str]:
    match = CONFIRM_TOKEN_REGEX.search(html)
    return match.group(1) if match else None


def _is_html(resp: requests.Response) -> bool:
    return "text/html" in (resp.headers.get("Content-Type") or "").lower()


class DriveDownloader:
    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        export_url: str = "https://drive.google.com/uc",
        timeout: Timeout = (10.0, 120.0),
    ) -> None:
        self._session = session or requests.Session()
        self._export_url = export_url
        self._timeout = timeout

    def download(self, file_id: str) -> bytes:
        """
        Retorna los bytes del archivo.

        Raises:
            DownloadError: status no exitoso, HTML sin token de confirmación
                o error de transporte.
        """
        resp = self._get(file_id, {"export": "download", "id": file_id})
        if not resp.ok:
            raise DownloadError(file_id, status=resp.status_code)

        if not _is_html(resp):
            return resp.content

        token = extract_confirm_token(resp.text)
        if not token:
            raise DownloadError(file_id, reason="unconfirmed-html")

        logger.debug(f"Drive pidió confirmación para {file_id}; reintentando con token")
        resp2 = self._get(file_id, {"export": "download", "confirm": token, "id": file_id})
        if not resp2.ok:
            raise DownloadError(file_id, status=resp2.status_code)
        if _is_html(resp2):
            # Segunda página HTML: no hay binario que mover.
            raise DownloadError(file_id, reason="unconfirmed-html")
        return resp2.content

    def _get(self, file_id: str, params: dict[str, str]) -> requests.Response:
        try:
            return self._session.get(
                self._export_url,
                params=params,
                allow_redirects=True,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Drive no accesible para {file_id}: {e}")
            raise DownloadError(file_id, reason="transport") from e
