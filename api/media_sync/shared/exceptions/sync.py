"""
Excepciones del pipeline de sincronización de assets (Drive -> object storage).

Taxonomía:
- Errores de corrida (fatales): CatalogReadError, LedgerReadError, SyncConfigError.
- Errores por asset (no fatales): DownloadError, UploadError.
- LedgerWriteError: fatal para el commit; la corrida reporta 0 procesados.
"""
from typing import Optional

from media_sync.shared.exceptions.base import AppException


class SyncConfigError(AppException):
    """Falta configuración obligatoria para construir un componente."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=500,
            error_code="SYNC_CONFIG_ERROR",
        )


class CatalogReadError(AppException):
    """El catálogo (Google Sheets) no respondió o devolvió algo inválido."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(
            message=message,
            status_code=502,
            error_code="CATALOG_READ_ERROR",
            details={"status": status} if status is not None else None,
        )


class LedgerReadError(AppException):
    """No se pudo leer el ledger de procesados al inicio de la corrida."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=503,
            error_code="LEDGER_READ_ERROR",
        )


class LedgerWriteError(AppException):
    """No se pudo persistir el commit de procesados en el ledger."""

    def __init__(self, message: str, file_ids: Optional[list[str]] = None):
        self.file_ids = list(file_ids or [])
        super().__init__(
            message=message,
            status_code=503,
            error_code="LEDGER_WRITE_ERROR",
            details={"file_ids": self.file_ids},
        )


class DownloadError(AppException):
    """
    Fallo descargando un asset desde Drive.

    Lleva `status` (HTTP no exitoso) o `reason` (p.ej. "unconfirmed-html",
    "transport").
    """

    def __init__(
        self,
        file_id: str,
        *,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        self.file_id = file_id
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"Descarga de Drive falló para {file_id}: HTTP {status}"
        else:
            message = f"Descarga de Drive falló para {file_id}: {reason}"
        super().__init__(
            message=message,
            status_code=502,
            error_code="DOWNLOAD_ERROR",
            details={"file_id": file_id, "status": status, "reason": reason},
        )


class UploadError(AppException):
    """Fallo de transporte o autorización al escribir en el object store."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(
            message=f"Upload falló para {key}: {reason}",
            status_code=502,
            error_code="UPLOAD_ERROR",
            details={"key": key, "reason": reason},
        )
