"""
Endpoints para sincronizacion de media Drive -> R2.
Permite disparar una corrida bajo demanda y hacer seed del ledger.
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from media_sync.api.v1.dependencies.use_case_deps import get_sync_use_cases
from media_sync.application.dto.sync_dto import SeedResultDTO, SyncResultDTO
from media_sync.application.use_cases.sync_use_cases import MediaSyncUseCases
from media_sync.core.config import settings
from media_sync.shared.exceptions.base import AppException


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("", summary="Uso del endpoint de sincronizacion")
async def sync_usage() -> dict:
    return {
        "message": "Usa POST para disparar la sincronizacion",
        "usage": "POST /api/v1/sync?cap=N",
    }


@router.post(
    "",
    response_model=SyncResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Sincronizar archivos de Drive con R2"
)
async def run_sync(
    cap: Optional[int] = Query(
        default=None,
        ge=0,
        description="Maximo de archivos a procesar en esta corrida. Default: SYNC_HTTP_RUN_CAP."
    ),
    use_cases: MediaSyncUseCases = Depends(get_sync_use_cases),
) -> SyncResultDTO:
    """
    Ejecuta una corrida acotada del pipeline.

    La corrida:
    - Lee el catalogo y el ledger, y procesa solo archivos nuevos
    - Procesa como maximo `cap` archivos (el resto queda para la proxima)
    - Registra en el ledger solo lo que se descargo y subio sin error

    Returns:
        SyncResultDTO con procesados y fallidos
    """
    effective_cap = settings.SYNC_HTTP_RUN_CAP if cap is None else cap
    logger.info(f"Iniciando sincronizacion Drive -> R2 desde API (cap={effective_cap})")

    try:
        # Ejecutar sync en thread separado para no bloquear el event loop
        summary = await asyncio.to_thread(use_cases.run_incremental, effective_cap)
    except AppException as e:
        logger.error(f"Error en sincronizacion ({e.error_code}): {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    result = SyncResultDTO.from_summary(summary)
    logger.info(f"Sync completado: {result.message}")
    return result


@router.post(
    "/seed",
    response_model=SeedResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Importar la migracion batch al ledger durable"
)
async def seed_ledger(
    use_cases: MediaSyncUseCases = Depends(get_sync_use_cases),
) -> SeedResultDTO:
    """
    Lee los `completed` de LEDGER_STATE_FILE y agrega al ledger configurado
    los que todavia no estan.
    """
    try:
        result = await asyncio.to_thread(use_cases.seed_ledger)
    except AppException as e:
        logger.error(f"Error en seed ({e.error_code}): {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return SeedResultDTO.from_result(result)
