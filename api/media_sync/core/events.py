"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from loguru import logger

from media_sync.core.config import settings
from media_sync.core.logging_config import configure_logging
from media_sync.core.scheduler import build_scheduler
from media_sync.infrastructure.external.media_sync.in_flight import InFlightRegistry


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            # Validar configuracion critica
            _validate_config()

            # Registro compartido entre el scheduler y el endpoint HTTP
            app.state.in_flight = InFlightRegistry()

            app.state.scheduler = None
            if settings.SYNC_SCHEDULER_ENABLED:
                scheduler = build_scheduler(settings, app.state.in_flight)
                scheduler.start()
                app.state.scheduler = scheduler
                logger.info(
                    f"Scheduler iniciado: sync cada {settings.SYNC_INTERVAL_MINUTES} min "
                    f"(cap={settings.SYNC_RUN_CAP})"
                )
            else:
                logger.info("Scheduler deshabilitado (SYNC_SCHEDULER_ENABLED=false)")

            logger.success("Aplicacion iniciada correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.GOOGLE_API_KEY or not settings.SPREADSHEET_ID:
        warnings.append("GOOGLE_API_KEY/SPREADSHEET_ID no configurados - no se puede leer el catalogo")
    if not settings.R2_BUCKET_NAME or not settings.R2_ENDPOINT:
        warnings.append("R2_ENDPOINT/R2_BUCKET_NAME no configurados - no se puede subir a R2")
    if settings.LEDGER_BACKEND == "postgres" and not settings.DATABASE_URL:
        warnings.append("DATABASE_URL no configurada - el ledger postgres no funcionara")

    # Mostrar advertencias
    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")

        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            scheduler.shutdown(wait=True)
            logger.info("Scheduler detenido")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Ciclo de vida de la app: startup antes de servir, shutdown al cerrar."""
    await startup_handler(app)()
    try:
        yield
    finally:
        await shutdown_handler(app)()
