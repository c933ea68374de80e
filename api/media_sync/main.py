"""
Punto de entrada principal de la aplicación FastAPI.
Expone el disparador HTTP del sync y arranca el scheduler periódico.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from media_sync.core.config import settings, get_cors_origins
from media_sync.core.events import lifespan
from media_sync.core.scheduler import SYNC_JOB_ID
from media_sync.api.v1.router import api_router
from media_sync.api.middlewares.error_handler import ErrorHandlerMiddleware
from media_sync.shared.exceptions.base import AppException


def _scheduler_status(app: FastAPI) -> dict:
    scheduler = getattr(app.state, "scheduler", None)
    job = scheduler.get_job(SYNC_JOB_ID) if scheduler is not None else None
    next_run = getattr(job, "next_run_time", None)
    return {
        "enabled": settings.SYNC_SCHEDULER_ENABLED,
        "running": bool(scheduler is not None and scheduler.running),
        "interval_minutes": settings.SYNC_INTERVAL_MINUTES,
        "run_cap": settings.SYNC_RUN_CAP,
        "next_run_at": next_run.isoformat() if next_run else None,
    }


def create_application() -> FastAPI:
    """
    Factory para crear y configurar la aplicación FastAPI.

    Returns:
        FastAPI: Instancia configurada de la aplicación
    """
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Sincronización de media Google Drive -> Cloudflare R2",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        # Logging, registro en vuelo y scheduler viven en el ciclo de vida de la app
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(ErrorHandlerMiddleware)

    application.include_router(api_router, prefix="/api")

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Estado de la API, del scheduler de sync y de los assets en vuelo."""
        in_flight = getattr(request.app.state, "in_flight", None)
        return {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "ledger_backend": settings.LEDGER_BACKEND,
            "scheduler": _scheduler_status(request.app),
            "in_flight": in_flight.active_count() if in_flight is not None else 0,
        }

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Sync manual: POST http://localhost:{settings.PORT}/api/v1/sync?cap=N")
    uvicorn.run(
        "media_sync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
