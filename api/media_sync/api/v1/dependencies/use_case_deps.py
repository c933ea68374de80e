"""
Dependencias para inyeccion de casos de uso.
"""
from fastapi import Request

from media_sync.application.use_cases.sync_use_cases import MediaSyncUseCases
from media_sync.core.config import settings


def get_sync_use_cases(request: Request) -> MediaSyncUseCases:
    """
    Dependencia para obtener los casos de uso de sincronizacion.

    Comparte el registro de assets en vuelo con el scheduler (si el startup
    lo creo), para no duplicar trabajo entre disparadores del mismo proceso.

    Returns:
        MediaSyncUseCases: Instancia ligada a la configuracion global
    """
    in_flight = getattr(request.app.state, "in_flight", None)
    return MediaSyncUseCases(settings, in_flight)
