"""
Casos de uso de la aplicacion.
"""
from .sync_use_cases import MediaSyncUseCases, run_scheduled_sync

__all__ = ["MediaSyncUseCases", "run_scheduled_sync"]
