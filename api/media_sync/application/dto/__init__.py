"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import SyncResultDTO, SeedResultDTO

__all__ = [
    "SyncResultDTO",
    "SeedResultDTO",
]
