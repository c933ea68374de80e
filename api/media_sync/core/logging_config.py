"""
Configuracion de sinks de loguru.
"""
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Reemplaza los sinks por defecto: stderr + archivo rotativo opcional.

    Args:
        level: Nivel minimo (DEBUG, INFO, ...)
        log_file: Ruta del archivo de log; None para solo consola
    """
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="500 MB",
            retention="10 days",
            level=level
        )


def add_run_log(run_log_dir: str, prefix: str = "media_sync", level: str = "DEBUG") -> Path:
    """
    Agrega un archivo de log dedicado a una corrida (visibilidad del operador).

    Returns:
        Path del archivo creado
    """
    directory = Path(run_log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    logger.add(path, level=level, encoding="utf-8")
    return path
