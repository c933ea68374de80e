"""
Script para ejecutar la API en modo desarrollo.
El scheduler arranca en el startup salvo SYNC_SCHEDULER_ENABLED=false.
"""
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

load_dotenv(_API_ROOT / ".env", override=False)

from media_sync.core.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "media_sync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        app_dir=str(_API_ROOT),
        log_level=settings.LOG_LEVEL.lower()
    )
