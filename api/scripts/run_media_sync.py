"""
CLI: Google Drive -> R2 (one-way sync).

Uso recomendado:
  - Migración inicial: `--batch` (ledger JSON local, sin cap, por fases).
  - Corridas periódicas: el scheduler de la API o cron/systemd timer sin flags.

Variables de entorno requeridas:
  - GOOGLE_API_KEY, SPREADSHEET_ID (SHEET_NAME opcional)
  - R2_ENDPOINT, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME
  - DATABASE_URL (ledger postgres) o LEDGER_STATE_FILE (ledger json)

Ejecución:
  python scripts/run_media_sync.py
  python scripts/run_media_sync.py --batch
  python scripts/run_media_sync.py --schema-only
"""

from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin instalar el paquete.
# La carpeta "api" contiene el paquete raíz `media_sync/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe:
# - api/.env (recomendado para scripts)
# - repo_root/.env (si centralizas variables del proyecto)
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from media_sync.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
