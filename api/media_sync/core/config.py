"""
Configuracion central del pipeline de sincronizacion de media.
Gestiona variables de entorno y configuraciones globales.

Los mismos parametros alimentan los tres disparadores:
- scheduler (cada SYNC_INTERVAL_MINUTES, con SYNC_RUN_CAP)
- endpoint HTTP (SYNC_HTTP_RUN_CAP)
- script batch (sin cap, por fases, ledger JSON)
"""
import json
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Credenciales (Sheets, R2, Postgres) no tienen default util: si faltan,
    el builder del componente correspondiente levanta SyncConfigError.
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Media Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Catalogo (Google Sheets values API)
    GOOGLE_API_KEY: str = Field(default="")
    SPREADSHEET_ID: str = Field(default="")
    SHEET_NAME: str = Field(default="Sheet1")
    SHEET_RANGE: str = Field(default="A2:AD")

    # Google Drive (export publico)
    DRIVE_EXPORT_URL: str = Field(default="https://drive.google.com/uc")

    # Object storage (Cloudflare R2, API compatible S3)
    R2_ENDPOINT: str = Field(default="")
    R2_ACCESS_KEY_ID: str = Field(default="")
    R2_SECRET_ACCESS_KEY: str = Field(default="")
    R2_BUCKET_NAME: str = Field(default="")

    # Ledger de procesados: "postgres" (durable) o "json" (documento local)
    LEDGER_BACKEND: str = Field(default="postgres")
    DATABASE_URL: str = Field(default="")
    LEDGER_STATE_FILE: str = Field(default="scripts/migration-state.json")

    # Corridas
    SYNC_RUN_CAP: int = Field(default=10)
    SYNC_HTTP_RUN_CAP: int = Field(default=10)
    SYNC_INTERVAL_MINUTES: int = Field(default=15)
    SYNC_SCHEDULER_ENABLED: bool = Field(default=True)
    SYNC_TIME_BUDGET_S: Optional[float] = Field(default=None)
    LOCAL_THUMBS_DIR: str = Field(default="")

    # Timeouts de red (segundos)
    HTTP_CONNECT_TIMEOUT_S: float = Field(default=10.0)
    HTTP_READ_TIMEOUT_S: float = Field(default=120.0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")
    RUN_LOG_DIR: str = Field(default="logs/runs")

    @computed_field
    @property
    def sheet_range_a1(self) -> str:
        """Rango A1 completo, p.ej. 'Sheet1!A2:AD'."""
        return f"{self.SHEET_NAME}!{self.SHEET_RANGE}"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
