"""
CLI: Google Drive -> R2 (one-way sync).

Modos:
  - por defecto: corrida acotada (SYNC_RUN_CAP) con el ledger configurado
  - --batch: migración one-shot, sin cap, thumbnails y luego videos,
    ledger JSON (LEDGER_STATE_FILE) y log de corrida en RUN_LOG_DIR
  - --seed: importa los `completed` del ledger JSON al ledger configurado
  - --schema-only: imprime el DDL del ledger Postgres

Ejecución:
  python scripts/run_media_sync.py
  python scripts/run_media_sync.py --cap 25
  python scripts/run_media_sync.py --batch
  python scripts/run_media_sync.py --seed
"""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from loguru import logger

from media_sync.application.use_cases.sync_use_cases import MediaSyncUseCases
from media_sync.core.config import Settings
from media_sync.core.logging_config import add_run_log, configure_logging
from media_sync.infrastructure.external.media_sync.types import RunSummary
from media_sync.shared.exceptions.base import AppException


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sincroniza media de Google Drive a R2.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--batch",
        action="store_true",
        help="Migración completa sin cap: fase thumbnails y luego fase videos.",
    )
    mode.add_argument(
        "--seed",
        action="store_true",
        help="Importa el documento JSON de la migración batch al ledger configurado.",
    )
    mode.add_argument(
        "--schema-only",
        action="store_true",
        help="Solo imprime el DDL del ledger Postgres (no ejecuta sync).",
    )
    parser.add_argument(
        "--cap",
        type=int,
        default=None,
        help="Máximo de archivos por corrida (default: SYNC_RUN_CAP; sin cap en --batch).",
    )
    parser.add_argument(
        "--ledger",
        choices=["postgres", "json"],
        default=None,
        help="Backend del ledger (default: LEDGER_BACKEND; 'json' en --batch).",
    )
    return parser


def print_summary(summary: RunSummary) -> None:
    print("\n=== Completo ===")
    print(f"Total: {summary.processed_count} ok, {len(summary.failed_ids)} fallidos")
    if summary.ledger_error:
        print(f"Ledger: {summary.ledger_error}")
    if summary.failed_ids:
        print(f"\nIds fallidos ({len(summary.failed_ids)}):")
        for file_id in summary.failed_ids:
            print(f"  - {file_id}")
        print("\nVuelve a ejecutar para reintentar.")


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.schema_only:
        from media_sync.infrastructure.external.media_sync.pg_ledger import SYNCED_FILES_DDL

        print(SYNCED_FILES_DDL.strip())
        return 0

    if args.cap is not None and args.cap < 0:
        raise SystemExit("--cap debe ser >= 0")

    settings = settings or Settings()
    if args.ledger and not args.batch:
        settings = settings.model_copy(update={"LEDGER_BACKEND": args.ledger})

    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    use_cases = MediaSyncUseCases(settings)

    try:
        if args.seed:
            result = use_cases.seed_ledger()
            print(f"Seed: {result.seeded} agregados, {result.existing} existentes")
            return 0

        if args.batch:
            run_log = add_run_log(settings.RUN_LOG_DIR)
            logger.info(f"Log de corrida: {run_log}")
            summary = use_cases.run_batch(ledger_backend=args.ledger or "json", cap=args.cap)
        else:
            summary = use_cases.run_incremental(cap=args.cap)
    except AppException as e:
        logger.error(f"Error fatal ({e.error_code}): {e.message}")
        return 1

    print_summary(summary)
    return 0 if not summary.ledger_error else 2


if __name__ == "__main__":
    raise SystemExit(main())
