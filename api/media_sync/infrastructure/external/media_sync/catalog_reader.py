"""
Lectura del catálogo: filas de la hoja -> AssetReference deduplicados.

Reglas:
- Cada columna designada tiene un rol fijo (video, thumbnail estático, carrusel).
- Orden por fila: columnas de video, luego thumbnail estático, luego carrusel.
- "first-seen-wins": la primera vez que aparece un id fija su kind; apariciones
  posteriores (aunque sea con otro rol) se ignoran.
- El orden de salida es el de descubrimiento (row-major).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence

from loguru import logger

from media_sync.shared.exceptions.sync import CatalogReadError

from .types import AssetKind, AssetReference


DRIVE_FILE_ID_REGEX = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")
NOT_FOUND_SENTINEL = "Not found"


class ColumnRole(str, Enum):
    VIDEO = "video"
    STATIC_THUMBNAIL = "static_thumbnail"
    CAROUSEL_IMAGE = "carousel_image"

    @property
    def asset_kind(self) -> AssetKind:
        return AssetKind.VIDEO if self is ColumnRole.VIDEO else AssetKind.THUMB


@dataclass(frozen=True)
class CatalogColumn:
    """Columna de la hoja (índice 0-based dentro del rango) y su rol."""

    index: int
    role: ColumnRole


# Rango A2:AD -> X (23) link 9:16, Y (24) link 4:5, Z (25) estático 4:5,
# AA..AD (26..29) imágenes de carrusel.
DEFAULT_CATALOG_COLUMNS: tuple[CatalogColumn, ...] = (
    CatalogColumn(23, ColumnRole.VIDEO),
    CatalogColumn(24, ColumnRole.VIDEO),
    CatalogColumn(25, ColumnRole.STATIC_THUMBNAIL),
    CatalogColumn(26, ColumnRole.CAROUSEL_IMAGE),
    CatalogColumn(27, ColumnRole.CAROUSEL_IMAGE),
    CatalogColumn(28, ColumnRole.CAROUSEL_IMAGE),
    CatalogColumn(29, ColumnRole.CAROUSEL_IMAGE),
)

_ROLE_ORDER = (ColumnRole.VIDEO, ColumnRole.STATIC_THUMBNAIL, ColumnRole.CAROUSEL_IMAGE)


class CatalogSource(Protocol):
    def fetch_rows(self) -> list[list[str]]:
        ...


def extract_drive_file_id(cell: Optional[str]) -> Optional[str]:
    """Extrae el id de un link de Drive `/file/d/<id>/...`; None si no hay."""
    if cell is None:
        return None
    if cell == NOT_FOUND_SENTINEL or cell.strip() == "":
        return None
    match = DRIVE_FILE_ID_REGEX.search(cell)
    return match.group(1) if match else None


def ordered_columns(columns: Iterable[CatalogColumn]) -> list[CatalogColumn]:
    """Ordena por rol (video, estático, carrusel) y luego por índice de columna."""
    return sorted(columns, key=lambda c: (_ROLE_ORDER.index(c.role), c.index))


def collect_asset_references(
    rows: Iterable[Sequence[Optional[str]]],
    columns: Iterable[CatalogColumn] = DEFAULT_CATALOG_COLUMNS,
) -> list[AssetReference]:
    """
    Recorre las filas y produce AssetReference sin ids duplicados.

    Un dict actúa como set ordenado: la primera inserción gana.
    """
    plan = ordered_columns(columns)
    seen: dict[str, AssetReference] = {}

    for row in rows:
        for column in plan:
            cell = row[column.index] if column.index < len(row) else None
            file_id = extract_drive_file_id(cell)
            if file_id is None or file_id in seen:
                continue
            seen[file_id] = AssetReference(id=file_id, kind=column.role.asset_kind)

    return list(seen.values())


def collect_latest_kinds(
    rows: Iterable[Sequence[Optional[str]]],
    columns: Iterable[CatalogColumn] = DEFAULT_CATALOG_COLUMNS,
) -> dict[str, AssetKind]:
    """
    Mapa id -> kind donde la última aparición gana (mismo recorrido que
    collect_asset_references). Lo usa el seed del ledger.
    """
    plan = ordered_columns(columns)
    kinds: dict[str, AssetKind] = {}

    for row in rows:
        for column in plan:
            cell = row[column.index] if column.index < len(row) else None
            file_id = extract_drive_file_id(cell)
            if file_id is not None:
                kinds[file_id] = column.role.asset_kind

    return kinds


class SourceCatalogReader:
    """
    Lee el catálogo completo desde una CatalogSource y lo convierte en assets.
    """

    def __init__(
        self,
        source: CatalogSource,
        *,
        columns: Iterable[CatalogColumn] = DEFAULT_CATALOG_COLUMNS,
    ) -> None:
        self._source = source
        self._columns = tuple(columns)

    def read_assets(self) -> list[AssetReference]:
        rows = self._fetch_rows()
        assets = collect_asset_references(rows, self._columns)
        thumbs = sum(1 for a in assets if a.kind is AssetKind.THUMB)
        logger.info(
            f"Catálogo: {len(rows)} fila(s), {len(assets)} archivo(s) únicos "
            f"({thumbs} thumbs, {len(assets) - thumbs} videos)"
        )
        return assets

    def read_kind_map(self) -> dict[str, AssetKind]:
        return collect_latest_kinds(self._fetch_rows(), self._columns)

    def _fetch_rows(self) -> list[list[str]]:
        try:
            return self._source.fetch_rows()
        except CatalogReadError:
            raise
        except Exception as e:
            raise CatalogReadError(f"No se pudo leer el catálogo: {e}") from e
