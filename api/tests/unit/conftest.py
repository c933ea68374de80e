"""
Configuración de fixtures para pytest.
"""
from __future__ import annotations

import pytest

from media_sync.infrastructure.external.media_sync.catalog_reader import SourceCatalogReader
from sync_fakes import FakeCatalogSource, FakeDownloader, FakeUploader, InMemoryLedger


@pytest.fixture
def catalog_source() -> FakeCatalogSource:
    return FakeCatalogSource()


@pytest.fixture
def reader(catalog_source: FakeCatalogSource) -> SourceCatalogReader:
    return SourceCatalogReader(catalog_source)


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()
