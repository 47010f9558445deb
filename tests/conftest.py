"""
Pytest configuration and shared fixtures.

Provides an in-memory site, a snapshot database in a temp directory, a
manager wired to both, and sync directory fixtures laid out the way an
export writes them.
"""

import os
from pathlib import Path
from typing import Any

import pytest

from content_sync.core.config import clear_cache
from content_sync.core.manager import ContentSyncManager
from content_sync.core.resolver import ExportQueueResolver
from content_sync.core.serialization import (
    ContentExporter,
    ContentImporter,
    SerializerContext,
    default_decorators,
    encode,
)
from content_sync.core.site import MemoryEntityRepository
from content_sync.core.storage import DatabaseStorage

SITE_UUID = "11111111-2222-3333-4444-555555555555"

# ==============================================================================
# Environment
# ==============================================================================


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path, monkeypatch):
    """Keep user config and CONTENT_SYNC_* variables out of every test."""
    clear_cache()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for key in list(os.environ):
        if key.startswith("CONTENT_SYNC_"):
            monkeypatch.delenv(key)
    yield
    clear_cache()


# ==============================================================================
# Site and storage fixtures
# ==============================================================================


@pytest.fixture
def site_uuid():
    return SITE_UUID


@pytest.fixture
def repository():
    """Empty in-memory site with a fixed site uuid."""
    return MemoryEntityRepository(site_uuid=SITE_UUID)


@pytest.fixture
def snapshot(tmp_path):
    """Snapshot table in a temp database, already created."""
    storage = DatabaseStorage(tmp_path / "state" / "content_sync.db")
    assert storage.ensure_table_exists()
    return storage


@pytest.fixture
def manager(repository, snapshot):
    decorators = default_decorators(repository)
    return ContentSyncManager(
        exporter=ContentExporter(repository, decorators),
        importer=ContentImporter(repository, decorators),
        export_resolver=ExportQueueResolver(snapshot),
    )


# ==============================================================================
# Sync directory fixtures
# ==============================================================================


@pytest.fixture
def sync_dir(tmp_path):
    """Sync directory with an empty entities/ folder."""
    directory = tmp_path / "content" / "sync"
    (directory / "entities").mkdir(parents=True)
    return directory


@pytest.fixture
def serializer_context(sync_dir):
    return SerializerContext.for_directory(sync_dir)


@pytest.fixture
def write_document():
    """
    Write a decoded document where an export puts it.

    Usage:
        write_document(entities_dir, "node.article.a1", {...})
    """

    def _write(entities_dir: Path, name: str, data: dict[str, Any]) -> Path:
        entity_type, bundle, _ = name.split(".")
        path = entities_dir / entity_type / bundle / f"{name}.yml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(encode(data), encoding="utf-8")
        return path

    return _write
