"""
Content sync service: clean API for planning and running imports and exports.

The service wires the configured repository, the snapshot table, the sync
directory storage, the comparer and the pipelines together, so any
interface (CLI, tests, scripts) can drive a run without reaching into the
pieces.

Usage:
    >>> service = ContentSyncService.from_config(load_config())
    >>> plan = service.plan_import(ChangeFilter.from_options(entity_types="node"))
    >>> service.validate_site_uuid()
    >>> result = service.run_import(plan)
    >>> result.status
    'completed'
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from content_sync.core.cache import MemoryCache
from content_sync.core.changelist import (
    ChangeFilter,
    ChangeListBuilder,
    ChangePlan,
    SyncDirection,
)
from content_sync.core.comparer import ContentStorageComparer
from content_sync.core.config.models import ContentSyncConfig
from content_sync.core.exceptions import ContentSyncError
from content_sync.core.graph import METADATA_KEY
from content_sync.core.manager import ContentSyncManager
from content_sync.core.names import SITE_UUID_NAME, cache_key, collection_of
from content_sync.core.pipeline.base import BatchRunner
from content_sync.core.pipeline.exporter import ExportPipeline
from content_sync.core.pipeline.importer import ImportPipeline
from content_sync.core.pipeline.models import BatchResult, ExportMode
from content_sync.core.queue import (
    DELETE_QUEUE_PREFIX,
    EXPORT_QUEUE_PREFIX,
    SYNC_QUEUE_PREFIX,
    MemoryQueue,
    SqliteQueue,
    WorkQueue,
    queue_name,
)
from content_sync.core.resolver import ExportQueueResolver
from content_sync.core.serialization import codec
from content_sync.core.serialization.context import FilesMode, SerializerContext
from content_sync.core.serialization.decorators import default_decorators
from content_sync.core.serialization.exporter import ContentExporter
from content_sync.core.serialization.importer import ContentImporter
from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import EntityRepository, get_repository
from content_sync.core.storage.cached import CachedStorage
from content_sync.core.storage.database import DatabaseStorage
from content_sync.core.storage.file import FileStorage

logger = logging.getLogger(__name__)


# ============================================================================
# Typed exceptions
# ============================================================================


class SiteMismatchError(ContentSyncError):
    """The sync directory was exported from a different site."""

    def __init__(self, expected: str, found: str) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"Site UUID mismatch: site is {expected}, content is from {found}")


class SingleImportError(ContentSyncError):
    """A single pasted document could not be imported."""


QueueFactory = Callable[[str, str], WorkQueue]


def new_run_id() -> str:
    """Sortable run id: creation time, then a random suffix."""
    return f"{int(time.time()):010d}-{uuid.uuid4().hex[:8]}"


class ContentSyncService:
    """
    Stateless orchestrator over one site and one sync directory.

    Args:
        config: Loaded configuration
        repository: Live entity storage
        project_dir: Base for relative paths in *config*
        queue_factory: Builds a queue from ``(prefix, run_id)``; defaults to
            the configured backend
    """

    def __init__(
        self,
        config: ContentSyncConfig,
        repository: EntityRepository,
        project_dir: Path | None = None,
        queue_factory: QueueFactory | None = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.project_dir = project_dir or Path.cwd()
        self.cache = MemoryCache()
        self.snapshot = DatabaseStorage(self._path(config.state_dir) / config.db_name)
        self.active_storage = CachedStorage(self.snapshot, self.cache)
        self.queue_factory = queue_factory or self._default_queue_factory

        decorators = default_decorators(repository)
        self.manager = ContentSyncManager(
            exporter=ContentExporter(repository, decorators),
            importer=ContentImporter(
                repository, decorators, update_entities=config.import_.update_entities
            ),
            export_resolver=ExportQueueResolver(self.snapshot),
        )

    @classmethod
    def from_config(
        cls, config: ContentSyncConfig, project_dir: Path | None = None
    ) -> ContentSyncService:
        """Build the service with the repository named in *config*."""
        project_dir = project_dir or Path.cwd()
        repository_config = config.repository
        kwargs: dict[str, Any] = {
            "content_entity_types": repository_config.content_entity_types,
        }
        if repository_config.backend == "jsonl":
            path = repository_config.path
            kwargs["path"] = path if path.is_absolute() else project_dir / path
        repository = get_repository(repository_config.backend, **kwargs)
        return cls(config, repository, project_dir=project_dir)

    # ------------------------------------------------------------------
    # Paths and collaborators
    # ------------------------------------------------------------------

    def _path(self, path: Path) -> Path:
        return path if path.is_absolute() else self.project_dir / path

    def _default_queue_factory(self, prefix: str, run_id: str) -> WorkQueue:
        name = queue_name(prefix, run_id)
        if self.config.queue.backend == "memory":
            return MemoryQueue(name)
        return SqliteQueue(self.snapshot.db_path, name)

    def import_directory(self, directory: Path | None = None) -> Path:
        return self._path(directory or self.config.import_.directory)

    def export_directory(self, directory: Path | None = None) -> Path:
        return self._path(directory or self.config.export.directory)

    def sync_storage(self, directory: Path) -> FileStorage:
        return FileStorage(directory / "entities")

    def serializer_context(
        self, directory: Path, files_mode: FilesMode = FilesMode.NONE
    ) -> SerializerContext:
        schemes = {name: self._path(path) for name, path in self.config.file_schemes.items()}
        return SerializerContext.for_directory(directory, files_mode, schemes)

    def read_active(self, name: str) -> dict[str, Any] | None:
        """Snapshot document for *name*, served from the content cache."""
        return self.active_storage.create_collection(collection_of(name)).read(name)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_import(
        self,
        change_filter: ChangeFilter | None = None,
        directory: Path | None = None,
        refresh_snapshot: bool = True,
    ) -> ChangePlan:
        """Changes needed to make the site match the sync directory."""
        if refresh_snapshot:
            self.rebuild_snapshot()
        comparer = ContentStorageComparer(
            self.sync_storage(self.import_directory(directory)),
            self.snapshot,
            self.config.comparer.rename_policy,
        )
        return self._build(comparer, SyncDirection.IMPORT, change_filter)

    def plan_export(
        self,
        change_filter: ChangeFilter | None = None,
        directory: Path | None = None,
        refresh_snapshot: bool = True,
    ) -> ChangePlan:
        """Changes needed to make the sync directory match the site."""
        if refresh_snapshot:
            self.rebuild_snapshot()
        comparer = ContentStorageComparer(
            self.snapshot,
            self.sync_storage(self.export_directory(directory)),
            self.config.comparer.rename_policy,
        )
        return self._build(comparer, SyncDirection.EXPORT, change_filter)

    def _build(
        self,
        comparer: ContentStorageComparer,
        direction: SyncDirection,
        change_filter: ChangeFilter | None,
    ) -> ChangePlan:
        change_filter = change_filter or ChangeFilter()
        if self.config.comparer.include_default_collection:
            change_filter.include_default_collection = True
        return ChangeListBuilder(comparer, direction).build(change_filter)

    def validate_site_uuid(self, directory: Path | None = None) -> None:
        """
        Refuse content exported from another site.

        A sync directory without a ``site.uuid`` stamp passes.

        Raises:
            SiteMismatchError: If the stamp names a different site and
                ``import.site_uuid_override`` is off
        """
        stamp = self.sync_storage(self.import_directory(directory)).read(SITE_UUID_NAME)
        if not stamp or not stamp.get("site_uuid"):
            logger.debug("No site.uuid stamp in %s", self.import_directory(directory))
            return
        expected = self.repository.get_site_uuid()
        found = str(stamp["site_uuid"])
        if found == expected:
            return
        if self.config.import_.site_uuid_override:
            logger.warning("Importing content from site %s into %s", found, expected)
            return
        raise SiteMismatchError(expected, found)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_import(
        self,
        plan: ChangePlan,
        directory: Path | None = None,
        runner: BatchRunner | None = None,
        run_id: str | None = None,
    ) -> BatchResult:
        run_id = run_id or new_run_id()
        pipeline = self._import_pipeline(run_id, self.import_directory(directory))
        pipeline.prepare(plan.content_to_sync, plan.content_to_delete)
        return self._finish(pipeline.run(runner), run_id, "import")

    def run_export(
        self,
        plan: ChangePlan,
        directory: Path | None = None,
        mode: ExportMode | None = None,
        files: FilesMode | None = None,
        include_dependencies: bool | None = None,
        runner: BatchRunner | None = None,
        run_id: str | None = None,
    ) -> BatchResult:
        """
        Export the plan's content.

        In folder mode the plan's deletes are removed from the sync
        directory before the batch runs.

        Raises:
            DestinationError: If the destination cannot be created
        """
        run_id = run_id or new_run_id()
        directory = self.export_directory(directory)
        mode = mode or self.config.export.mode
        if mode == ExportMode.FOLDER:
            self._delete_exported(directory, plan.content_to_delete)

        pipeline = self._export_pipeline(run_id, directory, mode, files, include_dependencies)
        pipeline.prepare(list(plan.content_to_sync))
        return self._finish(pipeline.run(runner), run_id, "export")

    def import_single(self, text: str, directory: Path | None = None) -> ContentEntity:
        """
        Import one YAML document straight through the importer.

        No change list, queue or site uuid check is involved. The imported
        entity's snapshot row is refreshed so later diffs see it.

        Raises:
            CodecError: If *text* is not a YAML mapping
            SingleImportError: If the document names no entity type or the
                importer rejects it
            StorageError: If the snapshot row cannot be written
        """
        decoded = codec.decode(text)
        metadata = decoded.get(METADATA_KEY)
        if not isinstance(metadata, dict) or not metadata.get("entity_type"):
            raise SingleImportError("Entity type could not be determined.")

        context = self.serializer_context(self.import_directory(directory))
        entity = self.manager.importer.import_entity(decoded, context)
        if entity is None:
            raise SingleImportError("Entity could not be imported.")

        self.cache.invalidate(cache_key(entity.name))
        self.snapshot.content_sync_write(entity.name, decoded, entity.collection)
        logger.info("Imported %s from a single document", entity.name)
        return entity

    def rebuild_snapshot(self, runner: BatchRunner | None = None) -> BatchResult:
        """Re-export every live entity into the snapshot table."""
        self.snapshot.ensure_table_exists()
        self.snapshot.delete_all()
        self.cache.invalidate_all()
        pipeline = ExportPipeline(
            self.repository,
            self.manager,
            self.snapshot,
            MemoryQueue(queue_name(EXPORT_QUEUE_PREFIX, "snapshot")),
            self.serializer_context(self.export_directory()),
            export_mode=ExportMode.SNAPSHOT,
        )
        items = [
            {"entity_type": entity.entity_type, "entity_id": entity.id}
            for entity_type in self.repository.content_entity_types()
            for entity in self.repository.load_multiple(entity_type)
        ]
        pipeline.prepare(items)
        result = pipeline.run(runner)
        logger.info("Snapshot rebuilt: %s", result.summary())
        return result

    # ------------------------------------------------------------------
    # Resuming
    # ------------------------------------------------------------------

    def pending_runs(self, *prefixes: str) -> list[str]:
        """Run ids with items left in queues under *prefixes*, oldest first."""
        if self.config.queue.backend == "memory":
            return []
        run_ids: set[str] = set()
        for prefix in prefixes:
            for name in SqliteQueue.list_queues(self.snapshot.db_path, f"{prefix}:"):
                run_ids.add(name.partition(":")[2])
        return sorted(run_ids)

    def resume_import(
        self, directory: Path | None = None, runner: BatchRunner | None = None
    ) -> BatchResult | None:
        """Finish the most recent interrupted import. None if nothing is pending."""
        runs = self.pending_runs(DELETE_QUEUE_PREFIX, SYNC_QUEUE_PREFIX)
        if not runs:
            return None
        run_id = runs[-1]
        logger.info("Resuming import run %s", run_id)
        pipeline = self._import_pipeline(run_id, self.import_directory(directory))
        return self._finish(pipeline.run(runner), run_id, "import")

    def resume_export(
        self,
        directory: Path | None = None,
        mode: ExportMode | None = None,
        files: FilesMode | None = None,
        include_dependencies: bool | None = None,
        runner: BatchRunner | None = None,
    ) -> BatchResult | None:
        """
        Finish the most recent interrupted export. None if nothing is pending.

        In tar mode the new archive holds only the items left in the queue.
        """
        runs = self.pending_runs(EXPORT_QUEUE_PREFIX)
        if not runs:
            return None
        run_id = runs[-1]
        logger.info("Resuming export run %s", run_id)
        pipeline = self._export_pipeline(
            run_id,
            self.export_directory(directory),
            mode or self.config.export.mode,
            files,
            include_dependencies,
        )
        pipeline.prepare()
        return self._finish(pipeline.run(runner), run_id, "export")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _import_pipeline(self, run_id: str, directory: Path) -> ImportPipeline:
        return ImportPipeline(
            self.repository,
            self.manager,
            self.snapshot,
            delete_queue=self.queue_factory(DELETE_QUEUE_PREFIX, run_id),
            sync_queue=self.queue_factory(SYNC_QUEUE_PREFIX, run_id),
            context=self.serializer_context(directory, FilesMode.FOLDER),
            cache=self.cache,
        )

    def _export_pipeline(
        self,
        run_id: str,
        directory: Path,
        mode: ExportMode,
        files: FilesMode | None,
        include_dependencies: bool | None,
    ) -> ExportPipeline:
        export_config = self.config.export
        if include_dependencies is None:
            include_dependencies = export_config.include_dependencies
        archive_path = None
        if export_config.archive_path is not None:
            archive_path = self._path(export_config.archive_path)
        return ExportPipeline(
            self.repository,
            self.manager,
            self.snapshot,
            self.queue_factory(EXPORT_QUEUE_PREFIX, run_id),
            self.serializer_context(directory, files or export_config.files),
            export_mode=mode,
            include_dependencies=include_dependencies,
            cache=self.cache,
            archive_path=archive_path,
        )

    def _delete_exported(self, directory: Path, names: list[str]) -> None:
        storage = self.sync_storage(directory)
        for name in names:
            if storage.create_collection(collection_of(name)).delete(name):
                logger.info("Removed %s from %s", name, directory)

    @staticmethod
    def _finish(result: BatchResult, run_id: str, kind: str) -> BatchResult:
        if result.has_errors:
            logger.warning("The content was %sed with errors (run %s).", kind, run_id)
        else:
            logger.info("The content was %sed successfully (run %s).", kind, run_id)
        return result
