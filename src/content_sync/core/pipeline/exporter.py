"""
Export pipeline: stamp the site uuid, export queued entities, package.

Queue items are either canonical names (``node.article.5b6c...``) or
mappings with ``entity_type`` plus ``entity_id`` or ``entity_uuid``. With
dependency inclusion on, the queue grows while the export stage runs; the
``exported`` and ``dependencies`` sets in the batch context bound that
growth so the stage always terminates.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from content_sync.core.cache import CacheBackend, NullCache
from content_sync.core.manager import ContentSyncManager
from content_sync.core.names import SITE_UUID_NAME, EntityName, InvalidNameError, cache_key
from content_sync.core.pipeline.base import BatchRunner, Operation
from content_sync.core.pipeline.models import BatchContext, BatchResult, ExportMode
from content_sync.core.pipeline.sinks import (
    ARCHIVE_NAME,
    ArchiveSink,
    DestinationError,
    DirectorySink,
)
from content_sync.core.queue import WorkQueue
from content_sync.core.serialization import codec
from content_sync.core.serialization.context import FilesMode, SerializerContext
from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import EntityRepository
from content_sync.core.storage.database import DatabaseStorage

logger = logging.getLogger(__name__)


class ExportPipeline:
    """
    Writes live entities to the snapshot table, a directory or an archive.

    Args:
        repository: Live entity storage
        manager: Supplies the exporter and the export dependency resolver
        snapshot: Snapshot table used for change detection
        export_queue: Queue of items to export
        context: Serializer context (directories, files mode)
        export_mode: Destination kind
        include_dependencies: Queue referenced entities as they are found
        cache: Content cache invalidated per exported name
        archive_path: Archive location in tar mode; defaults to
            ``<content_directory>/content.tar.gz``
    """

    def __init__(
        self,
        repository: EntityRepository,
        manager: ContentSyncManager,
        snapshot: DatabaseStorage,
        export_queue: WorkQueue,
        context: SerializerContext,
        export_mode: ExportMode = ExportMode.FOLDER,
        include_dependencies: bool = False,
        cache: CacheBackend | None = None,
        archive_path: Path | None = None,
    ) -> None:
        self.repository = repository
        self.manager = manager
        self.snapshot = snapshot
        self.export_queue = export_queue
        self.context = context
        self.export_mode = export_mode
        self.include_dependencies = include_dependencies
        self.cache = cache or NullCache()
        self.archive_path = archive_path or context.content_directory / ARCHIVE_NAME
        self.sink: DirectorySink | ArchiveSink | None = None
        self.artifact: Path | None = None

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def prepare(self, items: list[Any] | None = None) -> int:
        """
        Acquire the destination and enqueue *items*.

        Raises:
            DestinationError: If the destination cannot be created; nothing
                is enqueued in that case
        """
        self._open_destination()
        for item in items or []:
            self.export_queue.create_item(item)
        return len(items or [])

    def _open_destination(self) -> None:
        if self.export_mode == ExportMode.SNAPSHOT:
            if not self.snapshot.ensure_table_exists():
                raise DestinationError(f"Cannot create snapshot table in {self.snapshot.db_path}")
            return
        if self.export_mode == ExportMode.TAR:
            self.sink = ArchiveSink(self.archive_path)
        else:
            self.sink = DirectorySink(self.context.content_directory)
        self.sink.open()

    def _require_sink(self) -> DirectorySink | ArchiveSink:
        if self.sink is None:
            raise DestinationError("Export destination is not open")
        return self.sink

    def operations(self) -> list[Operation]:
        operations = [
            Operation("site_uuid", self.generate_site_uuid_file),
            Operation("export", self.process_export),
        ]
        if self.export_mode == ExportMode.TAR:
            operations.append(Operation("finish", self.finish_archive))
        return operations

    def run(self, runner: BatchRunner | None = None) -> BatchResult:
        if self.sink is None and self.export_mode != ExportMode.SNAPSHOT:
            self._open_destination()
        runner = runner or BatchRunner()
        context = runner.run(self.operations())
        return BatchResult.from_context(context, artifact=self.artifact)

    # ------------------------------------------------------------------
    # Stage steps
    # ------------------------------------------------------------------

    def generate_site_uuid_file(self, context: BatchContext) -> None:
        """Write the ``site.uuid`` stamp used to validate later imports."""
        data = {"site_uuid": self.repository.get_site_uuid()}
        if self.export_mode == ExportMode.SNAPSHOT:
            self.snapshot.write(SITE_UUID_NAME, data)
        else:
            sink = self._require_sink()
            sink.add_string(f"entities/{SITE_UUID_NAME}.yml", codec.encode(data))
        context.message = SITE_UUID_NAME
        context.results.append(SITE_UUID_NAME)
        context.finished = 1.0

    def process_export(self, context: BatchContext) -> None:
        if not context.initialized:
            self.export_queue.reset_claims()
            context.max = self.export_queue.number_of_items()
            context.initialized = True

        queue_item = self.export_queue.claim_item()
        if queue_item is None:
            context.message = "Nothing in queue..."
            context.finished = 1.0
            return

        try:
            name = self._export_item(queue_item.data, context)
        except Exception as e:
            message = f"Could not export {_describe(queue_item.data)}: {e}"
            logger.error(message)
            context.errors.append(message)
            name = None

        self.export_queue.delete_item(queue_item)
        context.progress += 1
        if name:
            context.results.append(name)
        context.message = f"{name or queue_item.data} {context.progress}/{context.max}"
        context.update_finished()

    def finish_archive(self, context: BatchContext) -> None:
        if self.sink is not None:
            self.artifact = self.sink.close()
        if context.errors:
            for error in dict.fromkeys(context.errors):
                logger.error(error)
            logger.warning("The content was exported with errors.")
        else:
            logger.info("The content was exported successfully to %s", self.artifact)
        context.finished = 1.0

    # ------------------------------------------------------------------
    # Item handling
    # ------------------------------------------------------------------

    def _export_item(self, data: Any, context: BatchContext) -> str | None:
        """Export one queue item. Returns the entity name, or None on error."""
        if isinstance(data, str):
            try:
                parsed = EntityName.parse(data)
            except InvalidNameError as e:
                context.errors.append(str(e))
                return None
            data = {"entity_type": parsed.entity_type, "entity_uuid": parsed.uuid}

        entity_type = data.get("entity_type", "")
        if not self.repository.is_content_entity_type(entity_type):
            context.errors.append(
                f"Entity type does not exist or it is not a content instance: {entity_type}"
            )
            return None

        entity = self._load(entity_type, data)
        if entity is None:
            entity_id = data.get("entity_uuid", data.get("entity_id"))
            context.errors.append(f"Entity does not exist: {entity_type}({entity_id})")
            return None

        name = entity.name
        if name in context.exported:
            return name

        try:
            exported = self.manager.exporter.export_entity(entity, self.context)
            if exported:
                decoded = codec.decode(exported)
                self._write(entity, exported, decoded)
        except Exception as e:
            message = f"Could not export {name}: {e}"
            logger.error(message)
            context.errors.append(message)
            return None
        if not exported:
            message = f"Could not export {name}: the exporter returned nothing"
            logger.error(message)
            context.errors.append(message)
            return None

        self.cache.invalidate(cache_key(name))
        if self.include_dependencies:
            self._queue_dependencies(name, decoded, context)
        context.exported[name] = name
        return name

    def _load(self, entity_type: str, data: dict[str, Any]) -> ContentEntity | None:
        if data.get("entity_uuid"):
            return self.repository.load_by_uuid(entity_type, str(data["entity_uuid"]))
        if data.get("entity_id") is None:
            return None
        try:
            return self.repository.load(entity_type, int(data["entity_id"]))
        except (TypeError, ValueError):
            return None

    def _write(self, entity: ContentEntity, exported: str, decoded: dict[str, Any]) -> None:
        name = entity.name
        previous = self.snapshot.content_sync_read(name)
        if previous is None or codec.content_hash(previous) != codec.content_hash(decoded):
            self.snapshot.content_sync_write(name, decoded, entity.collection)
        else:
            logger.debug("Snapshot for %s unchanged", name)

        if self.sink is None:
            return
        self.sink.add_string(
            f"entities/{entity.entity_type}/{entity.bundle}/{name}.yml", exported
        )
        if entity.file_uri and self.context.files_mode == FilesMode.FOLDER:
            self._add_file(entity.file_uri)

    def _add_file(self, uri: str) -> None:
        resolved = self.context.resolve_file_uri(uri)
        if resolved is None:
            logger.warning("No local directory configured for %s; file skipped", uri)
            return
        scheme, path = resolved
        if not path.is_file():
            logger.warning("File %s not found at %s", uri, path)
            return
        self._require_sink().add_file(path, f"files/{scheme}/{uri.partition('://')[2]}")

    def _queue_dependencies(
        self, name: str, decoded: dict[str, Any], context: BatchContext
    ) -> None:
        if context.dependencies.get(name):
            return
        visited = self.manager.generate_export_queue({name: decoded}, context.exported)
        new_dependencies = [
            dependency
            for dependency in visited.visited
            if dependency != name
            and dependency not in context.exported
            and dependency not in context.dependencies
        ]
        context.dependencies[name] = True
        for dependency in new_dependencies:
            context.dependencies[dependency] = False
            self.export_queue.create_item(dependency)
        if new_dependencies:
            context.max += len(new_dependencies)
            logger.debug("Queued %d dependencies of %s", len(new_dependencies), name)


def _describe(data: Any) -> str:
    if isinstance(data, dict):
        entity_id = data.get("entity_uuid", data.get("entity_id"))
        return f"{data.get('entity_type', '?')}({entity_id})"
    return str(data)
