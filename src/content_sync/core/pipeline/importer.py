"""
Import pipeline: delete pass, then sync pass.

``prepare`` fills two queues. The delete queue holds bare names; the sync
queue holds ``{"entity_type", "name", "decoded_entity"}`` items in
dependency order. Each stage step claims exactly one item.
"""

from __future__ import annotations

import logging
from typing import Any

from content_sync.core.cache import CacheBackend, NullCache
from content_sync.core.manager import ContentSyncManager
from content_sync.core.names import EntityName, InvalidNameError, cache_key, collection_of
from content_sync.core.pipeline.base import BatchRunner, Operation
from content_sync.core.pipeline.models import BatchContext, BatchResult
from content_sync.core.queue import WorkQueue
from content_sync.core.serialization.context import SerializerContext
from content_sync.core.site.repository import EntityRepository
from content_sync.core.storage.base import StorageError
from content_sync.core.storage.database import DatabaseStorage

logger = logging.getLogger(__name__)

# Anonymous user and the site's first administrator.
PROTECTED_USER_IDS = (0, 1)


class ImportPipeline:
    """
    Applies a change plan to the live site.

    Args:
        repository: Live entity storage
        manager: Supplies the importer and the import dependency queue
        snapshot: Snapshot table refreshed after every imported entity
        delete_queue: Queue of names to delete
        sync_queue: Queue of decoded entities to create or update
        context: Serializer context for the sync directory
        cache: Content cache invalidated per processed name
    """

    def __init__(
        self,
        repository: EntityRepository,
        manager: ContentSyncManager,
        snapshot: DatabaseStorage,
        delete_queue: WorkQueue,
        sync_queue: WorkQueue,
        context: SerializerContext,
        cache: CacheBackend | None = None,
    ) -> None:
        self.repository = repository
        self.manager = manager
        self.snapshot = snapshot
        self.delete_queue = delete_queue
        self.sync_queue = sync_queue
        self.context = context
        self.cache = cache or NullCache()

    def prepare(self, content_to_sync: list[str], content_to_delete: list[str]) -> int:
        """
        Enqueue the work for a run.

        Deletes go in as given. Sync names are resolved against the entities
        directory first, so their dependencies are queued ahead of them.

        Returns:
            Number of items enqueued
        """
        for name in content_to_delete:
            self.delete_queue.create_item(name)

        visited = self.manager.generate_import_queue(
            content_to_sync, self.context.entities_directory
        )
        for name in visited.order:
            decoded = visited.entities[name]
            self.sync_queue.create_item(
                {
                    "entity_type": name.split(".", 1)[0],
                    "name": name,
                    "decoded_entity": decoded,
                }
            )
        if visited.missing:
            logger.info(
                "Dependencies not found in %s: %s",
                self.context.entities_directory,
                ", ".join(visited.missing),
            )
        return len(content_to_delete) + len(visited.order)

    def operations(self) -> list[Operation]:
        return [
            Operation("delete", self.delete_content),
            Operation("sync", self.sync_content),
        ]

    def run(self, runner: BatchRunner | None = None) -> BatchResult:
        runner = runner or BatchRunner()
        context = runner.run(self.operations())
        return BatchResult.from_context(context)

    # ------------------------------------------------------------------
    # Stage steps
    # ------------------------------------------------------------------

    def delete_content(self, context: BatchContext) -> None:
        if not context.initialized:
            self.delete_queue.reset_claims()
            context.max = self.delete_queue.number_of_items()
            context.initialized = True

        item = self.delete_queue.claim_item()
        if item is None:
            context.message = "Nothing in queue..."
            context.finished = 1.0
            return

        name = item.data
        try:
            context.message = self._delete(name, context)
        except Exception as e:
            context.message = f"Could not delete {name}: {e}"
            context.errors.append(context.message)
            logger.error(context.message)
        self.delete_queue.delete_item(item)
        context.progress += 1
        context.update_finished()

    def sync_content(self, context: BatchContext) -> None:
        if not context.initialized:
            self.sync_queue.reset_claims()
            context.max = self.sync_queue.number_of_items()
            context.initialized = True

        item = self.sync_queue.claim_item()
        if item is None:
            context.message = "Nothing in queue..."
            context.finished = 1.0
            return

        try:
            context.message = self._sync(item.data, context)
        except Exception as e:
            context.message = f"Could not import {_describe(item.data)}: {e}"
            context.errors.append(context.message)
            logger.error(context.message)
        self.sync_queue.delete_item(item)
        # Progress counts failed items too.
        context.progress += 1
        context.update_finished()

    # ------------------------------------------------------------------
    # Item handlers
    # ------------------------------------------------------------------

    def _delete(self, name: str, context: BatchContext) -> str:
        try:
            parsed = EntityName.parse(name)
        except InvalidNameError as e:
            context.errors.append(str(e))
            return str(e)

        entity = self.repository.load_by_uuid(parsed.entity_type, parsed.uuid)
        if entity is None:
            message = f"{parsed.uuid} of type {parsed.entity_type} was not found."
            context.messages.append(message)
            logger.info(message)
            return message

        if parsed.entity_type == "user" and entity.id in PROTECTED_USER_IDS:
            message = f"{parsed.uuid} - Anonymous user or super admin can not be removed."
            context.messages.append(message)
            logger.info(message)
            return message

        try:
            self.repository.delete(entity)
        except Exception as e:
            message = f"Could not delete {name}: {e}"
            context.errors.append(message)
            logger.error(message)
            return message

        self.cache.invalidate(cache_key(entity.name))
        context.results.append(entity.name)
        try:
            self.snapshot.content_sync_delete(entity.name)
        except Exception as e:
            message = f"Snapshot row for {entity.name} not removed: {e}"
            context.errors.append(message)
            logger.error(message)
        return f"Deleted content {entity.label} ({entity.entity_type}: {entity.id})."

    def _sync(self, data: dict[str, Any], context: BatchContext) -> str:
        entity_type = data.get("entity_type", "")
        decoded = data.get("decoded_entity") or {}
        try:
            entity = self.manager.importer.import_entity(decoded, self.context)
        except Exception as e:
            logger.error("Importing %s failed: %s", data.get("name"), e)
            entity = None

        if entity is None:
            message = f"Error importing content of type {entity_type}: {data.get('name', '?')}."
            context.errors.append(message)
            return message

        self.cache.invalidate(cache_key(entity.name))
        context.results.append(entity.name)
        try:
            self.snapshot.content_sync_write(
                entity.name, decoded, collection_of(entity.name)
            )
        except StorageError as e:
            message = f"Snapshot row for {entity.name} not refreshed: {e}"
            context.errors.append(message)
            logger.error(message)
        return f"Imported content {entity.label} ({entity.entity_type}: {entity.id})."


def _describe(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("name", "?"))
    return str(data)
