"""
Content sync manager.

Holds the exporter, importer and resolvers, and turns lists of names into
dependency-ordered work for the batch pipelines.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from content_sync.core.names import EntityName, is_valid_name
from content_sync.core.resolver import ExportQueueResolver, ImportQueueResolver, VisitedSet
from content_sync.core.serialization import codec
from content_sync.core.serialization.exporter import ContentExporter
from content_sync.core.serialization.importer import ContentImporter

logger = logging.getLogger(__name__)


class ContentSyncManager:
    """
    Entry point for queue generation.

    Args:
        exporter: Normalizes live entities
        importer: Materializes decoded documents
        export_resolver: Resolves export dependencies against the snapshot
        import_resolver_factory: Builds an import resolver for a directory
    """

    def __init__(
        self,
        exporter: ContentExporter,
        importer: ContentImporter,
        export_resolver: ExportQueueResolver,
        import_resolver_factory: Callable[[Path], ImportQueueResolver] = ImportQueueResolver,
    ) -> None:
        self.exporter = exporter
        self.importer = importer
        self.export_resolver = export_resolver
        self.import_resolver_factory = import_resolver_factory

    def generate_import_queue(self, names: Iterable[str], directory: Path | str) -> VisitedSet:
        """
        Decode the files for *names* and resolve their dependencies.

        Names that are not ``type.bundle.uuid`` or have no file under
        *directory* are skipped, as are files that fail to decode.

        Returns:
            The resolution result; ``order`` lists dependencies first
        """
        directory = Path(directory)
        decoded: dict[str, dict[str, Any] | None] = {}
        for name in names:
            if not is_valid_name(name):
                continue
            parsed = EntityName.parse(name)
            path = directory / parsed.entity_type / parsed.bundle / f"{name}.yml"
            if not path.exists():
                continue
            try:
                decoded[name] = codec.decode(path.read_text(encoding="utf-8"))
            except (OSError, codec.CodecError) as e:
                logger.warning("Skipping %s: %s", path, e)

        if not decoded:
            return VisitedSet()
        return self.import_resolver_factory(directory).resolve(decoded)

    def generate_export_queue(
        self,
        decoded_entities: dict[str, dict[str, Any] | None],
        visited_names: Iterable[str] = (),
    ) -> VisitedSet:
        """Resolve export dependencies, skipping names in *visited_names*."""
        visited = VisitedSet(visited_names)
        if not decoded_entities:
            return visited
        return self.export_resolver.resolve(decoded_entities, visited)
