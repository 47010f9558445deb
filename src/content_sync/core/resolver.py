"""
Dependency resolution for import and export queues.

Both resolvers walk ``_content_sync.entity_dependencies`` (and the same block
inside every translation) depth-first. An identifier is marked visited on
entry, so cycles and diamonds are walked once. An identifier whose data
cannot be loaded is recorded under the ``Missing`` bucket and its branch
stops there without raising.

The result's :attr:`VisitedSet.order` lists resolved names in completion
order: every name appears after all of the names it depends on (except
around cycles), at any depth of the chain. Callers enqueue it as-is.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

from content_sync.core.graph import iter_dependencies
from content_sync.core.names import MISSING, EntityName, InvalidNameError
from content_sync.core.serialization import codec
from content_sync.core.storage.database import DatabaseStorage

logger = logging.getLogger(__name__)


class VisitedSet:
    """
    Working state and result of a resolution pass.

    Attributes:
        visited: Every identifier seen, in discovery (pre-)order
        missing: Identifiers whose entity could not be loaded
        order: Resolved identifiers, dependencies first
        entities: Decoded data for every resolved identifier
    """

    def __init__(self, seen: Iterable[str] = ()) -> None:
        self.visited: dict[str, bool] = dict.fromkeys(seen, True)
        self.missing: dict[str, bool] = {}
        self.order: list[str] = []
        self.entities: dict[str, dict[str, Any]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self.visited

    def __iter__(self) -> Iterator[str]:
        return iter(self.order)

    def __len__(self) -> int:
        return len(self.order)

    def as_dict(self) -> dict[str, Any]:
        """Visited identifiers mapped to True, plus the ``Missing`` bucket."""
        result: dict[str, Any] = dict(self.visited)
        if self.missing:
            result[MISSING] = dict(self.missing)
        return result


class AbstractResolver(ABC):
    """Depth-first walker shared by the import and export resolvers."""

    def resolve(
        self,
        entities: Mapping[str, dict[str, Any] | None],
        visited: VisitedSet | None = None,
    ) -> VisitedSet:
        """
        Resolve *entities* and everything they transitively depend on.

        Args:
            entities: Decoded entities keyed by name; a None value means the
                data must come from the variant's fallback store
            visited: Existing state to continue from; names already in it are
                not walked again

        Returns:
            The (possibly shared) visited set
        """
        if visited is None:
            visited = VisitedSet()
        for name in entities:
            self._walk(visited, name, entities)
        return visited

    def _walk(
        self,
        visited: VisitedSet,
        root: str,
        entities: Mapping[str, dict[str, Any] | None],
    ) -> None:
        if root in visited:
            return
        stack: list[tuple[str, Iterator[str]]] = [(root, self._enter(visited, root, entities))]
        while stack:
            name, dependencies = stack[-1]
            for dependency in dependencies:
                if dependency not in visited:
                    stack.append((dependency, self._enter(visited, dependency, entities)))
                    break
            else:
                stack.pop()
                if name not in visited.missing:
                    visited.order.append(name)

    def _enter(
        self,
        visited: VisitedSet,
        name: str,
        entities: Mapping[str, dict[str, Any] | None],
    ) -> Iterator[str]:
        visited.visited[name] = True
        entity = self.get_entity(name, entities)
        if not entity:
            visited.missing[name] = True
            return iter(())
        visited.entities[name] = entity
        return iter(list(iter_dependencies(entity)))

    @abstractmethod
    def get_entity(
        self, name: str, entities: Mapping[str, dict[str, Any] | None]
    ) -> dict[str, Any] | None:
        """Return decoded data for *name*, or None if it cannot be found."""


class ExportQueueResolver(AbstractResolver):
    """Falls back to the snapshot table for names not supplied in memory."""

    def __init__(self, snapshot: DatabaseStorage) -> None:
        self.snapshot = snapshot

    def get_entity(
        self, name: str, entities: Mapping[str, dict[str, Any] | None]
    ) -> dict[str, Any] | None:
        entity = entities.get(name)
        if entity:
            return entity
        return self.snapshot.content_sync_read(name)


class ImportQueueResolver(AbstractResolver):
    """Falls back to ``<directory>/<entity_type>/<bundle>/<name>.yml``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def get_entity(
        self, name: str, entities: Mapping[str, dict[str, Any] | None]
    ) -> dict[str, Any] | None:
        entity = entities.get(name)
        if entity:
            return entity
        try:
            parsed = EntityName.parse(name)
        except InvalidNameError:
            return None
        path = self.directory / parsed.entity_type / parsed.bundle / f"{name}.yml"
        try:
            return codec.decode(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, codec.CodecError) as e:
            logger.warning("Could not load dependency %s from %s: %s", name, path, e)
            return None
