"""
Dependency graph over decoded entities.

Built from a ``{name: decoded_entity}`` snapshot and immutable after
construction. The comparer uses :meth:`DependencyGraph.sort_all` to order the
default collection so dependencies sort before their dependents.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

METADATA_KEY = "_content_sync"
DEPENDENCIES_KEY = "entity_dependencies"
TRANSLATIONS_KEY = "_translations"


def _declared(data: Mapping[str, Any]) -> Iterator[str]:
    metadata = data.get(METADATA_KEY)
    if not isinstance(metadata, Mapping):
        return
    groups = metadata.get(DEPENDENCIES_KEY)
    if not isinstance(groups, Mapping):
        return
    for references in groups.values():
        if isinstance(references, Mapping):
            references = references.values()
        for reference in references or ():
            if isinstance(reference, str):
                yield reference


def iter_dependencies(entity: Mapping[str, Any]) -> Iterator[str]:
    """
    Yield the names *entity* depends on, in declaration order.

    Dependencies declared by the entity itself come first, grouped by entity
    type, followed by those declared in each translation's metadata block.
    Names may repeat.
    """
    yield from _declared(entity)
    translations = entity.get(TRANSLATIONS_KEY)
    if isinstance(translations, Mapping):
        for translation in translations.values():
            if isinstance(translation, Mapping):
                yield from _declared(translation)


class DependencyGraph:
    """Immutable dependency graph built from a snapshot of decoded entities.

    An edge from A to B means A declares a dependency on B, so B must be
    written before A. References to names outside the snapshot are ignored.

    Example::

        graph = DependencyGraph(storage.read_multiple(storage.list_all()))
        ordered = graph.sort_all()
    """

    __slots__ = ("_names", "_forward")

    def __init__(self, data: Mapping[str, Mapping[str, Any]]) -> None:
        self._names: tuple[str, ...] = tuple(data)
        known = frozenset(self._names)

        # forward[A] = [B, C] means A depends on B and C
        self._forward: dict[str, list[str]] = {}
        for name, entity in data.items():
            deps: list[str] = []
            for dep in iter_dependencies(entity):
                if dep in known and dep != name and dep not in deps:  # ignore dangling refs
                    deps.append(dep)
            self._forward[name] = deps

    def sort_all(self) -> list[str]:
        """
        Order every name so dependencies come before dependents.

        Depth-first post-order walk in discovery order; ties keep the order
        in which names were supplied. Names on a cycle are emitted once, in
        whichever order the walk reaches them.
        """
        ordered: list[str] = []
        done: set[str] = set()

        for root in self._names:
            if root in done:
                continue
            done.add(root)
            stack: list[tuple[str, Iterator[str]]] = [(root, iter(self._forward[root]))]
            while stack:
                node, deps = stack[-1]
                for dep in deps:
                    if dep not in done:
                        done.add(dep)
                        stack.append((dep, iter(self._forward[dep])))
                        break
                else:
                    stack.pop()
                    ordered.append(node)

        return ordered
