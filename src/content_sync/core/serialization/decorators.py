"""
Normalization decorators.

Decorators adjust the flat representation of an entity on its way out
(export) or in (import). They run in registration order; the default
chain is :class:`Parents`, :class:`Alias` and :class:`IdsCleaner`, so
parent references are resolved while site-local ids are still present.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from content_sync.core.graph import DEPENDENCIES_KEY, METADATA_KEY
from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import EntityRepository

ID_KEYS = ("id", "revision_id")
PATH_ALIAS_KEY = "path_alias"
REFERENCE_ID_KEYS = ("target_id", "url")

# System paths of entity types that have a canonical page.
CANONICAL_PATHS = {
    "node": "/node/{id}",
    "taxonomy_term": "/taxonomy/term/{id}",
    "user": "/user/{id}",
}


@runtime_checkable
class NormalizerDecorator(Protocol):
    def decorate_on_export(self, entity: ContentEntity, data: dict[str, Any]) -> None:
        """Mutate *data*, the normalized form of *entity*, in place."""
        ...

    def decorate_on_import(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return the decoded data to denormalize."""
        ...


def _reference_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict) and "target_type" in item]


def add_dependency(data: dict[str, Any], entity_type: str, name: str) -> None:
    """Record *name* under ``_content_sync.entity_dependencies[entity_type]`` once."""
    metadata = data.setdefault(METADATA_KEY, {})
    groups = metadata.setdefault(DEPENDENCIES_KEY, {})
    names = groups.setdefault(entity_type, [])
    if name not in names:
        names.append(name)


class IdsCleaner:
    """Strips site-local ids so exported documents are portable."""

    def decorate_on_export(self, entity: ContentEntity, data: dict[str, Any]) -> None:
        for key in ID_KEYS:
            data.pop(key, None)
        for value in data.values():
            for item in _reference_items(value):
                if item.get("target_uuid"):
                    for key in REFERENCE_ID_KEYS:
                        item.pop(key, None)

    def decorate_on_import(self, data: dict[str, Any]) -> dict[str, Any]:
        return data


class Parents:
    """
    Turns id-only ``parent`` references into uuid references.

    Hierarchical entities (taxonomy terms, menu links) point at their parent
    by site-local id. The exported document needs the parent's uuid and a
    dependency entry so the parent is written first on import.
    """

    def __init__(self, repository: EntityRepository) -> None:
        self.repository = repository

    def decorate_on_export(self, entity: ContentEntity, data: dict[str, Any]) -> None:
        parents = data.get("parent")
        if not isinstance(parents, list):
            return
        known = {item.get("target_uuid") for item in parents if isinstance(item, dict)}
        for item in list(parents):
            if not isinstance(item, dict) or item.get("target_uuid"):
                continue
            parent_id = item.get("target_id")
            if not parent_id:
                continue
            parent = self.repository.load(entity.entity_type, int(parent_id))
            if parent is None or parent.uuid in known:
                continue
            known.add(parent.uuid)
            item["target_type"] = entity.entity_type
            item["target_uuid"] = parent.uuid
            add_dependency(data, entity.entity_type, parent.name)

    def decorate_on_import(self, data: dict[str, Any]) -> dict[str, Any]:
        return data


class Alias:
    """
    Carries the path alias of entities that have a canonical page.

    Exported as ``path: [{alias: /about-us}]``. An alias equal to the
    entity's system path (``/node/5``) is not an alias and is left out.
    """

    def decorate_on_export(self, entity: ContentEntity, data: dict[str, Any]) -> None:
        template = CANONICAL_PATHS.get(entity.entity_type)
        if template is None or not entity.path_alias:
            return
        if entity.id is not None and entity.path_alias == template.format(id=entity.id):
            return
        data["path"] = [{"alias": entity.path_alias}]

    def decorate_on_import(self, data: dict[str, Any]) -> dict[str, Any]:
        items = data.get("path")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return data
        alias = items[0].get("alias")
        if alias:
            data.pop("path")
            data[PATH_ALIAS_KEY] = alias
        return data


def default_decorators(repository: EntityRepository) -> list[NormalizerDecorator]:
    return [Parents(repository), Alias(), IdsCleaner()]
