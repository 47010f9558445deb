"""In-memory entity repository."""

from __future__ import annotations

import uuid as uuid_lib
from collections.abc import Iterable

from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import (
    DEFAULT_CONTENT_ENTITY_TYPES,
    EntityStorageError,
    register_repository,
)


@register_repository("memory")
class MemoryEntityRepository:
    """Entity repository kept in process memory. Ids are assigned per entity type."""

    def __init__(
        self,
        entities: Iterable[ContentEntity] = (),
        content_entity_types: Iterable[str] = DEFAULT_CONTENT_ENTITY_TYPES,
        site_uuid: str | None = None,
    ) -> None:
        self._types = list(content_entity_types)
        self._site_uuid = site_uuid or str(uuid_lib.uuid4())
        self._entities: dict[str, dict[int, ContentEntity]] = {}
        for entity in entities:
            self.save(entity)

    def content_entity_types(self) -> list[str]:
        return list(self._types)

    def is_content_entity_type(self, entity_type: str) -> bool:
        return entity_type in self._types

    def load(self, entity_type: str, entity_id: int) -> ContentEntity | None:
        entity = self._entities.get(entity_type, {}).get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    def load_by_uuid(self, entity_type: str, uuid: str) -> ContentEntity | None:
        for entity in self._entities.get(entity_type, {}).values():
            if entity.uuid == uuid:
                return entity.model_copy(deep=True)
        return None

    def load_multiple(self, entity_type: str) -> list[ContentEntity]:
        by_id = self._entities.get(entity_type, {})
        return [by_id[key].model_copy(deep=True) for key in sorted(by_id)]

    def save(self, entity: ContentEntity) -> ContentEntity:
        if not self.is_content_entity_type(entity.entity_type):
            raise EntityStorageError(f"Unknown content entity type: {entity.entity_type}")
        by_id = self._entities.setdefault(entity.entity_type, {})
        for existing_id, existing in by_id.items():
            if existing.uuid == entity.uuid and existing_id != entity.id:
                raise EntityStorageError(
                    f"UUID {entity.uuid} already used by {entity.entity_type} {existing_id}"
                )
        saved = entity.model_copy(deep=True)
        if saved.id is None:
            saved.id = max(by_id, default=0) + 1
        by_id[saved.id] = saved
        return saved.model_copy(deep=True)

    def delete(self, entity: ContentEntity) -> None:
        by_id = self._entities.get(entity.entity_type, {})
        if entity.id is None or entity.id not in by_id:
            raise EntityStorageError(f"{entity.entity_type} {entity.uuid} is not stored")
        del by_id[entity.id]

    def get_site_uuid(self) -> str:
        return self._site_uuid
