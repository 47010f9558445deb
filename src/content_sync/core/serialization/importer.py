"""
Content importer: decoded YAML document -> saved live entity.

Entities are matched by uuid, so importing the same document twice updates
rather than duplicates. Reference items are re-pointed at the local id of
their ``target_uuid``.
"""

from __future__ import annotations

import base64
import copy
import logging
from typing import Any

from pydantic import ValidationError

from content_sync.core.graph import METADATA_KEY, TRANSLATIONS_KEY
from content_sync.core.serialization.codec import FORMAT
from content_sync.core.serialization.context import SerializerContext
from content_sync.core.serialization.decorators import (
    ID_KEYS,
    PATH_ALIAS_KEY,
    NormalizerDecorator,
)
from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import EntityRepository

logger = logging.getLogger(__name__)

ENTITY_KEYS = (
    "uuid",
    "langcode",
    "label",
    "uri",
    "data",
    PATH_ALIAS_KEY,
    METADATA_KEY,
    TRANSLATIONS_KEY,
    *ID_KEYS,
)

ANONYMOUS_USER_ID = 0


class ContentImporter:
    """
    Materializes decoded documents as entities in a repository.

    Args:
        repository: Site entity storage
        decorators: Normalizer decorators applied before denormalizing
        update_entities: When False, existing entities are returned untouched
    """

    def __init__(
        self,
        repository: EntityRepository,
        decorators: list[NormalizerDecorator] | None = None,
        update_entities: bool = True,
    ) -> None:
        self.repository = repository
        self.decorators = list(decorators or [])
        self.update_entities = update_entities

    def get_format(self) -> str:
        return FORMAT

    def import_entity(
        self, decoded_entity: dict[str, Any], context: SerializerContext | None = None
    ) -> ContentEntity | None:
        """
        Create or update the entity described by *decoded_entity*.

        Returns:
            The saved entity, or None if the entity type is unknown or not a
            content type, or the document fails validation

        Raises:
            EntityStorageError: If the repository refuses the save
        """
        data = copy.deepcopy(decoded_entity)
        metadata = data.get(METADATA_KEY) or {}

        entity_type = (context.entity_type if context else None) or metadata.get("entity_type")
        if not entity_type:
            logger.debug("Document without entity type; skipped")
            return None
        if not self.repository.is_content_entity_type(entity_type):
            logger.debug("%s is not a content entity type; skipped", entity_type)
            return None

        if entity_type == "taxonomy_term" and not data.get("parent"):
            data["parent"] = [{"target_id": 0}]

        translations = data.pop(TRANSLATIONS_KEY, None) or {}

        for decorator in self.decorators:
            data = decorator.decorate_on_import(data)

        try:
            entity = self._denormalize(entity_type, metadata, data, context)
        except ValidationError as e:
            logger.warning("Invalid %s document: %s", entity_type, e)
            return None

        existing = self.repository.load_by_uuid(entity_type, entity.uuid)
        if existing is not None:
            # The anonymous user is never overwritten.
            if entity_type == "user" and existing.id == ANONYMOUS_USER_ID:
                return existing
            if not self.update_entities:
                return existing
            entity.id = existing.id
            entity.translations = existing.translations

        if translations:
            for langcode, translation in translations.items():
                if isinstance(translation, dict):
                    entity.translations[langcode] = self._fields(translation)

        return self.repository.save(entity)

    def _denormalize(
        self,
        entity_type: str,
        metadata: dict[str, Any],
        data: dict[str, Any],
        context: SerializerContext | None,
    ) -> ContentEntity:
        file_uri = data.get("uri")
        if file_uri and data.get("data") and context is not None:
            self._write_file(file_uri, data["data"], context)
        return ContentEntity(
            entity_type=entity_type,
            bundle=metadata.get("bundle") or data.get("bundle") or "",
            uuid=data.get("uuid") or "",
            label=data.get("label") or "",
            langcode=data.get("langcode") or "en",
            fields=self._fields(data),
            file_uri=file_uri,
            path_alias=data.get(PATH_ALIAS_KEY),
        )

    def _fields(self, data: dict[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for key, value in data.items():
            if key in ENTITY_KEYS or key == "bundle":
                continue
            fields[key] = self._resolve_references(value)
        return fields

    def _resolve_references(self, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        resolved = []
        for item in value:
            if isinstance(item, dict) and item.get("target_type") and item.get("target_uuid"):
                item = dict(item)
                target = self.repository.load_by_uuid(item["target_type"], item["target_uuid"])
                item["target_id"] = target.id if target is not None else None
            resolved.append(item)
        return resolved

    @staticmethod
    def _write_file(uri: str, encoded: str, context: SerializerContext) -> None:
        resolved = context.resolve_file_uri(uri)
        if resolved is None:
            logger.warning("No local directory configured for %s; file data dropped", uri)
            return
        _, path = resolved
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(base64.b64decode(encoded))
