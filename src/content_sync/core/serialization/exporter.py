"""
Content exporter: live entity -> flat YAML document.

The flat form holds the entity's fields plus a ``_content_sync`` metadata
block::

    uuid: 5b6c...
    langcode: en
    label: Hello
    field_tags:
    - target_type: taxonomy_term
      target_uuid: 2f1e...
    _content_sync:
      entity_type: node
      bundle: article
      entity_dependencies:
        taxonomy_term:
        - taxonomy_term.tags.2f1e...
    _translations:
      fr:
        langcode: fr
        label: Bonjour
        _content_sync:
          entity_dependencies: {}
"""

from __future__ import annotations

import base64
import copy
import logging
from typing import Any

from content_sync.core.graph import DEPENDENCIES_KEY, METADATA_KEY, TRANSLATIONS_KEY
from content_sync.core.serialization import codec
from content_sync.core.serialization.context import FilesMode, SerializerContext
from content_sync.core.serialization.decorators import NormalizerDecorator, add_dependency
from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import EntityRepository

logger = logging.getLogger(__name__)


class ContentExporter:
    """Normalizes live entities into YAML documents."""

    def __init__(
        self,
        repository: EntityRepository,
        decorators: list[NormalizerDecorator] | None = None,
    ) -> None:
        self.repository = repository
        self.decorators = list(decorators or [])

    def export_entity(self, entity: ContentEntity, context: SerializerContext) -> str:
        """
        Export *entity* as a YAML document.

        Raises:
            CodecError: If the normalized data cannot be encoded
            OSError: If base64 file embedding cannot read the asset
        """
        return codec.encode(self.normalize(entity, context))

    def normalize(self, entity: ContentEntity, context: SerializerContext) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": entity.id,
            "uuid": entity.uuid,
            "langcode": entity.langcode,
            "label": entity.label,
        }
        data.update(copy.deepcopy(entity.fields))
        data[METADATA_KEY] = {
            "entity_type": entity.entity_type,
            "bundle": entity.bundle,
            DEPENDENCIES_KEY: {},
        }
        self._add_reference_dependencies(data)

        if entity.file_uri:
            data["uri"] = entity.file_uri
            if context.files_mode == FilesMode.BASE64:
                data["data"] = self._encode_file(entity.file_uri, context)

        if entity.translations:
            translations: dict[str, Any] = {}
            for langcode, fields in entity.translations.items():
                translation = {"langcode": langcode, **copy.deepcopy(fields)}
                translation[METADATA_KEY] = {DEPENDENCIES_KEY: {}}
                self._add_reference_dependencies(translation)
                translations[langcode] = translation
            data[TRANSLATIONS_KEY] = translations

        for decorator in self.decorators:
            decorator.decorate_on_export(entity, data)
        return data

    def _add_reference_dependencies(self, data: dict[str, Any]) -> None:
        for key, value in list(data.items()):
            if key.startswith("_") or not isinstance(value, list):
                continue
            for item in value:
                if not isinstance(item, dict):
                    continue
                target_type = item.get("target_type")
                target_uuid = item.get("target_uuid")
                if not target_type or not target_uuid:
                    continue
                target = self.repository.load_by_uuid(target_type, target_uuid)
                if target is None:
                    logger.debug("Reference %s:%s not found", target_type, target_uuid)
                    continue
                add_dependency(data, target_type, target.name)

    @staticmethod
    def _encode_file(uri: str, context: SerializerContext) -> str | None:
        resolved = context.resolve_file_uri(uri)
        if resolved is None:
            logger.warning("No local directory configured for %s", uri)
            return None
        _, path = resolved
        return base64.b64encode(path.read_bytes()).decode("ascii")
