"""
JSONL file entity repository (entities.jsonl).

Stores every entity as one JSON object per line with atomic rewrites, and
the site identity in a sibling ``site.json`` file created on first use.

File format:
    {"entity_type": "node", "bundle": "article", "uuid": "5b6c...", "id": 1, ...}
    {"entity_type": "taxonomy_term", "bundle": "tags", "uuid": "2f1e...", "id": 1, ...}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid as uuid_lib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import (
    DEFAULT_CONTENT_ENTITY_TYPES,
    EntityStorageError,
    register_repository,
)

logger = logging.getLogger(__name__)


class RepositoryFileCorruptedError(EntityStorageError):
    """Raised when entities.jsonl is malformed."""

    def __init__(self, message: str, line_num: int | None = None):
        self.line_num = line_num
        super().__init__(message)


@register_repository("jsonl")
class JsonlEntityRepository:
    """
    Entity repository that uses an entities.jsonl file for storage.

    Example:
        >>> repository = JsonlEntityRepository(Path(".content-sync/entities.jsonl"))
        >>> repository.load_by_uuid("node", "5b6c...")
    """

    def __init__(
        self,
        path: Path | str,
        content_entity_types: Iterable[str] = DEFAULT_CONTENT_ENTITY_TYPES,
        site_uuid: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.site_file = self.path.with_name("site.json")
        self._types = list(content_entity_types)
        self._site_uuid = site_uuid

        # Cache for loaded data to avoid re-parsing on every call
        self._cache: list[ContentEntity] | None = None
        self._cache_mtime: float | None = None

    # ------------------------------------------------------------------
    # File handling
    # ------------------------------------------------------------------

    def _load(self) -> list[ContentEntity]:
        """
        Load and parse entities.jsonl with caching.

        Raises:
            RepositoryFileCorruptedError: If a line is not a valid entity
        """
        if not self.path.exists():
            return []

        current_mtime = os.path.getmtime(self.path)
        if self._cache is not None and self._cache_mtime == current_mtime:
            return self._cache

        entities: list[ContentEntity] = []
        with open(self.path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise RepositoryFileCorruptedError(
                        f"Line {line_num}: invalid JSON - {e}", line_num=line_num
                    ) from e
                if not isinstance(data, dict):
                    raise RepositoryFileCorruptedError(
                        f"Line {line_num}: expected JSON object, got {type(data).__name__}",
                        line_num=line_num,
                    )
                try:
                    entities.append(ContentEntity.model_validate(data))
                except ValidationError as e:
                    raise RepositoryFileCorruptedError(
                        f"Line {line_num}: invalid entity - {e}", line_num=line_num
                    ) from e

        self._cache = entities
        self._cache_mtime = current_mtime
        return entities

    def _save(self, entities: list[ContentEntity]) -> None:
        """Rewrite entities.jsonl atomically via a temporary file and rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=".entities_", suffix=".jsonl.tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for entity in entities:
                    json.dump(
                        entity.model_dump(mode="json"),
                        f,
                        ensure_ascii=False,
                        separators=(",", ":"),
                    )
                    f.write("\n")
            os.replace(temp_path, self.path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise EntityStorageError(f"Failed to write {self.path}: {e}") from e
        finally:
            self._cache = None
            self._cache_mtime = None

    # ------------------------------------------------------------------
    # Repository protocol
    # ------------------------------------------------------------------

    def content_entity_types(self) -> list[str]:
        return list(self._types)

    def is_content_entity_type(self, entity_type: str) -> bool:
        return entity_type in self._types

    def load(self, entity_type: str, entity_id: int) -> ContentEntity | None:
        for entity in self._load():
            if entity.entity_type == entity_type and entity.id == entity_id:
                return entity.model_copy(deep=True)
        return None

    def load_by_uuid(self, entity_type: str, uuid: str) -> ContentEntity | None:
        for entity in self._load():
            if entity.entity_type == entity_type and entity.uuid == uuid:
                return entity.model_copy(deep=True)
        return None

    def load_multiple(self, entity_type: str) -> list[ContentEntity]:
        matching = [e for e in self._load() if e.entity_type == entity_type]
        return [e.model_copy(deep=True) for e in sorted(matching, key=lambda e: e.id or 0)]

    def save(self, entity: ContentEntity) -> ContentEntity:
        if not self.is_content_entity_type(entity.entity_type):
            raise EntityStorageError(f"Unknown content entity type: {entity.entity_type}")

        entities = list(self._load())
        saved = entity.model_copy(deep=True)
        same_type = [e for e in entities if e.entity_type == saved.entity_type]
        for existing in same_type:
            if existing.uuid == saved.uuid and existing.id != saved.id:
                raise EntityStorageError(
                    f"UUID {saved.uuid} already used by {saved.entity_type} {existing.id}"
                )
        if saved.id is None:
            saved.id = max((e.id or 0 for e in same_type), default=0) + 1

        replaced = False
        for index, existing in enumerate(entities):
            if existing.entity_type == saved.entity_type and existing.id == saved.id:
                entities[index] = saved
                replaced = True
                break
        if not replaced:
            entities.append(saved)

        self._save(entities)
        logger.debug("Saved %s %s (%s)", saved.entity_type, saved.id, saved.uuid)
        return saved.model_copy(deep=True)

    def delete(self, entity: ContentEntity) -> None:
        entities = self._load()
        remaining = [
            e
            for e in entities
            if not (e.entity_type == entity.entity_type and e.id == entity.id)
        ]
        if len(remaining) == len(entities):
            raise EntityStorageError(f"{entity.entity_type} {entity.uuid} is not stored")
        self._save(remaining)

    def get_site_uuid(self) -> str:
        if self._site_uuid:
            return self._site_uuid
        data: dict[str, Any] = {}
        if self.site_file.exists():
            try:
                data = json.loads(self.site_file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                raise EntityStorageError(f"Failed to read {self.site_file}: {e}") from e
        if not data.get("uuid"):
            data = {"uuid": str(uuid_lib.uuid4())}
            self.site_file.parent.mkdir(parents=True, exist_ok=True)
            self.site_file.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
            logger.info("Generated site uuid %s", data["uuid"])
        self._site_uuid = str(data["uuid"])
        return self._site_uuid
