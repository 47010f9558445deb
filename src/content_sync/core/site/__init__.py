"""
Site entity storage.

Importing this package registers the built-in repositories ("memory" and
"jsonl").
"""

from content_sync.core.site.jsonl import JsonlEntityRepository, RepositoryFileCorruptedError
from content_sync.core.site.memory import MemoryEntityRepository
from content_sync.core.site.models import ContentEntity
from content_sync.core.site.repository import (
    DEFAULT_CONTENT_ENTITY_TYPES,
    EntityRepository,
    EntityStorageError,
    get_repository,
    list_repositories,
    register_repository,
)

__all__ = [
    "DEFAULT_CONTENT_ENTITY_TYPES",
    "ContentEntity",
    "EntityRepository",
    "EntityStorageError",
    "JsonlEntityRepository",
    "MemoryEntityRepository",
    "RepositoryFileCorruptedError",
    "get_repository",
    "list_repositories",
    "register_repository",
]
