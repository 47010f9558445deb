"""
Canonical entity names.

Every entity is addressed across storages, queues and dependency graphs by a
single string ``entity_type.bundle.uuid``. The first two parts double as the
entity's collection (``entity_type.bundle``), which maps to a directory on
disk and to the ``collection`` column of the snapshot table.

Example:
    >>> name = EntityName.parse("node.article.5b6c")
    >>> name.collection
    'node.article'
    >>> cache_key("node.article.5b6c")
    'node.article:node.article.5b6c'
"""

from __future__ import annotations

from dataclasses import dataclass

from content_sync.core.exceptions import ContentSyncError

DELIMITER = "."

# Top-level singleton written before every export. Never dependency-expanded.
SITE_UUID_NAME = "site.uuid"

# Reserved bucket for identifiers whose backing entity could not be loaded.
MISSING = "Missing"

DEFAULT_COLLECTION = ""


class InvalidNameError(ContentSyncError):
    """Raised when a name does not split into exactly three parts."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid entity name '{name}': expected entity_type.bundle.uuid")


@dataclass(frozen=True)
class EntityName:
    """A parsed ``entity_type.bundle.uuid`` identifier."""

    entity_type: str
    bundle: str
    uuid: str

    @classmethod
    def parse(cls, name: str) -> EntityName:
        parts = name.split(DELIMITER)
        if len(parts) != 3 or not all(parts):
            raise InvalidNameError(name)
        return cls(*parts)

    @property
    def name(self) -> str:
        return DELIMITER.join((self.entity_type, self.bundle, self.uuid))

    @property
    def collection(self) -> str:
        return DELIMITER.join((self.entity_type, self.bundle))

    def __str__(self) -> str:
        return self.name


def is_valid_name(name: str) -> bool:
    """Return True if *name* has exactly three non-empty parts."""
    parts = name.split(DELIMITER)
    return len(parts) == 3 and all(parts)


def collection_of(name: str) -> str:
    """Collection a name belongs to; opaque names live in the default collection."""
    if not is_valid_name(name):
        return DEFAULT_COLLECTION
    return EntityName.parse(name).collection


def cache_key(name: str) -> str:
    """Content cache key for *name*, shaped ``entity_type.bundle:name``."""
    return f"{collection_of(name)}:{name}"
