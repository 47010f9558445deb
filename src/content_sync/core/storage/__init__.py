"""
Content storages.

Example:
    >>> from content_sync.core.storage import FileStorage, DatabaseStorage
    >>> sync = FileStorage(Path("content/sync/entities"))
    >>> active = DatabaseStorage(Path(".content-sync/content_sync.db"))
    >>> sync.get_all_collection_names()
    ['node.article', 'taxonomy_term.tags']
"""

from content_sync.core.storage.base import DEFAULT_COLLECTION, ContentStorage, StorageError
from content_sync.core.storage.cached import CachedStorage
from content_sync.core.storage.database import DatabaseStorage
from content_sync.core.storage.file import FileStorage
from content_sync.core.storage.memory import MemoryStorage

__all__ = [
    "DEFAULT_COLLECTION",
    "CachedStorage",
    "ContentStorage",
    "DatabaseStorage",
    "FileStorage",
    "MemoryStorage",
    "StorageError",
]
