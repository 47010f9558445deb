"""
Read-through caching decorator for content storages.

Cache keys are ``collection:name``, the same shape the pipelines invalidate
after applying an item, so a pipeline write followed by a read through this
decorator always observes the write.
"""

from __future__ import annotations

from typing import Any

from content_sync.core.cache import CacheBackend
from content_sync.core.storage.base import ContentStorage


class CachedStorage:
    """Wraps a storage and memoizes ``read`` in a cache backend."""

    def __init__(self, storage: ContentStorage, cache: CacheBackend) -> None:
        self.storage = storage
        self.cache = cache

    @property
    def collection(self) -> str:
        return self.storage.collection

    def _key(self, name: str) -> str:
        return f"{self.storage.collection}:{name}"

    def exists(self, name: str) -> bool:
        if self.cache.get(self._key(name)) is not None:
            return True
        return self.storage.exists(name)

    def read(self, name: str) -> dict[str, Any] | None:
        key = self._key(name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        data = self.storage.read(name)
        if data is not None:
            self.cache.set(key, data)
        return data

    def read_multiple(self, names: list[str]) -> dict[str, dict[str, Any]]:
        result: dict[str, dict[str, Any]] = {}
        for name in names:
            data = self.read(name)
            if data is not None:
                result[name] = data
        return result

    def write(self, name: str, data: dict[str, Any]) -> bool:
        self.cache.invalidate(self._key(name))
        return self.storage.write(name, data)

    def delete(self, name: str) -> bool:
        self.cache.invalidate(self._key(name))
        return self.storage.delete(name)

    def list_all(self, prefix: str = "") -> list[str]:
        return self.storage.list_all(prefix)

    def create_collection(self, collection: str) -> CachedStorage:
        return CachedStorage(self.storage.create_collection(collection), self.cache)

    def get_all_collection_names(self) -> list[str]:
        return self.storage.get_all_collection_names()
