"""
Cache backends for decoded content.

A cache is keyed by ``collection:name`` strings (see
:func:`content_sync.core.names.cache_key`). Pipelines invalidate the key of
every item they apply so later reads observe the write.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Minimal key/value cache interface used by storages and pipelines."""

    def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or None on a miss."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""
        ...

    def invalidate(self, key: str) -> None:
        """Drop *key* if present."""
        ...

    def invalidate_all(self) -> None:
        """Drop every key."""
        ...


class MemoryCache:
    """Process-local dictionary cache. Values are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def invalidate(self, key: str) -> None:
        self._data.pop(key, None)

    def invalidate_all(self) -> None:
        self._data.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class NullCache:
    """Cache that never stores anything, so every read goes to the backing storage."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any) -> None:
        pass

    def invalidate(self, key: str) -> None:
        pass

    def invalidate_all(self) -> None:
        pass
