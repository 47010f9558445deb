"""In-process content storage, used for embedding and tests."""

from __future__ import annotations

import copy
from typing import Any

from content_sync.core.names import DEFAULT_COLLECTION


class MemoryStorage:
    """Content storage held in a dictionary shared by all of its collections."""

    def __init__(
        self,
        collection: str = DEFAULT_COLLECTION,
        _data: dict[str, dict[str, dict[str, Any]]] | None = None,
    ) -> None:
        self.collection = collection
        self._data = _data if _data is not None else {}

    @property
    def _items(self) -> dict[str, dict[str, Any]]:
        return self._data.setdefault(self.collection, {})

    def exists(self, name: str) -> bool:
        return name in self._items

    def read(self, name: str) -> dict[str, Any] | None:
        data = self._items.get(name)
        return copy.deepcopy(data) if data is not None else None

    def read_multiple(self, names: list[str]) -> dict[str, dict[str, Any]]:
        return {name: copy.deepcopy(self._items[name]) for name in names if name in self._items}

    def write(self, name: str, data: dict[str, Any]) -> bool:
        self._items[name] = copy.deepcopy(data)
        return True

    def delete(self, name: str) -> bool:
        return self._items.pop(name, None) is not None

    def list_all(self, prefix: str = "") -> list[str]:
        return sorted(name for name in self._items if name.startswith(prefix))

    def create_collection(self, collection: str) -> MemoryStorage:
        return MemoryStorage(collection, self._data)

    def get_all_collection_names(self) -> list[str]:
        return sorted(
            collection
            for collection, items in self._data.items()
            if collection != DEFAULT_COLLECTION and items
        )
