"""
Content storage protocol.

A storage holds decoded entities keyed by canonical name, partitioned into
collections. ``create_collection`` returns a view of the same backing store
scoped to another collection, mirroring how the comparer walks collections.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from content_sync.core.exceptions import ContentSyncError
from content_sync.core.names import DEFAULT_COLLECTION

__all__ = ["DEFAULT_COLLECTION", "ContentStorage", "StorageError"]


class StorageError(ContentSyncError):
    """Raised when a storage cannot read or write a document."""


@runtime_checkable
class ContentStorage(Protocol):
    """
    Protocol for content storage implementations.

    Listing operations never raise: a missing directory or table is an
    empty listing. ``read`` returns None for absent names.
    """

    collection: str

    def exists(self, name: str) -> bool:
        """Return True if *name* is stored in this collection."""
        ...

    def read(self, name: str) -> dict[str, Any] | None:
        """Return the decoded entity for *name*, or None if absent."""
        ...

    def read_multiple(self, names: list[str]) -> dict[str, dict[str, Any]]:
        """Return decoded entities for the given names that exist, in input order."""
        ...

    def write(self, name: str, data: dict[str, Any]) -> bool:
        """
        Write a decoded entity.

        Raises:
            StorageError: If the write cannot be completed
        """
        ...

    def delete(self, name: str) -> bool:
        """Delete *name*. Returns False if it did not exist."""
        ...

    def list_all(self, prefix: str = "") -> list[str]:
        """List names in this collection starting with *prefix*, sorted."""
        ...

    def create_collection(self, collection: str) -> ContentStorage:
        """Return a storage for *collection* sharing the same backing store."""
        ...

    def get_all_collection_names(self) -> list[str]:
        """List every non-default collection holding at least one item."""
        ...
