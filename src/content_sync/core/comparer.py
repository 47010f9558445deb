"""
Storage comparer.

Diffs a source and a target content storage per collection into create,
update, delete and rename operations. Applying the change list makes the
target look like the source:

* ``create``: in source, not in target
* ``update``: in both, content differs
* ``delete``: in target, not in source
* ``rename``: a create and a delete with identical content (default
  collection only)

Both storages are read through a :class:`CachedStorage` with a
:class:`NullCache`, so every comparison observes the latest writes even when
the comparer is reused between pipeline passes.

Rename detection is a heuristic: two unrelated entities that serialize
identically look exactly like a rename. :class:`RenamePolicy` controls how
such collisions are handled and :attr:`ContentStorageComparer.rename_collisions`
exposes them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from content_sync.core.cache import NullCache
from content_sync.core.graph import DependencyGraph
from content_sync.core.names import DEFAULT_COLLECTION
from content_sync.core.serialization.codec import content_hash
from content_sync.core.storage.base import ContentStorage, StorageError
from content_sync.core.storage.cached import CachedStorage

logger = logging.getLogger(__name__)


class ChangeOperation(str, Enum):
    """Operations a change list can hold."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RENAME = "rename"


class RenamePolicy(str, Enum):
    """How content-identical create/delete pairs are collapsed into renames."""

    FIRST_MATCH = "first_match"
    """Pair each delete with the first unpaired create sharing its hash."""

    UNIQUE_ONLY = "unique_only"
    """Only pair when exactly one create and one delete share the hash."""

    DISABLED = "disabled"
    """Never produce renames."""


@dataclass(frozen=True)
class Rename:
    old_name: str
    new_name: str

    def __str__(self) -> str:
        return f"{self.old_name} -> {self.new_name}"


@dataclass
class RenameCollision:
    """A content hash shared by more than one create or delete candidate."""

    content_hash: str
    old_names: list[str]
    new_names: list[str]


@dataclass
class ChangeList:
    """Ordered operations for one collection."""

    create: list[str] = field(default_factory=list)
    update: list[str] = field(default_factory=list)
    delete: list[str] = field(default_factory=list)
    rename: list[Rename] = field(default_factory=list)

    def get(self, op: ChangeOperation | str) -> list[Any]:
        return list(getattr(self, ChangeOperation(op).value))

    def has_changes(self) -> bool:
        return bool(self.create or self.update or self.delete or self.rename)

    def as_dict(self) -> dict[str, list[Any]]:
        return {
            "create": list(self.create),
            "update": list(self.update),
            "delete": list(self.delete),
            "rename": [str(rename) for rename in self.rename],
        }


class ContentStorageComparer:
    """
    Computes change lists between a source and a target storage.

    Example:
        >>> comparer = ContentStorageComparer(sync_storage, active_storage)
        >>> comparer.create_changelist()
        >>> comparer.get_changelist("create", "node.article")
        ['node.article.5b6c...']
    """

    def __init__(
        self,
        source: ContentStorage,
        target: ContentStorage,
        rename_policy: RenamePolicy = RenamePolicy.FIRST_MATCH,
    ) -> None:
        self.source = CachedStorage(source, NullCache())
        self.target = CachedStorage(target, NullCache())
        self.rename_policy = RenamePolicy(rename_policy)
        self.rename_collisions: list[RenameCollision] = []

        self._source_storages: dict[str, CachedStorage] = {DEFAULT_COLLECTION: self.source}
        self._target_storages: dict[str, CachedStorage] = {DEFAULT_COLLECTION: self.target}
        self._source_names: dict[str, list[str]] = {}
        self._target_names: dict[str, list[str]] = {}
        self._changelist: dict[str, ChangeList] = {DEFAULT_COLLECTION: ChangeList()}

    # ------------------------------------------------------------------
    # Storage access
    # ------------------------------------------------------------------

    def get_source_storage(self, collection: str = DEFAULT_COLLECTION) -> CachedStorage:
        if collection not in self._source_storages:
            self._source_storages[collection] = self.source.create_collection(collection)
        return self._source_storages[collection]

    def get_target_storage(self, collection: str = DEFAULT_COLLECTION) -> CachedStorage:
        if collection not in self._target_storages:
            self._target_storages[collection] = self.target.create_collection(collection)
        return self._target_storages[collection]

    def get_all_collection_names(self) -> list[str]:
        """Default collection first, then every collection in either storage."""
        collections = set(self._safe_collections(self.source))
        collections.update(self._safe_collections(self.target))
        collections.discard(DEFAULT_COLLECTION)
        return [DEFAULT_COLLECTION, *sorted(collections)]

    # ------------------------------------------------------------------
    # Building change lists
    # ------------------------------------------------------------------

    def create_changelist(self) -> ContentStorageComparer:
        """Build change lists for every collection."""
        for collection in self.get_all_collection_names():
            self.create_changelist_by_collection(collection)
        return self

    def create_changelist_by_collection(self, collection: str) -> ContentStorageComparer:
        self._changelist[collection] = ChangeList()
        self._get_and_sort_data(collection)
        self._add_changelist(collection)
        return self

    def create_changelist_by_collection_and_names(self, collection: str, names: str) -> bool:
        """
        Build the change list for specific names within *collection*.

        Args:
            collection: Collection to compare
            names: Comma-separated bare names, each expanded to
                ``collection.name`` (typically UUIDs)

        Returns:
            False if none of the names exists in either storage ("nothing
            found"), True otherwise even if nothing changed
        """
        self._changelist[collection] = ChangeList()
        if not self._get_data_by_names(collection, names):
            return False
        self._add_changelist(collection)
        return True

    def _add_changelist(self, collection: str) -> None:
        self._add_changelist_create(collection)
        self._add_changelist_update(collection)
        self._add_changelist_delete(collection)
        # Only the default collection carries the metadata renames rely on.
        if collection == DEFAULT_COLLECTION:
            self._add_changelist_rename(collection)

    def _get_and_sort_data(self, collection: str) -> None:
        source_storage = self.get_source_storage(collection)
        target_storage = self.get_target_storage(collection)
        source_names = self._safe_list(source_storage)
        target_names = self._safe_list(target_storage)

        if collection == DEFAULT_COLLECTION:
            source_names = self._sort_by_dependencies(source_storage, source_names)
            target_names = self._sort_by_dependencies(target_storage, target_names)

        self._source_names[collection] = source_names
        self._target_names[collection] = target_names

    def _get_data_by_names(self, collection: str, names: str) -> bool:
        source_storage = self.get_source_storage(collection)
        target_storage = self.get_target_storage(collection)
        source_names: list[str] = []
        target_names: list[str] = []

        for bare in names.split(","):
            bare = bare.strip()
            if not bare:
                continue
            name = f"{collection}.{bare}" if collection else bare
            if self._safe_exists(source_storage, name):
                source_names.append(name)
            if self._safe_exists(target_storage, name):
                target_names.append(name)

        source_names = list(dict.fromkeys(source_names))
        target_names = list(dict.fromkeys(target_names))
        if not source_names and not target_names:
            return False

        self._source_names[collection] = source_names
        self._target_names[collection] = target_names
        return True

    def _sort_by_dependencies(self, storage: CachedStorage, names: list[str]) -> list[str]:
        data = self._safe_read_multiple(storage, names)
        ordered = DependencyGraph(data).sort_all()
        unreadable = [name for name in names if name not in data]
        return ordered + unreadable

    def _add_changelist_create(self, collection: str) -> None:
        target = set(self._target_names[collection])
        self._changelist[collection].create = [
            name for name in self._source_names[collection] if name not in target
        ]

    def _add_changelist_update(self, collection: str) -> None:
        source_storage = self.get_source_storage(collection)
        target_storage = self.get_target_storage(collection)
        target = set(self._target_names[collection])
        updates: list[str] = []
        for name in self._source_names[collection]:
            if name not in target:
                continue
            source_data = self._safe_read(source_storage, name)
            target_data = self._safe_read(target_storage, name)
            if content_hash(source_data) != content_hash(target_data):
                updates.append(name)
        self._changelist[collection].update = updates

    def _add_changelist_delete(self, collection: str) -> None:
        source = set(self._source_names[collection])
        self._changelist[collection].delete = [
            name for name in self._target_names[collection] if name not in source
        ]

    def _add_changelist_rename(self, collection: str) -> None:
        changelist = self._changelist[collection]
        if self.rename_policy == RenamePolicy.DISABLED:
            return
        if not changelist.create or not changelist.delete:
            return

        source_storage = self.get_source_storage(collection)
        target_storage = self.get_target_storage(collection)

        creates_by_hash: dict[str, list[str]] = {}
        for name in changelist.create:
            digest = content_hash(self._safe_read(source_storage, name))
            creates_by_hash.setdefault(digest, []).append(name)
        deletes_by_hash: dict[str, list[str]] = {}
        for name in changelist.delete:
            digest = content_hash(self._safe_read(target_storage, name))
            deletes_by_hash.setdefault(digest, []).append(name)

        renames: list[Rename] = []
        for digest, old_names in deletes_by_hash.items():
            new_names = creates_by_hash.get(digest)
            if not new_names:
                continue
            if len(old_names) > 1 or len(new_names) > 1:
                self.rename_collisions.append(
                    RenameCollision(digest, list(old_names), list(new_names))
                )
                logger.warning(
                    "Ambiguous rename in %r: %s <-> %s share identical content",
                    collection,
                    ", ".join(old_names),
                    ", ".join(new_names),
                )
                if self.rename_policy == RenamePolicy.UNIQUE_ONLY:
                    continue
            renames.extend(Rename(old, new) for old, new in zip(old_names, new_names))

        if not renames:
            return
        renamed_old = {rename.old_name for rename in renames}
        renamed_new = {rename.new_name for rename in renames}
        changelist.create = [name for name in changelist.create if name not in renamed_new]
        changelist.delete = [name for name in changelist.delete if name not in renamed_old]
        changelist.rename = renames

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_changelist(
        self, op: ChangeOperation | str | None = None, collection: str = DEFAULT_COLLECTION
    ) -> Any:
        """
        Return the change list for *collection*, or one operation of it.

        Returns a :class:`ChangeList` when *op* is None, else a list of names
        (or :class:`Rename` pairs for ``rename``).
        """
        changelist = self._changelist.get(collection, ChangeList())
        if op is None:
            return changelist
        return changelist.get(op)

    def reset_collection_changelist(self, collection: str) -> None:
        self._changelist[collection] = ChangeList()

    def has_changes(self) -> bool:
        return any(changelist.has_changes() for changelist in self._changelist.values())

    # ------------------------------------------------------------------
    # Failure-tolerant reads
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_collections(storage: CachedStorage) -> list[str]:
        try:
            return storage.get_all_collection_names()
        except (StorageError, OSError) as e:
            logger.warning("Failed to list collections: %s", e)
            return []

    @staticmethod
    def _safe_list(storage: CachedStorage, prefix: str = "") -> list[str]:
        try:
            return storage.list_all(prefix)
        except (StorageError, OSError) as e:
            logger.warning("Failed to list collection %r: %s", storage.collection, e)
            return []

    @staticmethod
    def _safe_exists(storage: CachedStorage, name: str) -> bool:
        try:
            return storage.exists(name)
        except (StorageError, OSError) as e:
            logger.warning("Failed to check %s: %s", name, e)
            return False

    @staticmethod
    def _safe_read(storage: CachedStorage, name: str) -> dict[str, Any] | None:
        try:
            return storage.read(name)
        except (StorageError, OSError) as e:
            logger.warning("Failed to read %s: %s", name, e)
            return None

    @classmethod
    def _safe_read_multiple(
        cls, storage: CachedStorage, names: list[str]
    ) -> dict[str, dict[str, Any]]:
        data: dict[str, dict[str, Any]] = {}
        for name in names:
            entity = cls._safe_read(storage, name)
            if entity is not None:
                data[name] = entity
        return data
