"""
Change-list orchestration.

Turns per-collection comparer output into the two flat lists a batch run
consumes: ``content_to_sync`` (creates and updates) and ``content_to_delete``.
No cross-collection dependency sort happens here; the import resolver and
the export dependency queue take care of ordering later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from content_sync.core.comparer import ChangeList, ChangeOperation, ContentStorageComparer
from content_sync.core.names import DEFAULT_COLLECTION

logger = logging.getLogger(__name__)

APPLICABLE_ACTIONS = (ChangeOperation.CREATE, ChangeOperation.UPDATE, ChangeOperation.DELETE)


class SyncDirection(str, Enum):
    """Which way content flows."""

    IMPORT = "import"
    """Sync directory -> active site."""

    EXPORT = "export"
    """Active site -> sync directory."""


@dataclass
class ChangeFilter:
    """
    Optional restrictions on what a plan includes.

    Attributes:
        entity_types: Collection prefixes to keep (``node`` keeps
            ``node.article`` and ``node.page``)
        uuids: Bare names to compare within each collection
        actions: Subset of create/update/delete; unknown values are ignored
        include_default_collection: Also plan the top-level collection that
            holds the ``site.uuid`` stamp
    """

    entity_types: list[str] = field(default_factory=list)
    uuids: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    include_default_collection: bool = False

    @classmethod
    def from_options(
        cls,
        entity_types: str | None = None,
        uuids: str | None = None,
        actions: str | None = None,
    ) -> ChangeFilter:
        """Build a filter from comma-separated CLI option values."""
        return cls(
            entity_types=_split_csv(entity_types),
            uuids=_split_csv(uuids),
            actions=_split_csv(actions),
        )

    def selected_actions(self) -> list[ChangeOperation] | None:
        if not self.actions:
            return None
        valid = {op.value: op for op in APPLICABLE_ACTIONS}
        return [valid[action] for action in self.actions if action in valid]


@dataclass
class ChangePlan:
    """Everything a batch run needs, plus the per-collection table for display."""

    direction: SyncDirection
    changes: dict[str, ChangeList] = field(default_factory=dict)
    content_to_sync: list[str] = field(default_factory=list)
    content_to_delete: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.content_to_sync and not self.content_to_delete

    def counts(self) -> dict[str, int]:
        counts = {op.value: 0 for op in ChangeOperation}
        for changelist in self.changes.values():
            for op in ChangeOperation:
                counts[op.value] += len(changelist.get(op))
        return counts


class ChangeListBuilder:
    """
    Builds a :class:`ChangePlan` from a comparer.

    Example:
        >>> builder = ChangeListBuilder(comparer, SyncDirection.IMPORT)
        >>> plan = builder.build(ChangeFilter.from_options(entity_types="node"))
        >>> plan.content_to_sync
        ['node.article.5b6c...']
    """

    def __init__(self, comparer: ContentStorageComparer, direction: SyncDirection) -> None:
        self.comparer = comparer
        self.direction = direction

    def select_collections(self, change_filter: ChangeFilter) -> list[str]:
        collections = self.comparer.get_all_collection_names()
        if not change_filter.include_default_collection:
            collections = [c for c in collections if c != DEFAULT_COLLECTION]
        if change_filter.entity_types:
            collections = [
                c
                for c in collections
                if any(c.startswith(prefix) for prefix in change_filter.entity_types)
            ]
        return collections

    def build(self, change_filter: ChangeFilter | None = None) -> ChangePlan:
        change_filter = change_filter or ChangeFilter()
        plan = ChangePlan(direction=self.direction)
        actions = change_filter.selected_actions()

        for collection in self.select_collections(change_filter):
            if change_filter.uuids:
                found = self.comparer.create_changelist_by_collection_and_names(
                    collection, ",".join(change_filter.uuids)
                )
                if not found:
                    continue
            else:
                self.comparer.create_changelist_by_collection(collection)

            changelist = self._filter_actions(
                self.comparer.get_changelist(None, collection), actions
            )
            self.comparer.reset_collection_changelist(collection)
            if changelist.has_changes():
                plan.changes[collection] = changelist

        sync: list[str] = []
        delete: list[str] = []
        for changelist in plan.changes.values():
            sync.extend(changelist.create)
            sync.extend(changelist.update)
            # A rename is applied as create(new) + delete(old).
            sync.extend(rename.new_name for rename in changelist.rename)
            delete.extend(
                reversed(changelist.delete + [r.old_name for r in changelist.rename])
            )

        plan.content_to_sync = list(dict.fromkeys(sync))
        plan.content_to_delete = list(dict.fromkeys(delete))
        logger.debug(
            "Planned %s: %d to sync, %d to delete across %d collections",
            self.direction.value,
            len(plan.content_to_sync),
            len(plan.content_to_delete),
            len(plan.changes),
        )
        return plan

    @staticmethod
    def _filter_actions(
        changelist: ChangeList, actions: list[ChangeOperation] | None
    ) -> ChangeList:
        if actions is None:
            return changelist
        return ChangeList(
            create=changelist.create if ChangeOperation.CREATE in actions else [],
            update=changelist.update if ChangeOperation.UPDATE in actions else [],
            delete=changelist.delete if ChangeOperation.DELETE in actions else [],
        )


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
