"""
Tests for the storage comparer.

Every name is classified exactly once as create, update, delete or
unchanged; renames only ever collapse create/delete pairs inside the
default collection.
"""

import logging

import pytest

from content_sync.core.comparer import (
    ChangeList,
    ChangeOperation,
    ContentStorageComparer,
    Rename,
    RenamePolicy,
)
from content_sync.core.storage import FileStorage, MemoryStorage

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _storages() -> tuple[MemoryStorage, MemoryStorage]:
    return MemoryStorage(), MemoryStorage()


def _put(storage: MemoryStorage, collection: str, name: str, data: dict) -> None:
    storage.create_collection(collection).write(name, data)


def _depends_on(*names: str) -> dict:
    return {"_content_sync": {"entity_dependencies": {"x": list(names)}}}


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassification:
    def test_each_name_lands_in_one_bucket(self) -> None:
        source, target = _storages()
        _put(source, "node.article", "node.article.same", {"v": 1})
        _put(source, "node.article", "node.article.changed", {"v": 2})
        _put(source, "node.article", "node.article.new", {"v": 3})
        _put(target, "node.article", "node.article.same", {"v": 1})
        _put(target, "node.article", "node.article.changed", {"v": 1})
        _put(target, "node.article", "node.article.gone", {"v": 4})

        comparer = ContentStorageComparer(source, target).create_changelist()
        changelist = comparer.get_changelist(None, "node.article")

        assert changelist.create == ["node.article.new"]
        assert changelist.update == ["node.article.changed"]
        assert changelist.delete == ["node.article.gone"]
        assert changelist.rename == []

        classified = changelist.create + changelist.update + changelist.delete
        assert len(classified) == len(set(classified))
        assert "node.article.same" not in classified

    def test_target_only_name_is_deleted_in_default_collection(self) -> None:
        source, target = _storages()
        target.write("node.article.UUID-3", {"uuid": "UUID-3"})

        comparer = ContentStorageComparer(source, target)
        comparer.create_changelist_by_collection("")

        assert comparer.get_changelist("delete") == ["node.article.UUID-3"]
        assert comparer.get_changelist("create") == []

    def test_key_order_does_not_count_as_update(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.p1", {"a": 1, "b": 2})
        _put(target, "node.page", "node.page.p1", {"b": 2, "a": 1})

        comparer = ContentStorageComparer(source, target).create_changelist()
        assert not comparer.has_changes()

    def test_yaml_and_json_stores_compare_equal(self, tmp_path, snapshot) -> None:
        data = {"uuid": "p1", "label": "Café", "tags": [{"target_uuid": "t1"}]}
        FileStorage(tmp_path, "node.page").write("node.page.p1", data)
        snapshot.content_sync_write("node.page.p1", data, "node.page")

        comparer = ContentStorageComparer(FileStorage(tmp_path), snapshot).create_changelist()
        assert comparer.get_changelist(None, "node.page") == ChangeList()

    def test_unreadable_document_does_not_raise(self, tmp_path) -> None:
        bad = tmp_path / "node" / "page" / "node.page.p1.yml"
        bad.parent.mkdir(parents=True)
        bad.write_text("not: [valid")
        target = MemoryStorage()
        _put(target, "node.page", "node.page.p1", {"v": 1})

        comparer = ContentStorageComparer(FileStorage(tmp_path), target).create_changelist()
        assert comparer.get_changelist("update", "node.page") == ["node.page.p1"]

    def test_collections_default_first(self) -> None:
        source, target = _storages()
        _put(source, "taxonomy_term.tags", "taxonomy_term.tags.t1", {})
        _put(target, "node.article", "node.article.a1", {})

        comparer = ContentStorageComparer(source, target)
        assert comparer.get_all_collection_names() == ["", "node.article", "taxonomy_term.tags"]

    def test_reused_comparer_sees_new_writes(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.p1", {"v": 1})
        _put(target, "node.page", "node.page.p1", {"v": 1})

        comparer = ContentStorageComparer(source, target)
        comparer.create_changelist_by_collection("node.page")
        assert comparer.get_changelist("update", "node.page") == []

        _put(source, "node.page", "node.page.p1", {"v": 2})
        comparer.create_changelist_by_collection("node.page")
        assert comparer.get_changelist("update", "node.page") == ["node.page.p1"]

    def test_default_collection_sorted_by_dependencies(self) -> None:
        source, target = _storages()
        source.write("a.a.top", _depends_on("z.z.dep"))
        source.write("z.z.dep", {})

        comparer = ContentStorageComparer(source, target)
        comparer.create_changelist_by_collection("")
        assert comparer.get_changelist(ChangeOperation.CREATE) == ["z.z.dep", "a.a.top"]


# ---------------------------------------------------------------------------
# Filtering by names
# ---------------------------------------------------------------------------


class TestNamesFilter:
    def test_only_named_entities_are_compared(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.p1", {"v": 1})
        _put(source, "node.page", "node.page.p2", {"v": 1})

        comparer = ContentStorageComparer(source, target)
        found = comparer.create_changelist_by_collection_and_names("node.page", "p2, missing")

        assert found is True
        assert comparer.get_changelist("create", "node.page") == ["node.page.p2"]

    def test_names_match_exactly(self) -> None:
        source, target = _storages()
        for name in ("node.article.a1", "node.article.a10", "node.article.a11"):
            _put(source, "node.article", name, {"v": 1})
        _put(target, "node.article", "node.article.a10", {"v": 0})

        comparer = ContentStorageComparer(source, target)
        comparer.create_changelist_by_collection_and_names("node.article", "a1")
        changelist = comparer.get_changelist(None, "node.article")

        assert changelist.create == ["node.article.a1"]
        assert changelist.update == []
        assert changelist.delete == []

    def test_nothing_found(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.p1", {"v": 1})

        comparer = ContentStorageComparer(source, target)
        assert comparer.create_changelist_by_collection_and_names("node.page", "nope") is False
        assert comparer.get_changelist(None, "node.page") == ChangeList()

    def test_found_but_unchanged(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.p1", {"v": 1})
        _put(target, "node.page", "node.page.p1", {"v": 1})

        comparer = ContentStorageComparer(source, target)
        assert comparer.create_changelist_by_collection_and_names("node.page", "p1") is True
        assert not comparer.get_changelist(None, "node.page").has_changes()


# ---------------------------------------------------------------------------
# Renames
# ---------------------------------------------------------------------------


class TestRenames:
    def test_identical_pair_in_default_collection_is_rename(self) -> None:
        source, target = _storages()
        source.write("new-name", {"v": 1})
        target.write("old-name", {"v": 1})

        comparer = ContentStorageComparer(source, target)
        comparer.create_changelist_by_collection("")
        changelist = comparer.get_changelist()

        assert changelist.rename == [Rename("old-name", "new-name")]
        assert changelist.create == []
        assert changelist.delete == []
        assert changelist.as_dict()["rename"] == ["old-name -> new-name"]

    def test_no_renames_outside_default_collection(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.new", {"v": 1})
        _put(target, "node.page", "node.page.old", {"v": 1})

        comparer = ContentStorageComparer(source, target).create_changelist()
        changelist = comparer.get_changelist(None, "node.page")

        assert changelist.rename == []
        assert changelist.create == ["node.page.new"]
        assert changelist.delete == ["node.page.old"]

    def test_different_content_is_not_rename(self) -> None:
        source, target = _storages()
        source.write("new-name", {"v": 1})
        target.write("old-name", {"v": 2})

        comparer = ContentStorageComparer(source, target)
        comparer.create_changelist_by_collection("")
        assert comparer.get_changelist("rename") == []
        assert comparer.get_changelist("create") == ["new-name"]
        assert comparer.get_changelist("delete") == ["old-name"]


class TestRenamePolicies:
    @pytest.fixture
    def ambiguous(self) -> tuple[MemoryStorage, MemoryStorage]:
        """Two creates and two deletes that all serialize identically."""
        source, target = _storages()
        source.write("new-1", {"v": 1})
        source.write("new-2", {"v": 1})
        target.write("old-1", {"v": 1})
        target.write("old-2", {"v": 1})
        return source, target

    def test_first_match_pairs_in_order_and_reports(self, ambiguous, caplog) -> None:
        comparer = ContentStorageComparer(*ambiguous, rename_policy=RenamePolicy.FIRST_MATCH)
        with caplog.at_level(logging.WARNING, logger="content_sync.core.comparer"):
            comparer.create_changelist_by_collection("")

        assert comparer.get_changelist("rename") == [
            Rename("old-1", "new-1"),
            Rename("old-2", "new-2"),
        ]
        assert len(comparer.rename_collisions) == 1
        collision = comparer.rename_collisions[0]
        assert collision.old_names == ["old-1", "old-2"]
        assert collision.new_names == ["new-1", "new-2"]
        assert "Ambiguous rename" in caplog.text

    def test_unique_only_skips_ambiguous(self, ambiguous) -> None:
        comparer = ContentStorageComparer(*ambiguous, rename_policy=RenamePolicy.UNIQUE_ONLY)
        comparer.create_changelist_by_collection("")

        assert comparer.get_changelist("rename") == []
        assert comparer.get_changelist("create") == ["new-1", "new-2"]
        assert comparer.get_changelist("delete") == ["old-1", "old-2"]
        assert len(comparer.rename_collisions) == 1

    def test_unique_only_keeps_unambiguous(self) -> None:
        source, target = _storages()
        source.write("new-name", {"v": 1})
        target.write("old-name", {"v": 1})

        comparer = ContentStorageComparer(source, target, rename_policy="unique_only")
        comparer.create_changelist_by_collection("")
        assert comparer.get_changelist("rename") == [Rename("old-name", "new-name")]

    def test_disabled(self, ambiguous) -> None:
        comparer = ContentStorageComparer(*ambiguous, rename_policy=RenamePolicy.DISABLED)
        comparer.create_changelist_by_collection("")

        assert comparer.get_changelist("rename") == []
        assert comparer.rename_collisions == []
        assert len(comparer.get_changelist("create")) == 2


class TestChangeList:
    def test_get_accepts_strings_and_enum(self) -> None:
        changelist = ChangeList(create=["a"], delete=["b"])
        assert changelist.get("create") == ["a"]
        assert changelist.get(ChangeOperation.DELETE) == ["b"]

    def test_get_rejects_unknown_operation(self) -> None:
        with pytest.raises(ValueError):
            ChangeList().get("merge")

    def test_reset_collection(self) -> None:
        source, target = _storages()
        _put(source, "node.page", "node.page.p1", {})
        comparer = ContentStorageComparer(source, target).create_changelist()
        assert comparer.has_changes()

        comparer.reset_collection_changelist("node.page")
        assert not comparer.has_changes()
