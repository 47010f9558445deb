"""
Tests for content storages.

Covers the YAML file storage, the SQLite snapshot storage, the in-memory
storage and the read-through cache decorator.
"""

import pytest

from content_sync.core.cache import MemoryCache
from content_sync.core.names import cache_key
from content_sync.core.storage import (
    CachedStorage,
    ContentStorage,
    DatabaseStorage,
    FileStorage,
    MemoryStorage,
    StorageError,
)

ARTICLE = "node.article.a1"
PAGE = "node.page.p1"

# ==============================================================================
# FileStorage
# ==============================================================================


class TestFileStorage:
    def test_implements_protocol(self, tmp_path) -> None:
        assert isinstance(FileStorage(tmp_path), ContentStorage)

    def test_collection_maps_to_nested_directory(self, tmp_path) -> None:
        articles = FileStorage(tmp_path).create_collection("node.article")
        assert articles.get_file_path(ARTICLE) == tmp_path / "node" / "article" / f"{ARTICLE}.yml"

    def test_write_then_read(self, tmp_path) -> None:
        articles = FileStorage(tmp_path, "node.article")
        assert articles.write(ARTICLE, {"uuid": "a1", "label": "Hello"}) is True
        assert articles.exists(ARTICLE)
        assert articles.read(ARTICLE) == {"uuid": "a1", "label": "Hello"}

    def test_read_missing_returns_none(self, tmp_path) -> None:
        assert FileStorage(tmp_path, "node.article").read(ARTICLE) is None

    def test_read_invalid_yaml_raises(self, tmp_path) -> None:
        path = tmp_path / "node" / "article" / f"{ARTICLE}.yml"
        path.parent.mkdir(parents=True)
        path.write_text("- just\n- a list\n")
        with pytest.raises(StorageError, match="Failed to decode"):
            FileStorage(tmp_path, "node.article").read(ARTICLE)

    def test_write_leaves_no_temp_files(self, tmp_path) -> None:
        articles = FileStorage(tmp_path, "node.article")
        articles.write(ARTICLE, {"uuid": "a1"})
        leftovers = list((tmp_path / "node" / "article").glob(".cs_*"))
        assert leftovers == []

    def test_list_all_only_lists_own_collection(self, tmp_path) -> None:
        storage = FileStorage(tmp_path)
        storage.write("site.uuid", {"site_uuid": "s"})
        storage.create_collection("node.article").write(ARTICLE, {"uuid": "a1"})
        storage.create_collection("node.page").write(PAGE, {"uuid": "p1"})

        assert storage.list_all() == ["site.uuid"]
        assert storage.create_collection("node.article").list_all() == [ARTICLE]

    def test_list_all_with_prefix(self, tmp_path) -> None:
        articles = FileStorage(tmp_path, "node.article")
        articles.write("node.article.a1", {})
        articles.write("node.article.b2", {})
        assert articles.list_all("node.article.b") == ["node.article.b2"]

    def test_list_missing_directory_is_empty(self, tmp_path) -> None:
        assert FileStorage(tmp_path / "nope", "node.article").list_all() == []

    def test_collection_names_skip_top_level(self, tmp_path) -> None:
        storage = FileStorage(tmp_path)
        storage.write("site.uuid", {"site_uuid": "s"})
        storage.create_collection("node.article").write(ARTICLE, {})
        storage.create_collection("taxonomy_term.tags").write("taxonomy_term.tags.t1", {})

        assert storage.get_all_collection_names() == ["node.article", "taxonomy_term.tags"]

    def test_delete(self, tmp_path) -> None:
        articles = FileStorage(tmp_path, "node.article")
        articles.write(ARTICLE, {})
        assert articles.delete(ARTICLE) is True
        assert articles.delete(ARTICLE) is False
        assert not articles.exists(ARTICLE)


# ==============================================================================
# DatabaseStorage
# ==============================================================================


class TestDatabaseStorage:
    def test_rejects_invalid_table_name(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="Invalid table name"):
            DatabaseStorage(tmp_path / "db.sqlite", table="snap; DROP")

    def test_write_then_read_in_collection(self, snapshot) -> None:
        articles = snapshot.create_collection("node.article")
        articles.write(ARTICLE, {"uuid": "a1"})

        assert articles.read(ARTICLE) == {"uuid": "a1"}
        assert articles.exists(ARTICLE)
        # Scoped by collection
        assert snapshot.read(ARTICLE) is None
        assert not snapshot.create_collection("node.page").exists(ARTICLE)

    def test_content_sync_read_ignores_collection(self, snapshot) -> None:
        snapshot.content_sync_write(ARTICLE, {"uuid": "a1"}, "node.article")
        assert snapshot.content_sync_read(ARTICLE) == {"uuid": "a1"}

    def test_content_sync_write_moves_between_collections(self, snapshot) -> None:
        snapshot.content_sync_write(ARTICLE, {"v": 1}, "node.article")
        snapshot.content_sync_write(ARTICLE, {"v": 2}, "node.other")

        assert snapshot.create_collection("node.article").read(ARTICLE) is None
        assert snapshot.create_collection("node.other").read(ARTICLE) == {"v": 2}

    def test_content_sync_write_creates_missing_table(self, tmp_path) -> None:
        storage = DatabaseStorage(tmp_path / "fresh.db")
        assert storage.content_sync_write(ARTICLE, {"uuid": "a1"}, "node.article")
        assert storage.content_sync_read(ARTICLE) == {"uuid": "a1"}

    def test_reads_without_table_are_empty(self, tmp_path) -> None:
        storage = DatabaseStorage(tmp_path / "fresh.db")
        assert storage.content_sync_read(ARTICLE) is None
        assert storage.list_all() == []
        assert storage.get_all_collection_names() == []
        assert storage.read(ARTICLE) is None

    def test_content_sync_delete(self, snapshot) -> None:
        snapshot.content_sync_write(ARTICLE, {}, "node.article")
        assert snapshot.content_sync_delete(ARTICLE) is True
        assert snapshot.content_sync_delete(ARTICLE) is False

    def test_list_all_with_prefix(self, snapshot) -> None:
        articles = snapshot.create_collection("node.article")
        articles.write("node.article.a1", {})
        articles.write("node.article.b2", {})
        assert articles.list_all() == ["node.article.a1", "node.article.b2"]
        assert articles.list_all("node.article.a") == ["node.article.a1"]

    def test_collection_names_exclude_default(self, snapshot) -> None:
        snapshot.write("site.uuid", {"site_uuid": "s"})
        snapshot.content_sync_write(PAGE, {}, "node.page")
        snapshot.content_sync_write(ARTICLE, {}, "node.article")
        assert snapshot.get_all_collection_names() == ["node.article", "node.page"]

    def test_delete_all(self, snapshot) -> None:
        snapshot.write("site.uuid", {})
        snapshot.content_sync_write(ARTICLE, {}, "node.article")
        snapshot.delete_all()
        assert snapshot.list_all() == []
        assert snapshot.get_all_collection_names() == []

    def test_delete_all_without_table(self, tmp_path) -> None:
        DatabaseStorage(tmp_path / "fresh.db").delete_all()

    def test_stores_unicode(self, snapshot) -> None:
        snapshot.content_sync_write(ARTICLE, {"label": "Café ☕"}, "node.article")
        assert snapshot.content_sync_read(ARTICLE) == {"label": "Café ☕"}


# ==============================================================================
# MemoryStorage
# ==============================================================================


class TestMemoryStorage:
    def test_collections_share_backing_data(self) -> None:
        storage = MemoryStorage()
        storage.create_collection("node.article").write(ARTICLE, {"uuid": "a1"})

        again = storage.create_collection("node.article")
        assert again.read(ARTICLE) == {"uuid": "a1"}
        assert storage.get_all_collection_names() == ["node.article"]

    def test_collection_names_skip_default_and_empty(self) -> None:
        storage = MemoryStorage()
        storage.write("site.uuid", {})
        storage.create_collection("node.page").list_all()
        assert storage.get_all_collection_names() == []

    def test_reads_are_copies(self) -> None:
        storage = MemoryStorage()
        storage.write("x", {"nested": {"v": 1}})
        storage.read("x")["nested"]["v"] = 2
        assert storage.read("x") == {"nested": {"v": 1}}

    def test_read_multiple_skips_missing(self) -> None:
        storage = MemoryStorage()
        storage.write("a", {"v": 1})
        assert storage.read_multiple(["a", "b"]) == {"a": {"v": 1}}


# ==============================================================================
# CachedStorage
# ==============================================================================


class TestCachedStorage:
    def test_read_is_memoized(self) -> None:
        backing = MemoryStorage("node.article")
        backing.write(ARTICLE, {"v": 1})
        cached = CachedStorage(backing, MemoryCache())

        assert cached.read(ARTICLE) == {"v": 1}
        backing.write(ARTICLE, {"v": 2})
        assert cached.read(ARTICLE) == {"v": 1}

    def test_cache_key_matches_pipeline_invalidation(self) -> None:
        cache = MemoryCache()
        backing = MemoryStorage("node.article")
        backing.write(ARTICLE, {"v": 1})
        cached = CachedStorage(backing, cache)
        cached.read(ARTICLE)

        assert cache_key(ARTICLE) in cache
        backing.write(ARTICLE, {"v": 2})
        cache.invalidate(cache_key(ARTICLE))
        assert cached.read(ARTICLE) == {"v": 2}

    def test_write_invalidates(self) -> None:
        backing = MemoryStorage("node.article")
        cached = CachedStorage(backing, MemoryCache())
        cached.write(ARTICLE, {"v": 1})
        cached.read(ARTICLE)
        cached.write(ARTICLE, {"v": 2})
        assert cached.read(ARTICLE) == {"v": 2}

    def test_delete_invalidates(self) -> None:
        backing = MemoryStorage("node.article")
        cached = CachedStorage(backing, MemoryCache())
        cached.write(ARTICLE, {"v": 1})
        cached.read(ARTICLE)
        assert cached.delete(ARTICLE) is True
        assert cached.read(ARTICLE) is None

    def test_create_collection_keeps_cache(self) -> None:
        cache = MemoryCache()
        cached = CachedStorage(MemoryStorage(), cache)
        pages = cached.create_collection("node.page")
        pages.write(PAGE, {"v": 1})
        pages.read(PAGE)
        assert pages.cache is cache
        assert cache_key(PAGE) in cache
