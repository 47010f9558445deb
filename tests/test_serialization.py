"""
Tests for entity serialization: codec, context, decorators, exporter and
importer.
"""

import base64
import logging

import pytest

from content_sync.core.serialization import (
    Alias,
    CodecError,
    ContentExporter,
    ContentImporter,
    FilesMode,
    IdsCleaner,
    Parents,
    SerializerContext,
    content_hash,
    decode,
    default_decorators,
    encode,
)
from content_sync.core.site import ContentEntity, MemoryEntityRepository

# ==============================================================================
# Helpers
# ==============================================================================


def _term(uuid: str, entity_id: int | None = None, **fields) -> ContentEntity:
    return ContentEntity(
        entity_type="taxonomy_term",
        bundle="tags",
        uuid=uuid,
        id=entity_id,
        label=uuid,
        fields=fields,
    )


def _exporter(repository) -> ContentExporter:
    return ContentExporter(repository, default_decorators(repository))


def _importer(repository, **kwargs) -> ContentImporter:
    return ContentImporter(repository, default_decorators(repository), **kwargs)


def _node_doc(uuid: str = "a1", **fields) -> dict:
    return {
        "uuid": uuid,
        "langcode": "en",
        "label": fields.pop("label", "Hello"),
        **fields,
        "_content_sync": {"entity_type": "node", "bundle": "article", "entity_dependencies": {}},
    }


# ==============================================================================
# Codec
# ==============================================================================


class TestCodec:
    def test_round_trip_keeps_key_order(self) -> None:
        text = encode({"uuid": "a1", "label": "Ünïcode", "_content_sync": {"bundle": "x"}})
        assert text.splitlines()[0] == "uuid: a1"
        assert "Ünïcode" in text
        assert decode(text)["label"] == "Ünïcode"
        assert decode(text)["_content_sync"] == {"bundle": "x"}

    def test_empty_document(self) -> None:
        assert decode("") == {}

    @pytest.mark.parametrize("text", ["- a\n- b\n", "just a string", "key: [unclosed"])
    def test_rejects_non_mappings(self, text) -> None:
        with pytest.raises(CodecError):
            decode(text)

    def test_hash_ignores_key_order(self) -> None:
        assert content_hash({"a": 1, "b": {"c": 2, "d": 3}}) == content_hash(
            {"b": {"d": 3, "c": 2}, "a": 1}
        )

    def test_hash_sees_value_changes(self) -> None:
        assert content_hash({"a": 1}) != content_hash({"a": 2})
        assert content_hash(None) != content_hash({})


# ==============================================================================
# Context
# ==============================================================================


class TestSerializerContext:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, FilesMode.FOLDER),
            ("", FilesMode.FOLDER),
            ("base64", FilesMode.BASE64),
            ("FOLDER", FilesMode.FOLDER),
            ("none", FilesMode.NONE),
            ("zip", FilesMode.NONE),
        ],
    )
    def test_files_option(self, value, expected) -> None:
        assert FilesMode.from_option(value) == expected

    def test_for_directory(self, tmp_path) -> None:
        context = SerializerContext.for_directory(tmp_path, FilesMode.FOLDER)
        assert context.entities_directory == tmp_path / "entities"
        assert context.files_directory == tmp_path / "files"

    def test_files_directory_only_in_folder_mode(self, tmp_path) -> None:
        assert SerializerContext.for_directory(tmp_path).files_directory is None

    def test_resolve_file_uri(self, tmp_path) -> None:
        schemes = {"public": tmp_path / "pub"}
        context = SerializerContext.for_directory(tmp_path, file_schemes=schemes)
        resolved = context.resolve_file_uri("public://img/a.png")
        assert resolved == ("public", tmp_path / "pub" / "img" / "a.png")
        assert context.resolve_file_uri("private://a.png") is None
        assert context.resolve_file_uri("a.png") is None


# ==============================================================================
# Decorators
# ==============================================================================


class TestIdsCleaner:
    def test_strips_ids_and_resolved_reference_ids(self) -> None:
        data = {
            "id": 4,
            "revision_id": 9,
            "uuid": "a1",
            "field_tags": [{"target_type": "t", "target_uuid": "u", "target_id": 3, "url": "/x"}],
            "field_local": [{"target_type": "t", "target_id": 5}],
        }
        IdsCleaner().decorate_on_export(_term("a1"), data)

        assert "id" not in data
        assert "revision_id" not in data
        assert data["field_tags"] == [{"target_type": "t", "target_uuid": "u"}]
        # No uuid to fall back on, so the local id stays
        assert data["field_local"] == [{"target_type": "t", "target_id": 5}]

    def test_import_is_passthrough(self) -> None:
        assert IdsCleaner().decorate_on_import({"a": 1}) == {"a": 1}


class TestParents:
    def test_parent_id_becomes_uuid_and_dependency(self) -> None:
        repository = MemoryEntityRepository([_term("root")])
        child = _term("child", parent=[{"target_id": 1}])
        data = {"parent": [{"target_id": 1}]}

        Parents(repository).decorate_on_export(child, data)

        assert data["parent"][0]["target_uuid"] == "root"
        assert data["parent"][0]["target_type"] == "taxonomy_term"
        assert data["_content_sync"]["entity_dependencies"] == {
            "taxonomy_term": ["taxonomy_term.tags.root"]
        }

    def test_root_parent_untouched(self) -> None:
        data = {"parent": [{"target_id": 0}]}
        Parents(MemoryEntityRepository()).decorate_on_export(_term("t"), data)
        assert data == {"parent": [{"target_id": 0}]}

    def test_unknown_parent_skipped(self) -> None:
        data = {"parent": [{"target_id": 42}]}
        Parents(MemoryEntityRepository()).decorate_on_export(_term("t"), data)
        assert "_content_sync" not in data


def _page(path_alias: str | None, entity_type: str = "node") -> ContentEntity:
    return ContentEntity(
        entity_type=entity_type, bundle="page", uuid="p1", id=5, path_alias=path_alias
    )


class TestAlias:
    def test_alias_exported(self) -> None:
        data: dict = {}
        Alias().decorate_on_export(_page("/about-us"), data)
        assert data == {"path": [{"alias": "/about-us"}]}

    @pytest.mark.parametrize("path_alias", [None, "", "/node/5"])
    def test_no_real_alias(self, path_alias) -> None:
        data: dict = {}
        Alias().decorate_on_export(_page(path_alias), data)
        assert data == {}

    def test_types_without_canonical_page(self) -> None:
        data: dict = {}
        Alias().decorate_on_export(_page("/x", entity_type="file"), data)
        assert data == {}

    def test_import_reads_alias(self) -> None:
        data = Alias().decorate_on_import({"uuid": "p1", "path": [{"alias": "/about-us"}]})
        assert data == {"uuid": "p1", "path_alias": "/about-us"}

    def test_import_leaves_other_path_values(self) -> None:
        assert Alias().decorate_on_import({"path": "x"}) == {"path": "x"}

    def test_alias_round_trip(self, serializer_context) -> None:
        source = MemoryEntityRepository()
        page = source.save(
            ContentEntity(
                entity_type="node", bundle="page", uuid="p1", label="About", path_alias="/about"
            )
        )
        exported = decode(_exporter(source).export_entity(page, serializer_context))
        assert exported["path"] == [{"alias": "/about"}]

        imported = _importer(MemoryEntityRepository()).import_entity(exported)
        assert imported.path_alias == "/about"
        assert "path" not in imported.fields


# ==============================================================================
# Exporter
# ==============================================================================


class TestContentExporter:
    def test_metadata_block(self, serializer_context) -> None:
        repository = MemoryEntityRepository()
        node = repository.save(
            ContentEntity(entity_type="node", bundle="article", uuid="a1", label="Hi")
        )

        data = _exporter(repository).normalize(node, serializer_context)

        assert data["uuid"] == "a1"
        assert data["label"] == "Hi"
        assert "id" not in data
        assert data["_content_sync"] == {
            "entity_type": "node",
            "bundle": "article",
            "entity_dependencies": {},
        }

    def test_references_become_dependencies(self, serializer_context) -> None:
        repository = MemoryEntityRepository()
        repository.save(_term("t1"))
        node = repository.save(
            ContentEntity(
                entity_type="node",
                bundle="article",
                uuid="a1",
                fields={
                    "field_tags": [
                        {"target_type": "taxonomy_term", "target_uuid": "t1", "target_id": 1},
                        {"target_type": "taxonomy_term", "target_uuid": "gone"},
                    ]
                },
            )
        )

        data = _exporter(repository).normalize(node, serializer_context)

        assert data["_content_sync"]["entity_dependencies"] == {
            "taxonomy_term": ["taxonomy_term.tags.t1"]
        }
        assert data["field_tags"][0] == {"target_type": "taxonomy_term", "target_uuid": "t1"}

    def test_translations_carry_own_dependencies(self, serializer_context) -> None:
        repository = MemoryEntityRepository()
        repository.save(_term("t1"))
        node = repository.save(
            ContentEntity(
                entity_type="node",
                bundle="article",
                uuid="a1",
                translations={
                    "fr": {
                        "label": "Bonjour",
                        "field_tags": [{"target_type": "taxonomy_term", "target_uuid": "t1"}],
                    }
                },
            )
        )

        data = _exporter(repository).normalize(node, serializer_context)
        french = data["_translations"]["fr"]

        assert french["langcode"] == "fr"
        assert french["label"] == "Bonjour"
        assert french["_content_sync"]["entity_dependencies"] == {
            "taxonomy_term": ["taxonomy_term.tags.t1"]
        }
        assert data["_content_sync"]["entity_dependencies"] == {}

    def test_base64_file_data(self, tmp_path) -> None:
        public = tmp_path / "public"
        (public / "img").mkdir(parents=True)
        (public / "img" / "a.png").write_bytes(b"\x89PNG")
        context = SerializerContext.for_directory(
            tmp_path / "out", FilesMode.BASE64, {"public": public}
        )
        repository = MemoryEntityRepository()
        file_entity = repository.save(
            ContentEntity(
                entity_type="file", bundle="file", uuid="f1", file_uri="public://img/a.png"
            )
        )

        data = _exporter(repository).normalize(file_entity, context)

        assert data["uri"] == "public://img/a.png"
        assert base64.b64decode(data["data"]) == b"\x89PNG"

    def test_file_data_omitted_without_base64(self, serializer_context) -> None:
        repository = MemoryEntityRepository()
        file_entity = repository.save(
            ContentEntity(entity_type="file", bundle="file", uuid="f1", file_uri="public://a.png")
        )
        data = _exporter(repository).normalize(file_entity, serializer_context)
        assert "data" not in data

    def test_export_entity_is_yaml(self, serializer_context) -> None:
        repository = MemoryEntityRepository()
        node = repository.save(ContentEntity(entity_type="node", bundle="page", uuid="p1"))
        text = _exporter(repository).export_entity(node, serializer_context)
        assert decode(text)["_content_sync"]["bundle"] == "page"


# ==============================================================================
# Importer
# ==============================================================================


class TestContentImporter:
    def test_format(self) -> None:
        assert _importer(MemoryEntityRepository()).get_format() == "yaml"

    def test_creates_then_updates_by_uuid(self) -> None:
        repository = MemoryEntityRepository()
        importer = _importer(repository)

        created = importer.import_entity(_node_doc(label="First", body="x"))
        updated = importer.import_entity(_node_doc(label="Second", body="y"))

        assert created.id == updated.id
        stored = repository.load_by_uuid("node", "a1")
        assert stored.label == "Second"
        assert stored.fields == {"body": "y"}
        assert len(repository.load_multiple("node")) == 1

    def test_input_is_not_mutated(self) -> None:
        doc = _node_doc()
        doc["_translations"] = {"fr": {"langcode": "fr", "label": "Salut"}}
        _importer(MemoryEntityRepository()).import_entity(doc)
        assert "_translations" in doc

    def test_unknown_or_missing_type(self) -> None:
        importer = _importer(MemoryEntityRepository())
        assert importer.import_entity({"uuid": "x"}) is None

        doc = _node_doc()
        doc["_content_sync"]["entity_type"] = "config"
        assert importer.import_entity(doc) is None

    def test_context_forces_entity_type(self, sync_dir) -> None:
        repository = MemoryEntityRepository()
        context = SerializerContext.for_directory(sync_dir)
        context.entity_type = "user"
        doc = {"uuid": "u1", "_content_sync": {"bundle": "user"}}

        entity = _importer(repository).import_entity(doc, context)
        assert entity.entity_type == "user"

    def test_invalid_document_returns_none(self, caplog) -> None:
        doc = _node_doc()
        del doc["uuid"]
        with caplog.at_level(logging.WARNING):
            assert _importer(MemoryEntityRepository()).import_entity(doc) is None
        assert "Invalid node document" in caplog.text

    def test_term_without_parent_gets_root(self) -> None:
        repository = MemoryEntityRepository()
        doc = {
            "uuid": "t1",
            "label": "News",
            "_content_sync": {"entity_type": "taxonomy_term", "bundle": "tags"},
        }
        term = _importer(repository).import_entity(doc)
        assert term.fields["parent"] == [{"target_id": 0}]

    def test_anonymous_user_never_overwritten(self) -> None:
        repository = MemoryEntityRepository(
            [ContentEntity(entity_type="user", bundle="user", uuid="anon", id=0, label="")]
        )
        doc = {
            "uuid": "anon",
            "label": "Hacked",
            "_content_sync": {"entity_type": "user", "bundle": "user"},
        }
        result = _importer(repository).import_entity(doc)

        assert result.id == 0
        assert repository.load_by_uuid("user", "anon").label == ""

    def test_update_entities_off_keeps_existing(self) -> None:
        repository = MemoryEntityRepository()
        _importer(repository).import_entity(_node_doc(label="Original"))

        result = _importer(repository, update_entities=False).import_entity(
            _node_doc(label="Changed")
        )
        assert result.label == "Original"
        assert repository.load_by_uuid("node", "a1").label == "Original"

    def test_references_resolved_to_local_ids(self) -> None:
        repository = MemoryEntityRepository([_term("t0"), _term("t1")])
        doc = _node_doc(
            field_tags=[
                {"target_type": "taxonomy_term", "target_uuid": "t1"},
                {"target_type": "taxonomy_term", "target_uuid": "unknown"},
            ]
        )
        node = _importer(repository).import_entity(doc)

        assert node.fields["field_tags"] == [
            {"target_type": "taxonomy_term", "target_uuid": "t1", "target_id": 2},
            {"target_type": "taxonomy_term", "target_uuid": "unknown", "target_id": None},
        ]

    def test_translations_merged(self) -> None:
        repository = MemoryEntityRepository()
        importer = _importer(repository)
        first = _node_doc()
        first["_translations"] = {"fr": {"langcode": "fr", "label": "Bonjour", "body": "fr"}}
        importer.import_entity(first)

        second = _node_doc()
        second["_translations"] = {"de": {"langcode": "de", "label": "Hallo"}}
        node = importer.import_entity(second)

        assert node.translations == {"fr": {"body": "fr"}, "de": {}}

    def test_base64_data_written_to_scheme_directory(self, tmp_path) -> None:
        public = tmp_path / "public"
        context = SerializerContext.for_directory(
            tmp_path / "sync", FilesMode.FOLDER, {"public": public}
        )
        doc = {
            "uuid": "f1",
            "uri": "public://img/a.png",
            "data": base64.b64encode(b"bytes").decode("ascii"),
            "_content_sync": {"entity_type": "file", "bundle": "file"},
        }

        entity = _importer(MemoryEntityRepository()).import_entity(doc, context)

        assert entity.file_uri == "public://img/a.png"
        assert (public / "img" / "a.png").read_bytes() == b"bytes"
        assert "data" not in entity.fields

    def test_export_then_import_round_trip(self, serializer_context) -> None:
        source = MemoryEntityRepository()
        source.save(_term("t1"))
        node = source.save(
            ContentEntity(
                entity_type="node",
                bundle="article",
                uuid="a1",
                label="Hello",
                fields={"field_tags": [{"target_type": "taxonomy_term", "target_uuid": "t1"}]},
            )
        )
        exported = decode(_exporter(source).export_entity(node, serializer_context))

        destination = MemoryEntityRepository([_term("other"), _term("t1")])
        imported = _importer(destination).import_entity(exported)

        assert imported.label == "Hello"
        assert imported.fields["field_tags"][0]["target_id"] == 2
