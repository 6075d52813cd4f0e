import json

import pytest

from packsync.exceptions import ManifestFormatError
from packsync.models import ChangeSet, ManifestRegistry, PackedManifest
from packsync.registry.store import RegistryStore, dump_document, parse_manifest


def manifest(hash_value, *files, changes=None):
    return PackedManifest(version="1.0.0", created_at="2024-01-15T10:30:00+00:00",
                          manifest_hash=hash_value, files=list(files), changes=changes)


def test_create_points_at_first_manifest(meta):
    m1 = manifest("h1", meta("a.md", "x"))
    registry = ManifestRegistry.create("./content", m1, now="T0")

    assert registry.created_at == registry.updated_at == "T0"
    assert registry.current_manifest_hash == "h1"
    assert registry.source == "./content"
    assert registry.previous_manifest() is m1


def test_record_appends_and_advances(meta):
    m1 = manifest("h1", meta("a.md", "x"))
    m2 = manifest("h2", meta("a.md", "y"))
    registry = ManifestRegistry.create("src", m1, now="T0")

    assert registry.record(m2, now="T1") is True
    assert registry.current_manifest_hash == "h2"
    assert registry.updated_at == "T1"
    assert registry.created_at == "T0"
    assert set(registry.manifests) == {"h1", "h2"}
    assert registry.manifests["h1"] is m1


def test_record_never_overwrites_stored_manifest(meta):
    m1 = manifest("h1", meta("a.md", "x"), changes=ChangeSet(new=["a.md"]))
    m2 = manifest("h2", meta("a.md", "y"))
    again = manifest("h1", meta("b.md", "x"), changes=ChangeSet())
    registry = ManifestRegistry.create("src", m1, now="T0")
    registry.record(m2, now="T1")

    assert registry.record(again, now="T2") is False
    assert registry.manifests["h1"] is m1
    assert registry.current_manifest_hash == "h1"
    assert registry.updated_at == "T2"


def test_dangling_pointer_has_no_previous(meta):
    registry = ManifestRegistry.create("src", manifest("h1", meta("a.md")), now="T0")
    registry.current_manifest_hash = "missing"

    assert registry.previous_manifest() is None


def test_store_round_trip(tmp_path, meta):
    m1 = manifest("h1", meta("a.md", "x"), changes=ChangeSet(new=["a.md"]))
    registry = ManifestRegistry.create("src", m1, now="T0")
    store = RegistryStore(tmp_path / "registry.json")

    store.save(registry)
    loaded = store.load()

    assert loaded == registry
    doc = json.loads((tmp_path / "registry.json").read_text())
    assert doc["currentManifestHash"] == "h1"
    assert doc["manifests"]["h1"]["changes"]["new"] == ["a.md"]


def test_missing_registry_is_first_pack(tmp_path):
    assert RegistryStore(tmp_path / "nope.json").load() is None


def test_corrupt_registry_is_ignored_with_warning(tmp_path, caplog):
    path = tmp_path / "registry.json"
    path.write_text("{not json")

    assert RegistryStore(path).load() is None
    assert any("registry" in r.message for r in caplog.records if r.levelname == "WARNING")


def test_structurally_invalid_registry_is_ignored(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text(json.dumps({"currentManifestHash": "h1", "manifests": {"h1": {"files": "nope"}}}))

    assert RegistryStore(path).load() is None


@pytest.mark.parametrize("changes", [
    {"new": 5},
    {"renamed": "a.md"},
    {"renamed": [{"from": "a.md", "to": 3}]},
    {"removed": [None]},
])
def test_registry_with_mistyped_changes_is_ignored(tmp_path, caplog, changes):
    doc = {
        "currentManifestHash": "h1",
        "manifests": {"h1": {"manifestHash": "h1", "files": [], "changes": changes}},
    }
    path = tmp_path / "registry.json"
    path.write_text(json.dumps(doc))

    assert RegistryStore(path).load() is None
    assert any("registry" in r.message for r in caplog.records if r.levelname == "WARNING")


def test_manifest_with_mistyped_file_entry_is_a_format_error():
    doc = {"manifestHash": "h1", "files": [{"name": "a.md", "originalPath": "a.md", "contentHash": 7}]}

    with pytest.raises(ManifestFormatError):
        parse_manifest(json.dumps(doc).encode("utf-8"), "in test")


def test_dumped_document_is_camel_case_without_nulls(meta):
    m1 = manifest("h1", meta("a.md", "x"), changes=ChangeSet(new=["a.md"]))
    doc = json.loads(dump_document(ManifestRegistry.create("src", m1, now="T0")))

    assert set(doc) == {"createdAt", "updatedAt", "currentManifestHash", "source", "manifests"}
    entry = doc["manifests"]["h1"]["files"][0]
    assert entry["originalPath"] == "a.md"
    assert "mtime" not in entry and "gitHash" not in entry


def test_reads_documents_written_by_other_tools(tmp_path):
    doc = {
        "createdAt": "2024-01-15T10:00:00.000Z",
        "updatedAt": "2024-01-15T10:30:00.000Z",
        "currentManifestHash": "7d86",
        "source": "./content",
        "manifests": {
            "7d86": {
                "version": "1.0.0",
                "createdAt": "2024-01-15T10:30:00.000Z",
                "manifestHash": "7d86",
                "files": [{
                    "name": "readme.mdc",
                    "archivedAt": "2024-01-15T10:30:00.000Z",
                    "originalPath": "docs/readme.mdc",
                    "contentHash": "a665",
                    "gitHash": "abc123def456",
                    "mtime": "2024-01-14T08:00:00.000Z",
                    "size": 2048,
                }],
                "changes": {"new": ["docs/readme.mdc"], "modified": [], "renamed": [], "removed": []},
            }
        },
    }
    path = tmp_path / "registry.json"
    path.write_text(json.dumps(doc))

    registry = RegistryStore(path).load()

    prev = registry.previous_manifest()
    assert prev.files[0].git_hash == "abc123def456"
    assert prev.files[0].size == 2048
    assert prev.changes.new == ["docs/readme.mdc"]
    assert registry.model_dump(by_alias=True)["manifests"]["7d86"]["files"][0]["originalPath"] == "docs/readme.mdc"
