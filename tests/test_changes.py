from packsync.manifest.changes import ChangeDetector
from packsync.models import PackedManifest, RenamedFile


def manifest_of(*files):
    return PackedManifest(version="1.0.0", created_at="", manifest_hash="prev-hash", files=list(files))


def test_no_previous_manifest_marks_everything_new(meta):
    changes = ChangeDetector().detect([meta("b.md", "2"), meta("a.md", "1")], None)

    assert changes.new == ["a.md", "b.md"]
    assert not (changes.modified or changes.renamed or changes.removed)


def test_unchanged_files_produce_no_entries(meta):
    prev = manifest_of(meta("a.md", "1"), meta("b.md", "2"))
    changes = ChangeDetector().detect([meta("a.md", "1"), meta("b.md", "2")], prev)

    assert changes.is_empty()


def test_new_modified_removed(meta):
    prev = manifest_of(meta("keep.md", "k"), meta("edit.md", "old"), meta("gone.md", "g"))
    current = [meta("keep.md", "k"), meta("edit.md", "new"), meta("fresh.md", "f")]

    changes = ChangeDetector().detect(current, prev)

    assert changes.new == ["fresh.md"]
    assert changes.modified == ["edit.md"]
    assert changes.removed == ["gone.md"]
    assert changes.renamed == []


def test_rename_detected_once_and_not_removed(meta, caplog):
    prev = manifest_of(meta("a.mdc", "x"))
    changes = ChangeDetector().detect([meta("b.mdc", "x")], prev)

    assert changes.renamed == [RenamedFile(from_path="a.mdc", to_path="b.mdc", hash=meta("b.mdc", "x").content_hash)]
    assert changes.new == []
    assert changes.removed == []
    assert any("a.mdc" in r.message and "b.mdc" in r.message for r in caplog.records if r.levelname == "WARNING")


def test_copy_of_existing_file_is_recorded_as_rename(meta, caplog):
    prev = manifest_of(meta("a.md", "x"))
    changes = ChangeDetector().detect([meta("a.md", "x"), meta("copy.md", "x")], prev)

    assert [(r.from_path, r.to_path) for r in changes.renamed] == [("a.md", "copy.md")]
    assert changes.new == []
    assert changes.removed == []
    assert any("copy.md" in r.message for r in caplog.records if r.levelname == "WARNING")


def test_rename_prefers_source_that_disappeared(meta):
    prev = manifest_of(meta("a.md", "x"), meta("z.md", "x"))
    changes = ChangeDetector().detect([meta("a.md", "x"), meta("moved.md", "x")], prev)

    assert [(r.from_path, r.to_path) for r in changes.renamed] == [("z.md", "moved.md")]
    assert changes.removed == []


def test_rename_source_claimed_only_once(meta):
    prev = manifest_of(meta("old.md", "x"))
    changes = ChangeDetector().detect([meta("one.md", "x"), meta("two.md", "x")], prev)

    assert [(r.from_path, r.to_path) for r in changes.renamed] == [("old.md", "one.md")]
    assert changes.new == ["two.md"]
    assert changes.removed == []


def test_swap_prefers_path_match_as_documented_policy(meta):
    # Policy: when b.md takes a.md's old content while b.md already existed
    # under other content, the path match wins; b.md is modified, no rename.
    prev = manifest_of(meta("a.md", "alpha"), meta("b.md", "beta"))
    changes = ChangeDetector().detect([meta("b.md", "alpha")], prev)

    assert changes.modified == ["b.md"]
    assert changes.renamed == []
    assert changes.removed == ["a.md"]


def test_full_swap_is_two_modifications(meta):
    prev = manifest_of(meta("a.md", "alpha"), meta("b.md", "beta"))
    changes = ChangeDetector().detect([meta("a.md", "beta"), meta("b.md", "alpha")], prev)

    assert changes.modified == ["a.md", "b.md"]
    assert changes.renamed == [] and changes.new == [] and changes.removed == []


def test_change_lists_are_disjoint(meta):
    prev = manifest_of(meta("a.md", "1"), meta("b.md", "2"), meta("c.md", "3"))
    current = [meta("a.md", "1*"), meta("moved/b.md", "2"), meta("d.md", "4")]

    changes = ChangeDetector().detect(current, prev)
    buckets = [set(changes.new), set(changes.modified), {r.to_path for r in changes.renamed}, set(changes.removed)]

    assert changes.new == ["d.md"]
    assert changes.modified == ["a.md"]
    assert [(r.from_path, r.to_path) for r in changes.renamed] == [("b.md", "moved/b.md")]
    assert changes.removed == ["c.md"]
    for i, left in enumerate(buckets):
        for right in buckets[i + 1:]:
            assert not left & right
