"""Unit tests for the metadata index."""

import logging
from unittest.mock import patch

import orjson
import pytest

from kvstash.cache.errors import CacheStorageError
from kvstash.cache.index import INDEX_FILENAME, MetadataIndex
from kvstash.cache.validation import Validity


@pytest.fixture
def index(tmp_path):
    """Create an empty index in a temporary directory."""
    return MetadataIndex(tmp_path)


class TestIndexEntries:
    """Test in-memory index operations."""

    def test_new_index_is_empty(self, index):
        assert len(index) == 0
        assert index.keys() == []

    def test_set_and_validity(self, index):
        index.set("fresh", 2000.0)
        index.set("old", 500.0)
        index.set("forever", None)

        assert index.validity("fresh", 1000.0) is Validity.VALID
        assert index.validity("old", 1000.0) is Validity.STALE
        assert index.validity("forever", 1000.0) is Validity.VALID
        assert index.validity("missing", 1000.0) is Validity.ABSENT

    def test_validity_follows_clock(self, index):
        """Test that validity is recomputed for every call."""
        index.set("key", 1500.0)
        assert index.validity("key", 1000.0) is Validity.VALID
        assert index.validity("key", 2000.0) is Validity.STALE

    def test_expires_at(self, index):
        index.set("key", 1500.0)
        assert index.expires_at("key") == 1500.0
        with pytest.raises(KeyError):
            index.expires_at("missing")

    def test_remove(self, index):
        index.set("key", None)
        assert index.remove("key") is True
        assert index.remove("key") is False
        assert "key" not in index

    def test_keys_snapshot_allows_mutation(self, index):
        """Test that iterating keys while removing does not fail."""
        for name in ("a", "b", "c"):
            index.set(name, None)

        for key in index.keys():
            index.remove(key)

        assert len(index) == 0


class TestIndexPersistence:
    """Test loading and persisting the index file."""

    def test_load_without_file(self, index):
        index.load()
        assert len(index) == 0

    def test_persist_and_load(self, tmp_path, index):
        index.set("a", 1234.5)
        index.set("b", None)
        index.persist()

        reloaded = MetadataIndex(tmp_path)
        reloaded.load()

        assert reloaded.items() == [("a", 1234.5), ("b", None)]

    def test_persist_format(self, tmp_path, index):
        index.set("a", None)
        index.persist()

        data = orjson.loads((tmp_path / INDEX_FILENAME).read_bytes())
        assert data["schema_version"] == "1.0"
        assert data["use_compression"] is False
        assert data["entries"] == {"a": None}

    def test_compression_mode_round_trip(self, tmp_path):
        index = MetadataIndex(tmp_path, use_compression=True)
        index.set("a", None)
        index.persist()

        reloaded = MetadataIndex(tmp_path)
        assert reloaded.stored_compression is None
        reloaded.load()
        assert reloaded.stored_compression is True

    def test_index_without_compression_mode(self, tmp_path, index):
        payload = {"schema_version": "1.0", "entries": {"a": None}}
        (tmp_path / INDEX_FILENAME).write_bytes(orjson.dumps(payload))

        index.load()

        assert index.stored_compression is None
        assert index.keys() == ["a"]

    def test_persist_leaves_no_temp_file(self, tmp_path, index):
        index.set("a", None)
        index.persist()

        assert [p.name for p in tmp_path.iterdir()] == [INDEX_FILENAME]

    def test_load_replaces_memory(self, tmp_path, index):
        index.set("a", None)
        index.persist()
        index.set("b", None)

        index.load()
        assert index.keys() == ["a"]

    def test_corrupted_file_starts_empty(self, tmp_path, index, caplog):
        (tmp_path / INDEX_FILENAME).write_text("{not json")

        with caplog.at_level(logging.WARNING, logger="kvstash.cache.index"):
            index.load()

        assert len(index) == 0
        assert "unreadable cache index" in caplog.text

    def test_missing_entries_table(self, tmp_path, index):
        (tmp_path / INDEX_FILENAME).write_bytes(orjson.dumps(["a", "b"]))
        index.load()
        assert len(index) == 0

    def test_malformed_entries_skipped(self, tmp_path, index):
        payload = {"entries": {"good": 10, "bad": "tomorrow", "flag": True}}
        (tmp_path / INDEX_FILENAME).write_bytes(orjson.dumps(payload))

        index.load()

        assert index.items() == [("good", 10.0)]

    def test_persist_recreates_directory(self, tmp_path):
        index = MetadataIndex(tmp_path / "gone")
        index.set("a", None)
        index.persist()

        assert (tmp_path / "gone" / INDEX_FILENAME).is_file()

    def test_persist_failure(self, tmp_path, index):
        index.set("a", None)

        with patch("kvstash.cache.index.os.replace", side_effect=OSError("disk error")):
            with pytest.raises(CacheStorageError, match="Cannot write cache index"):
                index.persist()

        assert list(tmp_path.iterdir()) == []
