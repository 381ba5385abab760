"""Unit tests for storage backends."""
import os

import pytest

from seller_analytics.core.cache_manager import CacheStore
from seller_analytics.db.storage import (
    FileStorage,
    InMemoryStorage,
    StorageQuotaExceeded,
    create_storage,
)
from seller_analytics.models.schemas import CacheKind


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    @pytest.mark.unit
    def test_read_write_delete(self):
        storage = InMemoryStorage()
        assert storage.read("k") is None

        storage.write("k", b"v")
        assert storage.read("k") == b"v"

        storage.delete("k")
        assert storage.read("k") is None

    @pytest.mark.unit
    def test_delete_missing_key_is_ignored(self):
        InMemoryStorage().delete("missing")

    @pytest.mark.unit
    def test_quota_counts_replaced_value_once(self):
        storage = InMemoryStorage(max_bytes=5)
        storage.write("k", b"12345")
        storage.write("k", b"54321")
        assert storage.read("k") == b"54321"

    @pytest.mark.unit
    def test_quota_exceeded_raises(self):
        storage = InMemoryStorage(max_bytes=5)
        storage.write("a", b"123")
        with pytest.raises(StorageQuotaExceeded):
            storage.write("b", b"456")
        assert storage.read("b") is None


class TestFileStorage:
    """Tests for FileStorage."""

    @pytest.mark.unit
    def test_creates_directory(self, temp_cache_dir):
        directory = os.path.join(temp_cache_dir, "nested", "cache")
        FileStorage(directory)
        assert os.path.isdir(directory)

    @pytest.mark.unit
    def test_round_trip_and_keys(self, temp_cache_dir):
        storage = FileStorage(temp_cache_dir)
        storage.write("paid-storage_store/1", b"{}")

        assert storage.read("paid-storage_store/1") == b"{}"
        assert storage.keys() == ["paid-storage_store/1"]

    @pytest.mark.unit
    def test_missing_key(self, temp_cache_dir):
        storage = FileStorage(temp_cache_dir)
        assert storage.read("nope") is None
        storage.delete("nope")

    @pytest.mark.unit
    def test_cache_store_survives_new_instance(self, temp_cache_dir):
        first = CacheStore(FileStorage(temp_cache_dir), clock=lambda: 1000)
        first.set(CacheKind.ORDERS, "s", {"orders": [1, 2]})

        second = CacheStore(FileStorage(temp_cache_dir), clock=lambda: 2000)
        entry = second.get(CacheKind.ORDERS, "s")

        assert entry is not None
        assert entry.data == {"orders": [1, 2]}


class TestCreateStorage:
    """Tests for the storage factory."""

    @pytest.mark.unit
    def test_memory_backend(self, test_settings):
        assert isinstance(create_storage(test_settings), InMemoryStorage)

    @pytest.mark.unit
    def test_file_backend(self, test_settings, temp_cache_dir):
        settings = test_settings.model_copy(update={"cache_backend": "file", "cache_dir": temp_cache_dir})
        storage = create_storage(settings)
        assert isinstance(storage, FileStorage)
        assert storage.directory == os.path.abspath(temp_cache_dir)

    @pytest.mark.unit
    def test_unknown_backend(self, test_settings):
        settings = test_settings.model_copy(update={"cache_backend": "redis"})
        with pytest.raises(ValueError, match="Unknown cache backend"):
            create_storage(settings)
