"""Key-value substrates behind the cache store.

The cache only needs whole-value reads and writes under a string key, so
any backend implementing :class:`StoragePort` can be plugged in.
"""
import os
from typing import Dict, List, Optional, Protocol
from urllib.parse import quote, unquote

from ..config import Settings, get_settings


class StorageError(Exception):
    """Raised when the underlying substrate cannot complete an operation."""


class StorageQuotaExceeded(StorageError):
    """Raised when a write would exceed the substrate's capacity."""


class StoragePort(Protocol):
    """Interface of a persistent key-value substrate."""

    def read(self, key: str) -> Optional[bytes]:
        """Return the stored value, or None if the key is absent."""
        ...

    def write(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        ...

    def keys(self) -> List[str]:
        """List all stored keys."""
        ...


class InMemoryStorage:
    """Dictionary-backed storage with an optional byte quota."""

    def __init__(self, max_bytes: Optional[int] = None):
        self._data: Dict[str, bytes] = {}
        self.max_bytes = max_bytes

    def _used_bytes(self, excluding: Optional[str] = None) -> int:
        return sum(
            len(value) for key, value in self._data.items() if key != excluding
        )

    def read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def write(self, key: str, value: bytes) -> None:
        if self.max_bytes is not None:
            if self._used_bytes(excluding=key) + len(value) > self.max_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {len(value)} bytes to {key} exceeds quota of {self.max_bytes}"
                )
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class FileStorage:
    """Directory-backed storage, one file per key."""

    suffix = ".json"

    def __init__(self, directory: str = "cache"):
        """Initialize file storage.

        Args:
            directory: Directory for cache files, created if missing
        """
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, quote(key, safe="") + self.suffix)

    def read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def write(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            with open(path, 'wb') as f:
                f.write(value)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not delete {key}: {e}") from e

    def keys(self) -> List[str]:
        try:
            names = os.listdir(self.directory)
        except OSError as e:
            raise StorageError(f"Could not list {self.directory}: {e}") from e
        return [
            unquote(name[:-len(self.suffix)])
            for name in names
            if name.endswith(self.suffix)
        ]


def create_storage(settings: Optional[Settings] = None) -> StoragePort:
    """Build the storage backend selected by ``settings.cache_backend``."""
    settings = settings or get_settings()
    if settings.cache_backend == "memory":
        return InMemoryStorage()
    if settings.cache_backend == "file":
        return FileStorage(os.path.abspath(settings.cache_dir))
    raise ValueError(f"Unknown cache backend: {settings.cache_backend}")
