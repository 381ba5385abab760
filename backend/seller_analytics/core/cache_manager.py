"""TTL-governed cache over a pluggable key-value substrate.

Entries are stored whole as UTF-8 JSON under ``"<kind>_<store_id>"``:

    {"data": <payload>, "timestamp": <epoch-ms>, "storeId": "<store_id>"}

Expired and unreadable entries are treated as misses and removed on read.
Substrate failures never escape this module; they are logged and the
operation degrades to a miss or a skipped write.
"""
import json
import time
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from ..db.storage import StoragePort
from ..models.schemas import CacheEntry, CacheKind
from .logging import get_logger

DEFAULT_TTL_MS = 15 * 60 * 1000

CACHE_TTL_MS: Dict[str, int] = {
    CacheKind.WAREHOUSE_REMAINS.value: 15 * 60 * 1000,
    CacheKind.ORDERS.value: 30 * 60 * 1000,
    CacheKind.SALES.value: 30 * 60 * 1000,
    CacheKind.COEFFICIENTS.value: 60 * 60 * 1000,
    CacheKind.PAID_STORAGE.value: 60 * 60 * 1000,
}

KindLike = Union[CacheKind, str]


def _kind_value(kind: KindLike) -> str:
    return kind.value if isinstance(kind, CacheKind) else str(kind)


def make_cache_key(kind: KindLike, store_id: str) -> str:
    """Build the substrate key for a ``(kind, store_id)`` pair."""
    return f"{_kind_value(kind)}_{store_id}"


def epoch_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def format_cache_age(seconds: Optional[int]) -> str:
    """Format a cache age for display.

    Args:
        seconds: Age in seconds, or None if nothing is cached

    Returns:
        Short human-readable age such as "5 min ago"
    """
    if seconds is None:
        return "never"
    if seconds < 60:
        return f"{seconds} s ago"
    if seconds < 3600:
        return f"{seconds // 60} min ago"
    if seconds < 86400:
        return f"{seconds // 3600} h ago"
    return f"{seconds // 86400} d ago"


class CacheStore:
    """Cache of upstream payloads keyed by data kind and store."""

    def __init__(
        self,
        storage: StoragePort,
        clock: Optional[Callable[[], int]] = None,
        ttl_table: Optional[Dict[str, int]] = None,
        default_ttl_ms: int = DEFAULT_TTL_MS
    ):
        """Initialize the cache store.

        Args:
            storage: Key-value substrate holding serialized entries
            clock: Callable returning the current time in epoch milliseconds
            ttl_table: TTL per kind in milliseconds (defaults to CACHE_TTL_MS)
            default_ttl_ms: TTL used for kinds missing from the table
        """
        self.storage = storage
        self.clock = clock or epoch_millis
        self.ttl_table = dict(CACHE_TTL_MS if ttl_table is None else ttl_table)
        self.default_ttl_ms = default_ttl_ms

    def config(self, kind: KindLike) -> int:
        """Return the TTL in milliseconds for ``kind``."""
        return self.ttl_table.get(_kind_value(kind), self.default_ttl_ms)

    def _read_raw(self, key: str) -> Optional[bytes]:
        try:
            return self.storage.read(key)
        except Exception as e:
            get_logger("cache").warning(f"[Cache] Could not read {key}, treating as miss: {e}")
            return None

    def _remove(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except Exception as e:
            get_logger("cache").warning(f"[Cache] Could not remove {key}: {e}")

    def _load_entry(self, key: str) -> Optional[CacheEntry]:
        """Read and parse the entry under ``key``; corrupt entries are evicted."""
        raw = self._read_raw(key)
        if raw is None:
            return None

        try:
            return CacheEntry.model_validate(json.loads(raw))
        except (ValueError, TypeError, ValidationError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            get_logger("cache").warning(f"[Cache] Corrupt entry for {key}, discarding: {e}")
            self._remove(key)
            return None

    def get(
        self,
        kind: KindLike,
        store_id: str,
        ttl_ms: Optional[int] = None
    ) -> Optional[CacheEntry]:
        """Get a fresh entry for ``(kind, store_id)``.

        Args:
            kind: Data kind
            store_id: Store identity
            ttl_ms: Optional TTL overriding the kind's configured TTL

        Returns:
            The cached entry, or None when absent, corrupt or expired
        """
        logger = get_logger("cache")
        key = make_cache_key(kind, store_id)
        entry = self._load_entry(key)
        if entry is None:
            logger.debug(f"[Cache] No cache found for {key}")
            return None

        ttl = self.config(kind) if ttl_ms is None else ttl_ms
        age = self.clock() - entry.timestamp
        if age > ttl:
            logger.debug(f"[Cache] Cache expired for {key} (age: {age}ms, ttl: {ttl}ms)")
            self._remove(key)
            return None

        logger.debug(f"[Cache] Cache hit for {key} (age: {age // 1000}s)")
        return entry

    def set(self, kind: KindLike, store_id: str, data: Any) -> None:
        """Write ``data`` for ``(kind, store_id)``, replacing any previous entry.

        Serialization and write failures are logged and otherwise ignored.
        """
        logger = get_logger("cache")
        key = make_cache_key(kind, store_id)

        try:
            payload = {
                "data": to_jsonable_python(data),
                "timestamp": self.clock(),
                "storeId": store_id,
            }
            self.storage.write(key, json.dumps(payload, ensure_ascii=False).encode("utf-8"))
        except Exception as e:
            logger.warning(f"[Cache] Could not save {key}: {e}")
            return

        logger.debug(f"[Cache] Saved {key}, expires in {self.config(kind) // 1000}s")

    def clear(self, kind: KindLike, store_id: str) -> None:
        """Remove a single entry."""
        self._remove(make_cache_key(kind, store_id))

    def clear_store(self, store_id: str) -> None:
        """Remove every known kind of entry for ``store_id``."""
        for kind in self.ttl_table:
            self._remove(make_cache_key(kind, store_id))
        get_logger("cache").debug(f"[Cache] Cleared all cache for store {store_id}")

    def clear_all(self) -> None:
        """Remove every entry whose key starts with a known kind prefix."""
        try:
            keys: List[str] = self.storage.keys()
        except Exception as e:
            get_logger("cache").warning(f"[Cache] Could not list cache keys: {e}")
            return

        prefixes = tuple(f"{kind}_" for kind in self.ttl_table)
        for key in keys:
            if key.startswith(prefixes):
                self._remove(key)

    def age_seconds(self, kind: KindLike, store_id: str) -> Optional[int]:
        """Age of the stored entry in whole seconds, ignoring expiry.

        Returns:
            Age in seconds or None if no readable entry exists
        """
        key = make_cache_key(kind, store_id)
        raw = self._read_raw(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate(json.loads(raw))
        except (ValueError, TypeError, ValidationError):
            return None
        return round((self.clock() - entry.timestamp) / 1000)
