"""Serve upstream data from the cache when fresh, otherwise fetch and store it."""
import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..core.cache_manager import CacheStore, KindLike, make_cache_key
from ..core.logging import get_logger

FetchFn = Callable[[], Union[Awaitable[Any], Any]]


class CachedFetcher:
    """Fetch-with-cache orchestrator over a CacheStore.

    With ``single_flight`` enabled, concurrent misses for the same
    ``(kind, store_id)`` share one upstream call and all receive its
    result or its exception.
    """

    def __init__(self, cache_store: CacheStore, single_flight: bool = True):
        """Initialize the fetcher.

        Args:
            cache_store: Cache store holding fetched payloads
            single_flight: Collapse concurrent fetches of the same key
        """
        self.cache_store = cache_store
        self.single_flight = single_flight
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def _fetch_and_store(
        self,
        kind: KindLike,
        store_id: str,
        fetch_fn: FetchFn
    ) -> Any:
        result = fetch_fn()
        if inspect.isawaitable(result):
            result = await result
        self.cache_store.set(kind, store_id, result)
        return result

    async def fetch_with_cache(
        self,
        kind: KindLike,
        store_id: str,
        ttl_ms: Optional[int],
        fetch_fn: FetchFn
    ) -> Any:
        """Return cached data for ``(kind, store_id)`` or fetch it.

        Args:
            kind: Data kind
            store_id: Store identity
            ttl_ms: TTL for this read, or None for the kind's configured TTL
            fetch_fn: Zero-argument callable returning the data (or an awaitable)

        Returns:
            The cached or freshly fetched data

        Raises:
            Whatever ``fetch_fn`` raises; nothing is cached in that case.
        """
        logger = get_logger("fetch")
        entry = self.cache_store.get(kind, store_id, ttl_ms=ttl_ms)
        if entry is not None:
            logger.debug(f"Serving {make_cache_key(kind, store_id)} from cache")
            return entry.data

        if not self.single_flight:
            logger.debug(f"Cache miss for {make_cache_key(kind, store_id)}, fetching")
            return await self._fetch_and_store(kind, store_id, fetch_fn)

        key = make_cache_key(kind, store_id)
        task = self._in_flight.get(key)
        if task is None:
            logger.debug(f"Cache miss for {key}, fetching")
            task = asyncio.ensure_future(self._fetch_and_store(kind, store_id, fetch_fn))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.debug(f"Joining in-flight fetch for {key}")

        # A cancelled caller must not cancel the shared fetch
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark a failure as retrieved even when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    def in_flight_count(self) -> int:
        """Number of upstream fetches currently in progress."""
        return len(self._in_flight)
