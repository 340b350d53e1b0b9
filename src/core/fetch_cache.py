"""
Keyed, TTL-bounded cache with in-flight request deduplication.

Each key moves through Absent -> Fetching -> Fresh -> Stale -> Fetching ...
Concurrent callers for a key that is already Fetching join the pending call
instead of issuing their own. Failures are never cached.

The check for a usable entry and the registration of a new in-flight fetch
happen without an intervening await, so on a single event loop two callers
can never both start a fetch for the same key.
"""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0  # 5 minutes


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A fetched value and when it was fetched (clock seconds)."""

    key: str
    value: T
    fetched_at: float


def _consume_exception(task: "asyncio.Task[object]") -> None:
    # Waiters may all have gone away; retrieve the exception so asyncio
    # doesn't report it as never retrieved.
    if not task.cancelled():
        task.exception()


class FetchCache(Generic[T]):
    """
    Process-wide cache for one kind of remote resource.

    Keys are composite strings such as "orders:{user_id}" or "loyalty:{email}".
    The clock is injectable so tests can move time across the TTL boundary.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    @property
    def ttl_seconds(self) -> float:
        """Maximum age of a served entry."""
        return self._ttl

    def _is_fresh(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.fetched_at <= self._ttl

    async def get(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for key, joining or starting a fetch if needed.

        Args:
            key: Composite resource key.
            fetcher: Zero-argument coroutine function that loads the value.
                Only called on Absent/Stale.

        Returns:
            The fresh cached value, or the result of the (possibly shared) fetch.

        Raises:
            Whatever the fetcher raised. Every caller joined to a failed fetch
            receives the same exception and the key returns to Absent.
        """
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            logger.debug("fetch_cache_hit cache=%s key=%s", self._name, key)
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            logger.debug("fetch_cache_miss cache=%s key=%s", self._name, key)
            task = asyncio.ensure_future(self._fetch(key, fetcher))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task
        else:
            logger.debug("fetch_cache_join cache=%s key=%s", self._name, key)

        # A caller that is cancelled stops waiting; the shared fetch still
        # completes and populates the cache for everyone else.
        return await asyncio.shield(task)

    async def _fetch(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        current = asyncio.current_task()
        registered = False
        try:
            value = await fetcher()
        except Exception as e:
            logger.debug(
                "fetch_cache_fetch_failed cache=%s key=%s error=%s", self._name, key, e,
            )
            raise
        finally:
            registered = self._in_flight.get(key) is current
            if registered:
                del self._in_flight[key]

        # A fetch detached by invalidate() still answers its own waiters but
        # its value is not stored.
        if registered:
            self._entries[key] = CacheEntry(key=key, value=value, fetched_at=self._clock())
        return value

    def is_fetching(self, key: str) -> bool:
        """Check whether a fetch for key is in flight."""
        return key in self._in_flight

    def invalidate(self, key: str) -> None:
        """
        Force the next get() for key to fetch regardless of TTL.

        Used after a mutation that changes the resource (e.g. a points
        redemption). A fetch already in flight is detached: its current
        waiters still receive its result, but new callers start a fresh fetch.
        """
        self._entries.pop(key, None)
        self._in_flight.pop(key, None)
        logger.debug("fetch_cache_invalidate cache=%s key=%s", self._name, key)

    def clear(self) -> None:
        """Drop every entry and detach every in-flight fetch."""
        self._entries.clear()
        self._in_flight.clear()
