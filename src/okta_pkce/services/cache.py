"""Keyed single-flight token cache with access-based expiry.

Each key holds at most one cached token and at most one in-flight load.
Concurrent misses on the same key join the running load instead of
starting another, so the identity provider sees one acquisition per key
no matter how many callers are waiting.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from okta_pkce.config import DEFAULT_CACHE_TTL
from okta_pkce.models.errors import CacheLoadError, TokenAcquisitionCancelled

logger = logging.getLogger(__name__)

Loader = Callable[[str], Awaitable[str]]
Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """A cached token and the time it was last read."""

    key: str
    value: str = field(repr=False)
    last_access: float


@dataclass
class _InFlightLoad:
    task: asyncio.Task[str]
    waiters: int = 0


class TokenCache:
    """Mapping from cache key to opaque token, loaded on demand.

    Entries expire when they have not been read for longer than ``ttl``
    seconds. Expiry is checked lazily on access; :meth:`cleanup_expired`
    sweeps the whole map. An expired entry is never returned.

    All state is owned by the event loop the cache is used from. Mutations
    happen between awaits, so no lock is needed within that loop.
    """

    def __init__(
        self,
        loader: Loader,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Clock = time.monotonic,
    ):
        """Initialize an empty cache.

        Args:
            loader: Coroutine function producing the token for a key
            ttl: Seconds an entry survives without being read
            clock: Monotonic time source
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._loader = loader
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._loads: dict[str, _InFlightLoad] = {}

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries.values() if not self._is_expired(entry, now))

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._is_expired(entry, self._clock())

    async def get(self, key: str) -> str:
        """Return the token for ``key``, loading it if absent or expired.

        Every caller that arrives while a load for ``key`` is running waits
        for that same load and receives its value or its error.

        Raises:
            CacheLoadError: The load failed; ``cause`` holds the loader error
            TokenAcquisitionCancelled: The load was cancelled from outside
            asyncio.CancelledError: This caller was cancelled while waiting
        """
        entry = self._get_fresh_entry(key)
        if entry is not None:
            entry.last_access = self._clock()
            logger.debug(f"Token cache hit for key {key!r}")
            return entry.value

        load = self._loads.get(key)
        if load is None:
            logger.debug(f"Token cache miss for key {key!r}, starting load")
            load = _InFlightLoad(
                task=asyncio.create_task(self._load(key), name=f"token-load:{key}")
            )
            self._loads[key] = load
        else:
            logger.debug(f"Token cache miss for key {key!r}, joining running load")

        load.waiters += 1
        try:
            # shield: one waiter being cancelled must not cancel the shared load
            return await asyncio.shield(load.task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if load.task.cancelled() and not (current and current.cancelling()):
                raise TokenAcquisitionCancelled(
                    f"Token load for key {key!r} was cancelled"
                ) from None
            raise
        finally:
            load.waiters -= 1
            if load.waiters == 0 and not load.task.done():
                logger.debug(f"Last waiter left, cancelling token load for key {key!r}")
                self._release(key, load.task)
                load.task.cancel()

    def invalidate(self, key: str) -> None:
        """Drop the entry for ``key``. Running loads are not affected."""
        if self._entries.pop(key, None) is not None:
            logger.debug(f"Invalidated token for key {key!r}")

    def invalidate_all(self, keys: Iterable[str]) -> None:
        """Drop the entries for ``keys``; absent keys are ignored."""
        for key in keys:
            self.invalidate(key)

    def invalidate_all_entries(self) -> None:
        """Drop every cached entry."""
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Invalidated all {count} cached tokens")

    def cleanup_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items() if self._is_expired(entry, now)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def close(self) -> None:
        """Cancel running loads and clear the cache.

        Callers still waiting on a cancelled load receive
        :class:`TokenAcquisitionCancelled`.
        """
        tasks = [load.task for load in self._loads.values()]
        self._loads.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()

    async def _load(self, key: str) -> str:
        try:
            value = await self._loader(key)
        except Exception as e:
            logger.warning(f"Token load for key {key!r} failed: {e}")
            raise CacheLoadError(key, e) from e
        finally:
            self._release(key, asyncio.current_task())

        self._entries[key] = CacheEntry(key=key, value=value, last_access=self._clock())
        return value

    def _release(self, key: str, task: asyncio.Task | None) -> None:
        load = self._loads.get(key)
        if load is not None and load.task is task:
            del self._loads[key]

    def _get_fresh_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            logger.debug(f"Cached token for key {key!r} expired")
            del self._entries[key]
            return None
        return entry

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.last_access > self.ttl
