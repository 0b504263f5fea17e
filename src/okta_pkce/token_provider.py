"""Public token provider surface.

Wires :class:`AuthorizationFlow` into :class:`TokenCache` and exposes the
cache management operations. :class:`TokenProvider` is used from async
code; :class:`BlockingTokenProvider` serves plain threads.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine, Iterable
from types import TracebackType
from typing import Any, Self, TypeVar

import httpx

from okta_pkce.config import TokenProviderConfig
from okta_pkce.services.cache import Clock, TokenCache
from okta_pkce.services.flow import AuthorizationFlow

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "key"

T = TypeVar("T")


def create_http_client(config: TokenProviderConfig) -> httpx.AsyncClient:
    """Create the default transport with per-round-trip timeouts."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.request_timeout, connect=config.connect_timeout),
        follow_redirects=False,
    )


class TokenProvider:
    """Caches access tokens obtained through the PKCE authorization flow.

    One provider holds independent tokens for any number of cache keys.
    Tokens are refreshed transparently once they have gone unused for the
    configured TTL, or on demand through :meth:`get_new_token`.

    Example::

        config = TokenProviderConfig.from_env()
        async with TokenProvider(config) as provider:
            token = await provider.get_token()
    """

    def __init__(
        self,
        config: TokenProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ):
        """Initialize the provider.

        Args:
            config: Provider endpoints, credentials and cache settings
            http_client: Transport to use. When omitted a client with the
                configured timeouts is created and closed with the provider.
            clock: Monotonic time source for cache expiry
        """
        self.config = config
        self._owns_http_client = http_client is None
        self._http_client = http_client or create_http_client(config)
        self.flow = AuthorizationFlow(config, self._http_client)

        cache_kwargs: dict[str, Any] = {"ttl": config.cache_ttl}
        if clock is not None:
            cache_kwargs["clock"] = clock
        self.cache = TokenCache(self._load_token, **cache_kwargs)

    @classmethod
    def from_env(cls, prefix: str = "OKTA_", **kwargs: Any) -> TokenProvider:
        """Create a provider configured from ``OKTA_*`` environment variables."""
        return cls(TokenProviderConfig.from_env(prefix), **kwargs)

    async def get_token(self, key: str = DEFAULT_CACHE_KEY) -> str:
        """Return the cached token for ``key``, acquiring one if needed."""
        return await self.cache.get(key)

    async def get_new_token(self, key: str = DEFAULT_CACHE_KEY) -> str:
        """Discard the cached token for ``key`` and return a fresh one."""
        self.cache.invalidate(key)
        return await self.cache.get(key)

    def expire_all(self) -> None:
        """Discard every cached token."""
        self.cache.invalidate_all_entries()

    def expire_keys(self, keys: Iterable[str]) -> None:
        """Discard the cached tokens for ``keys``."""
        self.cache.invalidate_all(keys)

    async def close(self) -> None:
        """Cancel running acquisitions, clear the cache and close the transport."""
        await self.cache.close()
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _load_token(self, key: str) -> str:
        logger.debug(f"Acquiring new token for key {key!r}")
        return await self.flow.acquire_token()


class BlockingTokenProvider:
    """Thread-safe synchronous front end for :class:`TokenProvider`.

    Runs a private event loop on a daemon thread. Every call is submitted
    to that loop, so the cache is only ever touched from one thread and the
    single-flight guarantee holds across all calling threads.

    Example::

        with BlockingTokenProvider(config) as provider:
            token = provider.get_token("reporting")
    """

    def __init__(
        self,
        config: TokenProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name="okta-pkce-token-provider", daemon=True
        )
        self._thread.start()
        self._closed = False

        async def _create() -> TokenProvider:
            # httpx clients bind to the loop they are first used on
            return TokenProvider(config, http_client=http_client, clock=clock)

        self._provider = self._submit(_create())

    @classmethod
    def from_env(cls, prefix: str = "OKTA_", **kwargs: Any) -> BlockingTokenProvider:
        """Create a provider configured from ``OKTA_*`` environment variables."""
        return cls(TokenProviderConfig.from_env(prefix), **kwargs)

    @property
    def provider(self) -> TokenProvider:
        return self._provider

    def get_token(self, key: str = DEFAULT_CACHE_KEY, timeout: float | None = None) -> str:
        """Return the cached token for ``key``, blocking while it is acquired."""
        return self._submit(self._provider.get_token(key), timeout)

    def get_new_token(
        self, key: str = DEFAULT_CACHE_KEY, timeout: float | None = None
    ) -> str:
        """Discard the cached token for ``key`` and block for a fresh one."""
        return self._submit(self._provider.get_new_token(key), timeout)

    def expire_all(self) -> None:
        self._call(self._provider.expire_all)

    def expire_keys(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        self._call(lambda: self._provider.expire_keys(keys))

    def close(self) -> None:
        """Close the provider and stop the loop thread. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            self._submit(self._provider.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
            self._loop.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _submit(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        if self._closed and self._loop.is_closed():
            coro.close()
            raise RuntimeError("BlockingTokenProvider is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except TimeoutError:
            # Detach this caller; the shared load keeps running for others
            future.cancel()
            raise

    def _call(self, fn: Any) -> None:
        async def _invoke() -> None:
            fn()

        self._submit(_invoke())
