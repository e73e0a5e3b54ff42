"""Fragment retrieval with session caching and request coalescing.

One FragmentCache is constructed per page load and shared by the directive
resolver and the navigation engine. The backing SessionStore may outlive it
(it is scoped to the browsing session, not the page).
"""

import asyncio
import logging

from pagewire.core.browser import Location
from pagewire.core.cache import MemorySessionStore, SessionStore, cache_key
from pagewire.core.transport import Transport
from pagewire.core.types import ResourceURL
from pagewire.core.urls import resolve_url
from pagewire.errors import RetrievalError

logger = logging.getLogger(__name__)


class FragmentCache:
    """Retrieves text resources, cached by absolute URL.

    Concurrent requests for the same URL share a single in-flight retrieval.
    Failures are never cached and never retried.
    """

    def __init__(
        self,
        transport: Transport,
        location: Location,
        *,
        store: SessionStore | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            transport: Transport used for network retrieval
            location: Current document location, the default resolution base
            store: Session store for fragment content (default: in-memory)
            timeout: Ceiling in seconds per retrieval; None or 0 disables it
        """
        self._transport = transport
        self._location = location
        self._store: SessionStore = store if store is not None else MemorySessionStore()
        self._timeout = timeout or None
        self._in_flight: dict[ResourceURL, asyncio.Task[str]] = {}

    @property
    def store(self) -> SessionStore:
        """Backing session store."""
        return self._store

    @property
    def in_flight(self) -> int:
        """Number of retrievals currently pending."""
        return len(self._in_flight)

    def resolve_url(self, path: str, base: str | None = None) -> ResourceURL:
        """Resolve a path against base, or the current document location.

        Raises:
            RetrievalError: If the path cannot be resolved to a URL
        """
        try:
            return resolve_url(path, base or self._location.href)
        except ValueError as e:
            raise RetrievalError(path, reason=f"invalid URL: {e}") from e

    async def retrieve(self, path: str, *, base: str | None = None) -> str:
        """Return the text of a resource, from cache when possible.

        Args:
            path: Relative or absolute reference
            base: Resolution base (default: current document location)

        Returns:
            Resource text

        Raises:
            RetrievalError: If the underlying retrieval fails or times out
        """
        url = self.resolve_url(path, base)

        cached = self._store.get(cache_key(url))
        if cached is not None:
            logger.debug(f"Cache hit: {url}")
            return cached

        task = self._in_flight.get(url)
        if task is None:
            logger.debug(f"Fetching {url}")
            task = asyncio.create_task(self._fetch_and_store(url))
            self._in_flight[url] = task
            task.add_done_callback(lambda done, url=url: self._settle(url, done))
        else:
            logger.debug(f"Joining in-flight request: {url}")

        # Shielded so that one cancelled caller does not cancel the shared retrieval
        return await asyncio.shield(task)

    async def fetch_fresh(self, path: str, *, base: str | None = None) -> str:
        """Retrieve a resource bypassing the cache and the in-flight map.

        Raises:
            RetrievalError: If the retrieval fails or times out
        """
        return await self._fetch(self.resolve_url(path, base))

    async def _fetch_and_store(self, url: ResourceURL) -> str:
        text = await self._fetch(url)
        self._store.set(cache_key(url), text)
        return text

    async def _fetch(self, url: ResourceURL) -> str:
        try:
            if self._timeout is None:
                return await self._transport.fetch_text(url)
            return await asyncio.wait_for(self._transport.fetch_text(url), self._timeout)
        except TimeoutError as e:
            raise RetrievalError(url, reason=f"timed out after {self._timeout}s") from e

    def _settle(self, url: ResourceURL, task: asyncio.Task[str]) -> None:
        if self._in_flight.get(url) is task:
            del self._in_flight[url]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Retrieval failed: {url}: {task.exception()}")
