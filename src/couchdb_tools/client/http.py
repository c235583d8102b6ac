"""HTTP dispatch with an ETag-aware response cache.

Every call the client makes goes through ``RequestDispatcher.request``.
GET requests consult the configured cache first: a hit adds an
``If-None-Match`` header, and a 304 answer is served from the cached body.
Successful (200) GET responses are written back to the cache in a detached
task the caller never waits for.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..cache.base import CacheEntry, ResponseCache, cache_key
from .config import CouchConfig
from .query import encode_query

logger = logging.getLogger("couchdb-tools")


@dataclass
class CouchResponse:
    """Uniform result of a CouchDB call."""
    data: Any
    headers: httpx.Headers
    status: int


def parse_body(response: httpx.Response) -> Any:
    """Decode a response body.

    JSON (CouchDB answers ``text/plain`` for JSON unless asked otherwise) is
    parsed, other text is returned as ``str`` and anything else as ``bytes``.
    An empty body gives None.
    """
    if not response.content:
        return None

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type or content_type.startswith("text/plain") or not content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    if content_type.startswith("text/"):
        return response.text
    return response.content


class RequestDispatcher:
    """Issues requests to CouchDB, applying the conditional-GET cache.

    Usage:
        dispatcher = RequestDispatcher(config, cache=MemoryCache())
        response = await dispatcher.request("/mydb/doc-1")
        await dispatcher.aclose()
    """

    def __init__(
        self,
        config: CouchConfig,
        cache: ResponseCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize dispatcher.

        Args:
            config: Client configuration
            cache: Optional response cache
            transport: Optional httpx transport (for testing/advanced use)
        """
        self.config = config
        self.cache = cache
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._pending_writes: set[asyncio.Task] = set()

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialize HTTP client with optional basic auth."""
        if self._client is None:
            from .. import __version__

            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                auth=self.config.auth,
                headers={"User-Agent": self.config.user_agent or f"couchdb-tools/{__version__}"},
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        path: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | str | None = None,
        headers: dict[str, str] | None = None,
    ) -> CouchResponse:
        """Perform a single request, without retries.

        Args:
            path: URL path relative to the server root (e.g., "/mydb/doc-1")
            method: HTTP method
            params: Query parameters, encoded with ``encode_query``
            json: JSON body
            content: Raw body (attachments); ignored if ``json`` is given
            headers: Extra request headers

        Returns:
            CouchResponse with parsed data, raw headers and status

        Raises:
            httpx.TransportError: Connection failures and timeouts, unchanged.
        """
        method = method.upper()
        # Snapshot so a concurrent use_cache() can't split read and write
        cache = self.cache
        use_cache = cache is not None and method == "GET"

        request = self.client.build_request(
            method,
            path,
            params=encode_query(params) or None,
            json=json,
            content=content if json is None else None,
            headers=headers,
        )
        key = cache_key(str(request.url))

        cached: CacheEntry | None = None
        if use_cache:
            cached = await cache.get(key)
            if cached is not None and cached.etag:
                logger.debug(f"Cache hit for {request.url}, etag {cached.etag}")
                request.headers["If-None-Match"] = cached.etag

        logger.debug(f"{method} {request.url}")
        response = await self.client.send(request)

        if response.status_code == 304 and cached is not None:
            data = cached.body
        else:
            data = parse_body(response)

        if response.status_code == 200 and use_cache:
            self._schedule_cache_write(
                cache, key, CacheEntry(etag=response.headers.get("etag"), body=data)
            )

        return CouchResponse(data=data, headers=response.headers, status=response.status_code)

    def stream(self, path: str, params: dict[str, Any] | None = None):
        """Open a streaming GET; the read timeout is disabled.

        Returns the ``httpx`` async context manager yielding the response.
        """
        timeout = httpx.Timeout(self.config.timeout_seconds, read=None)
        logger.debug(f"GET {path} (stream)")
        return self.client.stream(
            "GET", path, params=encode_query(params) or None, timeout=timeout
        )

    def _schedule_cache_write(self, cache: ResponseCache, key: str, entry: CacheEntry) -> None:
        task = asyncio.create_task(self._write_cache(cache, key, entry))
        self._pending_writes.add(task)
        task.add_done_callback(self._cache_write_done)

    @staticmethod
    async def _write_cache(cache: ResponseCache, key: str, entry: CacheEntry) -> None:
        await cache.set(key, entry)

    def _cache_write_done(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Cache write failed: {exc!r}")

    async def wait_for_cache_writes(self) -> None:
        """Wait until every scheduled cache write has finished."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)

    async def aclose(self) -> None:
        """Let pending cache writes settle, then close the HTTP client."""
        await self.wait_for_cache_writes()
        if self._client:
            await self._client.aclose()
            self._client = None
