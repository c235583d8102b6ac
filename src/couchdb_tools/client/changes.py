"""Continuous change-feed subscriptions."""

import asyncio
import json
import logging
from typing import Any

from .exceptions import CouchRequestError, ErrorCode, unexpected_status
from .http import RequestDispatcher, parse_body
from .query import quote_db

logger = logging.getLogger("couchdb-tools")

_END = object()


def parse_change(line: str) -> dict[str, Any] | None:
    """Parse one line of a continuous feed.

    Returns None for heartbeats (blank lines) and malformed lines.
    """
    line = line.strip()
    if not line:
        return None
    try:
        change = json.loads(line)
    except ValueError:
        logger.debug(f"Dropping malformed change line: {line[:200]!r}")
        return None
    if not isinstance(change, dict):
        logger.debug(f"Dropping non-object change line: {line[:200]!r}")
        return None
    return change


class ChangesFeed:
    """Handle for a subscription to a database's ``_changes`` feed.

    The connection opens on first iteration (or on ``async with``) and
    stays open until ``unsubscribe()`` is called or the server ends the
    feed. There is no automatic reconnect.

    At most ``max_queued`` changes are buffered; once the buffer is full
    the reader stops pulling from the connection until the consumer
    catches up.

    Usage:
        async with couch.changes("mydb", since="now") as feed:
            async for change in feed:
                if change.get("id") == "stop":
                    feed.unsubscribe()
    """

    max_queued = 1000

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        db_name: str,
        params: dict[str, Any] | None = None,
        max_queued: int | None = None,
    ):
        self.db_name = db_name
        self.params = {**(params or {}), "feed": "continuous"}
        self._dispatcher = dispatcher
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queued or self.max_queued)
        self._task: asyncio.Task | None = None
        self._error: BaseException | None = None
        self._closed = False
        self._end_pending = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Open the feed connection in a background task (idempotent)."""
        if self._task is None and not self._closed:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        path = f"/{quote_db(self.db_name)}/_changes"
        try:
            async with self._dispatcher.stream(path, self.params) as response:
                if response.status_code != 200:
                    await response.aread()
                    body = parse_body(response)
                    if response.status_code == 404:
                        raise CouchRequestError(
                            ErrorCode.DB_MISSING,
                            f"Database not found: {self.db_name}",
                            body,
                            response.status_code,
                        )
                    raise unexpected_status("reading changes feed", response.status_code, body)

                async for line in response.aiter_lines():
                    change = parse_change(line)
                    if change is not None:
                        await self._queue.put(change)
            logger.debug(f"Changes feed for {self.db_name} ended by server")
        except asyncio.CancelledError:
            logger.debug(f"Changes feed for {self.db_name} cancelled")
            raise
        except Exception as e:
            self._error = e
        finally:
            self._put_end()

    def _put_end(self) -> None:
        try:
            self._queue.put_nowait(_END)
        except asyncio.QueueFull:
            # Delivered by __anext__ once the buffer drains
            self._end_pending = True

    def unsubscribe(self) -> None:
        """Abort the underlying connection; iteration then stops."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        # The task may be cancelled before it ever runs its cleanup
        self._put_end()

    async def aclose(self) -> None:
        """Unsubscribe and wait for the connection to be torn down."""
        self.unsubscribe()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def __aiter__(self) -> "ChangesFeed":
        self.start()
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._end_pending and self._queue.empty():
            item = _END
        else:
            item = await self._queue.get()
        if item is _END:
            # Keep the sentinel for any later __anext__ calls
            self._put_end()
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "ChangesFeed":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

