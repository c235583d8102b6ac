"""Response cache protocol for conditional GET requests.

This module defines the interface cache backends must implement to be
plugged into the client. The client never evicts entries itself; backends
own their storage and eviction policy.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class CacheEntry:
    """Cached representation of a GET response."""
    etag: str | None
    body: Any

    def to_dict(self) -> dict[str, Any]:
        return {"etag": self.etag, "body": self.body}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        return cls(etag=data.get("etag"), body=data.get("body"))


def cache_key(url: str) -> str:
    """Build the cache key for a fully-qualified request URL.

    Only the URL (query string included) identifies an entry; method,
    headers and body are not part of the key.
    """
    return hashlib.md5(url.encode("utf-8")).hexdigest()


@runtime_checkable
class ResponseCache(Protocol):
    """Protocol defining the cache backend interface.

    Backends are responsible for:
    - Storing CacheEntry objects under opaque string keys
    - Returning None for keys they don't hold
    - Any eviction or expiry policy
    """

    async def get(self, key: str) -> CacheEntry | None:
        """Fetch the entry stored under ``key``.

        Returns:
            The cached entry, or None on a miss.
        """
        ...

    async def set(self, key: str, entry: CacheEntry) -> None:
        """Store ``entry`` under ``key``, replacing any previous entry."""
        ...

    def invalidate(self) -> None:
        """Drop everything this cache holds.

        Called when the client swaps to another cache. Best effort:
        failures are logged by the client and otherwise ignored.
        """
        ...
