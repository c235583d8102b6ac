"""In-process response cache."""

from .base import CacheEntry


class MemoryCache:
    """Dict-backed cache living for the lifetime of the process.

    Entries are never evicted; call ``invalidate()`` to drop them.
    """

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def invalidate(self) -> None:
        self._entries.clear()
