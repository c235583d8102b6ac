"""File-system response cache."""

import asyncio
import json
import logging
import tempfile
from pathlib import Path

from .base import CacheEntry

logger = logging.getLogger("couchdb-tools")


class FileCache:
    """Cache storing one JSON file per key in a directory.

    Survives process restarts. File IO runs in a worker thread so the
    event loop isn't blocked.

    Usage:
        cache = FileCache("/var/cache/couchdb-tools")
        couch = CouchDB(cache=cache)
    """

    suffix = ".couchcache.json"

    def __init__(self, directory: str | Path | None = None):
        """Initialize file cache.

        Args:
            directory: Where to write entries. Defaults to the system temp dir.
        """
        self.directory = Path(directory or tempfile.gettempdir())
        self._written: set[str] = set()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}{self.suffix}"

    def _read(self, key: str) -> CacheEntry | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return CacheEntry.from_dict(data)

    def _write(self, key: str, entry: CacheEntry) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(json.dumps(entry.to_dict()), encoding="utf-8")
        self._written.add(key)

    async def get(self, key: str) -> CacheEntry | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, entry: CacheEntry) -> None:
        await asyncio.to_thread(self._write, key, entry)

    def invalidate(self) -> None:
        """Remove the cache files this instance wrote.

        Entries written by other instances sharing the directory are kept.
        """
        written, self._written = self._written, set()
        for key in written:
            self._path(key).unlink(missing_ok=True)
