"""Cache backend lookup by name, including plugin discovery."""

import logging
from importlib.metadata import entry_points

from .base import ResponseCache

logger = logging.getLogger("couchdb-tools")

ENTRY_POINT_GROUP = "couchdb_tools.caches"


def _builtin(name: str, directory: str | None) -> ResponseCache | None:
    if name == "memory":
        from .memory import MemoryCache

        return MemoryCache()
    if name == "file":
        from .filesystem import FileCache

        return FileCache(directory)
    return None


def get_cache(name: str, directory: str | None = None) -> ResponseCache:
    """Create a cache backend by name.

    Built-in backends are "memory" and "file". Other names are looked up
    among entry points in the ``couchdb_tools.caches`` group; the entry
    point must resolve to a zero-argument callable returning a cache.

    Args:
        name: Backend name
        directory: Storage directory for the "file" backend

    Raises:
        ValueError: If no backend is registered under ``name``
            or its plugin fails to import.
    """
    cache = _builtin(name.lower(), directory)
    if cache is not None:
        return cache

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        if ep.name == name:
            try:
                factory = ep.load()
            except Exception as e:
                logger.warning(f"Failed to load plugin cache {ep.name}: {e}")
                raise ValueError(f"Cache backend {name} could not be loaded: {e}") from e
            cache = factory()
            logger.info(f"Loaded plugin cache: {ep.name}")
            return cache

    raise ValueError(f"Unknown cache backend: {name}")
