"""CouchDB Tools - Async CouchDB client with an ETag-aware response cache."""

from couchdb_tools.cache import CacheEntry, FileCache, MemoryCache, ResponseCache
from couchdb_tools.client import CouchDB
from couchdb_tools.client.config import CouchConfig
from couchdb_tools.client.exceptions import (
    CouchError,
    CouchRequestError,
    ErrorCode,
)

try:
    from importlib.metadata import PackageNotFoundError, version
    __version__ = version("couchdb-tools")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development

__all__ = [
    "CacheEntry",
    "CouchConfig",
    "CouchDB",
    "CouchError",
    "CouchRequestError",
    "ErrorCode",
    "FileCache",
    "MemoryCache",
    "ResponseCache",
    "__version__",
]
