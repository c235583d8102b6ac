"""CouchDB API client.

This package maps async method calls onto CouchDB's HTTP API. GET requests
can go through a pluggable response cache keyed on the request URL: cached
ETags are sent as ``If-None-Match`` and a 304 answer reuses the cached body.

Usage:
    from couchdb_tools.client import CouchDB, CouchConfig
    from couchdb_tools.cache import MemoryCache

    # Defaults to http://127.0.0.1:5984, overridable via COUCHDB_* env vars
    couch = CouchDB(cache=MemoryCache())
    res = await couch.get("mydb", "doc-1")

    config = CouchConfig(host="couch.local", user="admin", password="secret")
    couch = CouchDB(config)
"""

from .api import CouchDB
from .changes import ChangesFeed
from .config import CouchConfig
from .exceptions import CouchError, CouchRequestError, ErrorCode
from .http import CouchResponse, RequestDispatcher

__all__ = [
    # Main API
    "CouchDB",
    "CouchConfig",
    "ChangesFeed",
    # Dispatch
    "CouchResponse",
    "RequestDispatcher",
    # Exceptions
    "CouchError",
    "CouchRequestError",
    "ErrorCode",
]
