"""Pytest configuration and fixtures."""

import json
import uuid

import httpx
import pytest

from couchdb_tools.cache import MemoryCache
from couchdb_tools.client import CouchDB
from couchdb_tools.client.config import CouchConfig


class FakeCouchServer:
    """Minimal in-memory CouchDB speaking just enough of the HTTP API.

    Every request is recorded in ``requests`` so tests can inspect
    what went over the wire.
    """

    def __init__(self, server_header: str = "CouchDB/3.3.3 (Erlang OTP/25)"):
        self.server_header = server_header
        self.databases: dict[str, dict[str, dict]] = {}
        self.requests: list[httpx.Request] = []
        self.find_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = [p for p in request.url.path.split("/") if p]

        if parts == ["_all_dbs"]:
            return self._json(200, sorted(self.databases))
        if parts == ["_uuids"]:
            count = int(request.url.params.get("count", "1"))
            return self._json(200, {"uuids": [uuid.uuid4().hex for _ in range(count)]})

        db_name, rest = parts[0], parts[1:]
        if not rest:
            return self._database(request, db_name)
        if db_name not in self.databases:
            return self._json(404, {"error": "not_found", "reason": "Database does not exist."})

        docs = self.databases[db_name]
        if rest == ["_find"]:
            selector = json.loads(request.content).get("selector", {})
            matches = [
                doc for doc in docs.values()
                if all(doc.get(k) == v for k, v in selector.items())
            ]
            return self._json(self.find_status, {"docs": matches})
        if len(rest) == 1:
            return self._document(request, docs, rest[0])
        return self._json(404, {"error": "not_found", "reason": "missing"})

    def _json(self, status: int, body, headers: dict | None = None) -> httpx.Response:
        headers = {"server": self.server_header, **(headers or {})}
        return httpx.Response(status, json=body, headers=headers)

    def _database(self, request: httpx.Request, db_name: str) -> httpx.Response:
        method = request.method
        if method == "PUT":
            if db_name in self.databases:
                return self._json(412, {"error": "file_exists", "reason": "The database could not be created, the file already exists."})
            self.databases[db_name] = {}
            return self._json(201, {"ok": True})
        if method == "DELETE":
            if db_name not in self.databases:
                return self._json(404, {"error": "not_found", "reason": "Database does not exist."})
            del self.databases[db_name]
            return self._json(200, {"ok": True})
        if method == "POST":
            if db_name not in self.databases:
                return self._json(404, {"error": "not_found", "reason": "Database does not exist."})
            return self._insert(request, self.databases[db_name])
        return self._json(405, {"error": "method_not_allowed"})

    def _document(self, request: httpx.Request, docs: dict, doc_id: str) -> httpx.Response:
        method = request.method
        if method == "GET":
            doc = docs.get(doc_id)
            if doc is None:
                return self._json(404, {"error": "not_found", "reason": "missing"})
            etag = f'"{doc["_rev"]}"'
            if request.headers.get("if-none-match") == etag:
                return httpx.Response(304, headers={"etag": etag, "server": self.server_header})
            return self._json(200, doc, {"etag": etag})

        if method == "PUT":
            data = json.loads(request.content)
            current = docs.get(doc_id)
            if current is not None and current["_rev"] != data.get("_rev"):
                return self._json(409, {"error": "conflict", "reason": "Document update conflict."})
            if current is None and data.get("_rev"):
                return self._json(404, {"error": "not_found", "reason": "missing"})
            return self._store(docs, doc_id, data, 201)

        if method == "DELETE":
            current = docs.get(doc_id)
            if current is None:
                return self._json(404, {"error": "not_found", "reason": "missing"})
            if current["_rev"] != request.url.params.get("rev"):
                return self._json(409, {"error": "conflict", "reason": "Document update conflict."})
            del docs[doc_id]
            return self._json(200, {"ok": True, "id": doc_id, "rev": _next_rev(current["_rev"])})

        return self._json(405, {"error": "method_not_allowed"})

    def _store(self, docs: dict, doc_id: str, data: dict, status: int) -> httpx.Response:
        rev = _next_rev(data.get("_rev"))
        docs[doc_id] = {**data, "_id": doc_id, "_rev": rev}
        return self._json(status, {"ok": True, "id": doc_id, "rev": rev})

    def _insert(self, request: httpx.Request, docs: dict) -> httpx.Response:
        data = json.loads(request.content)
        doc_id = data.get("_id") or uuid.uuid4().hex
        if doc_id in docs:
            return self._json(409, {"error": "conflict", "reason": "Document update conflict."})
        return self._store(docs, doc_id, data, 201)


def _next_rev(rev: str | None) -> str:
    generation = int(rev.split("-")[0]) + 1 if rev else 1
    return f"{generation}-{uuid.uuid4().hex}"


@pytest.fixture
def config():
    """Create a test config pointing at the default local server."""
    return CouchConfig(host="127.0.0.1", port=5984, timeout=2000)


@pytest.fixture
def server():
    """Create an empty fake CouchDB server."""
    return FakeCouchServer()


@pytest.fixture
async def couch(config, server):
    """Client talking to the fake server, without a cache."""
    client = CouchDB(config, transport=httpx.MockTransport(server))
    yield client
    await client.aclose()


@pytest.fixture
async def cached_couch(config, server):
    """Client talking to the fake server through a MemoryCache."""
    client = CouchDB(config, cache=MemoryCache(), transport=httpx.MockTransport(server))
    yield client
    await client.aclose()


@pytest.fixture
def make_couch(config):
    """Build a client whose responses come from a custom handler."""
    def factory(handler, cache=None):
        client = CouchDB(config, cache=cache, transport=httpx.MockTransport(handler))
        return client

    return factory
