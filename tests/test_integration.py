"""End-to-end tests against a real CouchDB server.

Enabled with COUCHDB_INTEGRATION=1; the server is configured through the
usual COUCHDB_* variables (admin credentials are needed to create databases).
"""

import os
import re
import time

import pytest

from couchdb_tools.cache import FileCache, MemoryCache
from couchdb_tools.client import CouchDB
from couchdb_tools.client.config import CouchConfig
from couchdb_tools.client.exceptions import CouchRequestError, ErrorCode

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.environ.get("COUCHDB_INTEGRATION"),
        reason="Set COUCHDB_INTEGRATION=1 to run against a live CouchDB",
    ),
]


@pytest.fixture(params=["none", "memory", "file"])
async def live_couch(request, tmp_path):
    caches = {"none": None, "memory": MemoryCache(), "file": FileCache(tmp_path)}
    couch = CouchDB(CouchConfig(), cache=caches[request.param])
    db_name = f"sample_{int(time.time() * 1000)}_{request.param}"
    yield couch, db_name
    try:
        await couch.drop_database(db_name)
    except CouchRequestError:
        pass
    await couch.aclose()


async def test_document_lifecycle(live_couch):
    couch, db_name = live_couch

    await couch.create_database(db_name)
    with pytest.raises(CouchRequestError) as exc_info:
        await couch.create_database(db_name)
    assert exc_info.value.code == ErrorCode.DB_EXISTS

    inserted = await couch.insert(db_name, {})
    doc_id = inserted.data["id"]
    assert re.fullmatch(r"[0-9a-f]{32}", doc_id)

    first = await couch.get(db_name, doc_id)
    assert first.status == 200
    assert first.data["_id"] == doc_id

    await couch.wait_for_cache_writes()
    second = await couch.get(db_name, doc_id)
    if couch.cache is not None:
        assert second.status == 304
    assert second.data == first.data

    await couch.delete(db_name, doc_id, first.data["_rev"])
    with pytest.raises(CouchRequestError) as exc_info:
        await couch.get(db_name, doc_id)
    assert exc_info.value.code == ErrorCode.DOC_MISSING

    with pytest.raises(CouchRequestError) as exc_info:
        await couch.drop_database(f"{db_name}_missing")
    assert exc_info.value.code == ErrorCode.DB_MISSING


async def test_list_databases_and_uuids(live_couch):
    couch, db_name = live_couch
    await couch.create_database(db_name)

    dbs = await couch.list_databases()
    assert db_name in dbs
    assert all(isinstance(name, str) for name in dbs)

    assert len(await couch.uniqid()) == 1
    assert len(await couch.uniqid(5)) == 5
