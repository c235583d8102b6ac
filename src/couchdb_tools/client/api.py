"""High-level API for CouchDB operations.

This module provides the main client interface. Each method builds one
request, hands it to the ``RequestDispatcher`` and maps the status code
onto a ``CouchRequestError`` carrying an ``ErrorCode``.
"""

import json
import logging
from typing import Any

import httpx

from ..cache.base import ResponseCache
from ..cache.registry import get_cache
from .changes import ChangesFeed
from .config import CouchConfig
from .exceptions import (
    CouchRequestError,
    ErrorCode,
    check_document_status,
    check_server_version,
    unexpected_status,
)
from .http import CouchResponse, RequestDispatcher
from .query import quote_db, quote_id

logger = logging.getLogger("couchdb-tools")

MANGO_MIN_SERVER_VERSION = 2


class CouchDB:
    """Async client for a CouchDB server.

    Usage:
        # Defaults: http://127.0.0.1:5984, no cache
        couch = CouchDB()
        await couch.create_database("mydb")
        res = await couch.insert("mydb", {"name": "Ann"})
        doc = await couch.get("mydb", res.data["id"])
        await couch.aclose()

        # Explicit configuration with a response cache
        config = CouchConfig(host="couch.local", user="admin", password="secret")
        async with CouchDB(config, cache=MemoryCache()) as couch:
            ...

        # Inject a custom transport (for testing)
        couch = CouchDB(transport=httpx.MockTransport(handler))
    """

    def __init__(
        self,
        config: CouchConfig | None = None,
        cache: ResponseCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            config: Configuration (loads from environment if None)
            cache: Optional response cache. If None and ``config.cache`` names
                a backend, that backend is created.
            transport: Optional httpx transport (for testing/advanced use)
        """
        self.config = config or CouchConfig()
        if cache is None and self.config.cache:
            cache = get_cache(self.config.cache, self.config.cache_dir)
        self._dispatcher = RequestDispatcher(self.config, cache=cache, transport=transport)

    async def __aenter__(self) -> "CouchDB":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def cache(self) -> ResponseCache | None:
        """Currently active response cache."""
        return self._dispatcher.cache

    def use_cache(self, cache: ResponseCache | None) -> None:
        """Swap the response cache.

        The old cache's ``invalidate()`` is called first; failures there
        are logged and ignored. Requests already in flight may still read
        from or write to the old cache.
        """
        old = self._dispatcher.cache
        if old is not None:
            try:
                old.invalidate()
            except Exception as e:
                logger.warning(f"Cache invalidation failed: {e!r}")
        self._dispatcher.cache = cache

    async def wait_for_cache_writes(self) -> None:
        """Wait for background cache writes scheduled by earlier GETs."""
        await self._dispatcher.wait_for_cache_writes()

    async def aclose(self) -> None:
        """Close the client and release resources."""
        await self._dispatcher.aclose()

    async def list_databases(self) -> list[str]:
        """List all databases.

        Returns:
            Database names from ``/_all_dbs``
        """
        res = await self._dispatcher.request("/_all_dbs")
        if res.status not in (200, 304):
            raise unexpected_status("listing databases", res.status, res.data)
        return res.data

    async def create_database(self, db_name: str) -> None:
        """Create a database.

        Raises:
            CouchRequestError: EDBEXISTS, ENOTADMIN, EBADREQUEST or EUNKNOWN
        """
        res = await self._dispatcher.request(f"/{quote_db(db_name)}", method="PUT")

        if res.status == 412:
            raise CouchRequestError(
                ErrorCode.DB_EXISTS, f"Database already exists: {db_name}", res.data, res.status
            )
        if res.status == 401:
            raise CouchRequestError(
                ErrorCode.NOT_ADMIN,
                f"Should be authorized as admin to create database: {res.status}",
                res.data,
                res.status,
            )
        if res.status == 400:
            reason = res.data.get("reason") if isinstance(res.data, dict) else None
            raise CouchRequestError(
                ErrorCode.BAD_REQUEST, reason or "Bad request", res.data, res.status
            )
        if res.status not in (201, 202):
            raise unexpected_status(f"creating database {db_name}", res.status, res.data)

    async def drop_database(self, db_name: str) -> None:
        """Drop a database.

        Raises:
            CouchRequestError: EDBMISSING, ENOTADMIN or EUNKNOWN
        """
        res = await self._dispatcher.request(f"/{quote_db(db_name)}", method="DELETE")

        if res.status == 404:
            raise CouchRequestError(
                ErrorCode.DB_MISSING, f"Database not found: {db_name}", res.data, res.status
            )
        if res.status == 401:
            raise CouchRequestError(
                ErrorCode.NOT_ADMIN,
                f"Should be authorized as admin to delete database: {res.status}",
                res.data,
                res.status,
            )
        if res.status not in (200, 202):
            raise unexpected_status(f"deleting database {db_name}", res.status, res.data)

    async def get(
        self, db_name: str, uri: str, query: dict[str, Any] | None = None
    ) -> CouchResponse:
        """Fetch a document or view, through the response cache if one is set.

        Args:
            db_name: Database name
            uri: Document ID or design view path
                (e.g., "_design/people/_view/by_name"), used as-is
            query: Query options; key/keys/startkey/endkey are JSON encoded

        Returns:
            CouchResponse; status is 304 when the cached body was reused

        Raises:
            CouchRequestError: EDOCMISSING or EUNKNOWN
        """
        res = await self._dispatcher.request(f"/{quote_db(db_name)}/{uri}", params=query)

        if res.status == 404:
            raise CouchRequestError(
                ErrorCode.DOC_MISSING, "Document is not found", res.data, res.status
            )
        if res.status not in (200, 304):
            raise unexpected_status("fetching documents from the database", res.status, res.data)
        return res

    async def get_attachment(
        self,
        db_name: str,
        doc_id: str,
        attachment_name: str,
        doc_revision: str | None = None,
    ) -> CouchResponse:
        """Fetch an attachment, through the response cache if one is set.

        Returns:
            CouchResponse whose data is bytes, text or JSON depending on
            the attachment's content type

        Raises:
            CouchRequestError: EDOCMISSING or EUNKNOWN
        """
        path = f"/{quote_db(db_name)}/{quote_id(doc_id)}/{quote_id(attachment_name)}"
        res = await self._dispatcher.request(path, params={"rev": doc_revision})

        if res.status == 404:
            raise CouchRequestError(
                ErrorCode.DOC_MISSING, "Attachment is not found", res.data, res.status
            )
        if res.status not in (200, 304):
            raise unexpected_status("fetching attachment from the database", res.status, res.data)
        return res

    async def insert(self, db_name: str, data: dict[str, Any]) -> CouchResponse:
        """Insert a document; CouchDB assigns an ``_id`` if none is given.

        Raises:
            CouchRequestError: EBADREQUEST, EUNAUTHORIZED, EDOCCONFLICT or EUNKNOWN
        """
        res = await self._dispatcher.request(f"/{quote_db(db_name)}", method="POST", json=data)

        check_document_status(res.status, res.data)
        if res.status not in (201, 202):
            raise unexpected_status("inserting document into the database", res.status, res.data)
        return res

    async def update(self, db_name: str, data: dict[str, Any]) -> CouchResponse:
        """Update a document. ``data`` must carry both ``_id`` and ``_rev``.

        Raises:
            CouchRequestError: EFIELDMISSING (before any request is made),
                EBADREQUEST, EUNAUTHORIZED, EDOCMISSING, EDOCCONFLICT or EUNKNOWN
        """
        if not data.get("_id") or not data.get("_rev"):
            raise CouchRequestError(
                ErrorCode.FIELD_MISSING,
                "Both _id and _rev fields should exist when updating the document",
            )

        path = f"/{quote_db(db_name)}/{quote_id(data['_id'])}"
        res = await self._dispatcher.request(path, method="PUT", json=data)

        check_document_status(res.status, res.data)
        if res.status not in (201, 202):
            raise unexpected_status("updating document in the database", res.status, res.data)
        return res

    async def delete(self, db_name: str, doc_id: str, doc_revision: str) -> CouchResponse:
        """Delete a document revision.

        Raises:
            CouchRequestError: EBADREQUEST, EUNAUTHORIZED, EDOCMISSING, EDOCCONFLICT or EUNKNOWN
        """
        path = f"/{quote_db(db_name)}/{quote_id(doc_id)}"
        res = await self._dispatcher.request(path, method="DELETE", params={"rev": doc_revision})

        check_document_status(res.status, res.data)
        if res.status not in (200, 202):
            raise unexpected_status("deleting document", res.status, res.data)
        return res

    async def insert_attachment(
        self,
        db_name: str,
        doc_id: str,
        attachment_name: str,
        body: bytes | str,
        doc_revision: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> CouchResponse:
        """Upload an attachment to a document (creating the document if needed).

        Args:
            doc_revision: Current document revision; omit for a new document

        Raises:
            CouchRequestError: EDOCCONFLICT, EUNAUTHORIZED, EDOCMISSING,
                EBADREQUEST or EUNKNOWN
        """
        path = f"/{quote_db(db_name)}/{quote_id(doc_id)}/{quote_id(attachment_name)}"
        res = await self._dispatcher.request(
            path,
            method="PUT",
            params={"rev": doc_revision},
            content=body,
            headers={"Content-Type": content_type},
        )

        check_document_status(res.status, res.data)
        if res.status not in (200, 201, 202):
            raise unexpected_status("inserting attachment", res.status, res.data)
        return res

    async def delete_attachment(
        self,
        db_name: str,
        doc_id: str,
        attachment_name: str,
        doc_revision: str,
    ) -> CouchResponse:
        """Delete an attachment from a document.

        Raises:
            CouchRequestError: EDOCMISSING, EDOCCONFLICT or EUNKNOWN
        """
        path = f"/{quote_db(db_name)}/{quote_id(doc_id)}/{quote_id(attachment_name)}"
        res = await self._dispatcher.request(path, method="DELETE", params={"rev": doc_revision})

        if res.status == 404:
            raise CouchRequestError(
                ErrorCode.DOC_MISSING, "Attachment is not found", res.data, res.status
            )
        if res.status == 409:
            raise CouchRequestError(
                ErrorCode.DOC_CONFLICT, "Document revision is not the latest", res.data, res.status
            )
        if res.status not in (200, 202):
            raise unexpected_status("deleting attachment", res.status, res.data)
        return res

    async def mango(
        self,
        db_name: str,
        mango_query: dict[str, Any] | str,
        query: dict[str, Any] | None = None,
    ) -> CouchResponse:
        """Run a Mango query against ``/{db}/_find`` (CouchDB 2 or later).

        Args:
            db_name: Database name
            mango_query: Query as a dict or JSON string
            query: Extra query-string options

        Raises:
            CouchRequestError: EBADREQUEST for an unparsable query (no request
                is made), ESERVERNOTSUPPORTED or ESERVEROLD depending on the
                ``Server`` header, then EDOCMISSING or EUNKNOWN
        """
        if isinstance(mango_query, str):
            try:
                mango_query = json.loads(mango_query)
            except ValueError:
                raise CouchRequestError(
                    ErrorCode.BAD_REQUEST, "The Mango query parameter is not parsable."
                ) from None

        if not isinstance(mango_query, dict):
            raise CouchRequestError(ErrorCode.BAD_REQUEST, "Invalid Mango query parameter.")

        res = await self._dispatcher.request(
            f"/{quote_db(db_name)}/_find", method="POST", json=mango_query, params=query
        )

        check_server_version(res.headers.get("server"), MANGO_MIN_SERVER_VERSION)

        if res.status == 404:
            raise CouchRequestError(
                ErrorCode.DOC_MISSING, "Document is not found", res.data, res.status
            )
        if res.status not in (200, 304):
            raise unexpected_status("fetching documents from the database", res.status, res.data)
        return res

    async def update_function(
        self,
        db_name: str,
        design_document: str,
        update_function_name: str,
        query: dict[str, Any] | None = None,
        doc_id: str | None = None,
    ) -> CouchResponse:
        """Call a design-document update function.

        Uses PUT against an existing document when ``doc_id`` is given,
        POST otherwise.

        Raises:
            CouchRequestError: EDOCMISSING if the design document is missing,
                EUNKNOWN for other unexpected statuses
        """
        path = (
            f"/{quote_db(db_name)}/_design/{quote_id(design_document)}"
            f"/_update/{quote_id(update_function_name)}"
        )
        if doc_id:
            method = "PUT"
            path = f"{path}/{quote_id(doc_id)}"
        else:
            method = "POST"

        res = await self._dispatcher.request(path, method=method, params=query)

        if res.status == 404:
            raise CouchRequestError(
                ErrorCode.DOC_MISSING, "Design document is not found", res.data, res.status
            )
        if res.status not in (200, 201, 202):
            raise unexpected_status("calling update function", res.status, res.data)
        return res

    async def uniqid(self, count: int = 1) -> list[str]:
        """Get server-generated UUIDs for new documents.

        Args:
            count: Number of UUIDs to fetch

        Returns:
            List of ``count`` UUID strings
        """
        if count < 1:
            raise ValueError("count must be at least 1")

        res = await self._dispatcher.request("/_uuids", params={"count": count})
        if res.status not in (200, 304):
            raise unexpected_status("fetching UUIDs", res.status, res.data)
        return res.data["uuids"]

    def changes(self, db_name: str, **params: Any) -> ChangesFeed:
        """Subscribe to a database's continuous change feed.

        Args:
            db_name: Database name
            **params: Feed options, e.g. ``since="now"``, ``include_docs=True``,
                ``heartbeat=10000``

        Returns:
            ChangesFeed to iterate; call ``unsubscribe()`` to stop it
        """
        return ChangesFeed(self._dispatcher, db_name, params)
