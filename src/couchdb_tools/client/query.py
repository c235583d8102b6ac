"""Query-string and path encoding for CouchDB endpoints."""

import json
from typing import Any
from urllib.parse import quote

# View query options CouchDB expects as JSON values rather than raw strings.
# See https://docs.couchdb.org/en/stable/api/ddoc/views.html
KEYS_TO_ENCODE = frozenset({"key", "keys", "startkey", "endkey"})

DESIGN_PREFIX = "_design/"


def encode_query(query: dict[str, Any] | None) -> dict[str, str]:
    """Prepare query parameters for the wire.

    ``key``, ``keys``, ``startkey`` and ``endkey`` are JSON encoded so
    ``{"startkey": ["Ann"]}`` is sent as ``startkey=%5B%22Ann%22%5D``.
    Other values pass through as plain strings; booleans become
    ``true``/``false`` and ``None`` values are dropped.

    The input mapping is never modified.
    """
    params: dict[str, str] = {}
    for name, value in (query or {}).items():
        if name in KEYS_TO_ENCODE:
            params[name] = json.dumps(value, separators=(",", ":"))
        elif value is None:
            continue
        elif isinstance(value, bool):
            params[name] = "true" if value else "false"
        else:
            params[name] = str(value)
    return params


def quote_id(value: str) -> str:
    """Percent-encode a document or attachment identifier.

    Matches JavaScript's ``encodeURIComponent``. The slash after a
    ``_design`` prefix is preserved so design documents stay addressable.
    """
    if value.startswith(DESIGN_PREFIX):
        return DESIGN_PREFIX + quote(value[len(DESIGN_PREFIX):], safe="!~*'()")
    return quote(value, safe="!~*'()")


def quote_db(name: str) -> str:
    """Percent-encode a database name (``/`` is legal in CouchDB names)."""
    return quote(name, safe="")
