"""Custom exceptions for the CouchDB client."""

import re
from enum import Enum
from typing import Any

SERVER_VERSION_PATTERN = re.compile(r"^CouchDB/(\d+)")


class ErrorCode(str, Enum):
    """Machine-readable error codes raised by CouchDB operations."""

    DB_EXISTS = "EDBEXISTS"
    DB_MISSING = "EDBMISSING"
    NOT_ADMIN = "ENOTADMIN"
    BAD_REQUEST = "EBADREQUEST"
    UNAUTHORIZED = "EUNAUTHORIZED"
    DOC_MISSING = "EDOCMISSING"
    DOC_CONFLICT = "EDOCCONFLICT"
    FIELD_MISSING = "EFIELDMISSING"
    SERVER_NOT_SUPPORTED = "ESERVERNOTSUPPORTED"
    SERVER_OLD = "ESERVEROLD"
    UNKNOWN = "EUNKNOWN"


class CouchError(Exception):
    """Base exception for all CouchDB client errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class CouchRequestError(CouchError):
    """CouchDB answered, but not the way the operation expects.

    Callers branch on ``code``. ``body`` holds the parsed response body
    (if any) and ``status_code`` the HTTP status, for diagnostics.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        body: Any = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.body = body
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.code.value} (HTTP {self.status_code}): {self.message}"
        return f"{self.code.value}: {self.message}"


def check_document_status(status_code: int, body: Any) -> None:
    """Raise for the statuses shared by insert, update and delete."""
    if status_code == 400:
        raise CouchRequestError(
            ErrorCode.BAD_REQUEST, "Invalid request body or parameters", body, status_code
        )
    elif status_code == 401:
        raise CouchRequestError(
            ErrorCode.UNAUTHORIZED, "Write privileges required", body, status_code
        )
    elif status_code == 404:
        raise CouchRequestError(ErrorCode.DOC_MISSING, "Document not found", body, status_code)
    elif status_code == 409:
        raise CouchRequestError(
            ErrorCode.DOC_CONFLICT, "Document update conflict", body, status_code
        )


def check_server_version(server_header: str | None, min_version: int = 1) -> int:
    """Ensure the ``Server`` header names CouchDB at ``min_version`` or later.

    Returns:
        The major version parsed from the header.

    Raises:
        CouchRequestError: ESERVERNOTSUPPORTED if the header doesn't match
            ``CouchDB/<major>``, ESERVEROLD if the major version is too low.
    """
    match = SERVER_VERSION_PATTERN.match(server_header or "")
    if not match:
        raise CouchRequestError(
            ErrorCode.SERVER_NOT_SUPPORTED, f"Server is not supported: {server_header}"
        )

    major = int(match.group(1))
    if major < min_version:
        raise CouchRequestError(
            ErrorCode.SERVER_OLD,
            f"Server version is too old for using this API: "
            f"{min_version} (expected), {server_header} (actual)",
        )
    return major


def unexpected_status(action: str, status_code: int, body: Any) -> CouchRequestError:
    """Build the EUNKNOWN error for a status an operation doesn't handle."""
    return CouchRequestError(
        ErrorCode.UNKNOWN,
        f"Unexpected status code while {action}: {status_code}",
        body,
        status_code,
    )
