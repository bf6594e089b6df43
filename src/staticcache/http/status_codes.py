"""
=============================================================================
HTTP STATUS CODES USED BY THE STATIC CACHE
=============================================================================

A static file handler only ever produces a handful of status codes. The
interesting ones are the two it answers itself:

    ┌────────────────────────────────────────────────────────────────────┐
    │                  STATUS CODES A STATIC SERVER SENDS                │
    ├────────┬───────────────────────────────────────────────────────────┤
    │  200   │ OK - full representation (raw, gzip or brotli body)      │
    │  304   │ Not Modified - client's cached copy is still valid,      │
    │        │                no body, only validators                  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  404   │ Not Found - sent by the fallback handler after the       │
    │        │             static cache declined the request            │
    │  405   │ Method Not Allowed - fallback for non GET/HEAD methods   │
    │  500   │ Internal Server Error - e.g. a compression failure       │
    └────────┴───────────────────────────────────────────────────────────┘

The static cache never produces 404 itself: a miss means "decline", and
the next handler in the chain decides what the client sees.
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    Extends IntEnum, so codes compare equal to plain integers:

        >>> HTTPStatus.NOT_MODIFIED == 304
        True
        >>> HTTPStatus.NOT_MODIFIED.phrase
        'Not Modified'
    """

    # 2xx SUCCESS
    OK = 200
    NO_CONTENT = 204
    PARTIAL_CONTENT = 206           # Not produced: range requests unsupported

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304              # Conditional GET/HEAD hit

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PRECONDITION_FAILED = 412

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 304 Not Modified
                     ─── ────────────
                      │       └── Reason phrase
                      └────────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self < 400

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",

    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.PRECONDITION_FAILED: "Precondition Failed",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
