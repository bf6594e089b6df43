"""
=============================================================================
HTTP PRIMITIVES
=============================================================================

The small slice of HTTP/1.1 the static cache needs:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      HTTPRequest, Accept-Encoding negotiation            │
    │ response.py     HTTPResponse (buffered or streamed), HTTP dates     │
    │ conditional.py  is_fresh(): If-Modified-Since / If-None-Match       │
    │ mime_types.py   extension → MIME type, compressibility              │
    │ status_codes.py HTTPStatus enum                                     │
    └─────────────────────────────────────────────────────────────────────┘
"""

from .request import HTTPRequest, parse_accept_encoding
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    parse_http_date,
    not_found,           # 404 Not Found
    method_not_allowed,  # 405 Method Not Allowed
    internal_error,      # 500 Internal Server Error
)
from .conditional import is_fresh
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type, is_compressible

__all__ = [
    "HTTPRequest",
    "parse_accept_encoding",

    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "parse_http_date",
    "not_found",
    "method_not_allowed",
    "internal_error",

    "is_fresh",

    "HTTPStatus",

    "get_mime_type",
    "get_content_type",
    "is_compressible",
]
