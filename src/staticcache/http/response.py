"""
=============================================================================
HTTP RESPONSE
=============================================================================

Builds HTTP/1.1 responses. A response body comes in one of two shapes:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       BUFFERED VS STREAMED BODY                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   BUFFERED (body=b"...")              STREAMED (stream=iterator)    │
    │   ──────────────────────              ────────────────────────────  │
    │   Whole body in memory                Chunks produced on demand     │
    │   Content-Length = len(body)          Content-Length known only for │
    │                                       raw files; dropped when the   │
    │   Used for cached file contents       chunks are gzipped on the fly │
    │   and cached gzip/brotli buffers                                    │
    │                                       Used when file contents are   │
    │                                       not held in memory            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Writers call iter_body() and never need to know which shape they got.

=============================================================================
HTTP DATES
=============================================================================

Last-Modified and If-Modified-Since use the RFC 7231 IMF-fixdate format:

    Wed, 15 Jun 2024 10:00:00 GMT

The format has one-second resolution. Comparisons between a file's mtime
and a client's validator must therefore happen on whole seconds.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, Any, Union, Iterable, Iterator
import json

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Exactly one of `body` and `stream` carries the payload. A response
    with `stream` set ignores `body`.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[Iterable[bytes]] = None
    version: str = "HTTP/1.1"

    # Answer to a HEAD request: headers describe a body that is not sent
    headers_only: bool = False

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 304 Not Modified"."""
        return f"{self.version} {self.status} {self.status.phrase}"

    @property
    def is_streamed(self) -> bool:
        return self.stream is not None

    @property
    def body_length(self) -> Optional[int]:
        """
        Bytes the body will occupy on the wire, if known.

        Buffered bodies know their size. Streams only know it through a
        Content-Length header set by the handler; a gzip stream doesn't.
        """
        if self.headers_only:
            return 0
        if self.stream is None:
            return len(self.body)

        value = self.get_header("Content-Length")
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for method chaining."""
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a response header, matching the name case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def remove_header(self, name: str) -> "HTTPResponse":
        """Remove a response header (case-insensitive). Missing is fine."""
        lowered = name.lower()
        for key in [key for key in self.headers if key.lower() == lowered]:
            del self.headers[key]
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set a buffered body, encoding strings as UTF-8."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.stream = None
        return self

    def set_stream(self, stream: Iterable[bytes]) -> "HTTPResponse":
        """Set a streamed body."""
        self.stream = stream
        self.body = b""
        return self

    def iter_body(self) -> Iterator[bytes]:
        """Yield the body as chunks, whichever shape it has."""
        if self.headers_only:
            return
        if self.stream is not None:
            for chunk in self.stream:
                if chunk:
                    yield chunk
        elif self.body:
            yield self.body

    def close(self) -> None:
        """Release the stream's resources if it was never fully consumed."""
        close = getattr(self.stream, "close", None)
        if close is not None:
            close()

    def header_bytes(self, server_name: str = "staticcache/1.0") -> bytes:
        """
        Serialize the status line and headers.

        Content-Length is filled in for buffered bodies only. Streamed
        bodies, HEAD answers and 304s keep whatever Content-Length the
        handler chose (or none).
        """
        response_headers = dict(self.headers)

        if (
            self.stream is None
            and not self.headers_only
            and self.status not in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)
            and self.get_header("Content-Length") is None
        ):
            response_headers["Content-Length"] = str(len(self.body))

        if self.get_header("Date") is None:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if self.get_header("Server") is None:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1") + b"\r\n"

    def to_bytes(self, server_name: str = "staticcache/1.0") -> bytes:
        """Serialize the complete response, draining a stream if present."""
        return self.header_bytes(server_name) + b"".join(self.iter_body())


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .json({"error": "Not Found"})
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        self._body = json.dumps(data).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# HTTP DATES
# =============================================================================

def format_http_date(value: Union[datetime, float]) -> str:
    """
    Format a datetime or POSIX timestamp as an HTTP-date (RFC 7231).

    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are ALWAYS in GMT. Sub-second precision is dropped.
    """
    if not isinstance(value, datetime):
        value = datetime.fromtimestamp(value, tz=timezone.utc)
    elif value.tzinfo is not None:
        value = value.astimezone(timezone.utc)

    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[value.weekday()]}, "
        f"{value.day:02d} {months[value.month - 1]} {value.year} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d} GMT"
    )


def parse_http_date(value: str) -> Optional[float]:
    """
    Parse an HTTP-date into a POSIX timestamp.

    Returns None for anything unparseable, so a garbage validator simply
    never matches.
    """
    if not value:
        return None

    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.timestamp()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 response, the usual end of the chain after a declined request."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).json({"error": message}).build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 response with the Allow header RFC 7231 requires."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 response. Keep the message generic, never leak internals."""
    return ResponseBuilder().status(HTTPStatus.INTERNAL_SERVER_ERROR).json({"error": message}).build()
