"""
=============================================================================
HTTP REQUEST
=============================================================================

The request side of the static cache: the handful of request attributes a
static file handler actually reads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                WHAT THE STATIC CACHE READS FROM A REQUEST           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /static/app.js HTTP/1.1                                       │
    │   ───  ──────────────                                               │
    │    │         └── path: prefix match, decode, normalize, lookup     │
    │    └── method: only GET and HEAD are served                        │
    │                                                                      │
    │   Accept-Encoding: br, gzip;q=0.8    → content negotiation          │
    │   If-Modified-Since: <http-date>     → 304 Not Modified             │
    │   If-None-Match: W/"..."             → 304 Not Modified             │
    │   Cache-Control: no-cache            → force a full response        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The path is kept exactly as it arrived on the wire (still percent-encoded).
Decoding and normalizing it is the static cache's job, so that a malformed
escape sequence can fall back to the raw path instead of failing the
request.

=============================================================================
ACCEPT-ENCODING
=============================================================================

    Accept-Encoding: gzip;q=0.8, br, *;q=0
                     ───────────  ──  ─────
                          │        │    └── anything else refused
                          │        └── brotli, q defaults to 1
                          └── gzip with quality 0.8

A coding is acceptable when its quality (or the wildcard's quality, if the
coding is not listed) is greater than zero. A request without the header
accepts only the identity encoding.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict


def parse_accept_encoding(header: str) -> Dict[str, float]:
    """
    Parse an Accept-Encoding header into {coding: quality}.

    Malformed quality values count as 0 (not acceptable).

    Examples:
        >>> parse_accept_encoding("gzip, br;q=0.5")
        {'gzip': 1.0, 'br': 0.5}
        >>> parse_accept_encoding("")
        {}
    """
    encodings: Dict[str, float] = {}

    for part in header.split(","):
        part = part.strip()
        if not part:
            continue

        coding, _, params = part.partition(";")
        coding = coding.strip().lower()
        quality = 1.0

        for param in params.split(";"):
            name, _, value = param.strip().partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value.strip())
                except ValueError:
                    quality = 0.0

        # The first occurrence of a coding wins
        encodings.setdefault(coding, quality)

    return encodings


@dataclass
class HTTPRequest:
    """
    Represents an incoming HTTP request.

    Attributes:
        method:         HTTP method, upper case ("GET", "HEAD", ...)
        path:           Request path WITHOUT query string, not decoded
        headers:        Headers with LOWERCASE keys
        query_params:   Parsed query string as dict of lists
        client_address: (ip, port) of the client, for access logs
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    _accepted_encodings: Optional[Dict[str, float]] = field(default=None, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        # Normalize header names once so lookups never need .lower()
        self.headers = {name.lower(): value for name, value in self.headers.items()}

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def accepted_encodings(self) -> Dict[str, float]:
        """
        Accept-Encoding parsed into {coding: quality}.

        Lazily computed and cached, the header is read at most once.
        """
        if self._accepted_encodings is None:
            self._accepted_encodings = parse_accept_encoding(
                self.headers.get("accept-encoding", "")
            )
        return self._accepted_encodings

    def accepts_encoding(self, name: str) -> bool:
        """
        Check whether the client accepts a content coding.

        Example:
            # Accept-Encoding: gzip, *;q=0
            request.accepts_encoding("gzip")  # True
            request.accepts_encoding("br")    # False
        """
        encodings = self.accepted_encodings
        name = name.lower()

        if name in encodings:
            return encodings[name] > 0
        if "*" in encodings:
            return encodings["*"] > 0
        return False

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive lookup)."""
        return self.headers.get(name.lower(), default)
