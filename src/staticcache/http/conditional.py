"""
=============================================================================
CONDITIONAL REQUESTS (RFC 7232)
=============================================================================

Decides whether a client's cached copy is still valid, so the server can
answer 304 Not Modified instead of resending the body.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONDITIONAL GET, STEP BY STEP                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1st request:   GET /app.js                                        │
    │   1st response:  200 OK                                             │
    │                  Last-Modified: Wed, 15 Jun 2024 10:00:00 GMT       │
    │                                                                      │
    │   2nd request:   GET /app.js                                        │
    │                  If-Modified-Since: Wed, 15 Jun 2024 10:00:00 GMT   │
    │   2nd response:  304 Not Modified   (no body)                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
EVALUATION ORDER
=============================================================================

1. No validators at all                  → not fresh
2. Request says Cache-Control: no-cache  → not fresh (end-to-end reload)
3. If-None-Match present:
      "*"                                → fresh
      otherwise compare against ETag     → fresh only on a (weak) match
4. If-Modified-Since present:
      Last-Modified <= If-Modified-Since → fresh
      (compared on whole seconds, the resolution of HTTP dates)

Both validators must pass when both are sent.
"""

import re
from typing import Dict, Optional

from .response import parse_http_date


_NO_CACHE_PATTERN = re.compile(r"(?:^|,)\s*no-cache\s*(?:,|$)")


def _parse_etag_list(header: str) -> list[str]:
    return [tag.strip() for tag in header.split(",") if tag.strip()]


def _strip_weak(tag: str) -> str:
    return tag[2:] if tag.startswith("W/") else tag


def is_fresh(request_headers: Dict[str, str], response_headers: Dict[str, str]) -> bool:
    """
    Check whether the response the client holds is still fresh.

    Args:
        request_headers: Request headers with lowercase names.
        response_headers: Validators of the representation we would send,
                          with lowercase names ("etag", "last-modified").

    Returns:
        True when a 304 Not Modified may be sent.
    """
    modified_since = request_headers.get("if-modified-since")
    none_match = request_headers.get("if-none-match")

    if not modified_since and not none_match:
        return False

    cache_control = request_headers.get("cache-control", "")
    if cache_control and _NO_CACHE_PATTERN.search(cache_control):
        return False

    # ─────────────────────────────────────────────────────────────────────
    # ENTITY TAGS
    # ─────────────────────────────────────────────────────────────────────
    if none_match and none_match.strip() != "*":
        etag: Optional[str] = response_headers.get("etag")
        if not etag:
            return False

        wanted = _strip_weak(etag)
        if not any(_strip_weak(tag) == wanted for tag in _parse_etag_list(none_match)):
            return False

    # ─────────────────────────────────────────────────────────────────────
    # MODIFICATION DATE
    # ─────────────────────────────────────────────────────────────────────
    if modified_since:
        last_modified = parse_http_date(response_headers.get("last-modified", ""))
        since = parse_http_date(modified_since)

        if last_modified is None or since is None or last_modified > since:
            return False

    return True
