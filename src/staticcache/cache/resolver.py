"""
=============================================================================
PATH RESOLUTION
=============================================================================

Turns a request path into a cache key, and a cache miss into a file on
disk, without ever letting a request escape the root directory.

=============================================================================
FROM REQUEST PATH TO CACHE KEY
=============================================================================

    GET /static/css//site%20main.css
        │
        ├── method must be GET or HEAD           otherwise: decline
        ├── must start with prefix "/static/"    otherwise: decline
        ├── percent-decode                       /static/css//site main.css
        │     (malformed escapes: keep raw path)
        └── normalize                            /static/css/site main.css
                                                 └── the cache key

=============================================================================
FROM CACHE MISS TO FILE (dynamic mode only)
=============================================================================

    /static/css/site main.css
        │
        ├── hidden name (".env", ".git/...")?    decline
        ├── strip "/" and the prefix             css/site main.css
        ├── join with root dir                   /srv/www/css/site main.css
        ├── still inside root dir?               otherwise: decline
        └── exists and is a regular file?        otherwise: decline

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /static/..%2f..%2fetc/passwd

Normalization already folds ".." segments, and a key that leaves the
prefix is declined. The containment check on the joined absolute path is
the last line: the result must be the root itself or lie under
"<root>/" (a sibling such as "/srv/www-private" does not count).
"""

import logging
import os
import posixpath
import re
import stat
from typing import Optional
from urllib.parse import unquote

from ..config import StaticCacheConfig
from ..http.request import HTTPRequest


logger = logging.getLogger(__name__)

SERVED_METHODS = ("GET", "HEAD")

# A "%" not followed by two hex digits
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def safe_decode(path: str) -> str:
    """
    Percent-decode a path, falling back to the raw path on bad input.

    Both malformed escapes ("%zz") and escapes that don't form valid
    UTF-8 ("%E4%B8") count as bad input.

    Examples:
        >>> safe_decode("/%E4%B8%AD%E6%96%87")
        '/中文'
        >>> safe_decode("/100%")
        '/100%'
    """
    if _MALFORMED_ESCAPE.search(path):
        return path

    try:
        return unquote(path, errors="strict")
    except UnicodeDecodeError:
        return path


def normalize_path(path: str) -> str:
    """
    Normalize a URL path: collapse separators, fold "." and "..".

    A trailing "/" is kept, like a directory reference.

    Examples:
        >>> normalize_path("//index.html")
        '/index.html'
        >>> normalize_path("/static/../../etc/passwd")
        '/etc/passwd'
        >>> normalize_path("/static/")
        '/static/'
    """
    if not path:
        return "."

    trailing_slash = path.endswith("/")
    normalized = posixpath.normpath(path)

    # POSIX keeps exactly two leading slashes; URLs don't care
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")

    if trailing_slash and not normalized.endswith("/"):
        normalized += "/"

    return normalized


def is_within(root: str, candidate: str) -> bool:
    """Check that candidate is root itself or a path below it."""
    root = os.path.normpath(root)
    candidate = os.path.normpath(candidate)

    if candidate == root:
        return True

    return candidate.startswith(root.rstrip(os.sep) + os.sep)


class PathResolver:
    """
    Maps requests to cache keys and cache misses to files under dir.

    Usage:
        resolver = PathResolver(config)

        key = resolver.lookup_key(request)
        if key is None:
            return next(request)          # not ours

        entry = cache.get(key)
        if entry is None and config.dynamic:
            name = resolver.resolve_dynamic(key)
    """

    def __init__(self, config: StaticCacheConfig):
        self.config = config

    def lookup_key(self, request: HTTPRequest) -> Optional[str]:
        """
        Compute the cache key for a request.

        Returns None when the request is not ours: wrong method, or a
        path outside the prefix. The filesystem is never touched here.
        """
        if request.method not in SERVED_METHODS:
            return None

        # Prefix check before any decoding work
        if not request.path.startswith(self.config.prefix):
            return None

        return normalize_path(safe_decode(request.path))

    def resolve_dynamic(self, key: str) -> Optional[str]:
        """
        Find the file behind a cache miss.

        Args:
            key: A normalized cache key from lookup_key().

        Returns:
            The file's path relative to dir ("css/site.css"), or None to
            decline. Stat failures are treated as "not found".
        """
        # A directory reference never names a file, and a NUL byte never
        # reaches the filesystem
        if key.endswith("/") or "\x00" in key:
            return None

        # ─────────────────────────────────────────────────────────────────
        # HIDDEN FILES
        # ─────────────────────────────────────────────────────────────────
        # Neither ".env" nor anything inside ".git/" is ever served
        if any(segment.startswith(".") for segment in key.split("/") if segment):
            return None

        filename = key[1:] if key.startswith("/") else key

        # ─────────────────────────────────────────────────────────────────
        # STRIP THE PREFIX
        # ─────────────────────────────────────────────────────────────────
        if self.config.prefix != "/":
            file_prefix = self.config.file_prefix
            if not filename.startswith(file_prefix):
                return None
            filename = filename[len(file_prefix):]

        # ─────────────────────────────────────────────────────────────────
        # SECURITY: CONTAINMENT CHECK
        # ─────────────────────────────────────────────────────────────────
        full_path = os.path.normpath(os.path.join(self.config.dir, filename))
        if not is_within(self.config.dir, full_path):
            logger.warning(f"Path traversal attempt declined: {key}")
            return None

        try:
            st = os.stat(full_path)
        except (OSError, ValueError):
            return None

        if not stat.S_ISREG(st.st_mode):
            return None

        return filename
