"""
=============================================================================
STATIC CACHE MIDDLEWARE
=============================================================================

Serves files from an in-memory cache of FileEntry objects, with
conditional requests and on-demand gzip/brotli.

=============================================================================
PER-REQUEST STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request ──► method GET/HEAD? ── no ──────────────► DECLINED       │
    │                   │ yes                              (next(request))│
    │                   ▼                                                  │
    │              path under prefix? ── no ─────────────► DECLINED       │
    │                   │ yes                                             │
    │                   ▼                                                  │
    │              cache hit? ── no ── dynamic & file ok? ── no ► DECLINED│
    │                   │ yes                   │ yes (load it)           │
    │                   ▼ ◄─────────────────────┘                         │
    │              200, Vary, refresh mtime, Last-Modified                │
    │                   │                                                  │
    │                   ▼                                                  │
    │              validators fresh? ── yes ─────────────► NOT MODIFIED  │
    │                   │ no                               (304, no body) │
    │                   ▼                                                  │
    │              Content-Type, Cache-Control, Content-Length            │
    │                   │                                                  │
    │                   ▼                                                  │
    │              HEAD? ── yes ─────────────────────────► SERVED        │
    │                   │ no                               (headers only) │
    │                   ▼                                                  │
    │              negotiate body (raw / gzip / br) ─────► SERVED        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Files that vanish or become unreadable are declined, never turned into an
error: the next handler decides what the client sees. Compression errors
are different: they propagate and fail the request.

=============================================================================
USAGE
=============================================================================

    static = StaticCacheMiddleware(StaticCacheConfig(
        dir="./public",
        prefix="/static",
        gzip=True,
        buffer=True,
        max_age=86400,
    ))

    pipeline = MiddlewarePipeline().add(LoggingMiddleware()).add(static)
    handler = pipeline.wrap(lambda request: not_found())

=============================================================================
"""

import logging
from typing import Any, Callable, Optional

from ..cache import (
    CompressionNegotiator,
    FileCache,
    FileEntry,
    FileLoader,
    PathResolver,
    Representation,
)
from ..config import StaticCacheConfig
from ..http.conditional import is_fresh
from ..http.mime_types import get_content_type, is_compressible
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, format_http_date
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


class StaticCacheMiddleware(Middleware):
    """
    Middleware serving cached static files.

    =========================================================================
    CONSTRUCTION
    =========================================================================

    Construction does the blocking work up front:
    1. Validate the configuration (fail fast)
    2. Preload every matching file (unless preload=False)
    3. Register aliases for the entries that now exist

    =========================================================================
    SHARED STATE
    =========================================================================

    The cache and its entries are shared by all concurrent requests.
    Compressed variants are computed once per entry under the entry's
    lock; mtime/length refreshes are plain assignments (last write wins).

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[StaticCacheConfig] = None,
        files: Any = None,
        compressible: Callable[[str], bool] = is_compressible,
    ):
        """
        Args:
            config: Options. Defaults serve the working directory at "/".
            files: Backing store: None, a dict (possibly pre-seeded with
                   FileEntry objects) or an object with get()/set().
            compressible: MIME type predicate deciding what may be
                          compressed.
        """
        self.config = config or StaticCacheConfig()
        self.config.validate()

        self.cache = FileCache(files)
        self.resolver = PathResolver(self.config)
        self.loader = FileLoader(self.config, self.cache)
        self.negotiator = CompressionNegotiator(
            self.config, self.cache, compressible=compressible
        )

        if self.config.preload:
            self.loader.preload()

        if self.config.alias:
            self.loader.register_aliases()

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        # ─────────────────────────────────────────────────────────────────
        # RESOLVE
        # ─────────────────────────────────────────────────────────────────
        key = self.resolver.lookup_key(request)
        if key is None:
            return next(request)

        entry = self.cache.get(key)
        if entry is None:
            entry = self._load_dynamic(key)
            if entry is None:
                return next(request)

        response = HTTPResponse(status=HTTPStatus.OK)

        if self.config.gzip:
            response.set_header("Vary", "Accept-Encoding")

        # ─────────────────────────────────────────────────────────────────
        # FRESHNESS AGAINST DISK
        # ─────────────────────────────────────────────────────────────────
        try:
            self.negotiator.refresh(entry)
        except OSError as e:
            logger.debug(f"Backing file for {key} unavailable, declining: {e}")
            return next(request)

        response.set_header("Last-Modified", format_http_date(entry.mtime))
        if self.config.etag:
            response.set_header("ETag", entry.etag)

        # ─────────────────────────────────────────────────────────────────
        # CONDITIONAL REQUEST
        # ─────────────────────────────────────────────────────────────────
        validators = {
            "last-modified": response.headers["Last-Modified"],
            "etag": response.headers.get("ETag", ""),
        }
        if is_fresh(request.headers, validators):
            response.status = HTTPStatus.NOT_MODIFIED
            return response

        response.set_header("Content-Type", get_content_type(entry.mime_type))
        response.set_header("Cache-Control", entry.cache_control_header)

        # ─────────────────────────────────────────────────────────────────
        # HEAD: describe the body, don't produce it
        # ─────────────────────────────────────────────────────────────────
        if request.method == "HEAD":
            self._apply(response, self.negotiator.describe(key, entry, request))
            response.headers_only = True
            return response

        # ─────────────────────────────────────────────────────────────────
        # GET: negotiate and produce the body
        # ─────────────────────────────────────────────────────────────────
        try:
            representation = self.negotiator.negotiate(key, entry, request)
        except OSError as e:
            logger.debug(f"Cannot open {entry.path}, declining: {e}")
            return next(request)

        self._apply(response, representation)
        if representation.stream is not None:
            response.set_stream(representation.stream)
        else:
            response.set_body(representation.body or b"")

        return response

    def _load_dynamic(self, key: str) -> Optional[FileEntry]:
        if not self.config.dynamic:
            return None

        name = self.resolver.resolve_dynamic(key)
        if name is None:
            return None

        try:
            entry = self.loader.load(name)
        except OSError as e:
            logger.debug(f"Dynamic load of {key} failed, declining: {e}")
            return None

        logger.debug(f"Dynamically loaded {key}")
        return entry

    @staticmethod
    def _apply(response: HTTPResponse, representation: Representation) -> None:
        if representation.encoding:
            response.set_header("Content-Encoding", representation.encoding)

        if representation.length is not None:
            response.set_header("Content-Length", str(representation.length))
        else:
            # Compressed length is unknown ahead of time
            response.remove_header("Content-Length")


def static_cache(
    dir: Optional[str] = None,
    files: Any = None,
    **options: Any,
) -> StaticCacheMiddleware:
    """
    Create a static cache middleware.

    Factory function for convenient registration; keyword options are the
    StaticCacheConfig fields.

    Example:
        server.use(static_cache("./public", prefix="/static", gzip=True))
    """
    if dir is not None:
        options["dir"] = dir
    return StaticCacheMiddleware(StaticCacheConfig(**options), files=files)
