"""
=============================================================================
STATICCACHE - In-Memory Static File Cache for HTTP Servers
=============================================================================

A static file handler that keeps file metadata (and optionally contents)
in memory, answers conditional requests with 304, and negotiates gzip or
brotli compression, caching compressed variants per file.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    staticcache/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m staticcache)
    ├── server.py            # StaticFileServer (http.server adapter)
    ├── config.py            # StaticCacheConfig / ServerConfig
    ├── cache/               # The cache itself
    │   ├── entry.py         # FileEntry: metadata + buffers per file
    │   ├── store.py         # FileCache: dict or external get/set store
    │   ├── resolver.py      # Request path → cache key, traversal guard
    │   ├── loader.py        # Preload, aliases, single-file load
    │   └── negotiation.py   # gzip/brotli selection and compression
    ├── http/                # HTTP primitives
    │   ├── request.py       # HTTPRequest, Accept-Encoding parsing
    │   ├── response.py      # HTTPResponse, HTTP dates
    │   ├── conditional.py   # If-Modified-Since / If-None-Match
    │   ├── status_codes.py  # HTTP status enums
    │   └── mime_types.py    # MIME types, compressibility
    └── middleware/
        ├── base.py          # Middleware protocol and pipeline
        ├── static_cache.py  # StaticCacheMiddleware
        └── logging.py       # Access logging

=============================================================================
QUICK START
=============================================================================

    from staticcache import StaticCacheConfig, StaticFileServer

    server = StaticFileServer(StaticCacheConfig(
        dir="./public",
        gzip=True,
        buffer=True,
        max_age=3600,
        alias={"/": "/index.html"},
    ))
    server.run()

Or as middleware in an existing pipeline:

    from staticcache import static_cache
    pipeline.add(static_cache("./public", prefix="/static", gzip=True))

=============================================================================
"""

from .config import ServerConfig, StaticCacheConfig
from .cache import (
    CompressionError,
    CompressionNegotiator,
    FileCache,
    FileEntry,
    FileLoader,
    PathResolver,
)
from .middleware import LoggingMiddleware, StaticCacheMiddleware, static_cache
from .server import StaticFileServer

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "StaticCacheConfig",
    "ServerConfig",

    # Cache components
    "FileEntry",
    "FileCache",
    "FileLoader",
    "PathResolver",
    "CompressionNegotiator",
    "CompressionError",

    # Middleware
    "StaticCacheMiddleware",
    "static_cache",
    "LoggingMiddleware",

    # Server
    "StaticFileServer",
]
