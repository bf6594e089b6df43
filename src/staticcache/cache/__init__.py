"""
=============================================================================
CACHING AND CONTENT NEGOTIATION CORE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         COMPONENTS, LEAVES FIRST                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   entry.py        FileEntry: metadata + optional content + variants │
    │   store.py        FileCache: key → FileEntry (dict or ext. store)   │
    │   resolver.py     PathResolver: request path → key, miss → file     │
    │   loader.py       FileLoader: disk → FileEntry, preload, aliases    │
    │   negotiation.py  CompressionNegotiator: raw / gzip / brotli body   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

StaticCacheMiddleware (staticcache.middleware) wires them together.
"""

from .entry import FileEntry
from .store import FileCache
from .resolver import PathResolver, normalize_path, safe_decode
from .loader import FileLoader, walk_files
from .negotiation import (
    CompressionNegotiator,
    CompressionError,
    Representation,
)

__all__ = [
    "FileEntry",
    "FileCache",
    "PathResolver",
    "normalize_path",
    "safe_decode",
    "FileLoader",
    "walk_files",
    "CompressionNegotiator",
    "CompressionError",
    "Representation",
]
