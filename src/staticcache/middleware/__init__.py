"""
=============================================================================
MIDDLEWARE
=============================================================================

    Middleware              What it does
    ──────────────────────  ─────────────────────────────────────────────
    StaticCacheMiddleware   Serves cached files, declines everything else
    LoggingMiddleware       One access log line per request

Both follow the (request, next) → response contract from base.py.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware
from .static_cache import StaticCacheMiddleware, static_cache

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    "LoggingMiddleware",
    "StaticCacheMiddleware",
    "static_cache",
]
