"""
=============================================================================
CONFIGURATION
=============================================================================

Centralized configuration for the static cache and the demo server.

Every component receives the configuration object explicitly at
construction. Nothing reads options from module globals or closures.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m staticcache ./public --gzip                     │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── STATIC_GZIP=1 python -m staticcache                       │
    │                                                                      │
    │   3. Default values (in these dataclasses)                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union


FileFilter = Union[Callable[[str], bool], List[str], None]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StaticCacheConfig:
    """
    Options for StaticCacheMiddleware.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    WHERE FILES COME FROM
    - dir, prefix, preload, filter, dynamic, alias

    HOW FILES ARE HELD
    - buffer

    HOW FILES ARE SENT
    - gzip, use_precompiled_gzip, max_age, cache_control, etag

    =========================================================================
    TYPICAL SETUPS
    =========================================================================

    Small asset bundle, everything in memory:
        StaticCacheConfig(dir="./dist", prefix="/assets",
                          buffer=True, gzip=True, max_age=31536000)

    Large media tree, stream from disk and pick files up lazily:
        StaticCacheConfig(dir="/srv/media", preload=False, dynamic=True)

    =========================================================================
    """

    dir: str = field(default_factory=os.getcwd)
    """
    Root directory to serve. Normalized to an absolute path.
    Files outside this directory are never served.
    """

    prefix: str = "/"
    """
    URL path prefix, normalized to end with "/".
    "/static" and "/static/" both become "/static/".
    """

    gzip: bool = False
    """Enable compression negotiation (gzip and brotli)."""

    filter: FileFilter = None
    """
    Restricts which files are preloaded.
    - callable: predicate over the path relative to dir ("css/app.css")
    - list: explicit allow-list of relative paths
    - None: everything
    """

    preload: bool = True
    """Walk dir at construction and cache every matching file."""

    alias: Dict[str, str] = field(default_factory=dict)
    """
    Extra keys for already cached entries, e.g. {"/": "/index.html"}.
    The alias shares the target's entry object.
    """

    dynamic: bool = False
    """Load files that were not preloaded on their first request."""

    max_age: int = 0
    """Default Cache-Control max-age in seconds."""

    cache_control: Optional[str] = None
    """Literal Cache-Control value. Overrides max_age when set."""

    buffer: bool = False
    """
    Hold file contents in memory.
    Only buffered files get their compressed variants cached.
    """

    use_precompiled_gzip: bool = False
    """Serve the buffer of a cached "<file>.gz" entry instead of gzipping."""

    etag: bool = False
    """Send a weak ETag derived from length and mtime."""

    def __post_init__(self):
        self.prefix = (self.prefix or "").rstrip("/") + "/"
        self.dir = os.path.normpath(os.path.abspath(self.dir or os.getcwd()))
        self.alias = dict(self.alias or {})

    @property
    def file_prefix(self) -> str:
        """
        The prefix as it appears in a path with its leading "/" removed.

        "/static/" → "static/", "/" → "".
        """
        return self.prefix.lstrip("/")

    def accepts_file(self, name: str) -> bool:
        """Apply the preload filter to a path relative to dir."""
        if self.filter is None:
            return True
        if callable(self.filter):
            return bool(self.filter(name))
        return name in self.filter

    @classmethod
    def from_env(cls) -> "StaticCacheConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        STATIC_DIR                Root directory (default: cwd)
        STATIC_PREFIX             URL prefix (default: /)
        STATIC_GZIP               Enable compression (default: off)
        STATIC_BUFFER             Keep contents in memory (default: off)
        STATIC_DYNAMIC            Lazy loading (default: off)
        STATIC_PRELOAD            Preload at startup (default: on)
        STATIC_MAX_AGE            max-age seconds (default: 0)
        STATIC_CACHE_CONTROL      Literal Cache-Control override
        STATIC_PRECOMPILED_GZIP   Reuse cached .gz files (default: off)
        STATIC_ETAG               Send weak ETags (default: off)

        =====================================================================
        """
        return cls(
            dir=os.getenv("STATIC_DIR") or os.getcwd(),
            prefix=os.getenv("STATIC_PREFIX", "/"),
            gzip=_env_bool("STATIC_GZIP", False),
            buffer=_env_bool("STATIC_BUFFER", False),
            dynamic=_env_bool("STATIC_DYNAMIC", False),
            preload=_env_bool("STATIC_PRELOAD", True),
            max_age=int(os.getenv("STATIC_MAX_AGE", "0")),
            cache_control=os.getenv("STATIC_CACHE_CONTROL") or None,
            use_precompiled_gzip=_env_bool("STATIC_PRECOMPILED_GZIP", False),
            etag=_env_bool("STATIC_ETAG", False),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by StaticCacheMiddleware at construction, so a bad option
        fails at startup and not on the first request.
        """
        if not isinstance(self.max_age, int) or self.max_age < 0:
            raise ValueError(f"max_age must be a non-negative integer, got {self.max_age!r}")

        if not os.path.isdir(self.dir):
            raise ValueError(f"Static root directory does not exist: {self.dir}")

        if self.filter is not None and not callable(self.filter) \
                and not isinstance(self.filter, (list, tuple, set, frozenset)):
            raise ValueError("filter must be a callable or a list of paths")

        for alias, target in self.alias.items():
            if not isinstance(alias, str) or not isinstance(target, str):
                raise ValueError(f"alias entries must map str to str: {alias!r}")


@dataclass
class ServerConfig:
    """
    Configuration for the demo static file server.

    Development:
        ServerConfig(host="127.0.0.1", port=8080, log_level="DEBUG")

    Containers:
        ServerConfig(host="0.0.0.0", port=80, log_format="json")
    """

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8080
    """The port to listen on. 0 lets the OS pick a free one."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'json' or 'text'."""

    server_name: str = "staticcache/1.0"
    """Value of the Server header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        HTTP_HOST, HTTP_PORT, HTTP_LOG_LEVEL and HTTP_LOG_FORMAT.
        """
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTP_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
