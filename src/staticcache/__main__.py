"""
=============================================================================
STATICCACHE CLI ENTRY POINT
=============================================================================

Serve a directory through the static cache.

=============================================================================
USAGE
=============================================================================

    # Serve the current directory on localhost:8080
    python -m staticcache .

    # Assets under /static, in memory, compressed, cached for a day
    python -m staticcache ./dist --prefix /static --buffer --gzip --max-age 86400

    # Large tree: skip the startup walk, load files on first request
    python -m staticcache /srv/media --no-preload --dynamic

    # "/" answers with index.html
    python -m staticcache ./site --alias /=/index.html

Environment variables (see StaticCacheConfig.from_env) provide the
defaults; command line flags override them.

=============================================================================
"""

import argparse
import sys
from typing import Dict, List, Optional

from . import __version__
from .config import ServerConfig, StaticCacheConfig
from .server import StaticFileServer, setup_logging


def _parse_aliases(values: List[str]) -> Dict[str, str]:
    aliases = {}
    for value in values:
        alias, sep, target = value.partition("=")
        if not sep or not alias or not target:
            raise argparse.ArgumentTypeError(f"alias must look like ALIAS=TARGET, got {value!r}")
        aliases[alias] = target
    return aliases


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m staticcache",
        description="Serve a directory from an in-memory static file cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m staticcache .                              # Serve cwd on :8080
  python -m staticcache ./dist --prefix /static        # Mount under /static
  python -m staticcache ./dist --buffer --gzip         # In memory, compressed
  python -m staticcache ./media --no-preload --dynamic # Load on first request
  python -m staticcache ./site --alias /=/index.html   # "/" serves index.html
        """
    )

    env = StaticCacheConfig.from_env()
    server_env = ServerConfig.from_env()

    parser.add_argument(
        "dir",
        nargs="?",
        default=env.dir,
        help="Directory to serve (default: $STATIC_DIR or the current directory)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CACHE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--prefix",
        default=env.prefix,
        help="URL prefix the files are served under (default: /)"
    )

    parser.add_argument(
        "--gzip",
        action="store_true",
        default=env.gzip,
        help="Negotiate gzip/brotli compression for compressible files"
    )

    parser.add_argument(
        "--buffer",
        action="store_true",
        default=env.buffer,
        help="Hold file contents (and their compressed variants) in memory"
    )

    parser.add_argument(
        "--dynamic",
        action="store_true",
        default=env.dynamic,
        help="Load files that were not preloaded on their first request"
    )

    parser.add_argument(
        "--no-preload",
        dest="preload",
        action="store_false",
        default=env.preload,
        help="Skip walking the directory at startup"
    )

    parser.add_argument(
        "--max-age",
        type=int,
        default=env.max_age,
        help="Cache-Control max-age in seconds (default: 0)"
    )

    parser.add_argument(
        "--cache-control",
        default=env.cache_control,
        help="Literal Cache-Control header, overrides --max-age"
    )

    parser.add_argument(
        "--precompiled-gzip",
        action="store_true",
        default=env.use_precompiled_gzip,
        help="Serve cached <file>.gz siblings instead of compressing"
    )

    parser.add_argument(
        "--etag",
        action="store_true",
        default=env.etag,
        help="Send weak ETags for If-None-Match revalidation"
    )

    parser.add_argument(
        "--alias",
        action="append",
        default=[],
        metavar="ALIAS=TARGET",
        help="Serve TARGET's entry at ALIAS as well (repeatable)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # SERVER ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=server_env.host,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=server_env.port,
        help="Port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=server_env.log_level.upper(),
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=server_env.log_format,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"staticcache {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        aliases = _parse_aliases(args.alias)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    static_config = StaticCacheConfig(
        dir=args.dir,
        prefix=args.prefix,
        gzip=args.gzip,
        buffer=args.buffer,
        dynamic=args.dynamic,
        preload=args.preload,
        max_age=args.max_age,
        cache_control=args.cache_control,
        use_precompiled_gzip=args.precompiled_gzip,
        etag=args.etag,
        alias=aliases,
    )
    server_config = ServerConfig(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        log_format=args.log_format,
    )

    # Before the server exists, so preload messages are visible
    setup_logging(server_config.log_level)

    try:
        server = StaticFileServer(static_config, server_config)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
