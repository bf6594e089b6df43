"""
pytest configuration and fixtures.
"""

import os
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from staticcache import ServerConfig, StaticCacheConfig, StaticFileServer
from staticcache.http import HTTPRequest, HTTPResponse, not_found


INDEX_HTML = b"<!doctype html><title>home</title><p>hello</p>".ljust(50, b"\n")
APP_JS = b"function greet(name) { return 'hello ' + name; }\n" * 60
SITE_CSS = b"body { margin: 0; padding: 0; font-family: sans-serif; }\n" * 40
DATA_JSON = b'{"items": [1, 2, 3]}'

# A fixed mtime well in the past, so If-Modified-Since tests don't race
# with the clock
MTIME = 1_700_000_000


@pytest.fixture
def static_dir(tmp_path: Path) -> Path:
    """
    A small site:

        index.html      50 bytes, compressible but too small
        logo.png        2000 bytes, large but not compressible
        app.js          > 1 KiB, compressible
        css/site.css    > 1 KiB, compressible
        data.json       tiny
        .env            hidden, never served
        .git/config     hidden directory, never served
    """
    root = tmp_path / "public"
    (root / "css").mkdir(parents=True)
    (root / ".git").mkdir()

    assert len(INDEX_HTML) == 50
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "logo.png").write_bytes(bytes(range(256)) * 7 + bytes(208))
    (root / "app.js").write_bytes(APP_JS)
    (root / "css" / "site.css").write_bytes(SITE_CSS)
    (root / "data.json").write_bytes(DATA_JSON)
    (root / ".env").write_bytes(b"SECRET=1\n")
    (root / ".git" / "config").write_bytes(b"[core]\n")

    for path in root.rglob("*"):
        if path.is_file():
            os.utime(path, (MTIME, MTIME))

    return root


@pytest.fixture
def static_mtime() -> int:
    """The mtime every file in static_dir carries."""
    return MTIME


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Factory for HTTPRequest objects."""

    def factory(
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPRequest:
        return HTTPRequest(method=method, path=path, headers=dict(headers or {}))

    return factory


class Fallback:
    """Final handler that records the requests it receives."""

    def __init__(self):
        self.requests: List[HTTPRequest] = []

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        self.requests.append(request)
        return not_found()

    @property
    def called(self) -> bool:
        return bool(self.requests)


@pytest.fixture
def fallback() -> Fallback:
    """A next() handler that answers 404 and remembers being called."""
    return Fallback()


@pytest.fixture
def server(static_dir: Path) -> Generator[StaticFileServer, None, None]:
    """A running StaticFileServer on a free port."""
    srv = StaticFileServer(
        StaticCacheConfig(
            dir=str(static_dir),
            gzip=True,
            buffer=True,
            alias={"/": "/index.html"},
        ),
        ServerConfig(host="127.0.0.1", port=0, log_level="WARNING"),
    )
    srv.start()

    yield srv

    srv.stop()
