"""
=============================================================================
STATIC FILE SERVER
=============================================================================

A small threaded HTTP server that puts the static cache in front of a
404 fallback. Useful on its own and as the integration harness for the
middleware.

=============================================================================
REQUEST FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │  socket ──► ThreadingHTTPServer (one thread per connection)         │
    │                 │                                                    │
    │                 ▼                                                    │
    │  _RequestHandler: parse request line + headers                      │
    │                 │  convert to HTTPRequest (raw, undecoded path)     │
    │                 ▼                                                    │
    │  LoggingMiddleware ──► StaticCacheMiddleware ──► fallback           │
    │                                                  (404 / 405)         │
    │                 │                                                    │
    │                 ▼                                                    │
    │  write status line + headers, then body chunk by chunk              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Connections are kept alive (HTTP/1.1) as long as every response has a
known length. A gzip stream has none, so its end is signalled by closing
the connection.

=============================================================================
"""

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional, Tuple
from urllib.parse import parse_qs

from .config import ServerConfig, StaticCacheConfig
from .cache.resolver import SERVED_METHODS
from .http.request import HTTPRequest
from .http.response import HTTPResponse, internal_error, method_not_allowed, not_found
from .http.status_codes import HTTPStatus
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline, NextHandler
from .middleware.static_cache import StaticCacheMiddleware


logger = logging.getLogger(__name__)


def fallback(request: HTTPRequest) -> HTTPResponse:
    """End of the chain: whatever the static cache declined."""
    if request.method not in SERVED_METHODS:
        return method_not_allowed(list(SERVED_METHODS))
    return not_found()


class _RequestHandler(BaseHTTPRequestHandler):
    """
    Adapter between http.server and the middleware pipeline.

    http.server does the parsing; everything after that (routing,
    caching, logging) happens in the pipeline.
    """

    protocol_version = "HTTP/1.1"

    # Set on the subclass built by StaticFileServer.start()
    app: NextHandler
    server_name: str = "staticcache/1.0"

    def do_GET(self):
        self._dispatch()

    def do_HEAD(self):
        self._dispatch()

    # Anything else still goes through the pipeline, so the fallback can
    # answer 405 and the access log sees it.
    do_POST = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = do_GET

    def _dispatch(self):
        request = self._to_request()

        try:
            response = self.app(request)
        except Exception:
            logger.exception(f"Error handling {request.method} {request.path}")
            response = internal_error()

        self._write(response)

    def _to_request(self) -> HTTPRequest:
        # Not urlsplit: "//index.html" would be read as a network location
        path, _, query = self.path.partition("?")

        return HTTPRequest(
            method=self.command,
            path=path or "/",
            version=self.request_version,
            headers=dict(self.headers.items()),
            query_params=parse_qs(query),
            client_address=self.client_address,
        )

    def _write(self, response: HTTPResponse):
        needs_close = (
            not response.headers_only
            and response.status not in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)
            and response.is_streamed
            and response.get_header("Content-Length") is None
        )
        if needs_close:
            response.set_header("Connection", "close")
            self.close_connection = True

        try:
            self.wfile.write(response.header_bytes(self.server_name))
            for chunk in response.iter_body():
                self.wfile.write(chunk)
            self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug(f"Client {self.client_address[0]} went away mid-response")
            self.close_connection = True
        except Exception:
            # Headers are already out: all we can do is cut the connection
            logger.exception(f"Error streaming body for {self.path}")
            self.close_connection = True
        finally:
            response.close()

    def log_message(self, format: str, *args: Any):
        # Access logs come from LoggingMiddleware; this only sees
        # http.server's own complaints (malformed request lines etc.)
        logger.debug(f"{self.address_string()} {format % args}")


class StaticFileServer:
    """
    Threaded static file server.

    Example:
        server = StaticFileServer(
            StaticCacheConfig(dir="./public", gzip=True, buffer=True),
            ServerConfig(port=8000),
        )
        server.run()   # blocks until Ctrl+C

    For tests, start() binds and serves in a background thread; the real
    port is available as server.port even when the config asked for 0.
    """

    def __init__(
        self,
        static_config: Optional[StaticCacheConfig] = None,
        config: Optional[ServerConfig] = None,
        files: Any = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.static = StaticCacheMiddleware(static_config, files=files)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._middleware.add(self.static)

        self._handler: Optional[NextHandler] = None
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def use(self, middleware: Middleware) -> "StaticFileServer":
        """
        Add middleware between the static cache and the fallback.

        Must be called before the server starts.
        """
        self._middleware.add(middleware)
        return self

    @property
    def address(self) -> Tuple[str, int]:
        if self._httpd is None:
            return (self.config.host, self.config.port)
        host, port = self._httpd.server_address[:2]
        return (host, port)

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def running(self) -> bool:
        return self._httpd is not None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run one request through the pipeline without any networking."""
        if self._handler is None:
            self._handler = self._middleware.wrap(fallback)
        return self._handler(request)

    def bind(self) -> ThreadingHTTPServer:
        handler_class = type(
            "RequestHandler",
            (_RequestHandler,),
            {"app": staticmethod(self.handle), "server_name": self.config.server_name},
        )
        self._httpd = ThreadingHTTPServer((self.config.host, self.config.port), handler_class)
        self._httpd.daemon_threads = True
        return self._httpd

    def start(self) -> "StaticFileServer":
        """Bind and serve in a background thread."""
        httpd = self.bind()
        self._thread = threading.Thread(
            target=httpd.serve_forever,
            name="staticcache-server",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Serving {self.static.config.dir} on http://{self.address[0]}:{self.port}")
        return self

    def run(self):
        """Start the server (blocking) until interrupted."""
        self._setup_logging()
        httpd = self.bind()

        logger.info(
            f"Serving {self.static.config.dir} at prefix {self.static.config.prefix} "
            f"on http://{self.address[0]}:{self.port}"
        )
        logger.info(f"{len(self.static.cache)} files cached")

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Stop a server started with start()."""
        if self._httpd is not None:
            self._httpd.shutdown()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self._shutdown()

    def _shutdown(self):
        if self._httpd is None:
            return
        logger.info("Shutting down server...")
        self._httpd.server_close()
        self._httpd = None
        logger.info("Server stopped")

    def _setup_logging(self):
        setup_logging(self.config.log_level)


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the command line server."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("staticcache").setLevel(level)
