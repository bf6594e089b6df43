"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Logs one line per request with timing, status, encoding and size.

    TEXT (Apache-like, default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [10/Jun/2024:10:55:36 +0000] "GET /app.js" 200 br     │
    │ 5120 0.42ms                                                         │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    {"request_id": "1f0c2a9e", "method": "GET", "path": "/app.js",
     "status_code": 200, "content_encoding": "br", "content_length": 5120,
     ...}

Streamed gzip bodies have no known length when the log line is written;
they are logged as "-" (text) or null (JSON).
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


# Namespaced so access logs can be routed separately:
#   logging.getLogger("staticcache.access").addHandler(file_handler)
logger = logging.getLogger("staticcache.access")


@dataclass
class RequestLog:
    """Structured log entry for a request."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_encoding: str
    content_length: Optional[int]
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_encoding": self.content_encoding,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        length = "-" if self.content_length is None else str(self.content_length)
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_encoding} {length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Should be FIRST in the pipeline so it sees declined and failed
    requests too:

        pipeline.add(LoggingMiddleware())
        pipeline.add(StaticCacheMiddleware(config))

    Options:
        log_format: "text" or "json"
        include_request_id: add an X-Request-ID response header
        log_level: level of the access log records
        skip_paths: exact paths never logged (e.g. "/favicon.ico")
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            # Still log failed requests, then let the server answer 500
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_encoding=response.get_header("Content-Encoding") or "identity",
            content_length=response.body_length,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        return response
