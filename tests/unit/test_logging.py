"""
Unit tests for access logging.
"""

import json
import logging

import pytest

from staticcache.http import HTTPRequest, HTTPResponse, HTTPStatus
from staticcache.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline


def ok_handler(request):
    return HTTPResponse(status=HTTPStatus.OK, body=b"hello")


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_text_line(self, caplog):
        mw = LoggingMiddleware()
        request = HTTPRequest(method="GET", path="/app.js", client_address=("10.0.0.1", 5000))

        with caplog.at_level(logging.INFO, logger="staticcache.access"):
            response = mw(request, ok_handler)

        assert "X-Request-ID" in response.headers
        line = caplog.records[-1].getMessage()
        assert line.startswith("10.0.0.1 - - [")
        assert '"GET /app.js" 200 identity 5 ' in line

    def test_json_line(self, caplog):
        mw = LoggingMiddleware(log_format="json", include_request_id=False)

        def br_handler(request):
            return HTTPResponse(headers={"Content-Encoding": "br"}, body=b"xyz")

        with caplog.at_level(logging.INFO, logger="staticcache.access"):
            response = mw(HTTPRequest(method="GET", path="/a.css"), br_handler)

        assert "X-Request-ID" not in response.headers
        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["status_code"] == 200
        assert entry["content_encoding"] == "br"
        assert entry["content_length"] == 3

    def test_unknown_length_for_gzip_stream(self, caplog):
        mw = LoggingMiddleware()

        def stream_handler(request):
            return HTTPResponse(headers={"Content-Encoding": "gzip"}).set_stream([b"..."])

        with caplog.at_level(logging.INFO, logger="staticcache.access"):
            mw(HTTPRequest(method="GET", path="/a.js"), stream_handler)

        assert '200 gzip - ' in caplog.records[-1].getMessage()

    def test_skip_paths(self, caplog):
        mw = LoggingMiddleware(skip_paths=["/favicon.ico"])

        with caplog.at_level(logging.INFO, logger="staticcache.access"):
            mw(HTTPRequest(method="GET", path="/favicon.ico"), ok_handler)

        assert not caplog.records

    def test_errors_logged_and_reraised(self, caplog):
        mw = LoggingMiddleware()

        def failing(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.INFO, logger="staticcache.access"):
            with pytest.raises(RuntimeError):
                mw(HTTPRequest(method="GET", path="/a.js"), failing)

        assert "RuntimeError: boom" in caplog.records[-1].getMessage()


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline ordering."""

    def test_first_added_is_outermost(self):
        order = []

        class Recorder(Middleware):
            def __init__(self, label):
                self.label = label

            def __call__(self, request, next):
                order.append(self.label)
                return next(request)

        pipeline = MiddlewarePipeline().add(Recorder("outer")).add(Recorder("inner"))
        handler = pipeline.wrap(ok_handler)

        assert handler(HTTPRequest(method="GET", path="/")).status == HTTPStatus.OK
        assert order == ["outer", "inner"]
        assert len(pipeline) == 2
