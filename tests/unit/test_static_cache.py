"""
Unit tests for the static cache middleware.
"""

import gzip
import os
import threading

import brotli
import pytest

from staticcache.cache import CompressionError, FileEntry
from staticcache.cache import negotiation
from staticcache.config import StaticCacheConfig
from staticcache.http import HTTPStatus, format_http_date
from staticcache.middleware import StaticCacheMiddleware, static_cache


def read_body(response) -> bytes:
    return b"".join(response.iter_body())


def middleware(static_dir, **options) -> StaticCacheMiddleware:
    return StaticCacheMiddleware(StaticCacheConfig(dir=str(static_dir), **options))


class TestDeclining:
    """Requests the middleware passes on to next()."""

    def test_prefix_mismatch(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, prefix="/static")

        response = mw(make_request("/app.js"), fallback)

        assert response.status == HTTPStatus.NOT_FOUND
        assert fallback.called

    @pytest.mark.parametrize("dynamic", [False, True])
    def test_prefix_mismatch_skips_filesystem(self, static_dir, make_request, fallback, monkeypatch, dynamic):
        """Test that a request outside the prefix declines without stat or open."""
        mw = middleware(static_dir, prefix="/static", dynamic=dynamic)

        def no_disk(*args, **kwargs):
            raise AssertionError("filesystem touched")

        monkeypatch.setattr(os, "stat", no_disk)
        monkeypatch.setattr("builtins.open", no_disk)

        response = mw(make_request("/app.js"), fallback)

        assert response.status == HTTPStatus.NOT_FOUND
        assert len(fallback.requests) == 1

    def test_trailing_slash_with_dynamic(self, static_dir, make_request, fallback):
        """Test that "/app.js/" declines every time and caches nothing."""
        mw = middleware(static_dir, preload=False, dynamic=True)

        for _ in range(2):
            response = mw(make_request("/app.js/"), fallback)
            assert response.status == HTTPStatus.NOT_FOUND

        assert len(fallback.requests) == 2
        assert mw.cache.get("/app.js/") is None
        response = mw(make_request("/app.js"), fallback)
        assert response.status == HTTPStatus.OK
        response.close()

    def test_nul_byte_with_dynamic(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, preload=False, dynamic=True)

        response = mw(make_request("/app%00.js"), fallback)

        assert response.status == HTTPStatus.NOT_FOUND
        assert fallback.called

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
    def test_other_methods(self, static_dir, make_request, fallback, method):
        mw = middleware(static_dir)
        mw(make_request("/app.js", method=method), fallback)
        assert fallback.called

    def test_unknown_file(self, static_dir, make_request, fallback):
        mw = middleware(static_dir)
        mw(make_request("/missing.js"), fallback)
        assert fallback.called

    def test_new_file_without_dynamic(self, static_dir, make_request, fallback):
        """Test that files created after startup are unknown without dynamic."""
        mw = middleware(static_dir)
        (static_dir / "late.js").write_bytes(b"late")

        mw(make_request("/late.js"), fallback)

        assert fallback.called

    def test_traversal_with_dynamic(self, static_dir, make_request, fallback):
        """Test that ../ never reaches files outside the root."""
        (static_dir.parent / "secret.txt").write_bytes(b"top secret")
        mw = middleware(static_dir, dynamic=True)

        for path in ("/../secret.txt", "/%2e%2e/secret.txt", "/css/../../secret.txt"):
            response = mw(make_request(path), fallback)
            assert response.status == HTTPStatus.NOT_FOUND
            assert b"top secret" not in read_body(response)

        assert len(fallback.requests) == 3

    def test_hidden_file_with_dynamic(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, dynamic=True)

        mw(make_request("/.env"), fallback)
        mw(make_request("/.git/config"), fallback)

        assert len(fallback.requests) == 2

    def test_vanished_unbuffered_file(self, static_dir, make_request, fallback):
        mw = middleware(static_dir)
        os.remove(static_dir / "app.js")

        mw(make_request("/app.js"), fallback)

        assert fallback.called


class TestServing:
    """Requests answered with 200."""

    def test_get_headers_and_body(self, static_dir, make_request, fallback, static_mtime):
        mw = middleware(static_dir, max_age=3600)

        response = mw(make_request("/app.js"), fallback)

        assert not fallback.called
        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "text/javascript; charset=utf-8"
        assert response.headers["Cache-Control"] == "public, max-age=3600"
        assert response.headers["Last-Modified"] == format_http_date(static_mtime)
        assert response.headers["Content-Length"] == str(len((static_dir / "app.js").read_bytes()))
        assert "Content-Encoding" not in response.headers
        assert "Vary" not in response.headers
        assert read_body(response) == (static_dir / "app.js").read_bytes()

    def test_cache_control_override(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, max_age=3600, cache_control="no-store")
        response = mw(make_request("/app.js"), fallback)
        assert response.headers["Cache-Control"] == "no-store"

    def test_buffered_body(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, buffer=True)

        response = mw(make_request("/css/site.css"), fallback)

        assert not response.is_streamed
        assert response.body == (static_dir / "css" / "site.css").read_bytes()

    def test_key_normalization(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, buffer=True)

        response = mw(make_request("//css/./site.css"), fallback)

        assert response.status == HTTPStatus.OK
        assert response.body == (static_dir / "css" / "site.css").read_bytes()

    def test_prefix(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, prefix="/static/", buffer=True)

        response = mw(make_request("/static/data.json"), fallback)

        assert response.status == HTTPStatus.OK
        assert response.body == (static_dir / "data.json").read_bytes()

    def test_alias_serves_identical_bytes(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, buffer=True, alias={"/": "/index.html"})

        aliased = mw(make_request("/"), fallback)
        direct = mw(make_request("/index.html"), fallback)

        assert aliased.body == direct.body
        assert aliased.headers["Content-Type"] == "text/html; charset=utf-8"

    def test_dynamic_load(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, dynamic=True)
        (static_dir / "late.js").write_bytes(b"console.log(1)")

        response = mw(make_request("/late.js"), fallback)

        assert response.status == HTTPStatus.OK
        assert read_body(response) == b"console.log(1)"
        assert "/late.js" in mw.cache

    def test_dynamic_under_prefix(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, prefix="/assets", preload=False, dynamic=True)

        response = mw(make_request("/assets/css/site.css"), fallback)

        assert response.status == HTTPStatus.OK
        assert read_body(response) == (static_dir / "css" / "site.css").read_bytes()

    def test_preseeded_entry(self, static_dir, make_request, fallback):
        """Test that entries placed in the store before construction are served."""
        content = b"<svg/>"
        files = {
            "/icon.svg": FileEntry(
                path=str(static_dir / "icon.svg"),
                mime_type="image/svg+xml",
                mtime=1_600_000_000,
                length=len(content),
                buffer=content,
            )
        }
        mw = StaticCacheMiddleware(StaticCacheConfig(dir=str(static_dir), preload=False), files=files)

        response = mw(make_request("/icon.svg"), fallback)

        assert response.status == HTTPStatus.OK
        assert response.body == content
        assert response.headers["Content-Type"] == "image/svg+xml"

    def test_external_store(self, static_dir, make_request, fallback):
        class Store:
            def __init__(self):
                self.data = {}

            def get(self, key):
                return self.data.get(key)

            def set(self, key, value):
                self.data[key] = value

        store = Store()
        mw = StaticCacheMiddleware(StaticCacheConfig(dir=str(static_dir)), files=store)

        assert "/app.js" in store.data
        assert mw(make_request("/app.js"), fallback).status == HTTPStatus.OK

    def test_refresh_after_change(self, static_dir, make_request, fallback, static_mtime):
        """Test that an unbuffered file changed on disk is re-stat'ed."""
        mw = middleware(static_dir)
        path = static_dir / "data.json"
        path.write_bytes(b'{"items": []}')
        os.utime(path, (static_mtime + 3600, static_mtime + 3600))

        response = mw(make_request("/data.json"), fallback)

        assert response.headers["Last-Modified"] == format_http_date(static_mtime + 3600)
        assert response.headers["Content-Length"] == str(len(b'{"items": []}'))
        assert read_body(response) == b'{"items": []}'

    def test_factory(self, static_dir, make_request, fallback):
        mw = static_cache(str(static_dir), prefix="/s", buffer=True)

        assert mw.config.prefix == "/s/"
        assert mw(make_request("/s/data.json"), fallback).status == HTTPStatus.OK

    def test_invalid_config_fails_fast(self, tmp_path):
        with pytest.raises(ValueError):
            StaticCacheMiddleware(StaticCacheConfig(dir=str(tmp_path / "nope")))


class TestConditional:
    """Requests answered with 304."""

    def test_if_modified_since_equal(self, static_dir, make_request, fallback, static_mtime):
        mw = middleware(static_dir, buffer=True)
        request = make_request("/app.js", headers={
            "If-Modified-Since": format_http_date(static_mtime),
        })

        response = mw(request, fallback)

        assert response.status == HTTPStatus.NOT_MODIFIED
        assert read_body(response) == b""
        assert "Content-Length" not in response.headers
        assert response.headers["Last-Modified"] == format_http_date(static_mtime)

    def test_if_modified_since_later(self, static_dir, make_request, fallback, static_mtime):
        mw = middleware(static_dir)
        request = make_request("/app.js", headers={
            "If-Modified-Since": format_http_date(static_mtime + 86400),
        })

        assert mw(request, fallback).status == HTTPStatus.NOT_MODIFIED

    def test_if_modified_since_earlier(self, static_dir, make_request, fallback, static_mtime):
        mw = middleware(static_dir)
        request = make_request("/app.js", headers={
            "If-Modified-Since": format_http_date(static_mtime - 1),
        })

        assert mw(request, fallback).status == HTTPStatus.OK

    def test_no_cache_forces_full_response(self, static_dir, make_request, fallback, static_mtime):
        mw = middleware(static_dir)
        request = make_request("/app.js", headers={
            "If-Modified-Since": format_http_date(static_mtime),
            "Cache-Control": "no-cache",
        })

        assert mw(request, fallback).status == HTTPStatus.OK

    def test_stale_after_file_change(self, static_dir, make_request, fallback, static_mtime):
        """Test that a newer file on disk invalidates the client's copy."""
        mw = middleware(static_dir)
        os.utime(static_dir / "app.js", (static_mtime + 60, static_mtime + 60))
        request = make_request("/app.js", headers={
            "If-Modified-Since": format_http_date(static_mtime),
        })

        assert mw(request, fallback).status == HTTPStatus.OK

    def test_vary_on_304_with_gzip(self, static_dir, make_request, fallback, static_mtime):
        mw = middleware(static_dir, gzip=True)
        request = make_request("/app.js", headers={
            "If-Modified-Since": format_http_date(static_mtime),
        })

        response = mw(request, fallback)

        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.headers["Vary"] == "Accept-Encoding"

    def test_etag(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, etag=True)

        first = mw(make_request("/app.js"), fallback)
        etag = first.headers["ETag"]
        assert etag.startswith('W/"')

        second = mw(make_request("/app.js", headers={"If-None-Match": etag}), fallback)
        assert second.status == HTTPStatus.NOT_MODIFIED

        third = mw(make_request("/app.js", headers={"If-None-Match": 'W/"other"'}), fallback)
        assert third.status == HTTPStatus.OK

    def test_no_etag_by_default(self, static_dir, make_request, fallback):
        mw = middleware(static_dir)
        assert "ETag" not in mw(make_request("/app.js"), fallback).headers


class TestHead:
    """HEAD requests: headers only."""

    def test_head(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, buffer=True)

        response = mw(make_request("/index.html", method="HEAD"), fallback)

        assert response.status == HTTPStatus.OK
        assert response.headers_only
        assert response.headers["Content-Length"] == "50"
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert read_body(response) == b""

    def test_head_reports_get_encoding(self, static_dir, make_request, fallback):
        """Test that HEAD and GET agree on Content-Encoding for a buffered file."""
        mw = middleware(static_dir, buffer=True, gzip=True)
        headers = {"Accept-Encoding": "gzip, br"}

        head = mw(make_request("/app.js", method="HEAD", headers=headers), fallback)
        get = mw(make_request("/app.js", headers=headers), fallback)

        assert head.headers["Content-Encoding"] == get.headers["Content-Encoding"] == "br"
        assert "Content-Length" not in head.headers

    def test_head_does_not_open_file(self, static_dir, make_request, fallback, monkeypatch):
        mw = middleware(static_dir)

        def no_open(*args, **kwargs):
            raise AssertionError("HEAD must not read the file")

        monkeypatch.setattr(negotiation, "open", no_open, raising=False)

        response = mw(make_request("/app.js", method="HEAD"), fallback)

        assert response.status == HTTPStatus.OK
        assert not response.is_streamed


class TestCompression:
    """Content negotiation through the middleware."""

    def test_gzip(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, gzip=True, buffer=True)

        response = mw(make_request("/app.js", headers={"Accept-Encoding": "gzip"}), fallback)

        assert response.headers["Content-Encoding"] == "gzip"
        assert response.headers["Vary"] == "Accept-Encoding"
        assert response.headers["Content-Length"] == str(len(response.body))
        assert gzip.decompress(response.body) == (static_dir / "app.js").read_bytes()

    def test_brotli(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, gzip=True, buffer=True)

        response = mw(make_request("/app.js", headers={"Accept-Encoding": "gzip, deflate, br"}), fallback)

        assert response.headers["Content-Encoding"] == "br"
        assert brotli.decompress(response.body) == (static_dir / "app.js").read_bytes()

    def test_streamed_gzip_has_no_length(self, static_dir, make_request, fallback):
        mw = middleware(static_dir, gzip=True)

        response = mw(make_request("/css/site.css", headers={"Accept-Encoding": "gzip"}), fallback)

        assert response.headers["Content-Encoding"] == "gzip"
        assert "Content-Length" not in response.headers
        assert response.body_length is None
        assert gzip.decompress(read_body(response)) == (static_dir / "css" / "site.css").read_bytes()

    @pytest.mark.parametrize("buffer", [True, False])
    def test_small_and_binary_files_uncompressed(self, static_dir, make_request, fallback, buffer):
        """Test that index.html (50 bytes) and logo.png (2000 bytes) go out as is."""
        mw = middleware(static_dir, gzip=True, buffer=buffer)
        headers = {"Accept-Encoding": "gzip, deflate, br"}

        html = mw(make_request("/index.html", headers=headers), fallback)
        png = mw(make_request("/logo.png", headers=headers), fallback)

        assert "Content-Encoding" not in html.headers
        assert "Content-Encoding" not in png.headers
        assert html.headers["Content-Length"] == "50"
        assert png.headers["Content-Length"] == "2000"
        assert read_body(png) == (static_dir / "logo.png").read_bytes()

    def test_compression_error_propagates(self, static_dir, make_request, fallback, monkeypatch):
        def broken(data):
            raise CompressionError("br", "encoder failed")

        monkeypatch.setattr(negotiation, "brotli_compress", broken)
        mw = middleware(static_dir, gzip=True, buffer=True)

        with pytest.raises(CompressionError):
            mw(make_request("/app.js", headers={"Accept-Encoding": "br"}), fallback)

        assert not fallback.called

    def test_concurrent_requests_compress_once(self, static_dir, make_request, fallback, monkeypatch):
        calls = []
        real_brotli = negotiation.brotli_compress

        def counting(data):
            calls.append(1)
            return real_brotli(data)

        monkeypatch.setattr(negotiation, "brotli_compress", counting)
        mw = middleware(static_dir, gzip=True, buffer=True)
        start = threading.Barrier(10)
        bodies = []

        def worker():
            start.wait()
            response = mw(make_request("/app.js", headers={"Accept-Encoding": "br"}), fallback)
            bodies.append(response.body)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(bodies) == 10
        assert len(set(bodies)) == 1
