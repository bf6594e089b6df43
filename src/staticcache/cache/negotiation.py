"""
=============================================================================
COMPRESSION NEGOTIATION
=============================================================================

Picks the representation of a FileEntry to send (raw, gzip or brotli) and
produces its body, computing and caching compressed buffers on demand.

=============================================================================
DECISION ORDER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         WHICH BODY TO SEND                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. brotli_buffer cached  and client accepts br    → br            │
    │   2. gzip_buffer cached    and client accepts gzip  → gzip          │
    │                            client refuses gzip      → raw buffer    │
    │                                                                      │
    │   should_compress = gzip enabled                                    │
    │                     and length > 1024                               │
    │                     and client accepts gzip                         │
    │                     and MIME type is compressible                   │
    │                                                                      │
    │   3. buffered, should_compress:                                     │
    │        compute brotli (quality 11) once                             │
    │        client accepts br                            → br            │
    │        else precompiled "<key>.gz" or gzip level 9  → gzip          │
    │   4. buffered, not should_compress                  → raw buffer    │
    │   5. not buffered, should_compress                  → gzip stream   │
    │   6. not buffered                                   → raw stream    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A cached gzip buffer never forces gzip on a client that didn't ask for it.

=============================================================================
CACHED VS TRANSIENT COMPRESSION
=============================================================================

Buffered entries keep their compressed variants forever: the buffer is
the cache key. Streamed entries have nothing to key a cache on, so their
gzip output is produced chunk by chunk for every request and thrown away.
The compressed length is unknown up front, hence no Content-Length.

=============================================================================
"""

import gzip
import logging
import os
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterable, Iterator, Optional

import brotli

from ..config import StaticCacheConfig
from ..http.mime_types import is_compressible
from ..http.request import HTTPRequest
from .entry import FileEntry
from .store import FileCache


logger = logging.getLogger(__name__)

MIN_COMPRESS_SIZE = 1024
GZIP_LEVEL = 9
BROTLI_QUALITY = 11     # brotli's maximum
CHUNK_SIZE = 64 * 1024


class CompressionError(Exception):
    """
    Raised when a codec fails.

    Never recovered from: a corrupt or truncated compressed body must not
    reach the client, so the request fails instead.
    """

    def __init__(self, encoding: str, message: str):
        super().__init__(f"{encoding} compression failed: {message}")
        self.encoding = encoding


# =============================================================================
# CODECS
# =============================================================================

def gzip_compress(data: bytes) -> bytes:
    try:
        return gzip.compress(data, compresslevel=GZIP_LEVEL)
    except (zlib.error, OSError) as e:
        raise CompressionError("gzip", str(e)) from e


def brotli_compress(data: bytes) -> bytes:
    try:
        return brotli.compress(data, quality=BROTLI_QUALITY)
    except brotli.error as e:
        raise CompressionError("br", str(e)) from e


class FileChunks:
    """
    A file's content as an iterable of chunks.

    The file is closed when iteration ends or when close() is called,
    even if iteration never started.
    """

    def __init__(self, f: BinaryIO, chunk_size: int = CHUNK_SIZE):
        self._file = f
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        with self._file:
            while True:
                chunk = self._file.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk

    def close(self) -> None:
        self._file.close()


class GzipStream:
    """
    Gzips a chunk stream on the fly, level 9 by default.

    wbits=31 selects the gzip container (header + CRC trailer) rather
    than a raw zlib stream.
    """

    def __init__(self, source: Iterable[bytes], level: int = GZIP_LEVEL):
        self.source = source
        self.level = level

    def __iter__(self) -> Iterator[bytes]:
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, 31)
        try:
            for chunk in self.source:
                data = compressor.compress(chunk)
                if data:
                    yield data
            yield compressor.flush()
        except zlib.error as e:
            raise CompressionError("gzip", str(e)) from e
        finally:
            self.close()

    def close(self) -> None:
        close = getattr(self.source, "close", None)
        if close is not None:
            close()


# =============================================================================
# NEGOTIATION
# =============================================================================

@dataclass
class Representation:
    """
    The body chosen for one response.

    Attributes:
        encoding: Content-Encoding value, or None for identity.
        length:   Content-Length, or None when unknown (gzip stream).
        body:     Buffered body, or None when streamed.
        stream:   Chunk iterator, or None when buffered.
    """

    encoding: Optional[str] = None
    length: Optional[int] = None
    body: Optional[bytes] = None
    stream: Optional[Iterable[bytes]] = None


class CompressionNegotiator:
    """
    Chooses and produces response bodies for cached entries.

    Usage:
        negotiator = CompressionNegotiator(config, cache)

        negotiator.refresh(entry)                    # before validators
        representation = negotiator.negotiate(key, entry, request)
    """

    def __init__(
        self,
        config: StaticCacheConfig,
        cache: FileCache,
        compressible: Callable[[str], bool] = is_compressible,
        min_size: int = MIN_COMPRESS_SIZE,
        chunk_size: int = CHUNK_SIZE,
    ):
        """
        Args:
            config: Static cache options (gzip, use_precompiled_gzip).
            cache: Used to look up precompiled "<key>.gz" siblings.
            compressible: Predicate over MIME types.
            min_size: Bodies must be strictly larger to be compressed.
            chunk_size: Read size for streamed files.
        """
        self.config = config
        self.cache = cache
        self.compressible = compressible
        self.min_size = min_size
        self.chunk_size = chunk_size

    def refresh(self, entry: FileEntry) -> bool:
        """
        Re-check an unbuffered entry against disk.

        Only a newer mtime updates the entry. The content itself is not
        re-read, streaming picks up the new bytes.

        Returns:
            True if mtime/length changed.

        Raises:
            OSError: If the backing file can no longer be stat'ed.
        """
        if entry.buffer is not None:
            return False

        stats = os.stat(entry.path)
        if stats.st_mtime > entry.mtime:
            entry.mtime = stats.st_mtime
            entry.length = stats.st_size
            return True
        return False

    def should_compress(self, entry: FileEntry, request: HTTPRequest) -> bool:
        return (
            self.config.gzip
            and entry.length > self.min_size
            and request.accepts_encoding("gzip")
            and self.compressible(entry.mime_type)
        )

    def _cached_variant(self, entry: FileEntry, request: HTTPRequest) -> Optional[Representation]:
        brotli_buffer = entry.brotli_buffer
        if brotli_buffer is not None and request.accepts_encoding("br"):
            return Representation("br", len(brotli_buffer), body=brotli_buffer)

        gzip_buffer = entry.gzip_buffer
        if gzip_buffer is not None:
            if request.accepts_encoding("gzip"):
                return Representation("gzip", len(gzip_buffer), body=gzip_buffer)

            buffer = entry.buffer
            if buffer is not None:
                return Representation(None, len(buffer), body=buffer)

        return None

    def describe(self, key: str, entry: FileEntry, request: HTTPRequest) -> Representation:
        """
        Encoding and length of what negotiate() would send, without
        producing a body or compressing anything. Used for HEAD.

        The encoding always matches GET. The length is left out when it
        is only known after compressing.
        """
        cached = self._cached_variant(entry, request)
        if cached is not None:
            return Representation(cached.encoding, cached.length)

        if not self.should_compress(entry, request):
            return Representation(None, entry.length)

        if entry.buffer is not None and request.accepts_encoding("br"):
            return Representation("br", None)

        if entry.buffer is not None and self.config.use_precompiled_gzip:
            precompiled = self.cache.get(key + ".gz")
            if precompiled is not None and precompiled.buffer is not None:
                return Representation("gzip", len(precompiled.buffer))

        return Representation("gzip", None)

    def negotiate(self, key: str, entry: FileEntry, request: HTTPRequest) -> Representation:
        """
        Produce the body for a GET.

        Args:
            key: The cache key the request resolved to, used to find a
                 precompiled "<key>.gz" entry.
            entry: The file to send.
            request: Supplies Accept-Encoding.

        Raises:
            CompressionError: If a codec fails.
            OSError: If a streamed file cannot be opened.
        """
        cached = self._cached_variant(entry, request)
        if cached is not None:
            return cached

        should_compress = self.should_compress(entry, request)
        buffer = entry.buffer

        # ═══════════════════════════════════════════════════════════════════
        # BUFFERED CONTENT
        # ═══════════════════════════════════════════════════════════════════
        if buffer is not None:
            if not should_compress:
                return Representation(None, len(buffer), body=buffer)

            brotli_buffer = entry.get_or_compute("brotli_buffer", self._brotli)
            if request.accepts_encoding("br"):
                return Representation("br", len(brotli_buffer), body=brotli_buffer)

            gzip_buffer = self._gzip_buffer(key, entry)
            return Representation("gzip", len(gzip_buffer), body=gzip_buffer)

        # ═══════════════════════════════════════════════════════════════════
        # STREAMED CONTENT
        # ═══════════════════════════════════════════════════════════════════
        chunks = FileChunks(open(entry.path, "rb"), self.chunk_size)

        if should_compress:
            return Representation("gzip", None, stream=GzipStream(chunks))

        return Representation(None, entry.length, stream=chunks)

    def _gzip_buffer(self, key: str, entry: FileEntry) -> bytes:
        if self.config.use_precompiled_gzip:
            precompiled = self.cache.get(key + ".gz")
            if precompiled is not None and precompiled.buffer is not None:
                return entry.set_if_absent("gzip_buffer", precompiled.buffer)

        return entry.get_or_compute("gzip_buffer", self._gzip)

    def _brotli(self, data: bytes) -> bytes:
        compressed = brotli_compress(data)
        logger.debug(f"Computed brotli buffer: {len(data)} → {len(compressed)} bytes")
        return compressed

    def _gzip(self, data: bytes) -> bytes:
        compressed = gzip_compress(data)
        logger.debug(f"Computed gzip buffer: {len(data)} → {len(compressed)} bytes")
        return compressed
