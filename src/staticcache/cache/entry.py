"""
=============================================================================
FILE ENTRY
=============================================================================

One servable resource: its metadata, and optionally its content plus the
compressed variants derived from that content.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          FileEntry LAYOUT                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   METADATA            path, mime_type, mtime, length,               │
    │                       max_age, cache_control                        │
    │                                                                      │
    │   CONTENT             buffer          (None → stream from disk)     │
    │                         │                                           │
    │                         ├──► gzip_buffer    lazily computed once    │
    │                         └──► brotli_buffer  lazily computed once    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
INVARIANTS
=============================================================================

- An entry without a buffer has a path; its mtime/length are re-checked
  against disk on every request.
- Compressed buffers are derived from `buffer` only. Replacing the buffer
  clears them (see set_buffer).
- Compressed buffers are computed at most once per buffer content. The
  per-entry lock serializes the computation; readers only ever observe
  None or a complete bytes object.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..http.mime_types import DEFAULT_MIME_TYPE


@dataclass
class FileEntry:
    """
    Cached record for one file.

    The same FileEntry object may be reachable from several cache keys
    (aliases). Always mutate it in place, never replace it.
    """

    path: Optional[str] = None
    mime_type: str = DEFAULT_MIME_TYPE
    cache_control: Optional[str] = None
    max_age: int = 0
    mtime: float = 0.0
    length: int = 0

    buffer: Optional[bytes] = field(default=None, repr=False)
    gzip_buffer: Optional[bytes] = field(default=None, repr=False)
    brotli_buffer: Optional[bytes] = field(default=None, repr=False)

    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def is_buffered(self) -> bool:
        return self.buffer is not None

    @property
    def cache_control_header(self) -> str:
        """
        The Cache-Control value to send.

        The literal override wins; otherwise "public, max-age=<max_age>".
        """
        return self.cache_control or f"public, max-age={self.max_age}"

    @property
    def etag(self) -> str:
        """Weak validator: W/"<length hex>-<mtime ms hex>"."""
        return f'W/"{self.length:x}-{int(self.mtime * 1000):x}"'

    def set_buffer(self, buffer: Optional[bytes]) -> None:
        """Replace the content, dropping variants derived from the old one."""
        with self._lock:
            self.gzip_buffer = None
            self.brotli_buffer = None
            self.buffer = buffer

    def get_or_compute(self, attribute: str, compute: Callable[[bytes], bytes]) -> bytes:
        """
        Return a compressed variant, computing and caching it if absent.

        Double-checked: the fast path reads without the lock; the slow
        path re-checks under the lock so concurrent requests compute the
        variant exactly once.

        Args:
            attribute: "gzip_buffer" or "brotli_buffer".
            compute: Function turning the uncompressed buffer into the
                     compressed one. Exceptions propagate unchanged and
                     nothing is cached.
        """
        value = getattr(self, attribute)
        if value is not None:
            return value

        with self._lock:
            value = getattr(self, attribute)
            if value is None:
                if self.buffer is None:
                    raise ValueError(f"cannot derive {attribute} without a buffer")
                value = compute(self.buffer)
                setattr(self, attribute, value)
            return value

    def set_if_absent(self, attribute: str, value: bytes) -> bytes:
        """Cache a variant obtained elsewhere (e.g. a precompiled .gz file)."""
        with self._lock:
            current = getattr(self, attribute)
            if current is None:
                setattr(self, attribute, value)
                return value
            return current

    def __getstate__(self):
        # Locks don't pickle; external stores may serialize entries
        state = self.__dict__.copy()
        state.pop("_lock", None)
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.Lock()
