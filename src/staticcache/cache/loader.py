"""
=============================================================================
FILE LOADER
=============================================================================

Reads files from disk into FileEntry objects.

=============================================================================
WHEN FILES ARE LOADED
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      THREE WAYS INTO THE CACHE                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PRELOAD (startup)     walk dir → filter → load every file         │
    │                                                                      │
    │   ALIAS (startup)       "/" → "/index.html"                         │
    │                         second key, SAME entry object               │
    │                                                                      │
    │   DYNAMIC (request)     first request for a file that was not       │
    │                         preloaded → load it, then serve it          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Loading is synchronous: os.stat() and, when buffering, a full read. That
is acceptable at startup and on the first access to a file. It never
happens again for a buffered file.
"""

import logging
import os
import posixpath
from typing import Iterator

from ..config import StaticCacheConfig
from ..http.mime_types import get_mime_type
from .entry import FileEntry
from .resolver import normalize_path
from .store import FileCache


logger = logging.getLogger(__name__)


def walk_files(root: str) -> Iterator[str]:
    """
    Recursively list regular files under root.

    Yields "/"-separated paths relative to root, sorted, skipping hidden
    files and hidden directories.

    Example:
        root/
          index.html
          .env
          css/site.css
        → "css/site.css", "index.html"
    """
    for dirpath, dirnames, filenames in os.walk(root):
        # Prune hidden directories in place so os.walk skips them
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))

        relative_dir = os.path.relpath(dirpath, root)
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            if not os.path.isfile(os.path.join(dirpath, filename)):
                continue

            if relative_dir == os.curdir:
                yield filename
            else:
                yield posixpath.join(relative_dir.replace(os.sep, "/"), filename)


class FileLoader:
    """
    Populates a FileCache from the configured root directory.

    Usage:
        loader = FileLoader(config, cache)
        loader.preload()             # every file passing the filter
        loader.register_aliases()    # config.alias
        entry = loader.load("css/site.css")
    """

    def __init__(self, config: StaticCacheConfig, cache: FileCache):
        self.config = config
        self.cache = cache

    def key_for(self, name: str) -> str:
        """Cache key of a path relative to dir: prefix + name, normalized."""
        return normalize_path(posixpath.join(self.config.prefix, name))

    def load(self, name: str) -> FileEntry:
        """
        Load (or reload) one file into the cache.

        The file is stat'ed (and read, when buffering) before the cache is
        touched. The entry is then inserted and filled in place, so holders
        of an existing entry (aliases included) see the update.

        Args:
            name: Path relative to dir, "/" separated.

        Returns:
            The cached entry.

        Raises:
            OSError: If the file cannot be stat'ed or read.
        """
        key = self.key_for(name)
        filename = os.path.join(self.config.dir, *name.split("/"))

        # Touch the disk first: a file that cannot be read leaves no entry behind
        stats = os.stat(filename)
        content = None
        if self.config.buffer:
            with open(filename, "rb") as f:
                content = f.read()

        entry = self.cache.get(key)
        if entry is None:
            entry = FileEntry()
            self.cache.set(key, entry)

        entry.path = filename
        entry.cache_control = self.config.cache_control
        entry.max_age = entry.max_age or self.config.max_age or 0
        entry.mime_type = get_mime_type(key)
        entry.mtime = stats.st_mtime
        entry.length = stats.st_size

        if content is not None:
            entry.set_buffer(content)

        logger.debug(
            f"Loaded {key} ({entry.mime_type}, {entry.length} bytes, "
            f"buffered={entry.is_buffered})"
        )
        return entry

    def preload(self) -> int:
        """
        Load every file under dir that passes the filter.

        Returns:
            Number of files loaded.
        """
        count = 0
        for name in walk_files(self.config.dir):
            if not self.config.accepts_file(name):
                continue
            self.load(name)
            count += 1

        logger.info(f"Preloaded {count} files from {self.config.dir}")
        return count

    def register_aliases(self) -> None:
        """
        Point each alias key at its target's entry.

        Targets that are not cached (yet) are skipped.
        """
        for alias, target in self.config.alias.items():
            entry = self.cache.get(target)
            if entry is None:
                logger.debug(f"Alias target {target} not cached, skipping {alias}")
                continue

            self.cache.set(alias, entry)
            logger.debug(f"Aliasing {target} as {alias}")
