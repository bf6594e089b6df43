"""
=============================================================================
MIME TYPE DETECTION AND COMPRESSIBILITY
=============================================================================

Maps file extensions to MIME types for the Content-Type header, and
classifies MIME types as worth compressing or not.

=============================================================================
WHY CLASSIFY COMPRESSIBILITY?
=============================================================================

    ┌────────────────────────────────────────────────────────────────────┐
    │                  WHAT GZIP/BROTLI CAN SHRINK                       │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  COMPRESSIBLE (text-like)        NOT COMPRESSIBLE (already packed) │
    │  ─────────────────────────       ───────────────────────────────── │
    │  text/html, text/css             image/png, image/jpeg, image/webp │
    │  text/javascript                 video/mp4, audio/mpeg             │
    │  application/json                application/zip, application/gzip │
    │  image/svg+xml                   font/woff, font/woff2             │
    │  application/*+json, *+xml       application/pdf                   │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

Compressing a PNG wastes CPU and can make the body larger, so the static
cache only negotiates an encoding when is_compressible() says yes.
"""

import re
from pathlib import Path
from typing import Optional


# =============================================================================
# MIME TYPE DATABASE
# =============================================================================
#
# Maps file extensions (lowercase, with dot) to MIME types.
#
# =============================================================================

MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",    # Source maps
    ".webmanifest": "application/manifest+json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".eot": "application/vnd.ms-fontobject",

    # Audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".br": "application/x-brotli",
    ".7z": "application/x-7z-compressed",

    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


# =============================================================================
# COMPRESSIBLE TYPES
# =============================================================================
#
# Explicit list for the non-text/* types that still compress well.
# text/* and the structured-syntax suffixes are matched by pattern.
#
# =============================================================================

COMPRESSIBLE_TYPES = {
    "application/json",
    "application/javascript",
    "application/x-javascript",
    "application/xml",
    "application/xhtml+xml",
    "application/wasm",
    "application/vnd.ms-fontobject",
    "application/x-tar",
    "image/svg+xml",
    "image/x-icon",
    "image/bmp",
    "font/ttf",
    "font/otf",
}

_COMPRESSIBLE_PATTERN = re.compile(r"^text/|\+(?:json|text|xml)$")


def get_mime_type(path: str | Path, default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("/static/style.css")
        'text/css'
        >>> get_mime_type("unknown.xyz")
        'application/octet-stream'
    """
    if isinstance(path, str):
        path = Path(path)

    extension = path.suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """
    Check if a MIME type represents text content.

    Text content is served with a charset parameter.
    """
    if mime_type.startswith("text/"):
        return True

    return mime_type in {
        "application/json",
        "application/manifest+json",
        "application/xml",
        "application/javascript",
        "application/x-javascript",
    }


def is_compressible(mime_type: str) -> bool:
    """
    Check whether a body of this MIME type is worth compressing.

    Parameters like "; charset=utf-8" are ignored.

    Examples:
        >>> is_compressible("text/html; charset=utf-8")
        True
        >>> is_compressible("application/ld+json")
        True
        >>> is_compressible("image/png")
        False
    """
    base_type = mime_type.split(";")[0].strip().lower()
    if not base_type:
        return False

    if base_type in COMPRESSIBLE_TYPES:
        return True

    return bool(_COMPRESSIBLE_PATTERN.search(base_type))


def get_content_type(mime_type: str, charset: str = "utf-8") -> str:
    """
    Get the full Content-Type header value for a MIME type.

    For text-based content, includes the charset parameter.

    Examples:
        >>> get_content_type("text/html")
        'text/html; charset=utf-8'
        >>> get_content_type("image/png")
        'image/png'
    """
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"

    return mime_type
