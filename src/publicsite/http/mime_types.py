"""
=============================================================================
CONTENT-TYPE RESOLUTION
=============================================================================

Maps a file path to the Content-Type header it is served with.

Unlike a general-purpose file server, the public site does NOT fall back
to ``application/octet-stream``. A file whose extension is not in the
table below is refused with 415 Unsupported Media Type, so only content
the panel knows how to present ever leaves the document root.

    resolve_content_type("index.html")   → 'text/html; charset=utf-8'
    resolve_content_type("logo.png")     → 'image/png'
    resolve_content_type("backup.sql")   → UnsupportedMediaType
    resolve_content_type("Makefile")     → UnsupportedMediaType

=============================================================================
"""

from pathlib import Path
from typing import Union

from ..errors import UnsupportedMediaType


MIME_TYPES = {
    # -------------------------------------------------------------------------
    # TEXT
    # -------------------------------------------------------------------------
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",

    # -------------------------------------------------------------------------
    # IMAGES
    # -------------------------------------------------------------------------
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # -------------------------------------------------------------------------
    # FONTS
    # -------------------------------------------------------------------------
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".eot": "application/vnd.ms-fontobject",

    # -------------------------------------------------------------------------
    # AUDIO / VIDEO
    # -------------------------------------------------------------------------
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # -------------------------------------------------------------------------
    # DOCUMENTS / ARCHIVES
    # -------------------------------------------------------------------------
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",

    # -------------------------------------------------------------------------
    # OTHER
    # -------------------------------------------------------------------------
    ".wasm": "application/wasm",
    ".map": "application/json",
}

# non-text/* types whose content is text and gets a charset parameter
TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "image/svg+xml",
}


def get_mime_type(path: Union[str, Path]) -> str:
    """
    Look up the bare MIME type for ``path`` by extension (case-insensitive).

    Raises:
        UnsupportedMediaType: If the extension is missing or unknown.
    """
    extension = Path(path).suffix.lower()
    try:
        return MIME_TYPES[extension]
    except KeyError:
        if not extension:
            raise UnsupportedMediaType(str(path), f"no file extension on {str(path)!r}") from None
        raise UnsupportedMediaType(str(path), f"unknown file extension {extension!r}") from None


def is_text_type(mime_type: str) -> bool:
    """True for types that should carry a charset parameter."""
    return mime_type.startswith("text/") or mime_type in TEXT_APPLICATION_TYPES


def resolve_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for ``path``.

    This is the resolver the static handler is built with by default. Any
    callable with the same signature and error contract can replace it.

    Args:
        path: File path or name with extension.
        charset: Charset appended to text types.

    Raises:
        UnsupportedMediaType: If no type is registered for the extension.
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
