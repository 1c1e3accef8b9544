"""Guessing of MIME types for static files by their extension."""

from __future__ import annotations

DEFAULT_MIME_TYPE = "application/misc"

_MIME_TYPES: dict[str, str] = {
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "text/javascript",
    "txt": "text/plain",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "ico": "image/x-icon",
    "bmp": "image/bmp",
    "svg": "image/svg+xml",
    "swf": "application/x-shockwave-flash",
    "cab": "application/x-shockwave-flash",
    "jar": "application/java-archive",
    "json": "application/json",
}


def guess_mime_type(path: str) -> str:
    """Return the MIME type for the extension of ``path``.

    The extension is matched case-insensitively (ASCII only). Paths without
    an extension in their last component get ``application/misc``.
    """
    _, dot, ext = path.rpartition(".")
    if not dot or "/" in ext:
        return DEFAULT_MIME_TYPE
    if not ext.isascii():
        return DEFAULT_MIME_TYPE
    return _MIME_TYPES.get(ext.lower(), DEFAULT_MIME_TYPE)