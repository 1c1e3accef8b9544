"""Lookup of static files served from a root directory."""

from __future__ import annotations

import logging
import os
import stat

from mjpegstreamer.http.path import simplify_request_path

_log = logging.getLogger(__name__)


def find_static_file_path(root_path: str, request_path: str) -> str | None:
    """Map a request path to a readable regular file under ``root_path``.

    A directory is answered with its ``index.html``. Symlinks are not
    followed. Returns ``None`` when no suitable file exists.
    """
    simplified = simplify_request_path(request_path)
    if not simplified:
        _log.debug("HTTP: Invalid request path %s to static", request_path)
        return None

    path = f"{root_path}/{simplified}"

    try:
        st = os.lstat(path)
        if stat.S_ISDIR(st.st_mode):
            _log.debug(
                "HTTP: Requested static path %s is a directory, trying %s/index.html",
                path,
                path,
            )
            path += "/index.html"
            st = os.lstat(path)
    except OSError as err:
        _log.debug("HTTP: Can't stat() static path %s: %s", path, err)
        return None

    if not stat.S_ISREG(st.st_mode):
        _log.debug("HTTP: Not a regular file: %s", path)
        return None

    if not os.access(path, os.R_OK):
        _log.debug("HTTP: Can't access() R_OK file %s", path)
        return None

    return path