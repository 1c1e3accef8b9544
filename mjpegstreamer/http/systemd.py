"""Taking over a listening socket passed by systemd socket activation."""

from __future__ import annotations

import logging
import os
import socket
from collections.abc import MutableMapping

_log = logging.getLogger(__name__)

SD_LISTEN_FDS_START = 3


def _listen_fds(environ: MutableMapping[str, str]) -> int:
    """Count the sockets passed to this process and clear the related variables."""
    try:
        pid_text = environ.get("LISTEN_PID")
        if pid_text is None:
            return 0
        try:
            if int(pid_text) != os.getpid():
                return 0
            count = int(environ.get("LISTEN_FDS", ""))
        except ValueError:
            return -1
        if count <= 0:
            return count
        try:
            for fd in range(SD_LISTEN_FDS_START, SD_LISTEN_FDS_START + count):
                os.set_inheritable(fd, False)
        except OSError:
            return -1
        return count
    finally:
        for name in ("LISTEN_PID", "LISTEN_FDS", "LISTEN_FDNAMES"):
            environ.pop(name, None)


def listen_systemd_socket(environ: MutableMapping[str, str] | None = None) -> socket.socket:
    """Return the first socket passed by systemd as a non-blocking socket.

    Any further passed sockets are closed. The activation variables are
    removed from ``environ``. Raises ``RuntimeError`` if no socket was passed.
    """
    if environ is None:
        environ = os.environ
    count = _listen_fds(environ)
    if count < 1:
        _log.error("HTTP: No available systemd sockets")
        raise RuntimeError("HTTP: No available systemd sockets")

    for fd in range(SD_LISTEN_FDS_START + 1, SD_LISTEN_FDS_START + count):
        try:
            os.close(fd)
        except OSError:
            pass

    sock = socket.socket(fileno=SD_LISTEN_FDS_START)
    sock.setblocking(False)
    return sock