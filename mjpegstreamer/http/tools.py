"""Helpers for the HTTP server: UNIX sockets, client addresses, query values."""

from __future__ import annotations

import enum
import logging
import os
import socket
from collections.abc import Iterable, Mapping
from urllib.parse import quote

_log = logging.getLogger(__name__)

_SUN_PATH_SIZE = 108
_MAX_SUN_PATH = _SUN_PATH_SIZE - 1
_LISTEN_BACKLOG = 128
_MAX_FORWARDED_LEN = 1024
_MAX_ERROR_LEN = 1023

Pairs = Mapping[str, str] | Iterable[tuple[str, str]]


class BufferEvent(enum.IntFlag):
    """Event flags reported for a buffered client connection."""

    READING = 0x01
    WRITING = 0x02
    EOF = 0x10
    ERROR = 0x20
    TIMEOUT = 0x40
    CONNECTED = 0x80


def _find(pairs: Pairs, key: str) -> str | None:
    """Return the first value whose key matches ``key`` ignoring ASCII case."""
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    wanted = key.lower()
    for name, value in items:
        if name.lower() == wanted:
            return value
    return None


def bind_unix_socket(path: str, rm: bool, mode: int) -> socket.socket:
    """Create a non-blocking listening UNIX stream socket at ``path``.

    With ``rm`` an existing file at ``path`` is removed first. A non-zero
    ``mode`` is applied to the socket file. Raises ``ValueError`` for a path
    that does not fit into a socket address and ``OSError`` on other failures.
    """
    if len(os.fsencode(path)) > _MAX_SUN_PATH:
        raise ValueError(f"HTTP: UNIX socket path is too long; max={_MAX_SUN_PATH}")

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.setblocking(False)
        if rm:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
        sock.bind(path)
        if mode:
            os.chmod(path, mode)
        sock.listen(_LISTEN_BACKLOG)
    except OSError as err:
        sock.close()
        _log.error("HTTP: Can't set up UNIX socket '%s': %s", path, err)
        raise
    return sock


def get_hostport(peer_host: str | None, peer_port: int, headers: Pairs) -> str:
    """Describe a client as ``[address]:port``.

    The first address of an ``X-Forwarded-For`` header takes precedence over
    the peer address. Without a peer (``peer_host`` is ``None``) the port is 0.
    """
    addr = peer_host
    port = peer_port if peer_host is not None else 0

    forwarded = _find(headers, "X-Forwarded-For")
    if forwarded is not None:
        addr = forwarded[:_MAX_FORWARDED_LEN].split(",", 1)[0]

    if addr is None:
        addr = "???"
    return f"[{addr}]:{port}"


def query_flag_true(params: Pairs, key: str) -> bool:
    """Tell whether a query parameter is set to a true value.

    True values start with ``1`` or are ``true`` or ``yes`` in any case.
    """
    value = _find(params, key)
    if value is None:
        return False
    return value.startswith("1") or value.lower() in ("true", "yes")


def query_string_encoded(params: Pairs, key: str) -> str | None:
    """Return a query parameter percent-encoded for safe output, or ``None``."""
    value = _find(params, key)
    if value is None:
        return None
    return quote(value, safe="")


def format_event_reason(what: BufferEvent | int, error: int) -> str:
    """Describe a connection event: the error text and the flags that are set."""
    flags = BufferEvent(what)
    names = [
        name
        for flag, name in (
            (BufferEvent.READING, "reading"),
            (BufferEvent.WRITING, "writing"),
            (BufferEvent.ERROR, "error"),
            (BufferEvent.TIMEOUT, "timeout"),
            (BufferEvent.EOF, "eof"),
        )
        if flag in flags
    ]
    return f"{os.strerror(error)[:_MAX_ERROR_LEN]} ({','.join(names)})"