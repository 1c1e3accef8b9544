import errno
import os
import socket
import stat
from urllib.parse import unquote

import pytest

from mjpegstreamer.http.tools import (
    BufferEvent,
    bind_unix_socket,
    format_event_reason,
    get_hostport,
    query_flag_true,
    query_string_encoded,
)


def test_bind_unix_socket_sets_mode_and_listens(tmp_path):
    path = str(tmp_path / "s.sock")
    sock = bind_unix_socket(path, False, 0o660)
    try:
        st = os.stat(path)
        assert stat.S_ISSOCK(st.st_mode)
        assert stat.S_IMODE(st.st_mode) == 0o660
        assert sock.getblocking() is False
        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            client.connect(path)
            assert client.getpeername() == path
        finally:
            client.close()
    finally:
        sock.close()


def test_bind_unix_socket_path_too_long():
    with pytest.raises(ValueError):
        bind_unix_socket("/" + "a" * 200, False, 0)


def test_bind_unix_socket_existing_without_rm(tmp_path):
    path = tmp_path / "s.sock"
    path.write_text("busy")
    with pytest.raises(OSError):
        bind_unix_socket(str(path), False, 0)


def test_bind_unix_socket_existing_with_rm(tmp_path):
    path = tmp_path / "s.sock"
    path.write_text("busy")
    sock = bind_unix_socket(str(path), True, 0)
    try:
        assert sock.getsockname() == str(path)
        assert stat.S_ISSOCK(os.stat(path).st_mode)
    finally:
        sock.close()


def test_get_hostport_peer():
    assert get_hostport("10.0.0.1", 8080, {}) == "[10.0.0.1]:8080"


def test_get_hostport_forwarded_first_address():
    headers = {"x-forwarded-for": "1.2.3.4, 5.6.7.8"}
    assert get_hostport("10.0.0.1", 8080, headers) == "[1.2.3.4]:8080"


def test_get_hostport_forwarded_pairs_without_peer():
    headers = [("Host", "example.com"), ("X-Forwarded-For", "9.9.9.9")]
    assert get_hostport(None, 1234, headers) == "[9.9.9.9]:0"


def test_get_hostport_unknown():
    assert get_hostport(None, 0, {}) == "[???]:0"


def test_get_hostport_forwarded_truncated():
    result = get_hostport("h", 1, {"X-Forwarded-For": "a" * 2000})
    assert result == "[" + "a" * 1024 + "]:1"


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("1abc", True), ("TRUE", True), ("Yes", True), ("no", False), ("0", False), ("", False)],
)
def test_query_flag_true(value, expected):
    assert query_flag_true({"key": value}, "key") is expected


def test_query_flag_true_missing():
    assert query_flag_true({"other": "1"}, "key") is False


def test_query_flag_true_case_insensitive_key():
    assert query_flag_true([("KEY", "yes")], "key") is True


def test_query_string_encoded_missing():
    assert query_string_encoded({}, "key") is None


def test_query_string_encoded_round_trip():
    original = "a b/c?d=e&f_g.h-i~j ü"
    encoded = query_string_encoded({"key": original}, "key")
    assert unquote(encoded) == original
    allowed = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~%")
    assert set(encoded) <= allowed


def test_query_string_encoded_space():
    assert query_string_encoded({"key": "a b"}, "key") == "a%20b"


def test_format_event_reason_flags():
    what = BufferEvent.READING | BufferEvent.EOF
    result = format_event_reason(what, errno.ECONNRESET)
    assert result == os.strerror(errno.ECONNRESET) + " (reading,eof)"


def test_format_event_reason_order_and_no_flags():
    what = BufferEvent.TIMEOUT | BufferEvent.WRITING | BufferEvent.ERROR
    assert format_event_reason(what, errno.EPIPE).endswith(" (writing,error,timeout)")
    assert format_event_reason(0, errno.EPIPE) == os.strerror(errno.EPIPE) + " ()"