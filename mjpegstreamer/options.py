"""Command line options of the streamer."""

from __future__ import annotations

import enum
import logging
import os
import string
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace

_log = logging.getLogger(__name__)

VERSION = "0.1.0"

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1

VIDEO_MIN_WIDTH = 160
VIDEO_MAX_WIDTH = 15360
VIDEO_MIN_HEIGHT = 120
VIDEO_MAX_HEIGHT = 8640
VIDEO_MAX_FPS = 120

LOG_LEVEL_INFO = 0
LOG_LEVEL_PERF = 1
LOG_LEVEL_VERBOSE = 2
LOG_LEVEL_DEBUG = 3

FORMATS = ("YUYV", "YVYU", "UYVY", "YUV420", "YVU420", "RGB565", "RGB24", "BGR24", "GREY", "MJPEG", "JPEG")
STANDARDS = ("PAL", "NTSC", "SECAM")
IO_METHODS = ("MMAP", "USERPTR")
ENCODER_TYPES = ("CPU", "HW", "M2M-VIDEO", "M2M-IMAGE")

FEATURE_NAMES = ("PYTHON", "JANUS", "V4P", "GPIO", "SYSTEMD", "PTHREAD_NP", "SETPROCTITLE", "PDEATHSIG")
DEFAULT_FEATURES = frozenset({"PTHREAD_NP", "SETPROCTITLE", "PDEATHSIG"})

SINK_KINDS = ("jpeg", "raw", "h264")

# (name, whether "auto" is accepted)
CONTROLS: tuple[tuple[str, bool], ...] = (
    ("brightness", True),
    ("contrast", False),
    ("saturation", False),
    ("hue", True),
    ("gamma", False),
    ("sharpness", False),
    ("backlight_compensation", False),
    ("white_balance", True),
    ("gain", True),
    ("color_effect", False),
    ("rotate", False),
    ("flip_vertical", False),
    ("flip_horizontal", False),
)


class OptionsError(ValueError):
    """Raised for an invalid command line."""


class ParseAction(enum.Enum):
    """What the program should do after the command line was parsed."""

    RUN = "run"
    HELP = "help"
    VERSION = "version"
    FEATURES = "features"


class ControlMode(enum.Enum):
    """How an image control of the capture device is to be set."""

    NONE = "none"
    VALUE = "value"
    AUTO = "auto"
    DEFAULT = "default"


@dataclass
class Control:
    """Requested setting of one image control."""

    mode: ControlMode = ControlMode.NONE
    value: int = 0


@dataclass
class SinkOptions:
    """Settings of one shared memory sink."""

    name: str | None = None
    mode: int = 0o660
    rm: bool = False
    client_ttl: int = 10
    timeout: int = 1

    @property
    def enabled(self) -> bool:
        return bool(self.name)


def _default_workers() -> int:
    return min(os.cpu_count() or 1, 4)


@dataclass
class Options:
    """Every setting the command line can change, with its default."""

    # Capturing
    device: str = "/dev/video0"
    input: int = 0
    width: int = 640
    height: int = 480
    format: str = "YUYV"
    format_swap_rgb: bool = False
    tv_standard: str | None = None
    io_method: str = "MMAP"
    desired_fps: int = 0
    min_frame_size: int = 128
    allow_truncated_frames: bool = False
    persistent: bool = False
    dv_timings: bool = False
    n_bufs: int = field(default_factory=lambda: _default_workers() + 1)
    n_workers: int = field(default_factory=_default_workers)
    jpeg_quality: int = 80
    encoder: str = "CPU"
    slowdown: bool = False
    device_timeout: int = 1
    device_error_delay: int = 1
    m2m_device: str | None = None
    controls: dict[str, Control] = field(
        default_factory=lambda: {name: Control() for name, _ in CONTROLS}
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8080
    unix_path: str | None = None
    unix_rm: bool = False
    unix_mode: int = 0
    systemd: bool = False
    tcp_nodelay: bool = False
    server_timeout: int = 10
    user: str | None = None
    passwd: str | None = None
    static_path: str | None = None
    allow_origin: str | None = None
    instance_id: str = ""
    drop_same_frames: int = 0
    fake_width: int = 0
    fake_height: int = 0

    # Sinks and H.264
    sinks: dict[str, SinkOptions] = field(
        default_factory=lambda: {kind: SinkOptions() for kind in SINK_KINDS}
    )
    h264_bitrate: int = 5000
    h264_gop: int = 30
    h264_m2m_device: str | None = None

    # Process
    exit_on_parent_death: bool = False
    exit_on_device_error: bool = False
    exit_on_no_clients: int = 0
    process_name_prefix: str | None = None
    notify_parent: bool = False

    # Logging
    log_level: int = LOG_LEVEL_INFO
    log_colored: bool | None = None

    features: frozenset[str] = DEFAULT_FEATURES


class _ResolutionError(ValueError):
    def __init__(self, part: str) -> None:
        super().__init__(f"invalid resolution {part}")
        self.part = part


def _scan_unsigned(text: str, pos: int) -> tuple[int, int] | None:
    """Read an unsigned number the way scanf's %u does."""
    while pos < len(text) and text[pos] in string.whitespace:
        pos += 1
    sign = 1
    if pos < len(text) and text[pos] in "+-":
        sign = -1 if text[pos] == "-" else 1
        pos += 1
    start = pos
    while pos < len(text) and text[pos] in string.digits:
        pos += 1
    if pos == start:
        return None
    return (sign * int(text[start:pos])) % 2**32, pos


def parse_resolution(text: str, limited: bool) -> tuple[int, int]:
    """Parse ``WxH`` into ``(width, height)``.

    With ``limited`` the values must lie within the supported video sizes.
    Raises ``ValueError`` for a bad format or an out-of-range dimension.
    """
    first = _scan_unsigned(text, 0)
    if first is None:
        raise _ResolutionError("format")
    width, pos = first
    if text[pos:pos + 1] != "x":
        raise _ResolutionError("format")
    second = _scan_unsigned(text, pos + 1)
    if second is None:
        raise _ResolutionError("format")
    height = second[0]
    if limited:
        if not VIDEO_MIN_WIDTH <= width <= VIDEO_MAX_WIDTH:
            raise _ResolutionError("width")
        if not VIDEO_MIN_HEIGHT <= height <= VIDEO_MAX_HEIGHT:
            raise _ResolutionError("height")
    return width, height


_INSTANCE_ID_CHARS = frozenset(string.ascii_letters + string.digits + "./+_-")


def check_instance_id(text: str) -> bool:
    """Tell whether ``text`` matches ``^[a-zA-Z0-9./+_-]*$``."""
    return all(ch in _INSTANCE_ID_CHARS for ch in text)


def features_text(features: Iterable[str]) -> str:
    """List every optional feature, marked ``+`` when enabled and ``-`` otherwise."""
    enabled = set(features)
    return "".join(
        f"{'+' if name in enabled else '-'} WITH_{name}\n" for name in FEATURE_NAMES
    )


def _parse_c_integer(text: str, base: int) -> int:
    """Parse an integer like strtoll() requiring the whole string to be used."""
    if text == "":
        return 0  # strtoll() accepts an empty string as zero
    body = text.lstrip(" \t\n\v\f\r")
    sign = 1
    if body and body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if base == 0:
        if body[:2].lower() == "0x" and body[2:3] and body[2] in string.hexdigits:
            base, body = 16, body[2:]
        elif body.startswith("0"):
            base = 8
        else:
            base = 10
    allowed = string.hexdigits if base == 16 else string.digits[:base]
    if not body or any(ch not in allowed for ch in body):
        raise ValueError(f"invalid number: {text!r}")
    return sign * int(body, base)


_Apply = Callable[[Options, "str | None"], None]
_Setter = Callable[[Options, object], None]


@dataclass(frozen=True)
class _Opt:
    """One command line option.

    ``apply`` is None for deprecated options that are accepted and ignored;
    ``action`` ends parsing with that action when the option is seen.
    """

    long: str
    short: str | None
    takes_arg: bool
    apply: _Apply | None = None
    action: ParseAction | None = None


def _attr(name: str) -> _Setter:
    return lambda options, value: setattr(options, name, value)


def _sink_attr(kind: str, name: str) -> _Setter:
    return lambda options, value: setattr(options.sinks[kind], name, value)


def _set(setter: _Setter, value: object) -> _Apply:
    def apply(options: Options, _arg: str | None) -> None:
        setter(options, value)
    return apply


def _set_arg(setter: _Setter) -> _Apply:
    def apply(options: Options, arg: str | None) -> None:
        setter(options, arg)
    return apply


def _check_number(label: str, arg: str, low: int, high: int, base: int) -> int:
    try:
        number = _parse_c_integer(arg, base)
    except ValueError:
        number = None
    if number is None or not low <= number <= high:
        raise OptionsError(f"Invalid value for '{label}={arg}': min={low}, max={high}")
    return number


def _number(label: str, setter: _Setter, low: int, high: int, base: int = 0) -> _Apply:
    def apply(options: Options, arg: str | None) -> None:
        setter(options, _check_number(label, arg or "", low, high, base))
    return apply


def _resolution(label: str, width_attr: str, height_attr: str, limited: bool) -> _Apply:
    def apply(options: Options, arg: str | None) -> None:
        text = arg or ""
        try:
            width, height = parse_resolution(text, limited)
        except _ResolutionError as err:
            if err.part == "width":
                raise OptionsError(
                    f"Invalid width of '{label}={text}': min={VIDEO_MIN_WIDTH}, max={VIDEO_MAX_WIDTH}"
                ) from None
            if err.part == "height":
                raise OptionsError(
                    f"Invalid height of '{label}={text}': min={VIDEO_MIN_HEIGHT}, max={VIDEO_MAX_HEIGHT}"
                ) from None
            raise OptionsError(f"Invalid resolution format for '{label}={text}'") from None
        setattr(options, width_attr, width)
        setattr(options, height_attr, height)
    return apply


def _enum(label: str, attr: str, choices: Sequence[str]) -> _Apply:
    def apply(options: Options, arg: str | None) -> None:
        text = arg or ""
        for choice in choices:
            if choice.lower() == text.lower():
                setattr(options, attr, choice)
                return
        raise OptionsError(f"Unknown {label}: {text}; available: {', '.join(choices)}")
    return apply


def _control(name: str, allow_auto: bool) -> _Apply:
    def apply(options: Options, arg: str | None) -> None:
        text = arg or ""
        ctl = options.controls[name]
        if text.lower() == "default":
            ctl.mode = ControlMode.DEFAULT
        elif allow_auto and text.lower() == "auto":
            ctl.mode = ControlMode.AUTO
        else:
            ctl.mode = ControlMode.VALUE
            ctl.value = _check_number(f"--{name}", text, INT_MIN, INT_MAX, 0)
    return apply


def _image_default(options: Options, _arg: str | None) -> None:
    for ctl in options.controls.values():
        ctl.mode = ControlMode.DEFAULT


def _log_level(level: int) -> _Apply:
    return _set(_attr("log_level"), level)


def _instance_id(options: Options, arg: str | None) -> None:
    text = arg or ""
    if not check_instance_id(text):
        raise OptionsError("Invalid instance ID, it should be like: ^[a-zA-Z0-9\\./+_-]*$")
    options.instance_id = text


def _sink_opts(kind: str) -> list[_Opt]:
    return [
        _Opt(f"{kind}-sink", None, True, _set_arg(_sink_attr(kind, "name"))),
        _Opt(f"{kind}-sink-mode", None, True,
             _number(f"--{kind}-sink-mode", _sink_attr(kind, "mode"), INT_MIN, INT_MAX, 8)),
        _Opt(f"{kind}-sink-rm", None, False, _set(_sink_attr(kind, "rm"), True)),
        _Opt(f"{kind}-sink-client-ttl", None, True,
             _number(f"--{kind}-sink-client-ttl", _sink_attr(kind, "client_ttl"), 1, 60)),
        _Opt(f"{kind}-sink-timeout", None, True,
             _number(f"--{kind}-sink-timeout", _sink_attr(kind, "timeout"), 1, 60)),
    ]


def _build_table(features: frozenset[str]) -> list[_Opt]:
    table = [
        _Opt("device", "d", True, _set_arg(_attr("device"))),
        _Opt("input", "i", True, _number("--input", _attr("input"), 0, 128)),
        _Opt("resolution", "r", True, _resolution("--resolution", "width", "height", True)),
        _Opt("format", "m", True, _enum("pixel format", "format", FORMATS)),
        _Opt("format-swap-rgb", None, False, _set(_attr("format_swap_rgb"), True)),
        _Opt("tv-standard", "a", True, _enum("TV standard", "tv_standard", STANDARDS)),
        _Opt("io-method", "I", True, _enum("IO method", "io_method", IO_METHODS)),
        _Opt("desired-fps", "f", True, _number("--desired-fps", _attr("desired_fps"), 0, VIDEO_MAX_FPS)),
        _Opt("min-frame-size", "z", True, _number("--min-frame-size", _attr("min_frame_size"), 1, 8192)),
        _Opt("allow-truncated-frames", "T", False, _set(_attr("allow_truncated_frames"), True)),
        _Opt("persistent", "n", False, _set(_attr("persistent"), True)),
        _Opt("dv-timings", "t", False, _set(_attr("dv_timings"), True)),
        _Opt("buffers", "b", True, _number("--buffers", _attr("n_bufs"), 1, 32)),
        _Opt("workers", "w", True, _number("--workers", _attr("n_workers"), 1, 32)),
        _Opt("quality", "q", True, _number("--quality", _attr("jpeg_quality"), 1, 100)),
        _Opt("encoder", "c", True, _enum("encoder type", "encoder", ENCODER_TYPES)),
        # Deprecated, accepted and ignored
        _Opt("glitched-resolutions", "g", True),
        _Opt("blank", "k", True),
        _Opt("last-as-blank", "K", True),
        _Opt("slowdown", "l", False, _set(_attr("slowdown"), True)),
        _Opt("device-timeout", None, True, _number("--device-timeout", _attr("device_timeout"), 1, 60)),
        _Opt("device-error-delay", None, True,
             _number("--device-error-delay", _attr("device_error_delay"), 1, 60)),
        _Opt("m2m-device", None, True, _set_arg(_attr("m2m_device"))),
        _Opt("image-default", None, False, _image_default),
    ]
    table += [
        _Opt(name.replace("_", "-"), None, True, _control(name, allow_auto))
        for name, allow_auto in CONTROLS
    ]
    table += [
        _Opt("host", "s", True, _set_arg(_attr("host"))),
        _Opt("port", "p", True, _number("--port", _attr("port"), 1, 65535)),
        _Opt("unix", "U", True, _set_arg(_attr("unix_path"))),
        _Opt("unix-rm", "D", False, _set(_attr("unix_rm"), True)),
        _Opt("unix-mode", "M", True, _number("--unix-mode", _attr("unix_mode"), INT_MIN, INT_MAX, 8)),
    ]
    if "SYSTEMD" in features:
        table.append(_Opt("systemd", "S", False, _set(_attr("systemd"), True)))
    table += [
        _Opt("user", None, True, _set_arg(_attr("user"))),
        _Opt("passwd", None, True, _set_arg(_attr("passwd"))),
        _Opt("static", None, True, _set_arg(_attr("static_path"))),
        _Opt("drop-same-frames", "e", True,
             _number("--drop-same-frames", _attr("drop_same_frames"), 0, VIDEO_MAX_FPS)),
        _Opt("allow-origin", None, True, _set_arg(_attr("allow_origin"))),
        _Opt("instance-id", None, True, _instance_id),
        _Opt("fake-resolution", "R", True,
             _resolution("--fake-resolution", "fake_width", "fake_height", False)),
        _Opt("tcp-nodelay", None, False, _set(_attr("tcp_nodelay"), True)),
        _Opt("server-timeout", None, True, _number("--server-timeout", _attr("server_timeout"), 1, 60)),
    ]
    jpeg_sink = _sink_opts("jpeg")
    table += jpeg_sink + _sink_opts("raw") + _sink_opts("h264")
    table += [
        _Opt("h264-bitrate", None, True, _number("--h264-bitrate", _attr("h264_bitrate"), 25, 20000)),
        _Opt("h264-gop", None, True, _number("--h264-gop", _attr("h264_gop"), 0, 60)),
        _Opt("h264-m2m-device", None, True, _set_arg(_attr("h264_m2m_device"))),
    ]
    table += [replace(opt, long=opt.long[len("jpeg-"):]) for opt in jpeg_sink]
    if "PDEATHSIG" in features:
        table.append(_Opt("exit-on-parent-death", None, False, _set(_attr("exit_on_parent_death"), True)))
    table += [
        _Opt("exit-on-device-error", None, False, _set(_attr("exit_on_device_error"), True)),
        _Opt("exit-on-no-clients", None, True,
             _number("--exit-on-no-clients", _attr("exit_on_no_clients"), 0, 86400)),
    ]
    if "SETPROCTITLE" in features:
        table.append(_Opt("process-name-prefix", None, True, _set_arg(_attr("process_name_prefix"))))
    table += [
        _Opt("notify-parent", None, False, _set(_attr("notify_parent"), True)),
        _Opt("log-level", None, True,
             _number("--log-level", _attr("log_level"), LOG_LEVEL_INFO, LOG_LEVEL_DEBUG)),
        _Opt("perf", None, False, _log_level(LOG_LEVEL_PERF)),
        _Opt("verbose", None, False, _log_level(LOG_LEVEL_VERBOSE)),
        _Opt("debug", None, False, _log_level(LOG_LEVEL_DEBUG)),
        _Opt("force-log-colors", None, False, _set(_attr("log_colored"), True)),
        _Opt("no-log-colors", None, False, _set(_attr("log_colored"), False)),
        _Opt("help", "h", False, action=ParseAction.HELP),
        _Opt("version", "v", False, action=ParseAction.VERSION),
        _Opt("features", None, False, action=ParseAction.FEATURES),
    ]
    return table


def _match_long(name: str, table: Sequence[_Opt]) -> _Opt:
    for opt in table:
        if opt.long == name:
            return opt
    candidates = [opt for opt in table if opt.long.startswith(name)]
    if not candidates:
        raise OptionsError(f"unrecognized option '--{name}'")
    first = candidates[0]
    if any(
        opt.apply is not first.apply
        or opt.action is not first.action
        or opt.takes_arg != first.takes_arg
        for opt in candidates
    ):
        raise OptionsError(f"option '--{name}' is ambiguous")
    return first


def _scan(argv: Sequence[str], table: Sequence[_Opt]) -> Iterator[tuple[_Opt, str | None]]:
    """Yield options with their arguments in command line order."""
    shorts = {opt.short: opt for opt in table if opt.short}
    args = iter(argv)
    for arg in args:
        if arg == "--":
            return
        if arg.startswith("--"):
            name, eq, inline = arg[2:].partition("=")
            opt = _match_long(name, table)
            if opt.takes_arg:
                value = inline if eq else next(args, None)
                if value is None:
                    raise OptionsError(f"option '--{opt.long}' requires an argument")
                yield opt, value
            elif eq:
                raise OptionsError(f"option '--{opt.long}' doesn't allow an argument")
            else:
                yield opt, None
        elif arg.startswith("-") and len(arg) > 1:
            rest = arg[1:]
            while rest:
                ch, rest = rest[0], rest[1:]
                opt = shorts.get(ch)
                if opt is None:
                    raise OptionsError(f"invalid option -- '{ch}'")
                if not opt.takes_arg:
                    yield opt, None
                    continue
                if rest:
                    value, rest = rest, ""
                else:
                    value = next(args, None)
                    if value is None:
                        raise OptionsError(f"option requires an argument -- '{ch}'")
                yield opt, value
        # Other arguments are not options and are ignored.


def parse_options(argv: Sequence[str], options: Options) -> ParseAction:
    """Apply the command line ``argv`` (without the program name) to ``options``.

    Returns the action to take: run, or print help, version or features.
    Raises ``OptionsError`` for an invalid command line.
    """
    for opt, value in _scan(argv, _build_table(options.features)):
        if opt.action is not None:
            return opt.action
        if opt.apply is not None:
            opt.apply(options, value)
    _log.info("Starting uStreamer %s ...", VERSION)
    return ParseAction.RUN