import pytest

from mjpegstreamer.options import (
    Control,
    ControlMode,
    Options,
    OptionsError,
    ParseAction,
    SinkOptions,
    check_instance_id,
    features_text,
    parse_options,
    parse_resolution,
)


def _parse(*argv, **kwargs):
    options = Options(**kwargs)
    action = parse_options(list(argv), options)
    return action, options


def test_parse_resolution_valid():
    assert parse_resolution("1920x1080", True) == (1920, 1080)


@pytest.mark.parametrize("text", ["abc", "1920", "1920*1080", "x1080", "1920x"])
def test_parse_resolution_bad_format(text):
    with pytest.raises(ValueError):
        parse_resolution(text, True)


def test_parse_resolution_limits_apply_only_when_limited():
    with pytest.raises(ValueError):
        parse_resolution("1x1080", True)
    with pytest.raises(ValueError):
        parse_resolution("1920x1", True)
    assert parse_resolution("1x1", False) == (1, 1)


def test_check_instance_id():
    assert check_instance_id("abc.DEF/+_-09") is True
    assert check_instance_id("") is True
    assert check_instance_id("a b") is False
    assert check_instance_id("é") is False


def test_defaults_from_source():
    options = Options()
    assert options.h264_bitrate == 5000
    assert options.h264_gop == 30
    assert options.device_error_delay == 1
    assert options.sinks["jpeg"] == SinkOptions(mode=0o660, client_ttl=10, timeout=1)
    assert options.sinks["raw"].enabled is False


def test_empty_command_line_runs_and_changes_nothing():
    action, options = _parse()
    assert action is ParseAction.RUN
    assert options == Options()


def test_port_and_host():
    action, options = _parse("--port", "8081", "-s", "0.0.0.0")
    assert action is ParseAction.RUN
    assert options.port == 8081
    assert options.host == "0.0.0.0"


def test_number_prefixes_follow_c_rules():
    _, options = _parse("--port", "0x1F90")
    assert options.port == int("1F90", 16)
    _, options = _parse("--input", "010")
    assert options.input == 0o10


def test_out_of_range_number_message():
    with pytest.raises(OptionsError) as info:
        _parse("--port", "0")
    assert str(info.value) == "Invalid value for '--port=0': min=1, max=65535"


@pytest.mark.parametrize("value", ["12ab", "1_000", " ", "-", "0x"])
def test_garbage_number_rejected(value):
    with pytest.raises(OptionsError):
        _parse("--port", value)


def test_unix_mode_is_octal():
    _, options = _parse("--unix-mode", "777", "-D")
    assert options.unix_mode == 0o777
    assert options.unix_rm is True


def test_controls():
    _, options = _parse(
        "--brightness", "auto", "--contrast", "DEFAULT", "--gamma", "-5", "--flip-vertical=1"
    )
    assert options.controls["brightness"].mode is ControlMode.AUTO
    assert options.controls["contrast"].mode is ControlMode.DEFAULT
    assert options.controls["gamma"] == Control(ControlMode.VALUE, -5)
    assert options.controls["flip_vertical"] == Control(ControlMode.VALUE, 1)
    assert options.controls["hue"].mode is ControlMode.NONE


def test_manual_control_rejects_auto():
    with pytest.raises(OptionsError):
        _parse("--contrast", "auto")


def test_image_default_resets_every_control():
    _, options = _parse("--gamma", "7", "--image-default")
    assert all(ctl.mode is ControlMode.DEFAULT for ctl in options.controls.values())


@pytest.mark.parametrize(
    "flag, action",
    [("-h", ParseAction.HELP), ("--version", ParseAction.VERSION), ("--features", ParseAction.FEATURES)],
)
def test_actions(flag, action):
    assert _parse(flag)[0] is action


def test_help_wins_over_later_errors():
    assert _parse("--help", "--port", "0")[0] is ParseAction.HELP


@pytest.mark.parametrize("argv", [["--bogus"], ["-x"], ["--port"], ["-p"], ["--persistent=1"]])
def test_invalid_command_lines(argv):
    with pytest.raises(OptionsError):
        _parse(*argv)


def test_long_option_abbreviation():
    _, options = _parse("--tcp-no")
    assert options.tcp_nodelay is True


def test_ambiguous_abbreviation():
    with pytest.raises(OptionsError):
        _parse("--h264-sink-")


def test_short_options_grouped_and_attached():
    _, options = _parse("-Tn", "-p8082", "stray", "-d", "/dev/video5")
    assert options.allow_truncated_frames is True
    assert options.persistent is True
    assert options.port == 8082
    assert options.device == "/dev/video5"


def test_double_dash_stops_parsing():
    _, options = _parse("--", "--port", "8081")
    assert options.port == Options().port


def test_sinks_and_compat_names():
    _, options = _parse("--sink", "test.jpeg", "--sink-rm", "--h264-sink", "test.h264", "--raw-sink-timeout", "5")
    assert options.sinks["jpeg"].name == "test.jpeg"
    assert options.sinks["jpeg"].rm is True
    assert options.sinks["h264"].enabled is True
    assert options.sinks["raw"].timeout == 5


def test_sink_client_ttl_range():
    with pytest.raises(OptionsError) as info:
        _parse("--h264-sink-client-ttl", "61")
    assert "min=1, max=60" in str(info.value)


def test_instance_id():
    _, options = _parse("--instance-id", "cam.1")
    assert options.instance_id == "cam.1"
    with pytest.raises(OptionsError):
        _parse("--instance-id", "bad id")


def test_enum_options_case_insensitive():
    _, options = _parse("--format", "mjpeg", "--encoder", "m2m-video", "-I", "userptr")
    assert options.format == "MJPEG"
    assert options.encoder == "M2M-VIDEO"
    assert options.io_method == "USERPTR"


def test_unknown_format_lists_available():
    with pytest.raises(OptionsError) as info:
        _parse("--format", "nope")
    assert "available" in str(info.value)
    assert "YUYV" in str(info.value)


def test_log_options():
    _, options = _parse("--debug")
    assert options.log_level == 3
    _, options = _parse("--perf")
    assert options.log_level == 1
    with pytest.raises(OptionsError):
        _parse("--log-level", "4")
    _, options = _parse("--force-log-colors", "--no-log-colors")
    assert options.log_colored is False


def test_resolution_options():
    _, options = _parse("--fake-resolution", "10x10")
    assert (options.fake_width, options.fake_height) == (10, 10)
    with pytest.raises(OptionsError) as info:
        _parse("--resolution", "10x10")
    assert str(info.value).startswith("Invalid width of '--resolution=10x10'")


def test_deprecated_options_are_ignored():
    action, options = _parse("-g", "1x1", "--blank", "x", "-K", "5")
    assert action is ParseAction.RUN
    assert options == Options()


def test_feature_gated_options():
    with pytest.raises(OptionsError):
        _parse("--systemd")
    _, options = _parse("--systemd", features=frozenset({"SYSTEMD"}))
    assert options.systemd is True
    with pytest.raises(OptionsError):
        _parse("--exit-on-parent-death", features=frozenset())


def test_features_text():
    lines = features_text({"SYSTEMD"}).splitlines()
    assert len(lines) == 8
    assert "+ WITH_SYSTEMD" in lines
    assert "- WITH_PYTHON" in lines
    assert all(line[:2] in ("+ ", "- ") for line in lines)