import pytest

from mjpegstreamer.m2m import (
    EncoderState,
    M2MEncoderSettings,
    OutputFormat,
    h264_encoder_settings,
    jpeg_encoder_settings,
    mjpeg_bitrate_from_quality,
    mjpeg_encoder_settings,
)


@pytest.mark.parametrize(
    "fourcc, expected",
    [(b"H264", OutputFormat.H264), (b"MJPG", OutputFormat.MJPEG), (b"JPEG", OutputFormat.JPEG)],
)
def test_fourcc_codes(fourcc, expected):
    assert OutputFormat(int.from_bytes(fourcc, "little")) is expected


def test_dest_format():
    assert mjpeg_encoder_settings("M", None, 80).output_format.dest_format is OutputFormat.JPEG
    assert jpeg_encoder_settings("J", None, 80).output_format.dest_format is OutputFormat.JPEG
    assert h264_encoder_settings("H", None, 5000, 30).output_format.dest_format is OutputFormat.H264


def test_mjpeg_bitrate_bounds():
    assert mjpeg_bitrate_from_quality(1) == 25 * 1000
    assert mjpeg_bitrate_from_quality(100) == 20000 * 1000


def test_mjpeg_bitrate_monotonic_and_stepped():
    values = [mjpeg_bitrate_from_quality(q) for q in range(1, 101)]
    assert values == sorted(values)
    assert all(v % 25000 == 0 for v in values)


def test_mjpeg_bitrate_invalid():
    with pytest.raises(ValueError):
        mjpeg_bitrate_from_quality(0)


def test_h264_settings():
    s = h264_encoder_settings("H264", None, 5000, 30)
    assert s.path == "/dev/video11"
    assert s.bitrate == 5000 * 1000
    assert s.gop == 30
    assert s.output_format is OutputFormat.H264
    assert s.allow_dma is True


def test_jpeg_settings_default_path_and_no_dma():
    s = jpeg_encoder_settings("JPEG", None, 80)
    assert s.path == "/dev/video31"
    assert s.quality == 80
    assert s.allow_dma is False


def test_explicit_path_kept():
    s = mjpeg_encoder_settings("MJPEG", "/dev/custom", 80)
    assert s.path == "/dev/custom"
    assert s.bitrate == mjpeg_bitrate_from_quality(80)


def test_h264_controls_order_and_level():
    s = h264_encoder_settings("H264", None, 5000, 30)
    small = s.controls(1920, 1080)
    assert [c.name for c, _ in small] == [
        "MPEG_VIDEO_BITRATE",
        "MPEG_VIDEO_H264_I_PERIOD",
        "MPEG_VIDEO_H264_PROFILE",
        "MPEG_VIDEO_H264_LEVEL",
        "MPEG_VIDEO_REPEAT_SEQ_HEADER",
        "MPEG_VIDEO_H264_MIN_QP",
        "MPEG_VIDEO_H264_MAX_QP",
    ]
    assert dict((c.name, v) for c, v in small)["MPEG_VIDEO_H264_MIN_QP"] == 16
    big = dict((c.name, v) for c, v in s.controls(1920, 1200))
    assert big["MPEG_VIDEO_H264_LEVEL"] != dict((c.name, v) for c, v in small)["MPEG_VIDEO_H264_LEVEL"]
    assert big["MPEG_VIDEO_BITRATE"] == s.bitrate


def test_mjpeg_and_jpeg_controls():
    m = mjpeg_encoder_settings("M", None, 80)
    assert [(c.name, v) for c, v in m.controls(640, 480)] == [("MPEG_VIDEO_BITRATE", m.bitrate)]
    j = jpeg_encoder_settings("J", None, 80)
    assert [(c.name, v) for c, v in j.controls(640, 480)] == [("JPEG_COMPRESSION_QUALITY", 80)]


def test_fps_limit():
    s = h264_encoder_settings("H264", None, 5000, 30)
    assert s.fps_limit(1280, 720) == 60
    assert s.fps_limit(1920, 1080) == 30


def test_output_sizeimage():
    assert h264_encoder_settings("H", None, 1, 1).output_sizeimage() == (1024 + 512) << 10
    assert jpeg_encoder_settings("J", None, 50).output_sizeimage() == 0


def test_needs_reconfigure_sequence():
    state = EncoderState()
    assert state.needs_reconfigure(640, 480, 1, 1280, False) is True
    state.ready = True
    state.last_online = 1
    assert state.needs_reconfigure(640, 480, 1, 1280, False) is False
    assert state.ready is True
    assert state.needs_reconfigure(640, 480, 1, 1280, True) is True
    assert state.ready is False
    assert state.last_online == -1
    assert state.p_dma is True


def test_force_key_jpeg_never():
    s = jpeg_encoder_settings("J", None, 80)
    assert EncoderState().should_force_key(s, True, True, 100.0) is False


def test_force_key_mjpeg_passthrough():
    s = mjpeg_encoder_settings("M", None, 80)
    state = EncoderState()
    assert state.should_force_key(s, True, True, 100.0) is True
    assert state.should_force_key(s, False, True, 100.0) is False


def test_force_key_h264_rules():
    s = h264_encoder_settings("H", None, 5000, 30)
    state = EncoderState(last_online=1, last_encode_ts=10.0)
    assert state.should_force_key(s, False, True, 10.2) is False
    assert state.should_force_key(s, True, True, 10.2) is True
    assert state.should_force_key(s, False, False, 10.2) is True
    assert state.should_force_key(s, False, True, 11.0) is True
    assert EncoderState().should_force_key(s, False, True, 0.0) is True


def test_settings_frozen():
    s = M2MEncoderSettings(name="x", path="/dev/x", output_format=OutputFormat.JPEG)
    with pytest.raises(Exception):
        s.quality = 5  # type: ignore[misc]
    assert s.quality == 0