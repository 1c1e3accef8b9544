"""Settings and state bookkeeping for V4L2 memory-to-memory encoders."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass

_log = logging.getLogger(__name__)

_DEFAULT_PATH = "/dev/video11"
_DEFAULT_JPEG_PATH = "/dev/video31"

_MJPEG_BITRATE_MIN = 25.0
_MJPEG_BITRATE_MAX = 20000.0
_MJPEG_BITRATE_STEP = 25.0

_H264_SIZEIMAGE = (1024 + 512) << 10
_KEYFRAME_INTERVAL = 0.5

_FPS_LIMIT_SMALL = 60
_FPS_LIMIT_LARGE = 30
_FPS_LIMIT_SMALL_AREA = 1280 * 720


def _fourcc(code: str) -> int:
    return int.from_bytes(code.encode("ascii"), "little")


class OutputFormat(enum.IntEnum):
    """Pixel formats an encoder can produce, as V4L2 fourcc codes."""

    H264 = _fourcc("H264")
    MJPEG = _fourcc("MJPG")
    JPEG = _fourcc("JPEG")

    @property
    def dest_format(self) -> OutputFormat:
        """Format of the encoded frames: motion JPEG frames are plain JPEG."""
        return OutputFormat.JPEG if self in (OutputFormat.JPEG, OutputFormat.MJPEG) else self


class _Cid(enum.IntEnum):
    """V4L2 control identifiers used to configure the encoder."""

    MPEG_VIDEO_BITRATE = 0x990900 + 207
    MPEG_VIDEO_REPEAT_SEQ_HEADER = 0x990900 + 226
    MPEG_VIDEO_FORCE_KEY_FRAME = 0x990900 + 229
    MPEG_VIDEO_H264_MIN_QP = 0x990900 + 353
    MPEG_VIDEO_H264_MAX_QP = 0x990900 + 354
    MPEG_VIDEO_H264_I_PERIOD = 0x990900 + 358
    MPEG_VIDEO_H264_LEVEL = 0x990900 + 359
    MPEG_VIDEO_H264_PROFILE = 0x990900 + 363
    JPEG_COMPRESSION_QUALITY = 0x9D0900 + 3


_H264_PROFILE_CONSTRAINED_BASELINE = 1
_H264_LEVEL_4_0 = 11
_H264_LEVEL_5_1 = 15


@dataclass(frozen=True)
class M2MEncoderSettings:
    """What an encoder is asked to produce and from which device."""

    name: str
    path: str
    output_format: OutputFormat
    bitrate: int = 0
    gop: int = 0
    quality: int = 0
    allow_dma: bool = True

    def controls(self, width: int, height: int) -> list[tuple[_Cid, int]]:
        """Return the (control, value) pairs to set, in the order they are set."""
        if self.output_format == OutputFormat.H264:
            level = _H264_LEVEL_4_0 if width * height <= 1920 * 1080 else _H264_LEVEL_5_1
            return [
                (_Cid.MPEG_VIDEO_BITRATE, self.bitrate),
                (_Cid.MPEG_VIDEO_H264_I_PERIOD, self.gop),
                (_Cid.MPEG_VIDEO_H264_PROFILE, _H264_PROFILE_CONSTRAINED_BASELINE),
                (_Cid.MPEG_VIDEO_H264_LEVEL, level),
                (_Cid.MPEG_VIDEO_REPEAT_SEQ_HEADER, 1),
                (_Cid.MPEG_VIDEO_H264_MIN_QP, 16),
                (_Cid.MPEG_VIDEO_H264_MAX_QP, 32),
            ]
        if self.output_format == OutputFormat.MJPEG:
            return [(_Cid.MPEG_VIDEO_BITRATE, self.bitrate)]
        return [(_Cid.JPEG_COMPRESSION_QUALITY, self.quality)]

    def fps_limit(self, width: int, height: int) -> int:
        """Frame rate the encoder input is limited to for this resolution."""
        area = width * height
        limit = _FPS_LIMIT_SMALL if area <= _FPS_LIMIT_SMALL_AREA else _FPS_LIMIT_LARGE
        _log.debug("%s: Input FPS limit for %ux%u is %d", self.name, width, height, limit)
        return limit

    def output_sizeimage(self) -> int:
        """Size of the output plane to request; 0 lets the driver decide."""
        return _H264_SIZEIMAGE if self.output_format == OutputFormat.H264 else 0


def _make_settings(
    name: str,
    path: str | None,
    output_format: OutputFormat,
    bitrate: int,
    gop: int,
    quality: int,
    allow_dma: bool,
) -> M2MEncoderSettings:
    if path is None:
        path = _DEFAULT_JPEG_PATH if output_format == OutputFormat.JPEG else _DEFAULT_PATH
    return M2MEncoderSettings(
        name=name,
        path=path,
        output_format=output_format,
        bitrate=bitrate,
        gop=gop,
        quality=quality,
        allow_dma=allow_dma,
    )


def mjpeg_bitrate_from_quality(quality: int) -> int:
    """Map a JPEG quality of 1..100 to an MJPEG bitrate in bits per second."""
    if quality < 1:
        raise ValueError(f"Invalid quality: {quality}")
    bitrate = (
        math.log10(quality) * (_MJPEG_BITRATE_MAX - _MJPEG_BITRATE_MIN) / 2
        + _MJPEG_BITRATE_MIN
    )
    bitrate = _MJPEG_BITRATE_STEP * math.floor(bitrate / _MJPEG_BITRATE_STEP + 0.5)
    result = int(bitrate) * 1000
    if result <= 0:
        raise ValueError(f"Invalid quality: {quality}")
    return result


def h264_encoder_settings(name: str, path: str | None, bitrate: int, gop: int) -> M2MEncoderSettings:
    """Settings for an H.264 encoder; ``bitrate`` is in Kbps."""
    return _make_settings(name, path, OutputFormat.H264, bitrate * 1000, gop, 0, True)


def mjpeg_encoder_settings(name: str, path: str | None, quality: int) -> M2MEncoderSettings:
    """Settings for a motion JPEG video encoder driven by a JPEG quality."""
    bitrate = mjpeg_bitrate_from_quality(quality)
    return _make_settings(name, path, OutputFormat.MJPEG, bitrate, 0, 0, True)


def jpeg_encoder_settings(name: str, path: str | None, quality: int) -> M2MEncoderSettings:
    """Settings for a still JPEG encoder; DMA input is not used."""
    return _make_settings(name, path, OutputFormat.JPEG, 0, 0, quality, False)


@dataclass
class EncoderState:
    """Parameters an encoder was configured with and what it last produced."""

    p_width: int = 0
    p_height: int = 0
    p_input_format: int = 0
    p_stride: int = 0
    p_dma: bool = False
    ready: bool = False
    fps_limit: int = 0
    last_online: int = -1
    last_encode_ts: float = 0.0

    def needs_reconfigure(
        self, width: int, height: int, input_format: int, stride: int, dma: bool
    ) -> bool:
        """Tell whether the input changed; if so, drop readiness and remember it."""
        if (
            self.p_width == width
            and self.p_height == height
            and self.p_input_format == input_format
            and self.p_stride == stride
            and self.p_dma == dma
        ):
            return False
        self.ready = False
        self.last_online = -1
        self.p_width = width
        self.p_height = height
        self.p_input_format = input_format
        self.p_stride = stride
        self.p_dma = dma
        return True

    def should_force_key(
        self, settings: M2MEncoderSettings, force_key: bool, online: bool, now: float
    ) -> bool:
        """Decide whether the next frame must be a keyframe."""
        if settings.output_format == OutputFormat.JPEG:
            return False
        if settings.output_format == OutputFormat.H264:
            return (
                force_key
                or self.last_online != int(online)
                or self.last_encode_ts + _KEYFRAME_INTERVAL < now
            )
        return force_key