"""Building blocks for an MJPEG/H.264 streamer: options, help, workers and encoder settings."""

__version__ = "0.1.0"