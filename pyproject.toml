[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mjpegstreamer"
version = "0.1.0"
description = "Building blocks for an MJPEG/H.264 video streamer: options, help text, worker pools, M2M encoder settings and HTTP helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["mjpeg", "h264", "streaming", "video", "v4l2", "http"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mjpegstreamer"]

[tool.hatch.build.targets.sdist]
include = ["mjpegstreamer", "tests", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
