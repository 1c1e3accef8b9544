# mjpegstreamer

Building blocks for a lightweight MJPEG / H.264 video streamer on Linux.
Pure Python, no runtime dependencies.

## What is in it

- `mjpegstreamer.options`
  - `parse_options(argv, options)` applies a command line (without the
    program name) to an `Options` dataclass and returns a `ParseAction`:
    `RUN`, `HELP`, `VERSION` or `FEATURES`. Invalid values, unknown or
    ambiguous options raise `OptionsError`. Long options may be
    abbreviated. Arguments that are not options are ignored.
  - `Options` holds capture, image control (`Control`, `ControlMode`), HTTP
    server, sink (`SinkOptions`), H.264, process and logging settings, each
    with its default. `Options.features` decides which feature-dependent
    options exist (`--systemd`, `--exit-on-parent-death`,
    `--process-name-prefix`).
  - `parse_resolution(text, limited)` parses `WxH`, and
    `check_instance_id(text)` checks `^[a-zA-Z0-9./+_-]*$`.
  - `features_text(features)` lists every feature as `+ WITH_<NAME>` or
    `- WITH_<NAME>`.
- `mjpegstreamer.help`: `render_help(options)` returns the usage text, with
  the current values of `options` shown as defaults.
- `mjpegstreamer.workers`: `WorkersPool` runs jobs on threads, one `Worker`
  per thread. `wait()` hands out the free worker with the newest finished
  job and marks whether its result is timely. `assign(worker)` starts it.
  `get_fluency_delay(worker)` keeps a running average of job time and
  returns the delay before the next frame is grabbed. The pool is a
  context manager; `close()` stops the threads.
- `mjpegstreamer.m2m`: `h264_encoder_settings`, `mjpeg_encoder_settings`
  and `jpeg_encoder_settings` build `M2MEncoderSettings`. These give the
  V4L2 controls to set (`controls`), the input FPS limit (`fps_limit`) and
  the output plane size (`output_sizeimage`). `mjpeg_bitrate_from_quality`
  maps a JPEG quality to a bitrate. `EncoderState` tells when the input
  changed (`needs_reconfigure`) and when a keyframe must be forced
  (`should_force_key`). `OutputFormat` lists the fourcc codes.
- `mjpegstreamer.http`
  - `mime.guess_mime_type(path)` maps a file extension to a MIME type, or
    `application/misc`.
  - `path.simplify_request_path(path)` collapses `.`, `..` and repeated
    slashes so a path cannot climb above its root.
  - `static.find_static_file_path(root_path, request_path)` returns a
    readable regular file under `root_path`, trying `index.html` for
    directories and not following symlinks, or `None`.
  - `tools` has `bind_unix_socket(path, rm, mode)`,
    `get_hostport(peer_host, peer_port, headers)` (honours
    `X-Forwarded-For`), `query_flag_true(params, key)`,
    `query_string_encoded(params, key)` and
    `format_event_reason(what, error)` with the `BufferEvent` flags.
  - `systemd.listen_systemd_socket(environ)` takes over the first socket
    passed by systemd socket activation and closes any others.

## Examples

```python
from mjpegstreamer.http.mime import guess_mime_type
from mjpegstreamer.http.path import simplify_request_path

guess_mime_type("index.html")                 # "text/html"
guess_mime_type("archive.unknown")            # "application/misc"
simplify_request_path("../../../etc/passwd")  # "/etc/passwd"
simplify_request_path("/abc/./xyz/..")        # "/abc/"
```

Parsing options and printing help:

```python
from mjpegstreamer.help import render_help
from mjpegstreamer.options import Options, OptionsError, ParseAction, parse_options

options = Options()
try:
    action = parse_options(["--resolution", "1280x720", "--port", "8080"], options)
except OptionsError as err:
    print(err)
else:
    if action is ParseAction.HELP:
        print(render_help(options), end="")
```

Running jobs on a worker pool:

```python
from mjpegstreamer.workers import WorkersPool

def run_job(worker):
    ...  # work on worker.job; return True on success
    return True

with WorkersPool("JPEG", "jpeg", 4, 0.0, dict, run_job, None) as pool:
    worker = pool.wait()
    delay = pool.get_fluency_delay(worker)
    pool.assign(worker)
```

## What it does not do

There is no command to run and no complete streamer. The package does not
capture video from a device. It does not encode frames or talk to an
encoder device: `m2m` only describes the settings and the decisions. It
also has no HTTP server and no shared memory sinks. Those are left to the
program that uses these pieces.

## Tests

The test suite uses pytest; install the `test` extra and run `pytest`.