"""Shared test fixtures and ffmpeg output samples."""

import shlex
import stat
import sys
from pathlib import Path

import pytest

from transcodewatch.config import Settings
from transcodewatch.models.run import LaunchSpec

DURATION_LINE = "  Duration: 00:01:30.00, start: 0.000000, bitrate: 5312 kb/s"
VIDEO_LINE = (
    "    Stream #0:0(und): Video: h264 (High) (avc1 / 0x31637661), "
    "yuv420p(tv, bt709, progressive), 1920x1080 [SAR 1:1 DAR 16:9], 4995 kb/s, "
    "29.97 fps, 29.97 tbr, 30k tbn, 59.94 tbc (default)"
)
AUDIO_LINE = (
    "    Stream #0:1(und): Audio: aac (LC) (mp4a / 0x6134706D), 48000 Hz, stereo, "
    "fltp, 317 kb/s (default)"
)
PROGRESS_LINE = (
    "frame=  120 fps= 30 q=28.0 size=     256kB time=00:00:05.00 bitrate= 419.4kbits/s speed=1.5x"
)
COMPLETION_LINE = (
    "frame= 2700 fps=120 q=-1.0 Lsize=   55296kB time=00:01:30.00 bitrate=5033.2kbits/s speed=4.0x"
)

PREAMBLE = [
    "ffmpeg version 6.0 Copyright (c) 2000-2023 the FFmpeg developers",
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'input.mp4':",
    DURATION_LINE,
    VIDEO_LINE,
    AUDIO_LINE,
]


def progress_line(seconds: float, frame: int = 0) -> str:
    """Build an ffmpeg stats line at ``seconds`` into the output."""
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    return (
        f"frame={frame:5d} fps= 30 q=28.0 size=    1024kB "
        f"time={hours:02d}:{minutes:02d}:{secs:05.2f} bitrate= 800.0kbits/s speed=2.0x"
    )


def python_spec(script: str, **kwargs) -> LaunchSpec:
    """LaunchSpec running ``script`` with the current interpreter."""
    return LaunchSpec(
        executable=sys.executable,
        arguments=shlex.join(["-c", script]),
        **kwargs,
    )


FAKE_FFMPEG = '''\
#!{python}
import os
import sys
import time

PREAMBLE = {preamble!r}
STATS = {stats!r}

args = sys.argv[1:]
for line in PREAMBLE:
    sys.stderr.write(line + "\\n")
sys.stderr.flush()

inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
if args[-1] in inputs:
    sys.stderr.write("At least one output file must be specified\\n")
    sys.exit(1)

output = args[-1]
name = os.path.basename(output)
if "fail" in name:
    sys.stderr.write("Conversion failed!\\n")
    sys.exit(3)
if "hang" in name:
    time.sleep(30)

for line in STATS:
    sys.stderr.write(line + "\\r")
    sys.stderr.flush()
sys.stderr.write({completion!r} + "\\n")
with open(output, "w") as fh:
    fh.write(" ".join(args))
sys.exit(0)
'''


@pytest.fixture
def fake_ffmpeg(tmp_path) -> Path:
    """An executable that prints canned ffmpeg diagnostics."""
    path = tmp_path / "bin" / "ffmpeg"
    path.parent.mkdir(parents=True)
    path.write_text(
        FAKE_FFMPEG.format(
            python=sys.executable,
            preamble=PREAMBLE,
            stats=[progress_line(30, 900), progress_line(60, 1800)],
            completion=COMPLETION_LINE,
        )
    )
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


@pytest.fixture
def settings(tmp_path, fake_ffmpeg) -> Settings:
    """Settings pointing at the fake ffmpeg."""
    return Settings(
        ffmpeg_path=str(fake_ffmpeg),
        lock_dir=tmp_path / "locks",
        global_arguments="-y -loglevel info",
    )


@pytest.fixture
def input_file(tmp_path) -> Path:
    path = tmp_path / "input.mp4"
    path.write_bytes(b"\x00" * 16)
    return path
