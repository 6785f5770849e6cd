"""Compiled ffmpeg diagnostic patterns and stateless line matchers.

Every matcher takes one stderr line and returns the typed facts it found,
or None. Matchers never keep state; a single line may satisfy several.
"""

import re
from datetime import timedelta
from typing import Any

from transcodewatch.models.media import AudioStream, VideoStream

DURATION = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
VIDEO_STREAM = re.compile(r"Stream\s*#\d+:\d+.*?:\s*Video:\s*(.+)")
AUDIO_STREAM = re.compile(r"Stream\s*#\d+:\d+.*?:\s*Audio:\s*(.+)")

PROGRESS_MARKER = re.compile(r"(?<![A-Za-z])size=")
COMPLETION_MARKER = re.compile(r"Lsize=")

FRAME = re.compile(r"frame=\s*(\d+)")
FPS = re.compile(r"fps=\s*(\d+(?:\.\d+)?)")
SIZE = re.compile(r"(?<![A-Za-z])size=\s*(\d+)\s*(?:kB|KiB)")
LSIZE = re.compile(r"Lsize=\s*(\d+)\s*(?:kB|KiB)")
TIME = re.compile(r"time=\s*(-?)(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
BITRATE = re.compile(r"bitrate=\s*(\d+(?:\.\d+)?)\s*kbits/s")
SPEED = re.compile(r"speed=\s*(\d+(?:\.\d+)?)x")

FRAME_SIZE = re.compile(r"^(\d+)x(\d+)")
STREAM_BITRATE = re.compile(r"^(\d+)\s*kb/s")
STREAM_FPS = re.compile(r"^(\d+(?:\.\d+)?)\s*fps")
STREAM_TBR = re.compile(r"^(\d+(?:\.\d+)?)\s*tbr")
SAMPLE_RATE = re.compile(r"^(\d+)\s*Hz")
PIXEL_FORMAT = re.compile(r"^([A-Za-z0-9_]+)")


def parse_clock(hours: str, minutes: str, seconds: str) -> timedelta:
    """Convert HH, MM, SS(.ff) strings to a timedelta."""
    return timedelta(hours=int(hours), minutes=int(minutes), seconds=float(seconds))


def split_top_level(body: str) -> list[str]:
    """Split a stream description on commas outside parentheses and brackets."""
    parts = []
    depth = 0
    current = []
    for char in body:
        if char in "([":
            depth += 1
        elif char in ")]":
            depth = max(0, depth - 1)
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def match_duration(line: str) -> timedelta | None:
    """Total input duration from a ``Duration:`` line."""
    match = DURATION.search(line)
    if not match:
        return None
    return parse_clock(*match.groups())


def match_video_stream(line: str) -> VideoStream | None:
    """Video stream descriptor from a ``Stream #i:j: Video:`` line."""
    match = VIDEO_STREAM.search(line)
    if not match:
        return None

    parts = split_top_level(match.group(1))
    fmt = parts[0]
    fields: dict[str, Any] = {"codec": fmt.split()[0], "format": fmt}

    if len(parts) > 1 and not FRAME_SIZE.match(parts[1]):
        pix = PIXEL_FORMAT.match(parts[1])
        if pix:
            fields["pixel_format"] = pix.group(1)

    tbr = None
    for part in parts[1:]:
        if m := FRAME_SIZE.match(part):
            fields.setdefault("frame_size", f"{m.group(1)}x{m.group(2)}")
        elif m := STREAM_BITRATE.match(part):
            fields["bitrate_kbps"] = int(m.group(1))
        elif m := STREAM_FPS.match(part):
            fields["fps"] = float(m.group(1))
        elif m := STREAM_TBR.match(part):
            tbr = float(m.group(1))

    if "fps" not in fields and tbr is not None:
        fields["fps"] = tbr
    return VideoStream(**fields)


def match_audio_stream(line: str) -> AudioStream | None:
    """Audio stream descriptor from a ``Stream #i:j: Audio:`` line."""
    match = AUDIO_STREAM.search(line)
    if not match:
        return None

    parts = split_top_level(match.group(1))
    fmt = parts[0]
    fields: dict[str, Any] = {"codec": fmt.split()[0], "format": fmt}

    for i, part in enumerate(parts[1:], start=1):
        if m := SAMPLE_RATE.match(part):
            fields["sample_rate"] = int(m.group(1))
            if i + 1 < len(parts):
                fields["channel_layout"] = parts[i + 1]
        elif m := STREAM_BITRATE.match(part):
            fields["bitrate_kbps"] = int(m.group(1))
    return AudioStream(**fields)


def _stats_fields(line: str) -> dict[str, Any]:
    """Numeric fields shared by progress and final stats lines."""
    fields: dict[str, Any] = {}
    if m := FRAME.search(line):
        fields["frame"] = int(m.group(1))
    if m := FPS.search(line):
        fields["fps"] = float(m.group(1))
    if m := TIME.search(line):
        sign, hours, minutes, seconds = m.groups()
        elapsed = parse_clock(hours, minutes, seconds)
        fields["elapsed"] = -elapsed if sign else elapsed
    if m := BITRATE.search(line):
        fields["bitrate_kbps"] = float(m.group(1))
    if m := SPEED.search(line):
        fields["speed"] = float(m.group(1))
    return fields


def match_progress(line: str) -> dict[str, Any] | None:
    """Fields of an in-flight stats line (``size=`` with a parseable ``time=``).

    The final ``Lsize=`` line is a completion marker, not progress.
    """
    if COMPLETION_MARKER.search(line) or not PROGRESS_MARKER.search(line):
        return None
    fields = _stats_fields(line)
    if "elapsed" not in fields:
        return None
    if m := SIZE.search(line):
        fields["size_kb"] = int(m.group(1))
    return fields


def match_completion(line: str) -> dict[str, Any] | None:
    """Fields of the final ``Lsize=`` stats line."""
    if not COMPLETION_MARKER.search(line):
        return None
    fields = _stats_fields(line)
    if m := LSIZE.search(line):
        fields["size_kb"] = int(m.group(1))
    return fields
