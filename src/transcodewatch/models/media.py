"""Media file and stream descriptor models."""

from datetime import timedelta

from pydantic import BaseModel, Field


class VideoStream(BaseModel):
    """Video stream descriptor from the ffmpeg input preamble."""

    codec: str = Field(..., min_length=1)
    format: str = Field(default="", description="Full codec description, e.g. 'h264 (High)'")
    pixel_format: str = Field(default="")
    frame_size: str = Field(default="", description="WIDTHxHEIGHT")
    fps: float | None = Field(default=None, ge=0)
    bitrate_kbps: int | None = Field(default=None, ge=0)

    @property
    def width(self) -> int | None:
        if "x" not in self.frame_size:
            return None
        return int(self.frame_size.split("x")[0])

    @property
    def height(self) -> int | None:
        if "x" not in self.frame_size:
            return None
        return int(self.frame_size.split("x")[1])


class AudioStream(BaseModel):
    """Audio stream descriptor from the ffmpeg input preamble."""

    codec: str = Field(..., min_length=1)
    format: str = Field(default="")
    sample_rate: int | None = Field(default=None, ge=0, description="Sample rate in Hz")
    channel_layout: str = Field(default="")
    bitrate_kbps: int | None = Field(default=None, ge=0)


class Metadata(BaseModel):
    """Facts learned about an input while ffmpeg reads it."""

    duration: timedelta = Field(default=timedelta(0))
    video: VideoStream | None = None
    audio: AudioStream | None = None


class MediaFile(BaseModel):
    """An input or output file handed to the engine.

    ``metadata`` is filled in place while a run interprets stderr.
    """

    filename: str = Field(..., min_length=1)
    metadata: Metadata | None = None

    @property
    def is_remote(self) -> bool:
        return self.filename.startswith(("http://", "https://"))
