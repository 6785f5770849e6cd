"""FFmpeg argument string construction."""

import shlex
from datetime import timedelta

from pydantic import BaseModel, Field, model_validator

from transcodewatch.models.media import MediaFile


class CropRectangle(BaseModel):
    """Source crop region in pixels."""

    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class ConversionOptions(BaseModel):
    """Per-call conversion options."""

    seek: timedelta | None = Field(default=None, description="Input offset to start from")
    max_duration: timedelta | None = Field(default=None, description="Stop after this much output")
    video_bitrate_kbps: int | None = Field(default=None, gt=0)
    video_fps: float | None = Field(default=None, gt=0)
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    aspect_ratio: str | None = Field(default=None, description="e.g. '16:9'")
    baseline_profile: bool = False
    audio_bitrate_kbps: int | None = Field(default=None, gt=0)
    audio_sample_rate: int | None = Field(default=None, gt=0)
    target: str | None = Field(default=None, description="ffmpeg -target preset, e.g. 'pal-dvd'")
    source_crop: CropRectangle | None = None
    extra_arguments: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_frame_size(self) -> "ConversionOptions":
        if (self.width is None) != (self.height is None):
            raise ValueError("width and height must be given together")
        return self


def format_offset(value: timedelta) -> str:
    """Format a timedelta as ffmpeg's HH:MM:SS.mmm."""
    total_ms = round(value.total_seconds() * 1000)
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    seconds, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


class CommandBuilder:
    """Serializes engine requests into flat, shell-quoted argument strings."""

    def metadata(self, input_file: MediaFile) -> str:
        """Arguments that make ffmpeg print the input preamble and exit."""
        return shlex.join(["-i", input_file.filename])

    def thumbnail(
        self,
        input_file: MediaFile,
        output_file: MediaFile,
        options: ConversionOptions | None = None,
    ) -> str:
        """Arguments that grab one frame at ``options.seek`` (default 1s)."""
        options = options or ConversionOptions()
        seek = options.seek if options.seek is not None else timedelta(seconds=1)
        args = ["-ss", format_offset(seek), "-i", input_file.filename]
        args.extend(self.build_video_args(options))
        args.extend(["-vframes", "1", output_file.filename])
        return shlex.join(args)

    def convert(
        self,
        input_file: MediaFile,
        output_file: MediaFile,
        options: ConversionOptions | None = None,
    ) -> str:
        """Arguments for a full conversion."""
        options = options or ConversionOptions()
        args = []
        if options.seek is not None:
            args.extend(["-ss", format_offset(options.seek)])
        args.extend(["-i", input_file.filename])
        if options.max_duration is not None:
            args.extend(["-t", format_offset(options.max_duration)])
        if options.target:
            args.extend(["-target", options.target])
        args.extend(self.build_video_args(options))
        args.extend(self.build_audio_args(options))
        args.extend(options.extra_arguments)
        args.append(output_file.filename)
        return shlex.join(args)

    def build_video_args(self, options: ConversionOptions) -> list[str]:
        args = []
        if options.source_crop is not None:
            crop = options.source_crop
            args.extend(["-filter:v", f"crop={crop.width}:{crop.height}:{crop.x}:{crop.y}"])
        if options.video_bitrate_kbps is not None:
            args.extend(["-b:v", f"{options.video_bitrate_kbps}k"])
        if options.video_fps is not None:
            args.extend(["-r", f"{options.video_fps:g}"])
        if options.width is not None:
            args.extend(["-s", f"{options.width}x{options.height}"])
        if options.aspect_ratio:
            args.extend(["-aspect", options.aspect_ratio])
        if options.baseline_profile:
            args.extend(["-profile:v", "baseline"])
        return args

    def build_audio_args(self, options: ConversionOptions) -> list[str]:
        args = []
        if options.audio_bitrate_kbps is not None:
            args.extend(["-b:a", f"{options.audio_bitrate_kbps}k"])
        if options.audio_sample_rate is not None:
            args.extend(["-ar", str(options.audio_sample_rate)])
        return args
