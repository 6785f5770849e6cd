"""Progress and completion event models."""

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field


class ProgressSnapshot(BaseModel):
    """A point-in-time encoding progress fact parsed from one stats line."""

    model_config = ConfigDict(frozen=True)

    elapsed: timedelta = Field(..., description="Processed media duration so far")
    total_duration: timedelta = Field(
        default=timedelta(0), description="Zero until the input duration is known"
    )
    frame: int | None = Field(default=None, ge=0)
    fps: float | None = Field(default=None, ge=0)
    size_kb: int | None = Field(default=None, ge=0)
    bitrate_kbps: float | None = Field(default=None, ge=0)
    speed: float | None = Field(default=None, ge=0)

    @property
    def fraction(self) -> float:
        """Progress as fraction [0, 1]."""
        total = self.total_duration.total_seconds()
        if total <= 0:
            return 0.0
        return max(0.0, min(1.0, self.elapsed.total_seconds() / total))


class CompletionFact(BaseModel):
    """ffmpeg announced in its output that it finished writing."""

    model_config = ConfigDict(frozen=True)

    total_duration: timedelta = Field(default=timedelta(0))
    elapsed: timedelta | None = None
    frame: int | None = Field(default=None, ge=0)
    fps: float | None = Field(default=None, ge=0)
    size_kb: int | None = Field(default=None, ge=0)
    bitrate_kbps: float | None = Field(default=None, ge=0)
    speed: float | None = Field(default=None, ge=0)
    last_progress: ProgressSnapshot | None = None
