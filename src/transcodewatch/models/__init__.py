"""Data models for transcodewatch."""

from transcodewatch.models.errors import (
    ProcessFailedError,
    ProvisioningError,
    TranscodeWatchError,
    ValidationError,
)
from transcodewatch.models.media import AudioStream, MediaFile, Metadata, VideoStream
from transcodewatch.models.progress import CompletionFact, ProgressSnapshot
from transcodewatch.models.run import LaunchSpec, RunOutcome, RunState

__all__ = [
    "AudioStream",
    "CompletionFact",
    "LaunchSpec",
    "MediaFile",
    "Metadata",
    "ProcessFailedError",
    "ProgressSnapshot",
    "ProvisioningError",
    "RunOutcome",
    "RunState",
    "TranscodeWatchError",
    "ValidationError",
    "VideoStream",
]
