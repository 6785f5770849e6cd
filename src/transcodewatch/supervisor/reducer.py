"""Folds ffmpeg stderr lines into running state and progress events."""

import logging
from collections.abc import Callable
from datetime import timedelta

from transcodewatch.models.media import MediaFile, Metadata
from transcodewatch.models.progress import CompletionFact, ProgressSnapshot
from transcodewatch.supervisor import patterns
from transcodewatch.supervisor.events import EventEmitter

logger = logging.getLogger(__name__)


class ProgressReducer:
    """Interprets stderr lines for one run.

    The first parsed duration is fixed for the rest of the run and stamped on
    every event emitted afterwards. Any exception while interpreting a line or
    notifying subscribers becomes the run's internal failure; no further lines
    are interpreted after that.
    """

    def __init__(
        self,
        progress: EventEmitter[ProgressSnapshot] | None = None,
        completed: EventEmitter[CompletionFact] | None = None,
        media: MediaFile | None = None,
        on_failure: Callable[[BaseException], None] | None = None,
    ):
        self.progress = progress if progress is not None else EventEmitter()
        self.completed = completed if completed is not None else EventEmitter()
        self.media = media
        self.on_failure = on_failure
        self.total_duration = timedelta(0)
        self.duration_known = False
        self.last_progress: ProgressSnapshot | None = None
        self.completion: CompletionFact | None = None
        self.failure: BaseException | None = None

    def feed(self, line: str) -> None:
        """Interpret one stderr line."""
        if self.failure is not None:
            return
        try:
            self._reduce(line)
        except Exception as e:
            logger.error("Failed to interpret ffmpeg output line %r: %s", line, e)
            self.failure = e
            if self.on_failure:
                self.on_failure(e)

    def _reduce(self, line: str) -> None:
        if self.media is not None:
            self._attach_streams(line)

        duration = patterns.match_duration(line)
        if duration is not None and not self.duration_known:
            self.total_duration = duration
            self.duration_known = True
            if self.media is not None:
                self._metadata().duration = duration

        fields = patterns.match_progress(line)
        if fields is not None:
            snapshot = ProgressSnapshot(total_duration=self.total_duration, **fields)
            self.last_progress = snapshot
            self.progress.emit(snapshot)
            return

        fields = patterns.match_completion(line)
        if fields is not None and self.completion is None:
            self.completion = CompletionFact(
                total_duration=self.total_duration,
                last_progress=self.last_progress,
                **fields,
            )
            self.completed.emit(self.completion)

    def _attach_streams(self, line: str) -> None:
        video = patterns.match_video_stream(line)
        if video is not None and (self.media.metadata is None or self.media.metadata.video is None):
            logger.debug("Detected video stream in %s: %s", self.media.filename, video.format)
            self._metadata().video = video

        audio = patterns.match_audio_stream(line)
        if audio is not None and (self.media.metadata is None or self.media.metadata.audio is None):
            logger.debug("Detected audio stream in %s: %s", self.media.filename, audio.format)
            self._metadata().audio = audio

    def _metadata(self) -> Metadata:
        if self.media.metadata is None:
            self.media.metadata = Metadata()
        return self.media.metadata
