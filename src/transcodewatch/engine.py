"""Engine facade: conversions, metadata and thumbnails through a supervised ffmpeg."""

import logging
from pathlib import Path

from transcodewatch.commands.builder import CommandBuilder, ConversionOptions
from transcodewatch.config import Settings, get_settings
from transcodewatch.models.errors import ProcessFailedError, ValidationError
from transcodewatch.models.media import MediaFile
from transcodewatch.models.progress import CompletionFact, ProgressSnapshot
from transcodewatch.models.run import LaunchSpec, RunOutcome
from transcodewatch.provisioning.binary import BinaryProvisioner
from transcodewatch.supervisor.events import EventEmitter
from transcodewatch.supervisor.process import ProcessSupervisor

logger = logging.getLogger(__name__)


class Engine:
    """Runs ffmpeg jobs and publishes their progress.

    Subscribe to ``progress`` and ``completed`` before starting a job. The
    executable is provisioned once, when the engine is created.
    """

    def __init__(self, settings: Settings | None = None, provisioner: BinaryProvisioner | None = None):
        self.settings = settings or get_settings()
        self.builder = CommandBuilder()
        self.supervisor = ProcessSupervisor(self.settings)
        self.progress: EventEmitter[ProgressSnapshot] = EventEmitter()
        self.completed: EventEmitter[CompletionFact] = EventEmitter()
        provisioner = provisioner or BinaryProvisioner(self.settings)
        self.executable = str(provisioner.prepare())

    async def convert(
        self,
        input_file: MediaFile,
        output_file: MediaFile,
        options: ConversionOptions | None = None,
        timeout_ms: int | None = None,
    ) -> RunOutcome:
        """Convert ``input_file`` into ``output_file``."""
        self._check_input(input_file)
        arguments = self.builder.convert(input_file, output_file, options)
        return await self._run(arguments, input_file, timeout_ms)

    async def get_metadata(self, input_file: MediaFile, timeout_ms: int | None = None) -> MediaFile:
        """Fill ``input_file.metadata`` from the ffmpeg input preamble.

        ffmpeg exits with 1 when given no output file, which is accepted.
        """
        self._check_input(input_file)
        await self._run(self.builder.metadata(input_file), input_file, timeout_ms)
        return input_file

    async def get_thumbnail(
        self,
        input_file: MediaFile,
        output_file: MediaFile,
        options: ConversionOptions | None = None,
        timeout_ms: int | None = None,
    ) -> RunOutcome:
        """Write a single frame of ``input_file`` to ``output_file``."""
        self._check_input(input_file)
        arguments = self.builder.thumbnail(input_file, output_file, options)
        return await self._run(arguments, input_file, timeout_ms)

    async def custom_command(self, arguments: str, timeout_ms: int | None = None) -> RunOutcome:
        """Run ffmpeg with caller-built arguments."""
        if not arguments or not arguments.strip():
            raise ValidationError("Custom ffmpeg command must not be empty")
        return await self._run(arguments, None, timeout_ms)

    async def _run(
        self, arguments: str, media: MediaFile | None, timeout_ms: int | None
    ) -> RunOutcome:
        spec = LaunchSpec(
            executable=self.executable,
            arguments=f"{self.settings.global_arguments} {arguments}".strip(),
            timeout_ms=timeout_ms or self.settings.default_timeout_ms,
        )
        outcome = await self.supervisor.run(spec, self.progress, self.completed, media)
        try:
            return outcome.raise_for_status(
                self.settings.accepted_exit_codes, self.settings.error_excerpt_chars
            )
        except ProcessFailedError as e:
            logger.error("FFmpeg run failed (%s): %s", outcome.state, e.message[:200])
            raise

    def _check_input(self, input_file: MediaFile) -> None:
        if not input_file.is_remote and not Path(input_file.filename).exists():
            raise ValidationError(
                f"Input file not found: {input_file.filename}",
                details={"file": input_file.filename},
            )
