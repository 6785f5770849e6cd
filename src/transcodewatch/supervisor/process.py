"""Child process supervision: one supervised run per call."""

import asyncio
import logging
import shlex

from transcodewatch.config import Settings, get_settings
from transcodewatch.models.media import MediaFile
from transcodewatch.models.progress import CompletionFact, ProgressSnapshot
from transcodewatch.models.run import LaunchSpec, RunOutcome, RunState
from transcodewatch.supervisor.collector import StreamCollector
from transcodewatch.supervisor.events import EventEmitter
from transcodewatch.supervisor.racer import CompletionRacer, Verdict
from transcodewatch.supervisor.reducer import ProgressReducer

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 127
EXIT_CANNOT_EXECUTE = 126


class ProcessSupervisor:
    """Starts a child process, interprets its output and returns one RunOutcome.

    Each call to ``run`` owns its own state, so concurrent runs are fine.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def run(
        self,
        spec: LaunchSpec,
        progress: EventEmitter[ProgressSnapshot] | None = None,
        completed: EventEmitter[CompletionFact] | None = None,
        media: MediaFile | None = None,
    ) -> RunOutcome:
        """Run ``spec`` to a terminal state.

        Launch failure, timeout and internal failure are reported in the
        outcome rather than raised; use ``RunOutcome.raise_for_status`` to
        map the outcome onto success or ``ProcessFailedError``.
        """
        racer = CompletionRacer(
            self.settings.kill_reap_seconds, self.settings.reader_grace_seconds
        )
        reducer = ProgressReducer(progress, completed, media, on_failure=racer.signal_failure)

        try:
            argv = spec.argv()
            logger.info("Starting %s", shlex.join(argv))
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if spec.writes_stdin else None,
                stdout=asyncio.subprocess.PIPE if spec.redirect_stdout else None,
                stderr=asyncio.subprocess.PIPE if spec.redirect_stderr else None,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to start %s: %s", spec.executable, e)
            return RunOutcome(
                state=RunState.FAILED_TO_START,
                exit_code=EXIT_NOT_FOUND if isinstance(e, FileNotFoundError) else EXIT_CANNOT_EXECUTE,
                internal_failure=e,
            )

        collector = StreamCollector(
            on_stderr_line=reducer.feed,
            chunk_size=self.settings.read_chunk_size,
            encoding=self.settings.encoding,
        )
        stream_tasks = collector.start(process)

        stdin_task = None
        if process.stdin is not None:
            stdin_task = asyncio.create_task(
                self._write_stdin(process, spec.stdin_text or ""), name=f"stdin-{process.pid}"
            )

        try:
            verdict = await racer.race(process, stream_tasks, spec.timeout_seconds)
        finally:
            if stdin_task is not None and not stdin_task.done():
                stdin_task.cancel()

        failure = reducer.failure or racer.failure
        if verdict == Verdict.COMPLETED:
            exit_code = process.returncode
            state = RunState.INTERNAL_FAILURE if failure is not None else RunState.COMPLETED
            logger.info("pid %s exited with code %s", process.pid, exit_code)
        else:
            exit_code = None
            state = RunState.TIMED_OUT if verdict == Verdict.TIMED_OUT else RunState.INTERNAL_FAILURE

        return RunOutcome(
            state=state,
            exit_code=exit_code,
            stdout=collector.stdout.getvalue(),
            stderr=collector.stderr.getvalue(),
            internal_failure=failure,
            total_duration=reducer.total_duration,
        )

    async def _write_stdin(self, process: asyncio.subprocess.Process, text: str) -> None:
        try:
            if text:
                process.stdin.write(text.encode(self.settings.encoding))
                await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("pid %s closed stdin before reading all input", process.pid)
        finally:
            process.stdin.close()


async def run_process(
    spec: LaunchSpec,
    progress: EventEmitter[ProgressSnapshot] | None = None,
    completed: EventEmitter[CompletionFact] | None = None,
    media: MediaFile | None = None,
    settings: Settings | None = None,
) -> RunOutcome:
    """Run ``spec`` with a fresh supervisor."""
    return await ProcessSupervisor(settings).run(spec, progress, completed, media)


def run_process_sync(spec: LaunchSpec, **kwargs) -> RunOutcome:
    """Blocking wrapper around ``run_process`` for callers without an event loop."""
    return asyncio.run(run_process(spec, **kwargs))
