"""Races clean completion against a timeout and an internal failure signal."""

import asyncio
import logging
from enum import StrEnum

logger = logging.getLogger(__name__)


class Verdict(StrEnum):
    """Which signal resolved the race first."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class CompletionRacer:
    """Waits for exit AND every stream closed, OR timeout, OR failure.

    Losing the race to a timeout or failure kills the process. Kill errors
    are ignored: the process may already be gone.
    """

    def __init__(self, kill_reap_seconds: float = 5.0, reader_grace_seconds: float = 0.1):
        self.kill_reap_seconds = kill_reap_seconds
        self.reader_grace_seconds = reader_grace_seconds
        self.failed = asyncio.Event()
        self.failure: BaseException | None = None

    def signal_failure(self, exc: BaseException) -> None:
        """Stop waiting as soon as possible."""
        if self.failure is None:
            self.failure = exc
        self.failed.set()

    async def race(
        self,
        process: asyncio.subprocess.Process,
        stream_tasks: list[asyncio.Task],
        timeout: float | None = None,
    ) -> Verdict:
        exit_task = asyncio.create_task(process.wait(), name=f"exit-{process.pid}")
        completion = asyncio.gather(exit_task, *stream_tasks)
        completion.add_done_callback(_retrieve)
        failure = asyncio.create_task(self.failed.wait(), name=f"failure-{process.pid}")

        try:
            done, _ = await asyncio.wait(
                {completion, failure}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await self.terminate(process, exit_task, stream_tasks)
            raise
        finally:
            failure.cancel()

        if completion in done:
            exc = completion.exception()
            if exc is None:
                return Verdict.COMPLETED
            logger.error("Stream reader for pid %s failed: %s", process.pid, exc)
            self.signal_failure(exc)

        if self.failure is not None:
            verdict = Verdict.FAILED
            logger.warning("Killing pid %s after internal failure", process.pid)
        else:
            verdict = Verdict.TIMED_OUT
            logger.warning("Killing pid %s after %.3fs timeout", process.pid, timeout)

        await self.terminate(process, exit_task, stream_tasks)
        return verdict

    async def terminate(
        self,
        process: asyncio.subprocess.Process,
        exit_task: asyncio.Task | None = None,
        stream_tasks: list[asyncio.Task] | None = None,
    ) -> None:
        """Kill the process and release its pipes.

        Readers get ``reader_grace_seconds`` to collect text already in the
        pipes. A descendant that inherited the pipes can keep them open after
        the kill, so readers still running after the grace period are
        cancelled and the transport is closed. Exit is then awaited for at
        most ``kill_reap_seconds``.
        """
        try:
            process.kill()
        except ProcessLookupError:
            pass

        if exit_task is None:
            exit_task = asyncio.ensure_future(process.wait())
        stream_tasks = stream_tasks or []

        _, pending = await asyncio.wait(
            [exit_task, *stream_tasks], timeout=self.reader_grace_seconds
        )
        if not pending:
            return

        readers = [task for task in stream_tasks if task in pending]
        for task in readers:
            task.cancel()
        if readers:
            logger.debug("Cancelled %d reader(s) of pid %s after kill", len(readers), process.pid)
            await asyncio.gather(*readers, return_exceptions=True)

        # process.wait() only returns once every pipe is closed, and asyncio
        # has no public way to close pipes another process still holds.
        process._transport.close()

        done, _ = await asyncio.wait({exit_task}, timeout=self.kill_reap_seconds)
        if not done:
            logger.warning(
                "pid %s did not exit within %.1fs of kill", process.pid, self.kill_reap_seconds
            )
            exit_task.cancel()


def _retrieve(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
