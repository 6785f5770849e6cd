"""Integration tests running real child processes under the supervisor."""

import asyncio
import time
from datetime import timedelta

import psutil
import pytest

from transcodewatch.config import Settings
from transcodewatch.models.errors import ProcessFailedError
from transcodewatch.models.media import MediaFile
from transcodewatch.models.run import LaunchSpec, RunState
from transcodewatch.supervisor.events import EventEmitter
from transcodewatch.supervisor.process import ProcessSupervisor, run_process, run_process_sync
from tests.conftest import COMPLETION_LINE, PREAMBLE, progress_line, python_spec

pytestmark = pytest.mark.integration


def _run(spec, **kwargs):
    return asyncio.run(run_process(spec, **kwargs))


def _stderr_script(lines: list[str], terminator: str = "\n", exit_code: int = 0) -> str:
    return (
        "import sys\n"
        f"for line in {lines!r}:\n"
        f"    sys.stderr.write(line + {terminator!r})\n"
        "    sys.stderr.flush()\n"
        f"sys.exit({exit_code})\n"
    )


class TestCleanCompletion:
    def test_both_streams_captured(self):
        script = (
            "import sys\n"
            "sys.stdout.write('out-1\\n'); sys.stderr.write('err-1\\n')\n"
            "sys.stdout.write('out-2\\n'); sys.stderr.write('err-2\\n')\n"
        )
        outcome = _run(python_spec(script))
        assert outcome.state == RunState.COMPLETED
        assert outcome.exit_code == 0
        assert outcome.stdout == "out-1\nout-2\n"
        assert outcome.stderr == "err-1\nerr-2\n"
        assert outcome.internal_failure is None

    def test_no_deadlock_on_large_output(self):
        script = (
            "import sys\n"
            "for i in range(2000):\n"
            "    sys.stderr.write('e' * 500 + '\\n')\n"
            "    sys.stdout.write('o' * 500 + '\\n')\n"
            "for i in range(2000):\n"
            "    sys.stderr.write('E' * 500 + '\\n')\n"
        )
        outcome = _run(python_spec(script, timeout_ms=60_000))
        assert outcome.exit_code == 0
        assert outcome.stdout == ("o" * 500 + "\n") * 2000
        assert outcome.stderr == ("e" * 500 + "\n") * 2000 + ("E" * 500 + "\n") * 2000

    def test_stdout_not_redirected(self):
        outcome = _run(python_spec("import sys; sys.stderr.write('only err')", redirect_stdout=False))
        assert outcome.exit_code == 0
        assert outcome.stdout == ""
        assert outcome.stderr == "only err"

    def test_stdin_payload(self):
        script = "import sys; sys.stdout.write(sys.stdin.read().upper())"
        outcome = _run(python_spec(script, stdin_text="hello ffmpeg"))
        assert outcome.stdout == "HELLO FFMPEG"

    def test_child_ignores_stdin(self):
        outcome = _run(python_spec("pass", stdin_text="x" * 1_000_000))
        assert outcome.state == RunState.COMPLETED
        assert outcome.exit_code == 0

    def test_sync_wrapper(self):
        outcome = run_process_sync(python_spec("print('sync')"))
        assert outcome.stdout == "sync\n"


class TestExitCodes:
    def test_exit_one_accepted(self):
        outcome = _run(python_spec("import sys; sys.exit(1)"))
        assert outcome.exit_code == 1
        assert outcome.raise_for_status() is outcome

    def test_exit_two_fatal(self):
        script = "import sys; sys.stderr.write('x' * 3000); sys.exit(2)"
        outcome = _run(python_spec(script))
        assert outcome.exit_code == 2
        with pytest.raises(ProcessFailedError) as exc_info:
            outcome.raise_for_status()
        assert exc_info.value.exit_code == 2
        assert exc_info.value.stderr_excerpt == "x" * 1000
        assert "x" * 1000 in str(exc_info.value)
        assert "x" * 1001 not in str(exc_info.value)


class TestTimeout:
    def test_timeout_kills_process(self):
        started = time.monotonic()
        outcome = _run(python_spec("import time; time.sleep(60)", timeout_ms=50))
        elapsed = time.monotonic() - started
        assert outcome.state == RunState.TIMED_OUT
        assert outcome.exit_code is None
        assert elapsed < 1.0
        with pytest.raises(ProcessFailedError):
            outcome.raise_for_status()

    @pytest.mark.filterwarnings("error::pytest.PytestUnraisableExceptionWarning")
    def test_timeout_with_descendant_holding_pipes(self):
        started = time.monotonic()
        outcome = _run(
            LaunchSpec(executable="/bin/sh", arguments='-c "sleep 30; echo done"', timeout_ms=50)
        )
        elapsed = time.monotonic() - started
        assert outcome.state == RunState.TIMED_OUT
        assert outcome.exit_code is None
        assert elapsed < 1.0
        assert "done" not in outcome.stdout

    def test_output_kept_when_descendant_holds_pipes(self):
        outcome = _run(
            LaunchSpec(
                executable="/bin/sh",
                arguments='-c "echo started; sleep 30; echo done"',
                timeout_ms=500,
            )
        )
        assert outcome.state == RunState.TIMED_OUT
        assert outcome.stdout == "started\n"

    def test_killed_process_is_gone(self):
        script = "import os, sys, time\nprint(os.getpid(), flush=True)\ntime.sleep(60)\n"
        outcome = _run(python_spec(script, timeout_ms=2000))
        assert outcome.exit_code is None
        pid = int(outcome.stdout.split()[0])
        assert not psutil.pid_exists(pid)

    def test_output_before_timeout_kept(self):
        script = "import sys, time\nsys.stderr.write('partial\\n'); sys.stderr.flush()\ntime.sleep(60)\n"
        outcome = _run(python_spec(script, timeout_ms=2000))
        assert outcome.state == RunState.TIMED_OUT
        assert outcome.stderr == "partial\n"


class TestLaunchFailure:
    def test_missing_executable(self, tmp_path):
        outcome = _run(LaunchSpec(executable=str(tmp_path / "no-such-ffmpeg")))
        assert outcome.state == RunState.FAILED_TO_START
        assert outcome.exit_code == 127
        assert isinstance(outcome.internal_failure, FileNotFoundError)
        with pytest.raises(ProcessFailedError):
            outcome.raise_for_status()

    def test_not_executable(self, tmp_path):
        path = tmp_path / "ffmpeg"
        path.write_text("not a program")
        outcome = _run(LaunchSpec(executable=str(path)))
        assert outcome.state == RunState.FAILED_TO_START
        assert outcome.exit_code == 126


class TestProgressEvents:
    def test_events_from_stderr(self):
        stats = [progress_line(s, frame=s * 30) for s in (15, 30, 45, 60)]
        script = _stderr_script([*PREAMBLE, *stats, COMPLETION_LINE], terminator="\r")
        progress, completed = EventEmitter(), EventEmitter()
        snapshots, facts = [], []
        progress.subscribe(snapshots.append)
        completed.subscribe(facts.append)
        media = MediaFile(filename="input.mp4")

        outcome = _run(python_spec(script), progress=progress, completed=completed, media=media)

        assert outcome.exit_code == 0
        assert outcome.total_duration == timedelta(seconds=90)
        assert [s.elapsed.total_seconds() for s in snapshots] == [15, 30, 45, 60]
        assert all(s.total_duration == timedelta(seconds=90) for s in snapshots)
        assert len(facts) == 1
        assert facts[0].total_duration == timedelta(seconds=90)
        assert facts[0].last_progress == snapshots[-1]
        assert media.metadata.video.codec == "h264"
        assert media.metadata.audio.codec == "aac"

    def test_subscriber_failure_aborts_wait(self):
        script = _stderr_script([progress_line(1)]).replace(
            "sys.exit(0)", "import time; time.sleep(60)"
        )
        progress = EventEmitter()

        @progress.subscribe
        def broken(snapshot):
            raise RuntimeError("cannot handle progress")

        started = time.monotonic()
        outcome = _run(python_spec(script), progress=progress)
        assert time.monotonic() - started < 10.0
        assert outcome.state == RunState.INTERNAL_FAILURE
        assert outcome.exit_code is None
        assert isinstance(outcome.internal_failure, RuntimeError)
        with pytest.raises(ProcessFailedError) as exc_info:
            outcome.raise_for_status()
        assert exc_info.value.__cause__ is outcome.internal_failure


class TestConcurrentRuns:
    def test_runs_are_independent(self):
        async def both():
            supervisor = ProcessSupervisor(Settings())
            first = supervisor.run(python_spec(_stderr_script([PREAMBLE[2]])))
            second = supervisor.run(python_spec("import sys; sys.exit(1)"))
            return await asyncio.gather(first, second)

        first, second = asyncio.run(both())
        assert first.total_duration == timedelta(seconds=90)
        assert first.exit_code == 0
        assert second.total_duration == timedelta(0)
        assert second.exit_code == 1
