"""Launch parameters and run outcome models."""

import shlex
from collections.abc import Iterable
from datetime import timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from transcodewatch.models.errors import ProcessFailedError


class LaunchSpec(BaseModel):
    """Everything needed to start one child process."""

    model_config = ConfigDict(frozen=True)

    executable: str = Field(..., min_length=1)
    arguments: str = Field(default="", description="Already serialized argument string")
    redirect_stdin: bool = False
    redirect_stdout: bool = True
    redirect_stderr: bool = True
    stdin_text: str | None = None
    timeout_ms: int | None = Field(default=None, gt=0)

    @property
    def writes_stdin(self) -> bool:
        return self.redirect_stdin or bool(self.stdin_text)

    @property
    def timeout_seconds(self) -> float | None:
        if self.timeout_ms is None:
            return None
        return self.timeout_ms / 1000

    def argv(self) -> list[str]:
        """Split the argument string into an exec-style argument vector."""
        return [self.executable, *shlex.split(self.arguments)]


class RunState(StrEnum):
    """Terminal states of a supervised run."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED_TO_START = "failed_to_start"
    INTERNAL_FAILURE = "internal_failure"


class RunOutcome(BaseModel):
    """The single result of one supervised run.

    ``exit_code`` is None when the process was killed instead of exiting.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    state: RunState
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    internal_failure: BaseException | None = None
    total_duration: timedelta = Field(default=timedelta(0))

    def is_accepted(self, accepted_codes: Iterable[int] = (0, 1)) -> bool:
        return (
            self.state == RunState.COMPLETED
            and self.internal_failure is None
            and self.exit_code in set(accepted_codes)
        )

    def raise_for_status(
        self, accepted_codes: Iterable[int] = (0, 1), excerpt_chars: int = 1000
    ) -> "RunOutcome":
        """Return self when accepted, raise ProcessFailedError otherwise."""
        if self.is_accepted(accepted_codes):
            return self

        excerpt = self.stderr[:excerpt_chars]
        code = str(self.exit_code) if self.exit_code is not None else self.state.value
        raise ProcessFailedError(
            f"{code}: {excerpt}",
            details={
                "exit_code": self.exit_code,
                "state": self.state.value,
                "stderr_excerpt": excerpt,
            },
        ) from self.internal_failure
