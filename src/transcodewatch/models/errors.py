"""Error hierarchy."""


class TranscodeWatchError(Exception):
    """Base error for all transcodewatch errors."""

    def __init__(self, message: str, component: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}


class ValidationError(TranscodeWatchError):
    """Invalid caller input (missing input file, empty command)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="validation", details=details)


class ProvisioningError(TranscodeWatchError):
    """The ffmpeg executable could not be made available."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="provisioning", details=details)


class ProcessFailedError(TranscodeWatchError):
    """A supervised run ended in a fatal outcome.

    Covers launch failure, timeout, failure while interpreting output and
    exit codes outside the accepted set. ``details`` carries ``exit_code``,
    ``state`` and ``stderr_excerpt``.
    """

    def __init__(self, message: str, component: str = "supervisor", details: dict | None = None):
        super().__init__(message, component=component, details=details)

    @property
    def exit_code(self) -> int | None:
        return self.details.get("exit_code")

    @property
    def stderr_excerpt(self) -> str:
        return self.details.get("stderr_excerpt", "")
