"""Error contracts for Repoteer.

Configuration problems are fatal and raised before any repository is touched.
Git invocation problems are scoped to one (repository, operation) pair; the
runner records them as failed outcomes and carries on. Programmer bugs raise
normal exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence


class RepoteerError(Exception):
    """Base class for expected Repoteer failures."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__(message)
        self.recovery_hint = recovery_hint


class ConfigError(RepoteerError):
    """Manifest or configuration is unreadable or malformed."""


class ManifestNotFoundError(ConfigError):
    """The manifest file does not exist."""


class ManifestParseError(ConfigError):
    """The manifest file exists but could not be parsed or validated."""


class ToolInvocationError(RepoteerError):
    """The external git tool exited unsuccessfully or could not be started."""

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] = (),
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message, recovery_hint=recovery_hint)
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def detail(self) -> str:
        """Return the message followed by whatever output git produced."""
        output = (self.stderr or self.stdout or "").strip()
        if output:
            return f"{self}\n{output}"
        return str(self)


class OperationTimeoutError(ToolInvocationError, TimeoutError):
    """The git invocation exceeded its deadline and was killed."""


class OperationCancelledError(ToolInvocationError):
    """The git invocation was terminated by a run-level cancellation."""
