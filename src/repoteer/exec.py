"""Subprocess helpers for running external commands."""

import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

TIMEOUT_RETURNCODE = 124
CANCELLED_RETURNCODE = 130
_POLL_INTERVAL_SECONDS = 0.1
_TERMINATE_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout_seconds: float | None = None
    cancel: threading.Event | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


def _decode(value: bytes | None) -> str:
    if value is None:
        return ""
    return value.decode("utf-8", errors="replace")


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess.

    Output is always captured and decoded as UTF-8; undecodable bytes are
    replaced rather than raising. The child is killed when the request deadline
    passes and terminated when the request's cancel event is set.
    """

    def run(self, request: CommandRequest) -> CommandResult | None:
        try:
            process = subprocess.Popen(
                list(request.argv),
                cwd=request.cwd,
                env=request.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError:
            return None

        deadline = None
        if request.timeout_seconds is not None:
            deadline = time.monotonic() + request.timeout_seconds
        timed_out = False
        cancelled = False
        while True:
            wait = _POLL_INTERVAL_SECONDS
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            try:
                stdout, stderr = process.communicate(timeout=wait)
                break
            except subprocess.TimeoutExpired:
                pass
            if request.cancel is not None and request.cancel.is_set():
                cancelled = True
                stdout, stderr = self._stop(process)
                break
            if deadline is not None and time.monotonic() >= deadline:
                timed_out = True
                process.kill()
                stdout, stderr = process.communicate()
                break

        returncode = process.returncode
        if timed_out:
            returncode = TIMEOUT_RETURNCODE
        elif cancelled:
            returncode = CANCELLED_RETURNCODE
        return CommandResult(
            argv=request.argv,
            returncode=returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            timed_out=timed_out,
            cancelled=cancelled,
        )

    @staticmethod
    def _stop(process: subprocess.Popen[bytes]) -> tuple[bytes, bytes]:
        process.terminate()
        try:
            return process.communicate(timeout=_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            return process.communicate()


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)
