"""Shared fakes for Repoteer tests."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from repoteer.errors import OperationCancelledError, ToolInvocationError
from repoteer.exec import CommandResult
from repoteer.models import RepoSpec
from repoteer.sync.state import (
    BranchDivergence,
    OperationKind,
    Presence,
    RepoObservedState,
    SyncEvent,
    WorkingTreeStatus,
)


def make_repo(name: str, root: Path = Path("/work"), **overrides: object) -> RepoSpec:
    data: dict[str, object] = {
        "url": f"git@example.com:org/{name}.git",
        "path": str(root / name),
    }
    data.update(overrides)
    return RepoSpec.model_validate(data)


def present(
    working_tree: WorkingTreeStatus = WorkingTreeStatus.CLEAN,
    **branches: BranchDivergence,
) -> RepoObservedState:
    return RepoObservedState(
        presence=Presence.PRESENT, working_tree=working_tree, branches=branches
    )


class CollectingSink:
    """Thread-safe sink that keeps every event in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[SyncEvent] = []

    def emit(self, event: SyncEvent) -> None:
        with self._lock:
            self.events.append(event)

    def for_repo(self, repo: RepoSpec) -> list[SyncEvent]:
        with self._lock:
            return [event for event in self.events if event.repo.key == repo.key]


class FakeBackend:
    """In-memory ``VcsBackend`` with scripted states, failures and delays.

    Args:
        states: Initial observed state per repository key; missing repos are absent.
        failures: ``(repo key, operation)`` pairs that raise with the given message.
        probe_failures: Repository keys whose probe raises.
        delay: Seconds each mutating operation sleeps.
        after: Observed state per ``(repo key, operation)`` after that operation
            succeeds; a clone defaults to a fresh clone.
        raises: Arbitrary exceptions per ``(repo key, "probe" or operation value)``.
    """

    def __init__(
        self,
        states: dict[str, RepoObservedState] | None = None,
        *,
        failures: dict[tuple[str, OperationKind], str] | None = None,
        probe_failures: set[str] | None = None,
        delay: float = 0.0,
        after: dict[tuple[str, OperationKind], RepoObservedState] | None = None,
        raises: dict[tuple[str, str], Exception] | None = None,
    ) -> None:
        self.states = dict(states or {})
        self.failures = dict(failures or {})
        self.probe_failures = set(probe_failures or ())
        self.delay = delay
        self.after = dict(after or {})
        self.raises = dict(raises or {})
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def calls_for(self, repo: RepoSpec) -> list[str]:
        with self._lock:
            return [call for key, call in self.calls if key == repo.key]

    def probe(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> RepoObservedState:
        with self._lock:
            self.calls.append((repo.key, "probe"))
            if (repo.key, "probe") in self.raises:
                raise self.raises[(repo.key, "probe")]
            if repo.key in self.probe_failures:
                raise ToolInvocationError(
                    "status failed", argv=("git", "status"), returncode=128,
                    stderr="fatal: not a git repository",
                )
            return self.states.get(repo.key, RepoObservedState.absent())

    def _mutate(
        self, repo: RepoSpec, operation: OperationKind, cancel: threading.Event | None
    ) -> CommandResult:
        argv = ("git", operation.value)
        with self._lock:
            self.calls.append((repo.key, operation.value))
            if (repo.key, operation.value) in self.raises:
                raise self.raises[(repo.key, operation.value)]
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            deadline = time.monotonic() + self.delay
            while time.monotonic() < deadline:
                if cancel is not None and cancel.is_set():
                    raise OperationCancelledError(
                        f"{operation.value} interrupted", argv=argv, returncode=130
                    )
                time.sleep(0.01)
            message = self.failures.get((repo.key, operation))
            if message is not None:
                raise ToolInvocationError(
                    f"{operation.value} failed", argv=argv, returncode=1,
                    stderr=f"fatal: {message}",
                )
        finally:
            with self._lock:
                self.active -= 1
        with self._lock:
            next_state = self.after.get((repo.key, operation))
            if next_state is None and operation is OperationKind.CLONE:
                next_state = RepoObservedState.fresh_clone()
            if next_state is not None:
                self.states[repo.key] = next_state
        return CommandResult(argv=argv, returncode=0, stdout=f"{operation.value} done\n", stderr="")

    def clone(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        return self._mutate(repo, OperationKind.CLONE, cancel)

    def pull(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        return self._mutate(repo, OperationKind.PULL, cancel)

    def push(
        self,
        repo: RepoSpec,
        *,
        force: bool = False,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        return self._mutate(repo, OperationKind.PUSH, cancel)
