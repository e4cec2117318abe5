"""Drive one repository through its requested operations."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .. import log
from ..errors import ToolInvocationError
from ..exec import CommandResult
from ..models import RepoSpec, SyncPolicy
from .policy import REASON_CANCELLED, decide, describe_plan, evaluate
from .ports import VcsBackend
from .sink import EventSink
from .state import (
    OperationFinished,
    OperationKind,
    OperationOutcome,
    OperationStarted,
    OutcomeStatus,
    RepoFinished,
    RepoObservedState,
    RepoStarted,
    RunSummary,
    ordered_operations,
)

_MUTATING = frozenset({OperationKind.CLONE, OperationKind.PULL, OperationKind.PUSH})
_SYNC_PREVIEW = (OperationKind.CLONE, OperationKind.PULL, OperationKind.PUSH)


def _unexpected(exc: Exception) -> str:
    return f"unexpected error: {type(exc).__name__}: {exc}"


def summarize_output(result: CommandResult) -> str:
    """Return the last non-empty line git printed, preferring stdout."""
    for stream in (result.stdout, result.stderr):
        lines = [line.strip() for line in stream.splitlines() if line.strip()]
        if lines:
            return lines[-1]
    return ""


class RepoRunner:
    """Run operations for one repository at a time, strictly in order.

    Before every operation the runner asks the policy evaluator whether it may
    run against the most recently probed state. Denied operations are reported
    as skipped without touching git. Allowed ones run with ``timeout`` and
    produce exactly one outcome; a failure never stops later operations except
    through the clone prerequisite rule. The repository is probed again after
    every mutating operation so later decisions see post-operation state.

    Instances hold no per-repository state and can be shared between threads.
    """

    def __init__(
        self,
        backend: VcsBackend,
        policy: SyncPolicy,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._backend = backend
        self._policy = policy
        self._timeout = timeout
        self._cancel = cancel or threading.Event()

    def run(
        self,
        repo: RepoSpec,
        operations: Iterable[OperationKind],
        sink: EventSink,
    ) -> RunSummary:
        outcomes: list[OperationOutcome] = []

        def record(outcome: OperationOutcome) -> None:
            outcomes.append(outcome)
            sink.emit(OperationFinished(repo, outcome))

        sink.emit(RepoStarted(repo))
        try:
            pending = list(ordered_operations(operations))
            state, probe_error = self._probe(repo) if pending else (None, None)
            clone_failed = False
            while pending:
                operation = pending.pop(0)
                if self._cancel.is_set():
                    record(OperationOutcome.skipped(operation, REASON_CANCELLED))
                    continue
                if state is None:
                    record(
                        OperationOutcome.failed(
                            operation, f"could not inspect repository: {probe_error}"
                        )
                    )
                    continue
                decision = evaluate(operation, state, self._policy, clone_failed=clone_failed)
                if not decision.allowed:
                    log.debug(f"{repo.name}: {operation.value} skipped ({decision.reason})")
                    record(OperationOutcome.skipped(operation, decision.reason or ""))
                    continue
                sink.emit(OperationStarted(repo, operation))
                outcome = self._execute(repo, operation, state)
                record(outcome)
                if operation is OperationKind.CLONE and outcome.status is OutcomeStatus.FAILED:
                    clone_failed = True
                    state = RepoObservedState.absent()
                elif operation in _MUTATING and pending and not self._cancel.is_set():
                    state, probe_error = self._probe(repo)
        finally:
            sink.emit(RepoFinished(repo))
        return RunSummary(repo, tuple(outcomes))

    def _probe(self, repo: RepoSpec) -> tuple[RepoObservedState | None, str | None]:
        try:
            state = self._backend.probe(repo, timeout=self._timeout, cancel=self._cancel)
        except ToolInvocationError as exc:
            log.debug(f"{repo.name}: probe failed: {exc}")
            return None, exc.detail
        except Exception as exc:
            log.debug(f"{repo.name}: probe raised {type(exc).__name__}: {exc}")
            return None, _unexpected(exc)
        log.trace(f"{repo.name}: {state.describe()}")
        return state, None

    def _execute(
        self, repo: RepoSpec, operation: OperationKind, state: RepoObservedState
    ) -> OperationOutcome:
        if operation is OperationKind.STATUS:
            plan = decide(state, _SYNC_PREVIEW, self._policy)
            return OperationOutcome.succeeded(
                operation, f"{state.describe()}; {describe_plan(plan)}"
            )
        try:
            if operation is OperationKind.CLONE:
                result = self._backend.clone(repo, timeout=self._timeout, cancel=self._cancel)
            elif operation is OperationKind.PULL:
                result = self._backend.pull(repo, timeout=self._timeout, cancel=self._cancel)
            else:
                result = self._backend.push(
                    repo,
                    force=self._policy.force_push,
                    timeout=self._timeout,
                    cancel=self._cancel,
                )
        except ToolInvocationError as exc:
            log.debug(f"{repo.name}: {operation.value} failed: {exc}")
            return OperationOutcome.failed(operation, exc.detail)
        except Exception as exc:
            # No backend exception escapes a single repository's run.
            log.debug(f"{repo.name}: {operation.value} raised {type(exc).__name__}: {exc}")
            return OperationOutcome.failed(operation, _unexpected(exc))
        return OperationOutcome.succeeded(operation, summarize_output(result))
