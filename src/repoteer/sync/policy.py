"""Decide which operations may run against a repository in its observed state.

Everything here is a pure function of its arguments: no I/O, no clock and no
shared state, so the same inputs always yield the same decisions.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..models import SyncPolicy
from .state import (
    OperationKind,
    Presence,
    RepoObservedState,
    WorkingTreeStatus,
    ordered_operations,
)

REASON_ALREADY_PRESENT = "already present"
REASON_PREREQUISITE_FAILED = "prerequisite failed"
REASON_NOT_CLONED = "not cloned"
REASON_UNMERGED = "working tree has unmerged paths"
REASON_UNCOMMITTED = "working tree has uncommitted changes"
REASON_CANCELLED = "cancelled"


@dataclass(frozen=True)
class Decision:
    """Whether one operation may run, and why not when it may not."""

    operation: OperationKind
    allowed: bool
    reason: str | None = None


def _allow(operation: OperationKind) -> Decision:
    return Decision(operation, True)


def _deny(operation: OperationKind, reason: str) -> Decision:
    return Decision(operation, False, reason)


def _diverged_reason(branches: tuple[str, ...]) -> str:
    return "diverged from remote: " + ", ".join(branches)


def _missing_repo(operation: OperationKind, clone_failed: bool) -> Decision:
    if clone_failed:
        return _deny(operation, REASON_PREREQUISITE_FAILED)
    return _deny(operation, REASON_NOT_CLONED)


def evaluate(
    operation: OperationKind,
    state: RepoObservedState,
    policy: SyncPolicy,
    *,
    clone_failed: bool = False,
) -> Decision:
    """Decide a single operation against the current state.

    Args:
        operation: Operation about to run.
        state: Most recent observed state of the repository.
        policy: Active sync policy.
        clone_failed: Whether a clone requested earlier in this run failed.

    Returns:
        ``Decision`` for ``operation``.

    Example:
        >>> evaluate(OperationKind.CLONE, RepoObservedState.absent(), SyncPolicy()).allowed
        True
    """
    absent = state.presence is Presence.ABSENT
    if operation is OperationKind.STATUS:
        return _allow(operation)
    if operation is OperationKind.CLONE:
        if absent:
            return _allow(operation)
        return _deny(operation, REASON_ALREADY_PRESENT)
    if absent:
        return _missing_repo(operation, clone_failed)
    if operation is OperationKind.PULL:
        if state.working_tree is WorkingTreeStatus.UNMERGED and not policy.allow_pull_when_dirty:
            return _deny(operation, REASON_UNMERGED)
        if policy.divergence_blocks_pull and state.diverged_branches:
            return _deny(operation, _diverged_reason(state.diverged_branches))
        return _allow(operation)
    if operation is OperationKind.PUSH:
        if policy.force_push:
            return _allow(operation)
        if state.working_tree is WorkingTreeStatus.UNCOMMITTED:
            return _deny(operation, REASON_UNCOMMITTED)
        if state.diverged_branches:
            return _deny(operation, _diverged_reason(state.diverged_branches))
        return _allow(operation)
    raise ValueError(f"unknown operation: {operation!r}")


def decide(
    state: RepoObservedState,
    requested: Iterable[OperationKind],
    policy: SyncPolicy,
    *,
    clone_failed: bool = False,
) -> tuple[Decision, ...]:
    """Decide every requested operation, in execution order.

    An allowed clone is assumed to succeed, so later operations are judged
    against a freshly cloned repository. Runners re-evaluate each step with
    ``evaluate`` against the real post-operation state.

    Example:
        >>> [d.allowed for d in decide(
        ...     RepoObservedState.absent(),
        ...     [OperationKind.PUSH, OperationKind.CLONE],
        ...     SyncPolicy(),
        ... )]
        [True, True]
    """
    current = state
    decisions: list[Decision] = []
    for operation in ordered_operations(requested):
        decision = evaluate(operation, current, policy, clone_failed=clone_failed)
        decisions.append(decision)
        if operation is OperationKind.CLONE and decision.allowed:
            current = RepoObservedState.fresh_clone()
    return tuple(decisions)


def describe_plan(decisions: Iterable[Decision]) -> str:
    """Summarize decisions as text, e.g. ``would pull; skip push (...)``.

    Example:
        >>> describe_plan([Decision(OperationKind.PULL, True)])
        'would pull'
    """
    parts = []
    for decision in decisions:
        if decision.operation is OperationKind.STATUS:
            continue
        if decision.allowed:
            parts.append(f"would {decision.operation.value}")
        else:
            parts.append(f"skip {decision.operation.value} ({decision.reason})")
    return "; ".join(parts) or "nothing to do"
