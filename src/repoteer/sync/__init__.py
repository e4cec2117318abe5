"""Concurrent repository synchronization: policy, runners, scheduler, reporter."""

from .policy import Decision, decide, evaluate
from .runner import RepoRunner
from .scheduler import run_all
from .state import (
    AggregateResult,
    OperationKind,
    OperationOutcome,
    OutcomeStatus,
    RepoObservedState,
    RunSummary,
)

__all__ = [
    "AggregateResult",
    "Decision",
    "OperationKind",
    "OperationOutcome",
    "OutcomeStatus",
    "RepoObservedState",
    "RepoRunner",
    "RunSummary",
    "decide",
    "evaluate",
    "run_all",
]
