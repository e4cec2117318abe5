"""Runtime types shared by the policy evaluator, runners, scheduler and reporter."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from ..models import RepoSpec


class OperationKind(str, Enum):
    CLONE = "clone"
    PULL = "pull"
    PUSH = "push"
    STATUS = "status"


# Operations of one repository always run in this order.
OPERATION_ORDER = (
    OperationKind.CLONE,
    OperationKind.PULL,
    OperationKind.PUSH,
    OperationKind.STATUS,
)


def ordered_operations(operations: Iterable[OperationKind | str]) -> tuple[OperationKind, ...]:
    """Deduplicate requested operations and sort them into execution order."""
    requested = {OperationKind(op) for op in operations}
    return tuple(op for op in OPERATION_ORDER if op in requested)


class Presence(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


class WorkingTreeStatus(str, Enum):
    CLEAN = "clean"
    UNCOMMITTED = "uncommitted"
    UNMERGED = "unmerged"


class BranchDivergence(str, Enum):
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    UP_TO_DATE = "up_to_date"


@dataclass(frozen=True)
class RepoObservedState:
    """What git reported about a working copy at one moment.

    ``branches`` only holds in-scope branches that track a remote branch.
    """

    presence: Presence
    working_tree: WorkingTreeStatus = WorkingTreeStatus.CLEAN
    branches: Mapping[str, BranchDivergence] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "branches", MappingProxyType(dict(self.branches)))

    @classmethod
    def absent(cls) -> RepoObservedState:
        return cls(presence=Presence.ABSENT)

    @classmethod
    def fresh_clone(cls) -> RepoObservedState:
        """State assumed for a repository right after a successful clone."""
        return cls(presence=Presence.PRESENT)

    @property
    def diverged_branches(self) -> tuple[str, ...]:
        return tuple(
            sorted(
                name
                for name, divergence in self.branches.items()
                if divergence is BranchDivergence.DIVERGED
            )
        )

    def describe(self) -> str:
        """Short human summary, e.g. ``clean; main up to date``."""
        if self.presence is Presence.ABSENT:
            return "not cloned"
        parts = [self.working_tree.value]
        for name in sorted(self.branches):
            parts.append(f"{name} {self.branches[name].value.replace('_', ' ')}")
        return "; ".join(parts)


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one operation on one repository.

    ``detail`` is the skip reason, the failure diagnostics or an optional
    success note.
    """

    operation: OperationKind
    status: OutcomeStatus
    detail: str = ""

    @classmethod
    def succeeded(cls, operation: OperationKind, detail: str = "") -> OperationOutcome:
        return cls(operation, OutcomeStatus.SUCCEEDED, detail)

    @classmethod
    def skipped(cls, operation: OperationKind, reason: str) -> OperationOutcome:
        return cls(operation, OutcomeStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, operation: OperationKind, detail: str) -> OperationOutcome:
        return cls(operation, OutcomeStatus.FAILED, detail)


@dataclass(frozen=True)
class RepoStarted:
    repo: RepoSpec


@dataclass(frozen=True)
class OperationStarted:
    repo: RepoSpec
    operation: OperationKind


@dataclass(frozen=True)
class OperationFinished:
    repo: RepoSpec
    outcome: OperationOutcome


@dataclass(frozen=True)
class RepoFinished:
    repo: RepoSpec


SyncEvent = RepoStarted | OperationStarted | OperationFinished | RepoFinished


@dataclass(frozen=True)
class RunSummary:
    """Outcomes of one repository's operation sequence, in emission order."""

    repo: RepoSpec
    outcomes: tuple[OperationOutcome, ...]

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)


@dataclass(frozen=True)
class AggregateResult:
    """Per-repository summaries for a whole run, in manifest order."""

    summaries: tuple[RunSummary, ...]
    cancelled: bool = False

    @property
    def failures(self) -> tuple[tuple[RepoSpec, OperationOutcome], ...]:
        return tuple(
            (summary.repo, outcome)
            for summary in self.summaries
            for outcome in summary.outcomes
            if outcome.status is OutcomeStatus.FAILED
        )

    @property
    def has_failures(self) -> bool:
        return any(summary.failed for summary in self.summaries)
