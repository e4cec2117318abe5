"""Tests for the per-repository operation runner."""

from __future__ import annotations

import threading

from repoteer.exec import CommandResult
from repoteer.models import SyncPolicy
from repoteer.sync.policy import REASON_CANCELLED, REASON_PREREQUISITE_FAILED
from repoteer.sync.runner import RepoRunner, summarize_output
from repoteer.sync.state import (
    BranchDivergence,
    OperationFinished,
    OperationKind,
    OperationStarted,
    OutcomeStatus,
    RepoFinished,
    RepoStarted,
    WorkingTreeStatus,
)
from tests.repoteer.helpers import CollectingSink, FakeBackend, make_repo, present

SYNC = (OperationKind.CLONE, OperationKind.PULL, OperationKind.PUSH)


def _statuses(summary) -> list[tuple[str, str]]:
    return [(o.operation.value, o.status.value) for o in summary.outcomes]


def test_absent_repo_is_cloned_then_pulled_and_pushed() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend()
    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert _statuses(summary) == [
        ("clone", "succeeded"),
        ("pull", "succeeded"),
        ("push", "succeeded"),
    ]
    assert backend.calls_for(repo) == ["probe", "clone", "probe", "pull", "probe", "push"]
    assert summary.outcomes[0].detail == "clone done"


def test_present_repo_skips_clone() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend({repo.key: present()})
    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert summary.outcomes[0].status is OutcomeStatus.SKIPPED
    assert summary.outcomes[0].detail == "already present"
    assert "clone" not in backend.calls_for(repo)


def test_failed_clone_skips_dependent_operations() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(failures={(repo.key, OperationKind.CLONE): "repository not found"})
    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert _statuses(summary) == [
        ("clone", "failed"),
        ("pull", "skipped"),
        ("push", "skipped"),
    ]
    assert "fatal: repository not found" in summary.outcomes[0].detail
    assert summary.outcomes[1].detail == REASON_PREREQUISITE_FAILED
    assert summary.outcomes[2].detail == REASON_PREREQUISITE_FAILED
    assert backend.calls_for(repo) == ["probe", "clone"]


def test_pull_failure_does_not_stop_push() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(
        {repo.key: present()},
        failures={(repo.key, OperationKind.PULL): "could not resolve host"},
    )
    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert _statuses(summary) == [
        ("clone", "skipped"),
        ("pull", "failed"),
        ("push", "succeeded"),
    ]


def test_later_decisions_use_post_operation_state() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(
        {repo.key: present(main=BranchDivergence.AHEAD)},
        after={(repo.key, OperationKind.PULL): present(main=BranchDivergence.DIVERGED)},
    )
    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    push = summary.outcomes[-1]
    assert push.status is OutcomeStatus.SKIPPED
    assert push.detail == "diverged from remote: main"
    assert "push" not in backend.calls_for(repo)


def test_events_are_bracketed_and_ordered() -> None:
    repo = make_repo("alpha")
    sink = CollectingSink()
    RepoRunner(FakeBackend({repo.key: present()}), SyncPolicy()).run(repo, SYNC, sink)

    events = sink.for_repo(repo)
    assert isinstance(events[0], RepoStarted)
    assert isinstance(events[-1], RepoFinished)
    kinds = [
        (type(event).__name__, getattr(event, "operation", None) or event.outcome.operation)
        for event in events[1:-1]
    ]
    assert kinds == [
        ("OperationFinished", OperationKind.CLONE),
        ("OperationStarted", OperationKind.PULL),
        ("OperationFinished", OperationKind.PULL),
        ("OperationStarted", OperationKind.PUSH),
        ("OperationFinished", OperationKind.PUSH),
    ]
    finished = [event for event in events if isinstance(event, OperationFinished)]
    assert len(finished) == 3
    assert not any(
        isinstance(event, OperationStarted) and event.operation is OperationKind.CLONE
        for event in events
    )


def test_status_reports_state_and_plan_without_mutating() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(
        {repo.key: present(WorkingTreeStatus.UNCOMMITTED, main=BranchDivergence.UP_TO_DATE)}
    )
    summary = RepoRunner(backend, SyncPolicy()).run(
        repo, [OperationKind.STATUS], CollectingSink()
    )

    (outcome,) = summary.outcomes
    assert outcome.status is OutcomeStatus.SUCCEEDED
    assert outcome.detail == (
        "uncommitted; main up to date; skip clone (already present); would pull; "
        "skip push (working tree has uncommitted changes)"
    )
    assert backend.calls_for(repo) == ["probe"]


def test_probe_failure_fails_every_operation() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(probe_failures={repo.key})
    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert [o.status for o in summary.outcomes] == [OutcomeStatus.FAILED] * 3
    assert summary.outcomes[0].detail.startswith("could not inspect repository: status failed")
    assert "not a git repository" in summary.outcomes[0].detail


def test_cancelled_run_skips_remaining_operations() -> None:
    repo = make_repo("alpha")
    cancel = threading.Event()
    cancel.set()
    backend = FakeBackend()
    summary = RepoRunner(backend, SyncPolicy(), cancel=cancel).run(
        repo, SYNC, CollectingSink()
    )

    assert [o.detail for o in summary.outcomes] == [REASON_CANCELLED] * 3
    assert [o.status for o in summary.outcomes] == [OutcomeStatus.SKIPPED] * 3
    assert "clone" not in backend.calls_for(repo)


def test_empty_operation_list_still_brackets_events() -> None:
    repo = make_repo("alpha")
    sink = CollectingSink()
    summary = RepoRunner(FakeBackend(), SyncPolicy()).run(repo, [], sink)

    assert summary.outcomes == ()
    assert [type(event) for event in sink.events] == [RepoStarted, RepoFinished]


def test_summarize_output_prefers_last_stdout_line() -> None:
    result = CommandResult(
        argv=("git", "pull"), returncode=0, stdout="Updating a..b\nFast-forward\n", stderr="x"
    )
    assert summarize_output(result) == "Fast-forward"
    quiet = CommandResult(argv=("git",), returncode=0, stdout="", stderr="Everything up-to-date\n")
    assert summarize_output(quiet) == "Everything up-to-date"


def test_unexpected_clone_error_becomes_failed_outcome() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(raises={(repo.key, "clone"): RuntimeError("disk on fire")})
    sink = CollectingSink()

    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, sink)

    assert _statuses(summary) == [
        ("clone", "failed"),
        ("pull", "skipped"),
        ("push", "skipped"),
    ]
    assert summary.outcomes[0].detail == "unexpected error: RuntimeError: disk on fire"
    assert summary.outcomes[1].detail == REASON_PREREQUISITE_FAILED
    assert isinstance(sink.events[-1], RepoFinished)


def test_unexpected_probe_error_fails_every_operation() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(raises={(repo.key, "probe"): PermissionError("denied")})

    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert [o.status for o in summary.outcomes] == [OutcomeStatus.FAILED] * 3
    assert "PermissionError: denied" in summary.outcomes[0].detail


def test_unexpected_pull_error_does_not_stop_push() -> None:
    repo = make_repo("alpha")
    backend = FakeBackend(
        {repo.key: present()},
        raises={(repo.key, "pull"): UnicodeDecodeError("utf-8", b"\xe9", 0, 1, "bad")},
    )

    summary = RepoRunner(backend, SyncPolicy()).run(repo, SYNC, CollectingSink())

    assert _statuses(summary) == [
        ("clone", "skipped"),
        ("pull", "failed"),
        ("push", "succeeded"),
    ]
    assert summary.outcomes[1].detail.startswith("unexpected error: UnicodeDecodeError")
