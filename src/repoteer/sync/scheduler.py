"""Run many repositories concurrently on a bounded worker pool."""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Iterable, Sequence

from .. import log
from ..models import RepoSpec, SyncPolicy
from .ports import VcsBackend
from .runner import RepoRunner
from .sink import EventSink
from .state import AggregateResult, OperationKind, RunSummary, ordered_operations

_WAIT_SLICE_SECONDS = 0.2


def _wait_for_all(
    futures: Sequence[concurrent.futures.Future[RunSummary]],
    cancel: threading.Event,
) -> None:
    pending = set(futures)
    while pending:
        try:
            _, pending = concurrent.futures.wait(pending, timeout=_WAIT_SLICE_SECONDS)
        except KeyboardInterrupt:
            cancel.set()


def run_all(
    repos: Iterable[RepoSpec],
    operations: Iterable[OperationKind],
    *,
    backend: VcsBackend,
    policy: SyncPolicy,
    concurrency: int,
    sink: EventSink,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> AggregateResult:
    """Run ``operations`` against every repository and wait for all of them.

    At most ``concurrency`` repositories are worked on at once; a queued
    repository starts as soon as a worker frees up. Every runner writes to the
    same ``sink``. The call returns only after every repository has an outcome
    for every requested operation.

    A ``KeyboardInterrupt`` while waiting sets ``cancel``: operations not yet
    started are reported as skipped, in-flight git processes are terminated
    and the result is marked cancelled.

    Args:
        repos: Repositories to process, in manifest order.
        operations: Requested operations; run in clone, pull, push order.
        backend: Version-control backend.
        policy: Sync policy shared by every runner.
        concurrency: Maximum number of repositories processed at once.
        sink: Destination for progress events.
        timeout: Per-invocation timeout in seconds.
        cancel: Optional externally controlled cancellation signal.

    Returns:
        ``AggregateResult`` with one ``RunSummary`` per repository, in input order.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be positive, got {concurrency}")
    repo_list = list(repos)
    requested = ordered_operations(operations)
    cancel = cancel or threading.Event()
    if not repo_list:
        return AggregateResult(summaries=(), cancelled=cancel.is_set())

    runner = RepoRunner(backend, policy, timeout=timeout, cancel=cancel)
    workers = min(concurrency, len(repo_list))
    log.debug(
        f"running {', '.join(op.value for op in requested) or 'nothing'} on "
        f"{len(repo_list)} repositories with {workers} workers"
    )
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=workers, thread_name_prefix="repoteer-runner"
    ) as executor:
        futures = [executor.submit(runner.run, repo, requested, sink) for repo in repo_list]
        _wait_for_all(futures, cancel)
    return AggregateResult(
        summaries=tuple(future.result() for future in futures),
        cancelled=cancel.is_set(),
    )
