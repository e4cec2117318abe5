"""Map top-level commands onto scheduler runs and process exit codes."""

from __future__ import annotations

import queue
import threading
from pathlib import Path

from rich.console import Console

from .. import __version__, log
from ..config import ConfigOverrides, load_config
from ..git import GitBackend
from ..manifest import load_manifest
from ..models import RepoSpec, RuntimeConfig
from ..sync.ports import VcsBackend
from ..sync.reporter import LiveReporter
from ..sync.scheduler import run_all
from ..sync.sink import QueueSink
from ..sync.state import AggregateResult, OperationKind, SyncEvent

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

COMMAND_OPERATIONS: dict[str, tuple[OperationKind, ...]] = {
    "sync": (OperationKind.CLONE, OperationKind.PULL, OperationKind.PUSH),
    "pull": (OperationKind.PULL,),
    "push": (OperationKind.PUSH,),
    "status": (OperationKind.STATUS,),
    "clone": (OperationKind.CLONE,),
}


def operations_for(command: str) -> tuple[OperationKind, ...]:
    """Return the operations a top-level command submits.

    Example:
        >>> [op.value for op in operations_for("sync")]
        ['clone', 'pull', 'push']
    """
    try:
        return COMMAND_OPERATIONS[command]
    except KeyError:
        raise ValueError(f"unknown command: {command}") from None


def exit_code_for(result: AggregateResult) -> int:
    """Zero only when no operation failed and the run was not interrupted."""
    if result.has_failures:
        return EXIT_FAILED
    if result.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_OK


def execute(
    command: str,
    repos: list[RepoSpec],
    config: RuntimeConfig,
    *,
    backend: VcsBackend | None = None,
    console: Console | None = None,
    live: bool | None = None,
    cancel: threading.Event | None = None,
) -> AggregateResult:
    """Run ``command`` over ``repos`` while a reporter thread renders progress."""
    operations = operations_for(command)
    active_backend = backend or GitBackend(git_path=config.git_path)
    reporter = LiveReporter(repos, console=console, live=live)
    events: queue.Queue[SyncEvent | None] = queue.Queue()
    consumer = threading.Thread(
        target=reporter.consume, args=(events,), name="repoteer-reporter", daemon=True
    )
    consumer.start()
    try:
        result = run_all(
            repos,
            operations,
            backend=active_backend,
            policy=config.policy,
            concurrency=config.concurrency,
            sink=QueueSink(events),
            timeout=config.timeout,
            cancel=cancel,
        )
    finally:
        events.put(None)
        consumer.join()
    if result.cancelled:
        log.warning("interrupted; pending operations were skipped and running ones stopped")
    reporter.print_summary()
    return result


def _overrides_from_args(args: object) -> ConfigOverrides:
    manifest = getattr(args, "manifest", None)
    return ConfigOverrides(
        manifest=Path(manifest) if manifest is not None else None,
        concurrency=getattr(args, "concurrency", None),
        timeout=getattr(args, "timeout", None),
        log_level=getattr(args, "log_level", None),
        color=getattr(args, "color", None),
        allow_pull_when_dirty=getattr(args, "allow_pull_when_dirty", None),
        force_push=getattr(args, "force_push", None),
    )


def run(args: object) -> int:
    """Load configuration and manifest, run the selected command, return the exit code.

    Raises:
        ConfigError: The configuration or manifest is unusable.
    """
    command = str(getattr(args, "command", "sync") or "sync")
    config = load_config(_overrides_from_args(args))
    log.set_level(config.log_level)
    if config.color is not None:
        log.set_no_color(not config.color)
    repos = load_manifest(config.manifest_path)

    log.info(f"Repoteer v{__version__}", style="bold")
    log.info(f"Running command: {command}")
    log.debug(f"manifest: {config.manifest_path} ({len(repos)} repositories)")

    result = execute(command, repos, config)
    return exit_code_for(result)
