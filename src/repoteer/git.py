"""Git backend: inspects and mutates working copies through the ``git`` CLI."""

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass

from . import exec as exec_util
from . import log
from .errors import OperationCancelledError, OperationTimeoutError, ToolInvocationError
from .models import RepoSpec
from .sync.state import (
    BranchDivergence,
    Presence,
    RepoObservedState,
    WorkingTreeStatus,
)

# Two-letter porcelain codes git uses for paths with merge conflicts.
UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})

_BRANCH_FORMAT = "%09".join(
    (
        "%(refname:short)",
        "%(upstream:remotename)",
        "%(upstream:lstrip=3)",
        "%(upstream:track)",
    )
)
_TRACK_RE = re.compile(r"(ahead|behind) (\d+)")


@dataclass(frozen=True)
class TrackedBranch:
    """A local branch that tracks a remote branch."""

    name: str
    remote: str
    remote_branch: str
    divergence: BranchDivergence


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path.

    Example:
        >>> git_command(["status"], git_path="/usr/bin/git")
        ['/usr/bin/git', 'status']
    """
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def parse_working_tree_status(porcelain: str) -> WorkingTreeStatus:
    """Classify ``git status --porcelain`` output.

    Example:
        >>> parse_working_tree_status("UU conflicted.txt\\n M edited.txt\\n").value
        'unmerged'
        >>> parse_working_tree_status("").value
        'clean'
    """
    lines = [line for line in porcelain.splitlines() if line.strip()]
    if any(line[:2] in UNMERGED_CODES for line in lines):
        return WorkingTreeStatus.UNMERGED
    if lines:
        return WorkingTreeStatus.UNCOMMITTED
    return WorkingTreeStatus.CLEAN


def parse_track(track: str) -> BranchDivergence | None:
    """Map ``%(upstream:track)`` text to a divergence value.

    Returns ``None`` when the upstream branch no longer exists.

    Example:
        >>> parse_track("[ahead 2, behind 1]").value
        'diverged'
        >>> parse_track("").value
        'up_to_date'
    """
    text = track.strip()
    if text == "[gone]":
        return None
    counts = {kind: int(count) for kind, count in _TRACK_RE.findall(text)}
    ahead = counts.get("ahead", 0) > 0
    behind = counts.get("behind", 0) > 0
    if ahead and behind:
        return BranchDivergence.DIVERGED
    if ahead:
        return BranchDivergence.AHEAD
    if behind:
        return BranchDivergence.BEHIND
    return BranchDivergence.UP_TO_DATE


def parse_tracked_branches(output: str) -> list[TrackedBranch]:
    """Parse ``git for-each-ref`` output produced with the backend's branch format."""
    branches: list[TrackedBranch] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) != 4:
            continue
        name, remote, remote_branch, track = parts
        if not remote or not remote_branch:
            continue
        divergence = parse_track(track)
        if divergence is None:
            continue
        branches.append(TrackedBranch(name, remote, remote_branch, divergence))
    return branches


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


class GitBackend:
    """``VcsBackend`` implementation that shells out to git.

    Args:
        git_path: Git executable to invoke.
        runner: Command runner; defaults to the subprocess runner.
    """

    def __init__(
        self,
        *,
        git_path: str = "git",
        runner: exec_util.CommandRunner | None = None,
    ) -> None:
        self._git_path = git_path
        self._runner = runner

    def _git(
        self,
        args: list[str],
        *,
        label: str,
        timeout: float | None,
        cancel: threading.Event | None,
        check: bool = True,
    ) -> exec_util.CommandResult:
        argv = tuple(git_command(args, git_path=self._git_path))
        log.trace(f"$ {' '.join(argv)}")
        request = exec_util.CommandRequest(
            argv=argv,
            env=_git_env(),
            timeout_seconds=timeout,
            cancel=cancel,
        )
        result = exec_util.run_with_runner(request, runner=self._runner)
        if result is None:
            raise ToolInvocationError(f"missing required command: {argv[0]}", argv=argv)
        if result.timed_out:
            raise OperationTimeoutError(
                f"{label} timed out after {timeout:g}s",
                argv=argv,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        if result.cancelled:
            raise OperationCancelledError(
                f"{label} interrupted",
                argv=argv,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        if check and result.returncode != 0:
            raise ToolInvocationError(
                f"{label} failed: {' '.join(argv)} (exit {result.returncode})",
                argv=argv,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    def tracked_branches(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[TrackedBranch]:
        """Return in-scope local branches that track a remote branch."""
        result = self._git(
            ["-C", str(repo.path), "for-each-ref", f"--format={_BRANCH_FORMAT}", "refs/heads"],
            label="branch listing",
            timeout=timeout,
            cancel=cancel,
        )
        return [
            branch
            for branch in parse_tracked_branches(result.stdout)
            if repo.branch_in_scope(branch.name)
        ]

    def current_branch(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Return the checked-out branch, or ``None`` for a detached HEAD."""
        result = self._git(
            ["-C", str(repo.path), "symbolic-ref", "--short", "-q", "HEAD"],
            label="branch lookup",
            timeout=timeout,
            cancel=cancel,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def probe(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> RepoObservedState:
        if not (repo.path / ".git").exists():
            return RepoObservedState.absent()
        status = self._git(
            ["-C", str(repo.path), "status", "--porcelain", "--untracked-files=no"],
            label="status",
            timeout=timeout,
            cancel=cancel,
        )
        branches = self.tracked_branches(repo, timeout=timeout, cancel=cancel)
        return RepoObservedState(
            presence=Presence.PRESENT,
            working_tree=parse_working_tree_status(status.stdout),
            branches={branch.name: branch.divergence for branch in branches},
        )

    def clone(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> exec_util.CommandResult:
        try:
            repo.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ToolInvocationError(
                f"clone failed: cannot create {repo.path.parent}: {exc.strerror or exc}"
            ) from exc
        return self._git(
            ["clone", "--", repo.url, str(repo.path)],
            label="clone",
            timeout=timeout,
            cancel=cancel,
        )

    def pull(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> exec_util.CommandResult:
        branch = self.current_branch(repo, timeout=timeout, cancel=cancel)
        if branch is None or not repo.branch_in_scope(branch):
            log.debug(f"{repo.name}: checked-out branch not in scope, fetching only")
            return self._git(
                ["-C", str(repo.path), "fetch"],
                label="fetch",
                timeout=timeout,
                cancel=cancel,
            )
        return self._git(
            ["-C", str(repo.path), "pull"],
            label="pull",
            timeout=timeout,
            cancel=cancel,
        )

    def push(
        self,
        repo: RepoSpec,
        *,
        force: bool = False,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> exec_util.CommandResult:
        base = ["-C", str(repo.path), "push"]
        if force:
            base.append("--force-with-lease")
        if not repo.has_branch_filter:
            return self._git(base, label="push", timeout=timeout, cancel=cancel)

        by_remote: dict[str, list[str]] = {}
        for branch in self.tracked_branches(repo, timeout=timeout, cancel=cancel):
            by_remote.setdefault(branch.remote, []).append(
                f"refs/heads/{branch.name}:refs/heads/{branch.remote_branch}"
            )
        if not by_remote:
            return exec_util.CommandResult(
                argv=tuple(git_command(base, git_path=self._git_path)),
                returncode=0,
                stdout="no tracked branches in scope",
                stderr="",
            )
        stdout: list[str] = []
        stderr: list[str] = []
        argv: tuple[str, ...] = ()
        for remote in sorted(by_remote):
            result = self._git(
                [*base, remote, *by_remote[remote]],
                label="push",
                timeout=timeout,
                cancel=cancel,
            )
            argv = result.argv
            stdout.append(result.stdout)
            stderr.append(result.stderr)
        return exec_util.CommandResult(
            argv=argv,
            returncode=0,
            stdout="".join(stdout),
            stderr="".join(stderr),
        )
