"""Typed boundary between runners and the version-control tool."""

from __future__ import annotations

import threading
from typing import Protocol

from ..exec import CommandResult
from ..models import RepoSpec
from .state import RepoObservedState


class VcsBackend(Protocol):
    """Operations a runner needs from the version-control tool.

    Every method raises ``ToolInvocationError`` when the tool fails,
    ``OperationTimeoutError`` when ``timeout`` seconds elapse and
    ``OperationCancelledError`` when ``cancel`` is set mid-invocation.
    """

    def probe(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> RepoObservedState: ...

    def clone(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult: ...

    def pull(
        self,
        repo: RepoSpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult: ...

    def push(
        self,
        repo: RepoSpec,
        *,
        force: bool = False,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult: ...
