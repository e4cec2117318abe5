"""Live per-repository progress display and final run summary."""

from __future__ import annotations

import queue
from dataclasses import dataclass, field

from rich import box
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from .. import log
from ..models import RepoSpec
from .policy import REASON_CANCELLED
from .state import (
    OperationFinished,
    OperationKind,
    OperationOutcome,
    OperationStarted,
    OutcomeStatus,
    RepoFinished,
    RepoStarted,
    SyncEvent,
)

_MARKERS = {
    OutcomeStatus.SUCCEEDED: ("✓", "green"),
    OutcomeStatus.SKIPPED: ("-", "yellow"),
    OutcomeStatus.FAILED: ("✗", "bold red"),
}


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def _interactive(console: Console) -> bool:
    isatty = getattr(console.file, "isatty", None)
    return bool(console.is_terminal and isatty is not None and isatty())


@dataclass
class _RepoRow:
    repo: RepoSpec
    started: bool = False
    finished: bool = False
    current: OperationKind | None = None
    outcomes: list[OperationOutcome] = field(default_factory=list)


@dataclass(frozen=True)
class RunReport:
    """Totals derived from the outcome events the reporter received."""

    succeeded: int
    skipped: int
    failed: int
    cancelled: int
    failures: tuple[tuple[str, OperationKind, str], ...]


class LiveReporter:
    """Render runner events as they arrive.

    The reporter is the single consumer of the event stream and the only
    writer to the terminal while a run is in progress. Each repository owns
    one row, updated in place; rows appear in manifest order and each row
    shows its own outcomes in the order they were emitted. Without a terminal
    it prints one line per finished operation instead.

    Args:
        repos: Repositories in manifest order.
        console: Console to draw on; defaults to stdout.
        live: Force live rendering on or off; defaults to whether the
            console writes to an interactive terminal.
    """

    def __init__(
        self,
        repos: list[RepoSpec],
        *,
        console: Console | None = None,
        live: bool | None = None,
    ) -> None:
        self._console = console or log.console()
        self._live = _interactive(self._console) if live is None else live
        self._rows: dict[str, _RepoRow] = {repo.key: _RepoRow(repo) for repo in repos}
        self._spinner = Spinner("dots", style="cyan")

    def _row(self, repo: RepoSpec) -> _RepoRow:
        row = self._rows.get(repo.key)
        if row is None:
            row = self._rows[repo.key] = _RepoRow(repo)
        return row

    def handle(self, event: SyncEvent) -> None:
        """Apply one event to the display state."""
        row = self._row(event.repo)
        if isinstance(event, RepoStarted):
            row.started = True
        elif isinstance(event, OperationStarted):
            row.current = event.operation
        elif isinstance(event, OperationFinished):
            row.current = None
            row.outcomes.append(event.outcome)
            if not self._live:
                self._print_outcome(row.repo, event.outcome)
        elif isinstance(event, RepoFinished):
            row.finished = True
            row.current = None

    def consume(self, events: queue.Queue[SyncEvent | None]) -> None:
        """Drain ``events`` until a ``None`` sentinel arrives."""
        if not self._live:
            while (event := events.get()) is not None:
                self.handle(event)
            return
        with Live(
            self.render(),
            console=self._console,
            refresh_per_second=10,
            transient=False,
        ) as live:
            while (event := events.get()) is not None:
                self.handle(event)
                live.update(self.render())

    def _print_outcome(self, repo: RepoSpec, outcome: OperationOutcome) -> None:
        marker, style = _MARKERS[outcome.status]
        line = Text(f"{marker} ", style=style)
        line.append(f"{repo.name}: {outcome.operation.value} {outcome.status.value}")
        detail = _first_line(outcome.detail)
        if detail:
            line.append(f" ({detail})", style="dim")
        self._console.print(line)

    def _status_cell(self, row: _RepoRow) -> RenderableType:
        if row.started and not row.finished:
            return self._spinner
        if not row.finished:
            return Text("·", style="dim")
        failed = any(outcome.status is OutcomeStatus.FAILED for outcome in row.outcomes)
        marker, style = _MARKERS[OutcomeStatus.FAILED if failed else OutcomeStatus.SUCCEEDED]
        return Text(marker, style=style)

    def _operations_cell(self, row: _RepoRow) -> Text:
        cell = Text()
        for outcome in row.outcomes:
            marker, style = _MARKERS[outcome.status]
            cell.append(f"{marker} {outcome.operation.value}", style=style)
            cell.append("  ")
        if row.current is not None:
            cell.append(f"… {row.current.value}", style="cyan")
        return cell

    def _detail_cell(self, row: _RepoRow) -> Text:
        if row.current is not None:
            return Text(f"running {row.current.value}", style="dim")
        if not row.outcomes:
            return Text("" if row.started else "waiting", style="dim")
        last = row.outcomes[-1]
        style = "red" if last.status is OutcomeStatus.FAILED else ""
        return Text(_first_line(last.detail), style=style)

    def render(self) -> Table:
        """Build the progress table from the current display state."""
        table = Table(box=box.SIMPLE, expand=False, show_edge=False)
        table.add_column("", width=1, no_wrap=True)
        table.add_column("Repository", no_wrap=True)
        table.add_column("Operations", no_wrap=True)
        table.add_column("Detail", overflow="ellipsis", no_wrap=True, max_width=80)
        for row in self._rows.values():
            table.add_row(
                self._status_cell(row),
                row.repo.name,
                self._operations_cell(row),
                self._detail_cell(row),
            )
        return table

    def report(self) -> RunReport:
        """Summarize every outcome received so far."""
        outcomes = [
            (row.repo, outcome) for row in self._rows.values() for outcome in row.outcomes
        ]
        return RunReport(
            succeeded=sum(1 for _, o in outcomes if o.status is OutcomeStatus.SUCCEEDED),
            skipped=sum(1 for _, o in outcomes if o.status is OutcomeStatus.SKIPPED),
            failed=sum(1 for _, o in outcomes if o.status is OutcomeStatus.FAILED),
            cancelled=sum(
                1
                for _, o in outcomes
                if o.status is OutcomeStatus.SKIPPED and o.detail == REASON_CANCELLED
            ),
            failures=tuple(
                (repo.name, o.operation, o.detail)
                for repo, o in outcomes
                if o.status is OutcomeStatus.FAILED
            ),
        )

    def render_summary(self) -> RenderableType:
        report = self.report()
        headline = Text("Summary: ", style="bold")
        headline.append(f"{report.succeeded} succeeded", style="green")
        headline.append(", ")
        headline.append(f"{report.skipped} skipped", style="yellow")
        headline.append(", ")
        headline.append(f"{report.failed} failed", style="bold red" if report.failed else "")
        if report.cancelled:
            headline.append(f" ({report.cancelled} cancelled)", style="yellow")
        if not report.failures:
            return headline
        failures = Table(title="Failures", box=box.SIMPLE, title_justify="left")
        failures.add_column("Repository", no_wrap=True)
        failures.add_column("Operation", no_wrap=True)
        failures.add_column("Reason", overflow="fold")
        for name, operation, detail in report.failures:
            failures.add_row(name, operation.value, detail.strip())
        return Group(headline, failures)

    def print_summary(self) -> None:
        self._console.print()
        self._console.print(self.render_summary())
