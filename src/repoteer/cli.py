"""Repoteer command line interface."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Annotated

import typer

from . import __version__
from . import log as repoteer_log
from .commands.dispatch import EXIT_CONFIG_ERROR
from .commands.dispatch import run as dispatch_cmd
from .errors import ConfigError

app = typer.Typer(
    name="repoteer",
    help="Keep a fleet of git working copies in sync with their remotes.",
    add_completion=False,
    no_args_is_help=False,
    rich_markup_mode=None,
)


def _validate_log_level(value: str | None) -> str | None:
    if value is None:
        return None
    if not repoteer_log.is_level_name(value):
        raise typer.BadParameter(f"expected one of: {', '.join(repoteer_log.LEVEL_NAMES)}")
    return value.strip().lower()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"repoteer {__version__}")
        raise typer.Exit()


def _run(ctx: typer.Context, command: str) -> None:
    options = ctx.find_root().obj or SimpleNamespace()
    args = SimpleNamespace(**vars(options), command=command)
    try:
        code = dispatch_cmd(args)
    except ConfigError as exc:
        repoteer_log.error(f"error: {exc}")
        if exc.recovery_hint:
            repoteer_log.error(f"hint: {exc.recovery_hint}", style="yellow")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc
    if code:
        raise typer.Exit(code)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    manifest: Annotated[
        Path | None,
        typer.Option("--manifest", "-m", help="Read repositories from this manifest file."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            callback=_validate_log_level,
            help="Log level: trace, debug, info, success, warning or error.",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Shorthand for --log-level debug.")
    ] = False,
    color: Annotated[bool, typer.Option("--color", help="Force coloured output.")] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable coloured output.")] = False,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-j", min=1, help="Repositories processed at once."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0.1, help="Seconds before a git invocation is killed."),
    ] = None,
    allow_pull_when_dirty: Annotated[
        bool,
        typer.Option(
            "--allow-pull-when-dirty", help="Pull even when the working tree has unmerged paths."
        ),
    ] = False,
    force_push: Annotated[
        bool,
        typer.Option(
            "--force-push", help="Push over uncommitted changes and diverged branches."
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version."),
    ] = False,
) -> None:
    """Keep a fleet of git working copies in sync with their remotes.

    Runs ``sync`` when no command is given.
    """
    if verbose and log_level is None:
        log_level = "debug"
    if log_level is not None:
        repoteer_log.set_level(log_level)
    if no_color:
        repoteer_log.set_no_color(True)
    resolved_color: bool | None = None
    if no_color:
        resolved_color = False
    elif color:
        resolved_color = True
    ctx.obj = SimpleNamespace(
        manifest=manifest,
        log_level=log_level,
        color=resolved_color,
        concurrency=concurrency,
        timeout=timeout,
        allow_pull_when_dirty=True if allow_pull_when_dirty else None,
        force_push=True if force_push else None,
    )
    if ctx.invoked_subcommand is None:
        _run(ctx, "sync")


@app.command("sync")
def sync(ctx: typer.Context) -> None:
    """Clone missing repositories, pull, then push."""
    _run(ctx, "sync")


@app.command("pull")
def pull(ctx: typer.Context) -> None:
    """Only pull remote changes."""
    _run(ctx, "pull")


@app.command("push")
def push(ctx: typer.Context) -> None:
    """Only push local changes to remotes."""
    _run(ctx, "push")


@app.command("status")
def status(ctx: typer.Context) -> None:
    """Show each repository's state and what sync would do."""
    _run(ctx, "status")


@app.command("clone")
def clone(ctx: typer.Context) -> None:
    """Clone repositories that are not cloned yet."""
    _run(ctx, "clone")


@app.command("help")
def help_(ctx: typer.Context) -> None:
    """Show this message."""
    typer.echo(ctx.find_root().get_help())


def main() -> None:
    app(prog_name="repoteer")
