"""Command-line interface for CMake Lite."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cmakelite import __version__
from cmakelite.config import ConfigError
from cmakelite.console_logger import ConsoleLogger
from cmakelite.logging import LogLevel, parse_log_level
from cmakelite.settings import OVERRIDE_SECTION, Settings
from cmakelite.substitution import DEFAULT_MAX_PASSES, OverrideEnv, iter_passes, resolve
from cmakelite.workspace import Workspace

app = typer.Typer(
    help="CMake Lite - resolve override settings for C/C++ editor tooling",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
# Diagnostics go to stderr so resolved values can be piped
err_console = Console(stderr=True)


@dataclass
class CliContext:
    logger: ConsoleLogger
    roots: list[Path]


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"cmake-lite version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True,
        help="Show version and exit",
    ),
    log_level: str = typer.Option(
        "info", "--log-level", help="One of fatal, error, warn, info, debug, trace",
    ),
    workspace: Optional[List[Path]] = typer.Option(
        None, "--workspace", "-w",
        help="Workspace folder (repeatable). Defaults to the current directory.",
    ),
):
    try:
        level = parse_log_level(log_level)
    except ValueError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    ctx.obj = CliContext(
        logger=ConsoleLogger(err_console, level),
        roots=list(workspace) if workspace else [Path.cwd()],
    )


def _load_workspace(cli: CliContext) -> Workspace:
    try:
        return Workspace.load(cli.roots)
    except ConfigError as e:
        cli.logger.error(escape(str(e)))
        raise typer.Exit(1)


def _parse_env_overrides(values: list[str]) -> OverrideEnv:
    """Parse NAME=VALUE pairs. A name given more than once collects a list.

    Raises:
        typer.Exit: If a value has no '='
    """
    overrides: dict[str, str | list[str]] = {}
    for item in values:
        if "=" not in item:
            err_console.print(f"[red]Invalid --env value '{escape(item)}': expected NAME=VALUE[/red]")
            raise typer.Exit(1)
        name, value = item.split("=", 1)
        existing = overrides.get(name)
        if existing is None:
            overrides[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            overrides[name] = [existing, value]
    return overrides


@app.command("resolve")
def resolve_command(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Text containing ${...} placeholders"),
    env: Optional[List[str]] = typer.Option(
        None, "--env", "-e", help="NAME=VALUE taking precedence over the environment (repeatable)",
    ),
    max_passes: int = typer.Option(
        DEFAULT_MAX_PASSES, "--max-passes", min=1, help="Upper bound on substitution passes",
    ),
):
    """Resolve a template against the workspace and print the result."""
    cli: CliContext = ctx.obj
    override_env = _parse_env_overrides(env or [])
    workspace = _load_workspace(cli)
    context = workspace.resolution_context()

    if cli.logger.is_enabled(LogLevel.TRACE):
        for index, text in enumerate(
            iter_passes(template, override_env or None, context=context, max_passes=max_passes), 1
        ):
            cli.logger.trace(f"pass {index}: {text}", markup=False)

    result = resolve(template, override_env or None, context=context, max_passes=max_passes)
    console.print(result, markup=False, highlight=False, soft_wrap=True)


@app.command("settings")
def settings_command(ctx: typer.Context):
    """Show the resolved override settings."""
    cli: CliContext = ctx.obj
    workspace = _load_workspace(cli)

    try:
        with Settings(workspace, cli.logger) as settings:
            override = settings.current
    except ConfigError as e:
        cli.logger.error(escape(str(e)))
        raise typer.Exit(1)

    table = Table(title=OVERRIDE_SECTION)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in override.to_dict().items():
        table.add_row(key, escape(value) if value is not None else "[dim]<absent>[/dim]")
    console.print(table)


@app.command("lsp")
def lsp_command():
    """Run the language server on stdio."""
    from cmakelite.lsp.server import main as lsp_main

    lsp_main()


def main():
    app()


if __name__ == "__main__":
    main()
