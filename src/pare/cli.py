"""
cli.py - ``pare`` command line

Exercise the execution core without an MCP host:

    pare run git status --flag=--porcelain=v1 --cwd ~/src/app
    pare run git -- -rf /                  # rejected before spawn
    pare check mount /etc:/data
    pare profiles --core

stdout carries only command output (or JSON with ``--json``); diagnostics,
tables and errors go to stderr.
"""

from __future__ import annotations

import asyncio
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config.logging import configure_logging
from .errors import CommandNotFoundError, CommandPermissionError, PolicyViolation, SpawnError
from .policy import (
    assert_allowed_by_policy,
    assert_allowed_command,
    assert_allowed_root,
    assert_no_flag_injection,
    assert_safe_file_path,
    assert_safe_url,
    assert_safe_volume_mount,
    assert_strict_path,
    assert_valid_port_mapping,
)
from .runner import run
from .tools.profiles import CORE_TOOLS, PROFILES

err_console = Console(stderr=True)

app = typer.Typer(
    name="pare",
    help="Guarded command execution for agent tool servers",
    add_completion=False,
    no_args_is_help=True,
)

EXIT_POLICY = 2
EXIT_PERMISSION = 126
EXIT_NOT_FOUND = 127


class CheckKind(str, Enum):
    flag = "flag"
    path = "path"
    mount = "mount"
    url = "url"
    port = "port"
    root = "root"


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    configure_logging(verbose=verbose, force=True)


def _report_violation(violation: PolicyViolation) -> None:
    err_console.print(f"[bold red]Rejected[/bold red] ({violation.kind.value}, {violation.field})")
    err_console.print(violation.message, style="red", markup=False, highlight=False, soft_wrap=True)


@app.command("run")
def run_command(
    program: str = typer.Argument(..., help="Program to run (bare name preferred)"),
    args: Optional[list[str]] = typer.Argument(None, help="Positional values; must not look like flags"),
    flags: Optional[list[str]] = typer.Option(
        None, "--flag", "-f", help="Trusted option appended after ARGS (repeatable)"
    ),
    cwd: Optional[Path] = typer.Option(None, "--cwd", help="Working directory"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1, help="Timeout in ms"),
    max_lines: Optional[int] = typer.Option(None, "--max-lines", min=1, help="Line cap per stream"),
    allow: Optional[list[str]] = typer.Option(
        None, "--allow", "-a", help="Allowed command name (repeatable); overrides env policy"
    ),
    server: str = typer.Option("process", "--server", help="Server name for PARE_{SERVER}_* policy"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Print the RunResult as JSON"),
):
    """Run PROGRAM after the policy guard has accepted every input."""
    args = args or []
    try:
        assert_strict_path(program)
        if allow:
            assert_allowed_command(program, allow)
        else:
            assert_allowed_by_policy(program, server)
        for index, value in enumerate(args):
            assert_no_flag_injection(value, f"args[{index}]")
        if cwd is not None:
            assert_allowed_root(cwd, server)
    except PolicyViolation as e:
        _report_violation(e)
        raise typer.Exit(EXIT_POLICY)

    try:
        result = asyncio.run(
            run(
                program,
                [*args, *(flags or [])],
                cwd=cwd,
                timeout_ms=timeout_ms,
                max_output_lines=max_lines,
            )
        )
    except CommandNotFoundError as e:
        err_console.print(e.message, style="red", markup=False, soft_wrap=True)
        raise typer.Exit(EXIT_NOT_FOUND)
    except CommandPermissionError as e:
        err_console.print(e.message, style="red", markup=False, soft_wrap=True)
        raise typer.Exit(EXIT_PERMISSION)
    except SpawnError as e:
        err_console.print(e.message, style="red", markup=False, soft_wrap=True)
        raise typer.Exit(1)

    if json_output:
        sys.stdout.write(result.model_dump_json_str(by_alias=True, exclude_none=True) + "\n")
    else:
        sys.stdout.write(result.stdout)
        if result.stderr:
            err_console.print(result.stderr, markup=False, highlight=False, end="")
        status = "timed out" if result.timed_out else f"exit {result.exit_code}"
        notes = []
        if result.truncated:
            notes.append("output truncated")
        for stream in ("stdout", "stderr"):
            dropped = getattr(result, f"{stream}_truncated_lines")
            if dropped:
                notes.append(f"{dropped} {stream} line(s) dropped")
        suffix = f" ({', '.join(notes)})" if notes else ""
        err_console.print(
            f"[dim]{program}: {status} in {result.duration_ms:.0f}ms{suffix}[/dim]", highlight=False, soft_wrap=True
        )

    raise typer.Exit(result.exit_code)


@app.command("check")
def check_command(
    kind: CheckKind = typer.Argument(..., help="Which guard to apply"),
    value: str = typer.Argument(..., help="Value to check"),
    cwd: Path = typer.Option(Path("."), "--cwd", help="Working directory for 'path'"),
    policy: str = typer.Option("process", "--policy", help="Policy name for 'root'"),
    field: str = typer.Option("value", "--field", help="Field name used in messages"),
):
    """Check VALUE against one policy guard without running anything."""
    try:
        if kind is CheckKind.flag:
            assert_no_flag_injection(value, field)
        elif kind is CheckKind.path:
            assert_safe_file_path(value, cwd, field=field)
        elif kind is CheckKind.mount:
            assert_safe_volume_mount(value, field=field)
        elif kind is CheckKind.url:
            assert_safe_url(value, field=field)
        elif kind is CheckKind.port:
            assert_valid_port_mapping(value, field=field)
        elif kind is CheckKind.root:
            assert_allowed_root(value, policy)
    except PolicyViolation as e:
        _report_violation(e)
        raise typer.Exit(1)
    err_console.print(f"[green]ok[/green] {kind.value}: {value}", highlight=False, soft_wrap=True)


@app.command("profiles")
def profiles_command(
    core: bool = typer.Option(False, "--core", help="List core tools per server instead"),
):
    """Show preset tool profiles (PARE_PROFILE) or core tools per server."""
    if core:
        table = Table(title="Core tools (always loaded in lazy mode)")
        table.add_column("Server", style="cyan")
        table.add_column("Tools")
        for server_name, tools in sorted(CORE_TOOLS.items()):
            table.add_row(server_name, ", ".join(tools))
    else:
        table = Table(title="Tool profiles")
        table.add_column("Profile", style="cyan")
        table.add_column("Tools", justify="right")
        table.add_column("Servers")
        for name, tools in PROFILES.items():
            if tools is None:
                table.add_row(name, "all", "all")
                continue
            servers = sorted({entry.split(":", 1)[0] for entry in tools})
            table.add_row(name, str(len(tools)), ", ".join(servers))
    err_console.print(table)


def main():
    """Entry point for the ``pare`` console script."""
    app()


__all__ = ["app", "main"]
