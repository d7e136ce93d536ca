#!/usr/bin/env python3
"""luau-build CLI: fetch the Luau sources, clean the workspace, build main.cpp."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from luaubuild.builder import build_project
from luaubuild.cleaner import clean_workspace
from luaubuild.cmake import build_with_cmake
from luaubuild.errors import LuauBuildError
from luaubuild.fetcher import fetch_dependencies
from luaubuild.schemas import BuildReport, CleanReport, FetchReport
from luaubuild.settings import Settings, load_settings

LOGGER = logging.getLogger("luaubuild")

console = Console()
cli = typer.Typer(help="Fetch Luau, clean the workspace, and build main.cpp against it.")

_STATE: dict[str, object] = {"env_file": ".env", "verbose": False}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _resolve_settings(work_dir: Optional[Path]) -> Settings:
    settings = load_settings(str(_STATE["env_file"]))
    _configure_logging("DEBUG" if _STATE["verbose"] else settings.log_level)
    if work_dir is not None:
        settings = settings.with_work_dir(work_dir)
    return settings


def _fail(action: str, exc: LuauBuildError) -> None:
    LOGGER.debug("%s failed", action, exc_info=exc)
    console.print(f"[red]Error {action}:[/] {escape(str(exc))}", soft_wrap=True)
    raise typer.Exit(1)


def _print_fetch(report: FetchReport) -> None:
    console.print(
        f"[green]Staged {report.files} files and {report.directories} directories into {report.staging_dir}[/]"
    )
    if not report.headers:
        return
    table = Table("Header", "Status", title="Critical headers")
    for check in report.headers:
        status = "[green]found[/]" if check.present else "[red]missing[/]"
        table.add_row(check.path, status)
    console.print(table)


def _print_clean(report: CleanReport) -> None:
    if not report.removed:
        console.print("[dim]Nothing to clean.[/]")
        return
    for path in report.removed:
        console.print(f"removed {path}", soft_wrap=True)


def _print_build(report: BuildReport) -> None:
    table = Table("Field", "Value", title="Build")
    table.add_row("toolchain", report.toolchain)
    table.add_row("output", report.output)
    if report.library:
        table.add_row("library", report.library)
        table.add_row("library cached", "yes" if report.library_cached else "no")
    if report.sources:
        table.add_row("sources compiled", str(report.sources))
    table.add_row("phases", " → ".join(report.phases))
    console.print(table)


@cli.callback()
def main(
    env_file: str = typer.Option(".env", "--env-file", help="Path to the .env file with overrides"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log toolchain commands and extracted entries"),
) -> None:
    _STATE["env_file"] = env_file
    _STATE["verbose"] = verbose


@cli.command()
def deps(
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Check critical headers after extraction"),
    http2: bool = typer.Option(False, "--http2/--no-http2"),
    json_output: bool = typer.Option(False, "--json/--no-json", help="Emit JSON instead of text output."),
    work_dir: Optional[Path] = typer.Option(None, "--cwd", help="Working directory (defaults to the current one)"),
) -> None:
    """Download the Luau archive and extract it into the staging directory."""

    settings = _resolve_settings(work_dir)
    if not json_output:
        console.print(f"Downloading {settings.archive_url}…")
    try:
        report = fetch_dependencies(settings, verify=verify, http2=http2)
    except LuauBuildError as exc:
        _fail("downloading dependencies", exc)
        return
    if json_output:
        console.print_json(data=report.model_dump())
        return
    _print_fetch(report)


@cli.command()
def clean(
    json_output: bool = typer.Option(False, "--json/--no-json", help="Emit JSON instead of text output."),
    work_dir: Optional[Path] = typer.Option(None, "--cwd", help="Working directory (defaults to the current one)"),
) -> None:
    """Remove the staging directory, the output binary and stray objects."""

    settings = _resolve_settings(work_dir)
    try:
        report = clean_workspace(settings)
    except LuauBuildError as exc:
        _fail("cleaning project", exc)
        return
    if json_output:
        console.print_json(data=report.model_dump())
        return
    _print_clean(report)


@cli.command()
def build(
    use_cmake: bool = typer.Option(False, "--cmake", help="Let upstream's CMake project build Luau"),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", min=1, help="Parallel jobs for --cmake builds"),
    json_output: bool = typer.Option(False, "--json/--no-json", help="Emit JSON instead of text output."),
    work_dir: Optional[Path] = typer.Option(None, "--cwd", help="Working directory (defaults to the current one)"),
) -> None:
    """Compile the Luau library if it is not cached, then link the main program."""

    settings = _resolve_settings(work_dir)
    try:
        if use_cmake:
            report = build_with_cmake(settings, jobs=jobs)
        else:
            report = build_project(settings)
    except LuauBuildError as exc:
        _fail("building project", exc)
        return
    if json_output:
        console.print_json(data=report.model_dump())
        return
    _print_build(report)


if __name__ == "__main__":
    cli()
