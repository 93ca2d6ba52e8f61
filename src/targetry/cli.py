"""Command-line entry point."""

from __future__ import annotations

import logging
import os
import pathlib
from typing import NoReturn, Optional

import typer

from . import hcl
from .builder import Builder
from .errors import BuildAborted, ConfigurationError
from .options import parse_overrides

app = typer.Typer(no_args_is_help=True, help="Run build targets declared in HCL files.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_builder(
    path: pathlib.Path,
    builder: Optional[str],
    settings: list[str],
    **kwargs,
) -> Builder:
    overrides = parse_overrides(settings)
    ws = hcl.scan(path, context={"env": dict(os.environ), "options": overrides})
    return ws.builder(builder, overrides=overrides, **kwargs)


def _fail(exc: ConfigurationError) -> NoReturn:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(2)


@app.command("run")
def run(
    path: pathlib.Path = typer.Argument(..., help="Configuration file or directory."),
    goals: Optional[list[str]] = typer.Argument(None, help="Targets to build (default targets if omitted)."),
    builder: Optional[str] = typer.Option(None, "--builder", "-b", help="Builder block to use."),
    settings: Optional[list[str]] = typer.Option(None, "--set", "-s", help="Override an option (KEY=VALUE)."),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", min=1, help="Fan-out concurrency limit."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log commands without running them."),
    fail_fast: Optional[bool] = typer.Option(None, "--fail-fast/--keep-going", help="Stop after the first failure."),
    report: Optional[pathlib.Path] = typer.Option(None, "--report", help="Write the JSON report to this file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run goals and print the session report."""
    _configure_logging(verbose)
    try:
        b = _load_builder(
            path, builder, settings or [], dry_run=dry_run, max_workers=jobs, fail_fast=fail_fast
        )
        result = b.run(goals or None)
    except BuildAborted as exc:
        if report is not None:
            report.write_text(exc.report.model_dump_json(indent=2))
        _fail(exc)
    except ConfigurationError as exc:
        _fail(exc)

    typer.echo(result.render())
    if report is not None:
        report.write_text(result.model_dump_json(indent=2))
    if not result.ok:
        raise typer.Exit(1)


@app.command("list")
def list_targets(
    path: pathlib.Path = typer.Argument(..., help="Configuration file or directory."),
    builder: Optional[str] = typer.Option(None, "--builder", "-b", help="Builder block to use."),
    settings: Optional[list[str]] = typer.Option(None, "--set", "-s", help="Override an option (KEY=VALUE)."),
) -> None:
    """List declared targets and their dependencies."""
    try:
        b = _load_builder(path, builder, settings or [])
    except ConfigurationError as exc:
        _fail(exc)
    defaults = {t.name for t in b.default_targets}
    for info in b.describe():
        marker = "*" if info["name"] in defaults else " "
        depends = ", ".join(info["depends"]) or "-"
        typer.echo(f"{marker} {info['name']} [{info['kind']}] <- {depends}")


@app.command("order")
def order(
    path: pathlib.Path = typer.Argument(..., help="Configuration file or directory."),
    goals: Optional[list[str]] = typer.Argument(None, help="Targets to resolve."),
    builder: Optional[str] = typer.Option(None, "--builder", "-b", help="Builder block to use."),
    settings: Optional[list[str]] = typer.Option(None, "--set", "-s", help="Override an option (KEY=VALUE)."),
) -> None:
    """Print the resolved execution order."""
    try:
        b = _load_builder(path, builder, settings or [])
        targets = b.resolve(goals or None)
    except ConfigurationError as exc:
        _fail(exc)
    for target in targets:
        typer.echo(target.name)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
