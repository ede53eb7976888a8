"""Typer CLI for autobump: scan Go modules and update vulnerable dependencies."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from autobump import __version__
from autobump.cli.render import (
    format_result_line,
    render_run_report,
    render_scan_report,
    run_report_to_json,
)
from autobump.config import Settings, load_settings
from autobump.discover import discover_go_mod_files
from autobump.errors import ConfigError
from autobump.gomod.toolchain import GoToolchain
from autobump.models import RemediationResult, RunReport
from autobump.trivy.scan import TrivyScanner
from autobump.updater.pipeline import run_update, scan_manifests

app = typer.Typer(
    name="autobump",
    help="Find vulnerable Go dependencies with Trivy and update them until the scan is clean.",
)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("autobump")


def _setup_logging(verbose: bool) -> None:
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def _load(config: Optional[str], **overrides) -> Settings:
    try:
        return load_settings(config, **overrides)
    except ConfigError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)


def _manifests(settings: Settings) -> list[Path]:
    manifests = discover_go_mod_files(settings.path, settings.exclude)
    if not manifests:
        console.print(f"No go.mod files found under {settings.path}")
        raise typer.Exit(code=0)
    logger.info("found %d go.mod file(s)", len(manifests))
    return manifests


def _scanner(settings: Settings) -> TrivyScanner:
    return TrivyScanner(
        trivy_command=settings.trivy_command,
        skip_db_update=settings.skip_db_update,
        timeout_seconds=settings.command_timeout_seconds,
    )


def _toolchain(settings: Settings) -> GoToolchain:
    return GoToolchain(go_command=settings.go_command, timeout_seconds=settings.command_timeout_seconds)


def _finish(report: RunReport) -> None:
    if report.scan_failed:
        raise typer.Exit(code=1)


@app.command()
def scan(
    path: Optional[str] = typer.Argument(None, help="Directory or go.mod to scan (default: current directory)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    cvss_threshold: Optional[float] = typer.Option(None, "--cvss-threshold", help="Minimum CVSS score to report"),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", help="Glob of go.mod paths to skip (repeatable)"),
    skip_db_update: bool = typer.Option(False, "--skip-db-update", help="Do not refresh the Trivy database"),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON report"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Scan go.mod files and list vulnerabilities above the CVSS threshold."""
    _setup_logging(verbose)
    settings = _load(
        config,
        path=path,
        cvss_threshold=cvss_threshold,
        exclude=exclude or None,
        skip_db_update=skip_db_update or None,
    )
    manifests = _manifests(settings)

    report = asyncio.run(scan_manifests(settings, _scanner(settings), manifests))

    if json_output:
        typer.echo(run_report_to_json(report))
    else:
        render_scan_report(report, console)
    _finish(report)


@app.command()
def update(
    path: Optional[str] = typer.Argument(None, help="Directory or go.mod to update (default: current directory)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    cvss_threshold: Optional[float] = typer.Option(None, "--cvss-threshold", help="Minimum CVSS score to fix"),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", help="Glob of go.mod paths to skip (repeatable)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Scan and plan only, change nothing"),
    skip_tidy: bool = typer.Option(False, "--skip-tidy", help="Do not run 'go mod tidy' after updates"),
    allow_major: bool = typer.Option(False, "--allow-major", help="Permit major version bumps"),
    skip_db_update: bool = typer.Option(False, "--skip-db-update", help="Do not refresh the Trivy database"),
    generate_vex: bool = typer.Option(False, "--generate-vex", help="Write an OpenVEX document for unfixed vulnerabilities"),
    vex_output: Optional[str] = typer.Option(None, "--vex-output", help="Path of the OpenVEX document"),
    ai_api_key: Optional[str] = typer.Option(None, "--ai-api-key", help="API key for AI VEX justifications (auto-detects provider from prefix)"),
    ai_endpoint: Optional[str] = typer.Option(None, "--ai-endpoint", help="OpenAI-compatible API base URL"),
    ai_model: Optional[str] = typer.Option(None, "--ai-model", help="Model used for AI VEX justifications"),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON report"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Update vulnerable dependencies until a rescan is clean."""
    _setup_logging(verbose)
    settings = _load(
        config,
        path=path,
        cvss_threshold=cvss_threshold,
        exclude=exclude or None,
        dry_run=dry_run or None,
        skip_tidy=skip_tidy or None,
        allow_major=allow_major or None,
        skip_db_update=skip_db_update or None,
        generate_vex=generate_vex or None,
        vex_output=vex_output,
        ai_api_key=ai_api_key,
        ai_endpoint=ai_endpoint,
        ai_model=ai_model,
    )
    manifests = _manifests(settings)
    if settings.dry_run:
        logger.info("dry run: no files will be modified")

    def _on_result(manifest: str, result: RemediationResult) -> None:
        if not json_output:
            console.print(format_result_line(manifest, result))

    async def _run() -> RunReport:
        toolchain = _toolchain(settings)
        report = await run_update(settings, _scanner(settings), toolchain, manifests, on_result=_on_result)
        if settings.generate_vex and not settings.dry_run:
            await _write_vex(report, settings, toolchain)
        return report

    report = asyncio.run(_run())

    if json_output:
        typer.echo(run_report_to_json(report))
    else:
        render_run_report(report, console)
    _finish(report)


async def _write_vex(report: RunReport, settings: Settings, toolchain: GoToolchain) -> None:
    from autobump.vex.generator import generate

    try:
        written = await generate(report.unresolved, settings, toolchain)
    except OSError as e:
        logger.warning("failed to write VEX document %s: %s", settings.vex_output, e)
        return
    if written is None:
        logger.info("no unresolved vulnerabilities, VEX document not written")
    else:
        logger.info("wrote VEX document to %s", written)


@app.command()
def version():
    """Print the autobump version."""
    console.print(f"autobump {__version__}")


if __name__ == "__main__":
    app()
