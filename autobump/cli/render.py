"""Run report formatting: JSON output and Rich terminal rendering."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from autobump.models import Finding, ManifestReport, RemediationOutcome, RemediationResult, RunReport


_OUTCOME_STYLES = {
    RemediationOutcome.FIXED_DIRECT: ("green", "FIXED"),
    RemediationOutcome.FIXED_VIA_CHAIN: ("green", "FIXED VIA CHAIN"),
    RemediationOutcome.FIXED_VIA_NAMESPACE_FALLBACK: ("green", "FIXED VIA NAMESPACE"),
    RemediationOutcome.SKIPPED_MAJOR_VERSION_BLOCKED: ("yellow", "MAJOR BLOCKED"),
    RemediationOutcome.SKIPPED_NO_FIX: ("yellow", "NO FIX"),
    RemediationOutcome.FAILED: ("red", "FAILED"),
}


def _score_style(score: float) -> str:
    if score >= 9.0:
        return "bold red"
    if score >= 7.0:
        return "red"
    if score >= 4.0:
        return "yellow"
    return "cyan"


def run_report_to_json(report: RunReport) -> str:
    """Serialize a run report to JSON."""
    return report.model_dump_json(indent=2)


def format_result_line(manifest: str, result: RemediationResult) -> str:
    """One status line per finding, printed as results arrive."""
    style, label = _OUTCOME_STYLES[result.outcome]
    finding = result.finding
    line = f"[{style}]{label:<20}[/{style}] {finding.vulnerability_id} {finding.pkg_name}@{finding.installed_version}"
    if result.updated_module:
        line += f" -> {result.updated_module}@{result.target_version}"
    if result.reason:
        line += f" ({escape(result.reason)})"
    return line


def _findings_table(title: str, findings: list[Finding]) -> Table:
    table = Table(title=title)
    table.add_column("CVSS", style="bold")
    table.add_column("ID")
    table.add_column("Package")
    table.add_column("Installed")
    table.add_column("Fixed In")
    table.add_column("Type")

    for f in findings:
        style = _score_style(f.cvss_score)
        table.add_row(
            f"[{style}]{f.cvss_score:.1f}[/{style}]",
            f.vulnerability_id,
            f.pkg_name,
            f.installed_version,
            f.fixed_version or "no fix available",
            "direct" if f.direct else "indirect",
        )
    return table


def render_scan_report(report: RunReport, console: Console | None = None) -> None:
    """Render the findings of a scan-only run."""
    if console is None:
        console = Console()

    for manifest in report.manifests:
        if manifest.scan_error:
            console.print(f"[red]Scan failed[/red] for {manifest.manifest}: {escape(manifest.scan_error)}")
            continue
        if not manifest.findings:
            console.print(
                f"[green]No vulnerabilities above CVSS {report.cvss_threshold:.1f}[/green] in {manifest.manifest}"
            )
            continue
        console.print(_findings_table(
            f"{manifest.manifest}: {len(manifest.findings)} vulnerabilities above CVSS {report.cvss_threshold:.1f}",
            manifest.findings,
        ))


def _render_manifest(manifest: ManifestReport, dry_run: bool, console: Console) -> None:
    if manifest.planned:
        plan = Table(title=f"{manifest.manifest}: planned updates (dry run)")
        plan.add_column("ID")
        plan.add_column("Strategy")
        for item in manifest.planned:
            plan.add_row(item.finding.vulnerability_id, item.strategy)
        console.print(plan)

    if dry_run:
        return
    if manifest.verification_error:
        console.print(f"[yellow]Warning:[/yellow] could not verify {manifest.manifest}: {escape(manifest.verification_error)}")
    elif manifest.remaining:
        fixable = [f for f in manifest.remaining if f.fixed_version]
        console.print(_findings_table(
            f"{manifest.manifest}: {len(manifest.remaining)} remaining "
            f"({len(fixable)} fixable, {len(manifest.remaining) - len(fixable)} no fix available)",
            manifest.remaining,
        ))
    elif manifest.findings:
        console.print(f"[green]All vulnerabilities resolved[/green] in {manifest.manifest}")


def render_run_report(report: RunReport, console: Console | None = None) -> None:
    """Render the summary of an update run."""
    if console is None:
        console = Console()

    for manifest in report.manifests:
        if manifest.scan_error:
            console.print(f"[red]Scan failed[/red] for {manifest.manifest}: {escape(manifest.scan_error)}")
            continue
        _render_manifest(manifest, report.dry_run, console)

    results = [r for m in report.manifests for r in m.results]
    fixed = sum(1 for r in results if r.outcome.is_fixed)
    header = (
        f"Manifests: {len(report.manifests)}\n"
        f"CVSS threshold: {report.cvss_threshold:.1f}\n"
        f"Fixed: {fixed}\n"
        f"Unresolved: {len(report.unresolved)}"
    )
    style = "red" if report.scan_failed else ("yellow" if report.unresolved else "green")
    title = "Dry Run Summary" if report.dry_run else "Update Summary"
    console.print(Panel(header, title=title, border_style=style))

    if report.unresolved:
        table = Table(title="Unresolved")
        table.add_column("Status", style="bold")
        table.add_column("ID")
        table.add_column("Package")
        table.add_column("Reason")
        for entry in report.unresolved:
            status_style, label = _OUTCOME_STYLES[entry.outcome]
            table.add_row(
                f"[{status_style}]{label}[/{status_style}]",
                entry.finding.vulnerability_id,
                f"{entry.finding.pkg_name}@{entry.finding.installed_version}",
                escape(entry.reason),
            )
        console.print(table)
