"""Run orchestration over every discovered go.mod.

Manifests are processed one at a time and, within a manifest, findings are
resolved strictly in the order the scanner reported them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from autobump.config import Settings
from autobump.errors import ScanError
from autobump.models import ManifestReport, PlannedUpdate, RemediationResult, RunReport
from autobump.trivy.filter import filter_findings
from autobump.updater.report import UnresolvedReporter
from autobump.updater.resolver import Resolver, Scanner, Toolchain

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, RemediationResult], None]


async def scan_manifest(scanner: Scanner, go_mod_path: str | Path, threshold: float) -> ManifestReport:
    """Scan and filter a single manifest; scan errors are captured in the report."""
    manifest = str(go_mod_path)
    try:
        result = await scanner.scan(go_mod_path)
    except ScanError as e:
        logger.warning("failed to scan %s: %s", manifest, e)
        return ManifestReport(manifest=manifest, scan_error=str(e))
    return ManifestReport(manifest=manifest, findings=filter_findings(result.vulnerabilities, threshold))


async def scan_manifests(settings: Settings, scanner: Scanner, manifests: list[Path]) -> RunReport:
    report = RunReport(cvss_threshold=settings.cvss_threshold, dry_run=True)
    for go_mod_path in manifests:
        report.manifests.append(await scan_manifest(scanner, go_mod_path, settings.cvss_threshold))
    return report


def _plan(report: ManifestReport) -> list[PlannedUpdate]:
    planned = []
    for finding in report.findings:
        if not finding.fixed_version:
            continue
        if finding.direct:
            strategy = f"update {finding.pkg_name}: {finding.installed_version} -> {finding.fixed_version}"
        else:
            strategy = (
                f"update indirect {finding.pkg_name}: {finding.installed_version} -> "
                f"{finding.fixed_version}, tracing the dependency chain if needed"
            )
        planned.append(PlannedUpdate(finding=finding, strategy=strategy))
    return planned


async def verify_manifest(scanner: Scanner, report: ManifestReport, threshold: float) -> None:
    """Rescan after updates and record what is still above the threshold."""
    try:
        result = await scanner.scan(report.manifest)
    except ScanError as e:
        logger.warning("verification scan failed for %s: %s", report.manifest, e)
        report.verification_error = str(e)
        return
    report.remaining = filter_findings(result.vulnerabilities, threshold)


async def run_update(
    settings: Settings,
    scanner: Scanner,
    toolchain: Toolchain,
    manifests: list[Path],
    on_result: ResultCallback | None = None,
) -> RunReport:
    """Scan, remediate and verify every manifest; collect the unresolved set."""
    resolver = Resolver(settings, scanner, toolchain)
    reporter = UnresolvedReporter()
    run = RunReport(cvss_threshold=settings.cvss_threshold, dry_run=settings.dry_run)

    for go_mod_path in manifests:
        report = await scan_manifest(scanner, go_mod_path, settings.cvss_threshold)
        run.manifests.append(report)
        if report.scan_error or not report.findings:
            continue

        logger.info(
            "%s: %d vulnerabilities above CVSS %.1f",
            report.manifest, len(report.findings), settings.cvss_threshold,
        )

        if settings.dry_run:
            report.planned = _plan(report)
            for finding in report.findings:
                if not finding.fixed_version:
                    result = await resolver.resolve(go_mod_path, finding)
                    report.results.append(result)
                    reporter.record(result, report.manifest)
                    if on_result:
                        on_result(report.manifest, result)
            continue

        for finding in report.findings:
            result = await resolver.resolve(go_mod_path, finding)
            report.results.append(result)
            reporter.record(result, report.manifest)
            if on_result:
                on_result(report.manifest, result)

        await verify_manifest(scanner, report, settings.cvss_threshold)

    run.unresolved = list(reporter.release())
    return run
