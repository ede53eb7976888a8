"""CVSS filtering and grouping of scanner findings."""

from __future__ import annotations

from autobump.models import Finding, ScanResult

DEFAULT_CVSS_THRESHOLD = 7.0


def filter_findings(findings: list[Finding], threshold: float = DEFAULT_CVSS_THRESHOLD) -> list[Finding]:
    """Findings whose score is at least ``threshold``, in their original order."""
    return [f for f in findings if f.cvss_score >= threshold]


def filter_by_cvss(result: ScanResult, threshold: float = DEFAULT_CVSS_THRESHOLD) -> ScanResult:
    return ScanResult(target=result.target, vulnerabilities=filter_findings(result.vulnerabilities, threshold))


def split_by_type(findings: list[Finding]) -> tuple[list[Finding], list[Finding]]:
    """Separate findings into (direct, indirect)."""
    direct = [f for f in findings if f.direct]
    indirect = [f for f in findings if not f.direct]
    return direct, indirect


def has_fixed_version(finding: Finding) -> bool:
    return finding.fixed_version != ""


def group_by_package(findings: list[Finding]) -> dict[str, list[Finding]]:
    grouped: dict[str, list[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.pkg_name, []).append(finding)
    return grouped


def contains_finding(findings: list[Finding], target: Finding) -> bool:
    """True when a finding with the same vulnerability ID and package is present."""
    return any(f.key == target.key for f in findings)
