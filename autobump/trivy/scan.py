"""Trivy scanner collaborator: run `trivy fs` against a go.mod and parse the JSON."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from autobump.errors import ScanError, ToolchainError
from autobump.gomod.toolchain import run_command
from autobump.models import CVSS, Finding, ScanResult

logger = logging.getLogger(__name__)


# --- Raw Trivy JSON ---

class _TrivyModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TrivyPackage(_TrivyModel):
    name: str = Field("", alias="Name")
    version: str = Field("", alias="Version")
    relationship: str = Field("", alias="Relationship")
    indirect: bool = Field(False, alias="Indirect")


class TrivyVulnerability(_TrivyModel):
    vulnerability_id: str = Field(alias="VulnerabilityID")
    pkg_name: str = Field(alias="PkgName")
    installed_version: str = Field("", alias="InstalledVersion")
    fixed_version: str = Field("", alias="FixedVersion")
    severity: str = Field("", alias="Severity")
    title: str = Field("", alias="Title")
    description: str = Field("", alias="Description")
    primary_url: str = Field("", alias="PrimaryURL")
    cvss: dict[str, CVSS] | None = Field(None, alias="CVSS")


class TrivyResult(_TrivyModel):
    target: str = Field("", alias="Target")
    result_class: str = Field("", alias="Class")
    type: str = Field("", alias="Type")
    packages: list[TrivyPackage] | None = Field(None, alias="Packages")
    vulnerabilities: list[TrivyVulnerability] | None = Field(None, alias="Vulnerabilities")


class TrivyOutput(_TrivyModel):
    results: list[TrivyResult] | None = Field(None, alias="Results")


def _is_indirect(package: TrivyPackage) -> bool:
    return package.indirect or package.relationship == "indirect"


def convert_trivy_output(output: TrivyOutput, target: str) -> ScanResult:
    """Transform Trivy's report into findings for the gomod results only."""
    findings: list[Finding] = []
    for result in output.results or []:
        if result.type != "gomod":
            continue

        indirect = {pkg.name: _is_indirect(pkg) for pkg in result.packages or []}

        for vuln in result.vulnerabilities or []:
            findings.append(Finding(
                vulnerability_id=vuln.vulnerability_id,
                pkg_name=vuln.pkg_name,
                installed_version=vuln.installed_version,
                fixed_version=vuln.fixed_version,
                direct=not indirect.get(vuln.pkg_name, False),
                severity=vuln.severity,
                title=vuln.title,
                description=vuln.description,
                primary_url=vuln.primary_url,
                cvss=vuln.cvss or {},
            ))

    return ScanResult(target=target, vulnerabilities=findings)


def parse_trivy_json(raw: str, target: str) -> ScanResult:
    try:
        output = TrivyOutput.model_validate_json(raw)
    except ValidationError as e:
        raise ScanError(f"failed to parse trivy output for {target}: {e}") from e
    return convert_trivy_output(output, target)


class TrivyScanner:
    """Scans a single go.mod (not its directory, so nested modules are not picked up)."""

    def __init__(
        self,
        trivy_command: str = "trivy",
        skip_db_update: bool = False,
        timeout_seconds: float = 600,
    ) -> None:
        self.trivy_command = trivy_command
        self.skip_db_update = skip_db_update
        self.timeout_seconds = timeout_seconds

    def build_command(self, go_mod_path: str | Path) -> list[str]:
        args = [
            self.trivy_command, "fs",
            "--format", "json",
            "--scanners", "vuln",
            "--pkg-types", "library",
        ]
        if self.skip_db_update:
            args.append("--skip-db-update")
        args.append(str(go_mod_path))
        return args

    async def scan(self, go_mod_path: str | Path) -> ScanResult:
        """Scan one manifest.

        A scan with zero findings is a successful empty result; a scan that
        could not run or produced no parsable report raises ScanError.
        """
        cmd = self.build_command(go_mod_path)
        try:
            returncode, stdout, stderr = await run_command(cmd, timeout_seconds=self.timeout_seconds)
        except ToolchainError as e:
            raise ScanError(f"trivy scan failed: {e}") from e

        # Trivy may exit non-zero when it finds vulnerabilities; only an empty report is fatal.
        if not stdout.strip():
            raise ScanError(f"trivy scan failed (exit code {returncode}): {stderr.strip()[:500]}")

        result = parse_trivy_json(stdout, str(go_mod_path))
        logger.debug("trivy reported %d finding(s) for %s", len(result.vulnerabilities), go_mod_path)
        return result
