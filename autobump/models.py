"""Shared Pydantic models for autobump."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


# --- Scanner findings ---

class CVSS(BaseModel):
    """CVSS scoring information from one scoring source."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    v3_score: float = Field(0.0, alias="V3Score")
    v3_vector: str = Field("", alias="V3Vector")


class Finding(BaseModel):
    """A single vulnerability reported for one package of one manifest."""
    model_config = ConfigDict(frozen=True)

    vulnerability_id: str
    pkg_name: str
    installed_version: str
    fixed_version: str = ""
    direct: bool = True
    severity: str = ""
    title: str = ""
    description: str = ""
    primary_url: str = ""
    cvss: dict[str, CVSS] = {}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cvss_score(self) -> float:
        """Highest V3 score across all scoring sources, 0.0 when none."""
        return max((c.v3_score for c in self.cvss.values()), default=0.0)

    @property
    def indirect(self) -> bool:
        return not self.direct

    @property
    def key(self) -> tuple[str, str]:
        """Identity used when checking whether a rescan still reports this finding."""
        return (self.vulnerability_id, self.pkg_name)


class ScanResult(BaseModel):
    """Findings reported for a single go.mod."""
    target: str
    vulnerabilities: list[Finding] = []


# --- Dependency graph ---

class Dependency(BaseModel):
    """A requirement declared in go.mod."""
    model_config = ConfigDict(frozen=True)

    path: str
    version: str
    direct: bool = True


class ModuleVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    version: str = ""

    def __str__(self) -> str:
        return f"{self.path}@{self.version}" if self.version else self.path


class GraphEdge(BaseModel):
    """One `go mod graph` line: from_module requires to_module."""
    model_config = ConfigDict(frozen=True)

    from_module: ModuleVersion
    to_module: ModuleVersion


# --- Remediation ---

class RemediationOutcome(str, Enum):
    FIXED_DIRECT = "fixed_direct"
    FIXED_VIA_CHAIN = "fixed_via_chain"
    FIXED_VIA_NAMESPACE_FALLBACK = "fixed_via_namespace_fallback"
    SKIPPED_MAJOR_VERSION_BLOCKED = "skipped_major_version_blocked"
    SKIPPED_NO_FIX = "skipped_no_fix"
    FAILED = "failed"

    @property
    def is_fixed(self) -> bool:
        return self in (
            RemediationOutcome.FIXED_DIRECT,
            RemediationOutcome.FIXED_VIA_CHAIN,
            RemediationOutcome.FIXED_VIA_NAMESPACE_FALLBACK,
        )


class RemediationResult(BaseModel):
    """Terminal state of one finding after a remediation pass."""
    finding: Finding
    outcome: RemediationOutcome
    reason: str = ""
    updated_module: str = ""
    target_version: str = ""
    used_latest_fallback: bool = False
    attempts: list[str] = []


class UnresolvedFinding(BaseModel):
    """A finding the resolver could not fix, tagged with why."""
    finding: Finding
    outcome: RemediationOutcome
    reason: str
    manifest: str = ""


class PlannedUpdate(BaseModel):
    """What a dry run would have attempted for one finding."""
    finding: Finding
    strategy: str


class ManifestReport(BaseModel):
    """Everything that happened to one go.mod during a run."""
    manifest: str
    scan_error: str = ""
    findings: list[Finding] = []
    results: list[RemediationResult] = []
    planned: list[PlannedUpdate] = []
    remaining: list[Finding] = []
    verification_error: str = ""


class RunReport(BaseModel):
    """Summary of a full run across all discovered manifests."""
    cvss_threshold: float
    dry_run: bool = False
    manifests: list[ManifestReport] = []
    unresolved: list[UnresolvedFinding] = []

    @property
    def scan_failed(self) -> bool:
        return any(m.scan_error for m in self.manifests)


# --- VEX ---

class VexStatus(str, Enum):
    NOT_AFFECTED = "not_affected"
    AFFECTED = "affected"
    FIXED = "fixed"
    UNDER_INVESTIGATION = "under_investigation"


class AIJustification(BaseModel):
    status: VexStatus = VexStatus.UNDER_INVESTIGATION
    justification: str = ""
    impact_statement: str = ""


class VexIdentifiers(BaseModel):
    purl: str = ""


class VexProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="@id")
    identifiers: VexIdentifiers = VexIdentifiers()


class VexStatement(BaseModel):
    vulnerability: str
    products: list[VexProduct]
    status: VexStatus
    justification: str | None = None
    impact_statement: str | None = None
    timestamp: str


class VexDocument(BaseModel):
    """OpenVEX document, compatible with `trivy --vex`."""
    model_config = ConfigDict(populate_by_name=True)

    context: str = Field("https://openvex.dev/ns/v0.2.0", alias="@context")
    id: str = Field(alias="@id")
    author: str = "go-autobump"
    timestamp: str
    version: int = 1
    tooling: str = "go-autobump"
    statements: list[VexStatement] = []
