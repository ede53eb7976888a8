"""OpenVEX document generation for vulnerabilities that could not be fixed."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from autobump.config import Settings
from autobump.errors import ToolchainError
from autobump.models import (
    AIJustification,
    Finding,
    UnresolvedFinding,
    VexDocument,
    VexIdentifiers,
    VexProduct,
    VexStatement,
    VexStatus,
)
from autobump.updater.chain import ChainOracle
from autobump.vex.justify import UNKNOWN_CHAIN, justify
from autobump.vex.providers import resolve_provider

logger = logging.getLogger(__name__)


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def purl_for(finding: Finding) -> str:
    return f"pkg:golang/{finding.pkg_name}@{finding.installed_version}"


def make_statement(finding: Finding, assessment: AIJustification | None, timestamp: str) -> VexStatement:
    """One statement per finding; without an assessment it is under investigation."""
    if assessment is None:
        assessment = AIJustification(
            status=VexStatus.UNDER_INVESTIGATION,
            impact_statement=(
                f"No fix available for {finding.vulnerability_id} in "
                f"{finding.pkg_name}@{finding.installed_version}. Requires manual analysis."
            ),
        )
    return VexStatement(
        vulnerability=finding.vulnerability_id,
        products=[VexProduct(id=finding.pkg_name, identifiers=VexIdentifiers(purl=purl_for(finding)))],
        status=assessment.status,
        justification=assessment.justification or None,
        impact_statement=assessment.impact_statement or None,
        timestamp=timestamp,
    )


async def _chain_text(oracle: ChainOracle | None, entry: UnresolvedFinding) -> str:
    if oracle is None or not entry.manifest:
        return UNKNOWN_CHAIN
    try:
        lines = await oracle.why(Path(entry.manifest).parent, entry.finding.pkg_name)
    except ToolchainError as e:
        logger.debug("no dependency chain for %s: %s", entry.finding.pkg_name, e)
        return UNKNOWN_CHAIN
    return "\n".join(lines) or UNKNOWN_CHAIN


async def build_document(
    unresolved: list[UnresolvedFinding],
    settings: Settings,
    chain_oracle: ChainOracle | None = None,
    now: datetime | None = None,
) -> VexDocument:
    """Build the OpenVEX document, consulting the AI provider when a key is configured."""
    moment = now or datetime.now(timezone.utc)
    timestamp = _rfc3339(moment)
    use_ai = resolve_provider(settings) is not None

    doc = VexDocument(id=f"https://go-autobump/vex/{int(moment.timestamp())}", timestamp=timestamp)
    seen: set[tuple[str, str]] = set()

    for entry in unresolved:
        finding = entry.finding
        if finding.key in seen:
            continue
        seen.add(finding.key)

        assessment = None
        if use_ai:
            chain = await _chain_text(chain_oracle, entry)
            assessment = await justify(
                finding.vulnerability_id, finding.pkg_name, finding.description, chain, settings,
            )
        doc.statements.append(make_statement(finding, assessment, timestamp))

    return doc


def document_to_json(doc: VexDocument) -> str:
    return doc.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def write_document(doc: VexDocument, output_path: str | Path) -> Path:
    path = Path(output_path)
    path.write_text(document_to_json(doc) + "\n")
    return path


async def generate(
    unresolved: list[UnresolvedFinding],
    settings: Settings,
    chain_oracle: ChainOracle | None = None,
) -> Path | None:
    """Write a VEX document for ``unresolved`` to settings.vex_output.

    Returns the written path, or None when there is nothing to write.
    """
    if not unresolved:
        return None
    doc = await build_document(unresolved, settings, chain_oracle)
    return write_document(doc, settings.vex_output)
