"""AI exploitability assessment for unresolved findings.

Any failure (no key, transport error, timeout, unparseable or invalid
status) degrades to ``under_investigation``; it never aborts the run.
"""

from __future__ import annotations

import asyncio
import logging

from autobump.config import Settings
from autobump.models import AIJustification, VexStatus
from autobump.vex.providers import ProviderError, complete_json

logger = logging.getLogger(__name__)

FALLBACK_IMPACT = "No fix available. Requires manual analysis."
UNKNOWN_CHAIN = "Unable to determine dependency chain"

NOT_AFFECTED_JUSTIFICATIONS = (
    "component_not_present",
    "vulnerable_code_not_present",
    "vulnerable_code_not_in_execute_path",
    "vulnerable_code_cannot_be_controlled_by_adversary",
    "inline_mitigations_already_exist",
)

SYSTEM_PROMPT = """You are a security expert helping to create VEX (Vulnerability Exploitability eXchange) documents.
Your task is to analyze vulnerabilities and determine if they are exploitable in the context of how the package is used.

Respond with a JSON object in OpenVEX format containing:
- "status": one of "not_affected", "affected", "fixed", or "under_investigation"
- "justification": if status is "not_affected", one of: "component_not_present", "vulnerable_code_not_present", "vulnerable_code_not_in_execute_path", "vulnerable_code_cannot_be_controlled_by_adversary", "inline_mitigations_already_exist"
- "impact_statement": a brief explanation of why this status was chosen

Only respond with the JSON object, no additional text."""


def build_prompt(vuln_id: str, pkg_name: str, description: str, chain_text: str) -> str:
    return f"""Analyze this vulnerability:

Vulnerability ID: {vuln_id}
Package: {pkg_name}
Description: {description[:4000] if description else '(no description)'}

Dependency chain (from 'go mod why'):
{chain_text or UNKNOWN_CHAIN}

Based on how this dependency is used (as shown in the dependency chain), determine if the vulnerability is likely exploitable.
If you cannot determine exploitability, use "under_investigation" status."""


def fallback_justification(impact_statement: str = FALLBACK_IMPACT) -> AIJustification:
    return AIJustification(status=VexStatus.UNDER_INVESTIGATION, impact_statement=impact_statement)


def parse_justification(data: dict) -> AIJustification:
    """Validate a model response; unknown statuses become under_investigation."""
    raw_status = str(data.get("status", "")).strip().lower()
    try:
        status = VexStatus(raw_status)
    except ValueError:
        logger.info("AI returned invalid VEX status %r, using under_investigation", raw_status)
        status = VexStatus.UNDER_INVESTIGATION

    justification = str(data.get("justification") or "")
    if status != VexStatus.NOT_AFFECTED or justification not in NOT_AFFECTED_JUSTIFICATIONS:
        justification = ""
    if status == VexStatus.NOT_AFFECTED and not justification:
        # OpenVEX requires a justification (or impact statement) for not_affected.
        logger.info("AI returned not_affected without a valid justification")

    impact = str(data.get("impact_statement") or "").strip() or FALLBACK_IMPACT
    return AIJustification(status=status, justification=justification, impact_statement=impact)


async def justify(
    vuln_id: str,
    pkg_name: str,
    description: str,
    chain_text: str,
    settings: Settings,
) -> AIJustification:
    """Ask the configured AI provider for a VEX status; bounded by ai_timeout_seconds."""
    prompt = build_prompt(vuln_id, pkg_name, description, chain_text)
    try:
        data = await asyncio.wait_for(
            complete_json(prompt, SYSTEM_PROMPT, settings),
            timeout=settings.ai_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("AI justification for %s timed out after %ss", vuln_id, settings.ai_timeout_seconds)
        return fallback_justification()
    except ProviderError as e:
        logger.warning("AI justification failed for %s: %s", vuln_id, e)
        return fallback_justification()
    return parse_justification(data)
