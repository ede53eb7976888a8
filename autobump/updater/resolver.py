"""Remediation resolver: decides how to fix one finding and verifies the fix.

Per finding:

- no fixed version                  -> skipped_no_fix
- direct dependency                 -> update to the fixed version
                                       (major bumps need allow_major)
- indirect dependency               -> update it in place, rescan; if the
                                       update fails or the finding survives,
                                       trace the chain and update candidates
                                       one at a time until a rescan is clean

Every mutation is followed by `go mod tidy` unless skip_tidy is set. Only a
rescan decides whether a finding is gone.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Protocol

from autobump.config import Settings
from autobump.errors import MajorVersionBlocked, ScanError, ToolchainError
from autobump.gomod.graph import DependencyGraph, GraphOracle
from autobump.gomod.modfile import ModFileError, module_dir
from autobump.gomod.versions import (
    LATEST,
    is_major_bump,
    is_special,
    normalize_version,
)
from autobump.models import Finding, RemediationOutcome, RemediationResult, ScanResult
from autobump.trivy.filter import contains_finding
from autobump.updater.chain import CandidateSource, ChainCandidate, ChainOracle, ChainTracer

logger = logging.getLogger(__name__)


class Scanner(Protocol):
    def scan(self, go_mod_path: str | Path) -> Awaitable[ScanResult]: ...


class Toolchain(ChainOracle, GraphOracle, Protocol):
    def update(self, module_dir: str | Path, package: str, version: str) -> Awaitable[None]: ...

    def tidy(self, module_dir: str | Path) -> Awaitable[None]: ...


class Resolver:
    """Drives one finding at a time through the update strategies.

    Not safe to run concurrently for the same go.mod.
    """

    def __init__(
        self,
        settings: Settings,
        scanner: Scanner,
        toolchain: Toolchain,
        tracer: ChainTracer | None = None,
    ) -> None:
        self.allow_major = settings.allow_major
        self.skip_tidy = settings.skip_tidy
        self.scanner = scanner
        self.toolchain = toolchain
        self.tracer = tracer or ChainTracer(toolchain)

    async def resolve(self, go_mod_path: str | Path, finding: Finding) -> RemediationResult:
        if not finding.fixed_version:
            logger.info("%s in %s: no fix available", finding.vulnerability_id, finding.pkg_name)
            return RemediationResult(
                finding=finding,
                outcome=RemediationOutcome.SKIPPED_NO_FIX,
                reason="no fixed version available",
            )

        try:
            graph = await DependencyGraph.load(go_mod_path)
        except ModFileError as e:
            return RemediationResult(finding=finding, outcome=RemediationOutcome.FAILED, reason=str(e))

        # go.mod wins over the scanner's directness flag when it declares the module.
        direct = graph.is_direct(finding.pkg_name) if graph.declares(finding.pkg_name) else finding.direct
        if direct != finding.direct:
            logger.debug(
                "%s is %s in go.mod but reported %s by the scanner",
                finding.pkg_name,
                "direct" if direct else "indirect",
                "direct" if finding.direct else "indirect",
            )

        if direct:
            return await self._update_direct(go_mod_path, finding, graph)
        return await self._update_indirect(go_mod_path, finding)

    # --- helpers ---

    def _check_major(self, module: str, current: str, target: str) -> None:
        if is_special(current) or is_special(target):
            return
        if is_major_bump(current, target):
            if not self.allow_major:
                raise MajorVersionBlocked(module, current, target)
            logger.warning("major version bump for %s: %s -> %s", module, current, target)

    async def _apply(self, go_mod_path: str | Path, module: str, version: str) -> None:
        """Update ``module`` and tidy; raises ToolchainError on either failure."""
        directory = module_dir(go_mod_path)
        await self.toolchain.update(directory, module, version)
        if not self.skip_tidy:
            await self.toolchain.tidy(directory)

    async def _still_present(self, go_mod_path: str | Path, finding: Finding) -> bool:
        """Rescan and look for the same vulnerability ID + package."""
        try:
            result = await self.scanner.scan(go_mod_path)
        except ScanError as e:
            logger.warning("verification scan failed for %s: %s", go_mod_path, e)
            return True
        return contains_finding(result.vulnerabilities, finding)

    # --- strategies ---

    async def _update_direct(self, go_mod_path: str | Path, finding: Finding, graph: DependencyGraph) -> RemediationResult:
        target = normalize_version(finding.fixed_version)
        try:
            self._check_major(finding.pkg_name, finding.installed_version, target)
        except MajorVersionBlocked as e:
            reason = str(e)
            variants = [d.path for d in graph.family(finding.pkg_name) if d.path != finding.pkg_name]
            if variants:
                reason += f"; already requires {', '.join(variants)}, remaining imports of {finding.pkg_name} need migrating"
            logger.info("%s in %s: %s", finding.vulnerability_id, finding.pkg_name, reason)
            return RemediationResult(
                finding=finding,
                outcome=RemediationOutcome.SKIPPED_MAJOR_VERSION_BLOCKED,
                reason=reason,
                target_version=target,
            )

        try:
            await self._apply(go_mod_path, finding.pkg_name, target)
        except ToolchainError as e:
            logger.info("failed to update %s: %s", finding.pkg_name, e)
            return RemediationResult(
                finding=finding,
                outcome=RemediationOutcome.FAILED,
                reason=f"failed to update {finding.pkg_name}: {e}",
                target_version=target,
            )

        return RemediationResult(
            finding=finding,
            outcome=RemediationOutcome.FIXED_DIRECT,
            updated_module=finding.pkg_name,
            target_version=target,
        )

    async def _update_indirect(self, go_mod_path: str | Path, finding: Finding) -> RemediationResult:
        target = normalize_version(finding.fixed_version)
        attempts: list[str] = []
        logger.info(
            "attempting to update indirect dependency %s@%s -> %s",
            finding.pkg_name, finding.installed_version, target,
        )

        try:
            self._check_major(finding.pkg_name, finding.installed_version, target)
            await self._apply(go_mod_path, finding.pkg_name, target)
        except (MajorVersionBlocked, ToolchainError) as e:
            attempts.append(f"{finding.pkg_name}@{target}: {e}")
            logger.info("direct update of %s failed, tracing dependency chain", finding.pkg_name)
        else:
            if not await self._still_present(go_mod_path, finding):
                return RemediationResult(
                    finding=finding,
                    outcome=RemediationOutcome.FIXED_DIRECT,
                    updated_module=finding.pkg_name,
                    target_version=target,
                    attempts=attempts,
                )
            attempts.append(f"{finding.pkg_name}@{target}: still reported after update")
            logger.info("%s still present after update, tracing dependency chain", finding.vulnerability_id)

        return await self._trace_chain(go_mod_path, finding, attempts)

    async def _trace_chain(self, go_mod_path: str | Path, finding: Finding, attempts: list[str]) -> RemediationResult:
        directory = module_dir(go_mod_path)
        try:
            graph = await DependencyGraph.load(go_mod_path, self.toolchain)
        except ModFileError as e:
            return RemediationResult(
                finding=finding, outcome=RemediationOutcome.FAILED, reason=str(e), attempts=attempts,
            )

        candidates = await self.tracer.trace(directory, finding.pkg_name, graph)
        tried = 0

        for candidate in candidates:
            tried += 1
            logger.info(
                "indirect dependency %s is pulled in by %s (%s)",
                finding.pkg_name, candidate.module, candidate.source.value,
            )
            result = await self._try_candidate(go_mod_path, finding, candidate, graph, attempts)
            if result is not None:
                return result
            # The manifest may have changed; later candidates need current versions.
            graph = await DependencyGraph.load(go_mod_path, self.toolchain)

        if tried == 0:
            reason = f"no direct dependency could be identified that imports {finding.pkg_name}"
        else:
            reason = f"none of {tried} candidate update(s) cleared {finding.vulnerability_id}"
        logger.info("%s in %s: %s", finding.vulnerability_id, finding.pkg_name, reason)
        return RemediationResult(
            finding=finding, outcome=RemediationOutcome.FAILED, reason=reason, attempts=attempts,
        )

    async def _try_candidate(
        self,
        go_mod_path: str | Path,
        finding: Finding,
        candidate: ChainCandidate,
        graph: DependencyGraph,
        attempts: list[str],
    ) -> RemediationResult | None:
        """Update one candidate; a result when it cleared the finding, else None."""
        module = candidate.module
        current = graph.version(module)
        target = graph.fix_bearing_version(module, finding.pkg_name, normalize_version(finding.fixed_version))
        used_latest = target is None
        if target is None:
            target = LATEST
            logger.warning(
                "no version of %s known to require %s@%s; falling back to unconstrained latest",
                module, finding.pkg_name, finding.fixed_version,
            )

        try:
            self._check_major(module, current, target)
            logger.info("updating %s %s -> %s", module, current or "(undeclared)", target)
            await self._apply(go_mod_path, module, target)
        except (MajorVersionBlocked, ToolchainError) as e:
            attempts.append(f"{module}@{target}: {e}")
            logger.info("candidate %s failed: %s", module, e)
            return None

        if await self._still_present(go_mod_path, finding):
            attempts.append(f"{module}@{target}: {finding.vulnerability_id} still reported")
            return None

        outcome = (
            RemediationOutcome.FIXED_VIA_CHAIN
            if candidate.source == CandidateSource.TRACE
            else RemediationOutcome.FIXED_VIA_NAMESPACE_FALLBACK
        )
        reason = "updated to unconstrained latest" if used_latest else ""
        return RemediationResult(
            finding=finding,
            outcome=outcome,
            reason=reason,
            updated_module=module,
            target_version=target,
            used_latest_fallback=used_latest,
            attempts=attempts,
        )
