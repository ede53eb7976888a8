"""Collects findings the resolver could not fix, for VEX generation."""

from __future__ import annotations

from autobump.models import RemediationOutcome, RemediationResult, UnresolvedFinding

REASON_TEXT = {
    RemediationOutcome.SKIPPED_NO_FIX: "No fix available",
    RemediationOutcome.SKIPPED_MAJOR_VERSION_BLOCKED: "Fix requires a major version bump",
    RemediationOutcome.FAILED: "Automated update failed",
}


class UnresolvedReporter:
    """Accumulates unresolved findings during a run and hands them over once."""

    def __init__(self) -> None:
        self._entries: list[UnresolvedFinding] = []
        self._released = False

    def record(self, result: RemediationResult, manifest: str = "") -> bool:
        """Record ``result`` if it is not a fix. Returns True when recorded."""
        if self._released:
            raise RuntimeError("unresolved findings were already released")
        if result.outcome.is_fixed:
            return False
        self._entries.append(UnresolvedFinding(
            finding=result.finding,
            outcome=result.outcome,
            reason=result.reason or REASON_TEXT[result.outcome],
            manifest=manifest,
        ))
        return True

    def __len__(self) -> int:
        return len(self._entries)

    def release(self) -> tuple[UnresolvedFinding, ...]:
        """Return the unresolved set; the reporter accepts nothing afterwards."""
        if self._released:
            raise RuntimeError("unresolved findings were already released")
        self._released = True
        entries = tuple(self._entries)
        self._entries = []
        return entries
