"""Tests for the unresolved finding reporter."""

import pytest

from conftest import make_finding

from autobump.models import RemediationOutcome, RemediationResult
from autobump.updater.report import UnresolvedReporter


def _result(outcome, reason="", vuln_id="CVE-1"):
    return RemediationResult(finding=make_finding(vuln_id), outcome=outcome, reason=reason)


class TestUnresolvedReporter:
    def test_fixed_outcomes_are_not_recorded(self):
        reporter = UnresolvedReporter()
        for outcome in (
            RemediationOutcome.FIXED_DIRECT,
            RemediationOutcome.FIXED_VIA_CHAIN,
            RemediationOutcome.FIXED_VIA_NAMESPACE_FALLBACK,
        ):
            assert reporter.record(_result(outcome)) is False
        assert len(reporter) == 0

    def test_unfixed_outcomes_are_recorded_in_order(self):
        reporter = UnresolvedReporter()
        reporter.record(_result(RemediationOutcome.SKIPPED_NO_FIX, vuln_id="CVE-1"), "a/go.mod")
        reporter.record(_result(RemediationOutcome.FAILED, "go get failed", vuln_id="CVE-2"), "b/go.mod")
        reporter.record(_result(RemediationOutcome.SKIPPED_MAJOR_VERSION_BLOCKED, vuln_id="CVE-3"))

        entries = reporter.release()

        assert [e.finding.vulnerability_id for e in entries] == ["CVE-1", "CVE-2", "CVE-3"]
        assert entries[0].manifest == "a/go.mod"
        assert entries[1].reason == "go get failed"

    def test_default_reason(self):
        reporter = UnresolvedReporter()
        reporter.record(_result(RemediationOutcome.SKIPPED_NO_FIX))
        assert reporter.release()[0].reason == "No fix available"

    def test_release_once(self):
        reporter = UnresolvedReporter()
        reporter.release()
        with pytest.raises(RuntimeError):
            reporter.release()

    def test_no_records_after_release(self):
        reporter = UnresolvedReporter()
        reporter.release()
        with pytest.raises(RuntimeError):
            reporter.record(_result(RemediationOutcome.FAILED))
