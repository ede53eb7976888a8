"""Tests for the Typer CLI."""

import json
import os
from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from conftest import GO_MOD, FakeScanner, FakeToolchain, make_finding

from autobump.cli.main import app
from autobump.errors import ScanError

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in list(os.environ):
        if name.startswith("AUTOBUMP_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("autobump.cli.main.console", Console(width=200))
    monkeypatch.setattr("autobump.cli.main.err_console", Console(stderr=True, width=200))


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    (root / "go.mod").write_text(GO_MOD)
    return root


def _gin():
    return make_finding("CVE-2023-29401", "github.com/gin-gonic/gin", "v1.9.0", "1.9.1", direct=True, score=8.1)


def _grpc():
    return make_finding("CVE-2024-45337", "google.golang.org/grpc", "v1.58.3", "", direct=True, score=9.1)


class TestScanCommand:
    def test_table(self, project):
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner([_gin()])):
            result = runner.invoke(app, ["scan", str(project)])
        assert result.exit_code == 0
        assert "CVE-2023-29401" in result.output

    def test_json(self, project):
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner([_gin()])):
            result = runner.invoke(app, ["scan", str(project), "--json", "--cvss-threshold", "9.0"])
        assert result.exit_code == 0
        assert '"cvss_threshold": 9.0' in result.output
        assert '"findings": []' in result.output

    def test_scan_failure_exit_code(self, project):
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner(ScanError("trivy missing"))):
            result = runner.invoke(app, ["scan", str(project)])
        assert result.exit_code == 1
        assert "trivy missing" in result.output

    def test_no_go_mod(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(app, ["scan", str(empty)])
        assert result.exit_code == 0
        assert "No go.mod files found" in result.output

    def test_missing_config(self, project):
        result = runner.invoke(app, ["scan", str(project), "--config", "missing.yaml"])
        assert result.exit_code == 1
        assert "config file not found" in result.output

    def test_invalid_config_value(self, project, tmp_path):
        config = tmp_path / "c.yaml"
        config.write_text("cvss-threshold: high\n")
        result = runner.invoke(app, ["scan", str(project), "--config", str(config)])
        assert result.exit_code == 1
        assert "cvss_threshold" in result.output


class TestUpdateCommand:
    def test_update_reports_outcomes(self, project):
        scanner = FakeScanner([_gin(), _grpc()], [_grpc()])
        toolchain = FakeToolchain()
        with patch("autobump.cli.main.TrivyScanner", return_value=scanner), \
                patch("autobump.cli.main.GoToolchain", return_value=toolchain):
            result = runner.invoke(app, ["update", str(project)])

        assert result.exit_code == 0
        assert toolchain.updates == [("github.com/gin-gonic/gin", "v1.9.1")]
        assert "CVE-2023-29401" in result.output
        assert "Unresolved" in result.output

    def test_unresolved_do_not_fail_the_run(self, project):
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner([_grpc()])), \
                patch("autobump.cli.main.GoToolchain", return_value=FakeToolchain()):
            result = runner.invoke(app, ["update", str(project), "--json"])
        assert result.exit_code == 0
        assert '"outcome": "skipped_no_fix"' in result.output

    def test_no_go_mod_is_not_an_error(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        toolchain = FakeToolchain()
        with patch("autobump.cli.main.GoToolchain", return_value=toolchain):
            result = runner.invoke(app, ["update", str(empty)])
        assert result.exit_code == 0
        assert "No go.mod files found" in result.output
        assert toolchain.updates == []

    def test_dry_run(self, project):
        toolchain = FakeToolchain()
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner([_gin()])), \
                patch("autobump.cli.main.GoToolchain", return_value=toolchain):
            result = runner.invoke(app, ["update", str(project), "--dry-run"])
        assert result.exit_code == 0
        assert toolchain.updates == []
        assert "Dry Run Summary" in result.output

    def test_generate_vex(self, project, tmp_path):
        vex_path = tmp_path / "out.vex.json"
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner([_grpc()])), \
                patch("autobump.cli.main.GoToolchain", return_value=FakeToolchain()):
            result = runner.invoke(app, [
                "update", str(project), "--generate-vex", "--vex-output", str(vex_path),
            ])
        assert result.exit_code == 0
        doc = json.loads(vex_path.read_text())
        assert doc["statements"][0]["vulnerability"] == "CVE-2024-45337"
        assert doc["statements"][0]["status"] == "under_investigation"

    def test_vex_write_failure_is_not_fatal(self, project, tmp_path):
        vex_path = tmp_path / "missing-dir" / "out.vex.json"
        with patch("autobump.cli.main.TrivyScanner", return_value=FakeScanner([_grpc()])), \
                patch("autobump.cli.main.GoToolchain", return_value=FakeToolchain()):
            result = runner.invoke(app, [
                "update", str(project), "--generate-vex", "--vex-output", str(vex_path),
            ])
        assert result.exit_code == 0
        assert not vex_path.exists()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "autobump" in result.output
