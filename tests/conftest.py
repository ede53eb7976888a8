"""Shared test configuration and fixtures."""

from pathlib import Path

import pytest

from autobump.config import Settings
from autobump.errors import ToolchainError
from autobump.gomod.toolchain import parse_mod_graph
from autobump.models import CVSS, Finding, ScanResult

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


def make_finding(
    vuln_id: str = "CVE-2024-0001",
    pkg: str = "golang.org/x/net",
    installed: str = "v0.17.0",
    fixed: str = "0.23.0",
    direct: bool = False,
    score: float = 7.5,
) -> Finding:
    return Finding(
        vulnerability_id=vuln_id,
        pkg_name=pkg,
        installed_version=installed,
        fixed_version=fixed,
        direct=direct,
        cvss={"nvd": CVSS(v3_score=score)},
    )


class FakeScanner:
    """Returns queued results in order; the last one repeats once the queue is drained."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[str] = []

    async def scan(self, go_mod_path):
        self.calls.append(str(go_mod_path))
        if len(self.results) > 1:
            result = self.results.pop(0)
        else:
            result = self.results[0]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, list):
            return ScanResult(target=str(go_mod_path), vulnerabilities=result)
        return result


class FakeToolchain:
    """In-memory Go toolchain recording every update and tidy."""

    def __init__(self, why=None, graph_text: str = "", fail_updates=None, why_error: bool = False):
        self.why_lines = why or []
        self.why_error = why_error
        self.edges = parse_mod_graph(graph_text)
        self.fail_updates = set(fail_updates or [])
        self.updates: list[tuple[str, str]] = []
        self.tidies = 0
        self.why_calls: list[str] = []

    async def why(self, module_dir, package):
        self.why_calls.append(package)
        if self.why_error:
            raise ToolchainError(["go", "mod", "why", "-m", package], 1, "go: cannot find module")
        return list(self.why_lines)

    async def graph(self, module_dir):
        return list(self.edges)

    async def update(self, module_dir, package, version):
        self.updates.append((package, version))
        if package in self.fail_updates:
            raise ToolchainError(["go", "get", f"{package}@{version}"], 1, "go: no matching versions")

    async def tidy(self, module_dir):
        self.tidies += 1


GO_MOD = """module example.com/service

go 1.22

require (
	github.com/gin-gonic/gin v1.9.0
	github.com/aws/aws-sdk-go-v2 v1.24.0
	google.golang.org/grpc v1.58.3
)

require (
	golang.org/x/net v0.17.0 // indirect
	golang.org/x/text v0.13.0 // indirect
	github.com/aws/aws-sdk-go-v2/service/s3 v1.47.0 // indirect
)
"""


@pytest.fixture
def go_mod(tmp_path):
    path = tmp_path / "go.mod"
    path.write_text(GO_MOD)
    return path


@pytest.fixture
def settings(tmp_path):
    return Settings(vex_output=str(tmp_path / "vex.json"))
