"""Tests for chain tracing and candidate ordering."""

import pytest

from conftest import FakeToolchain

from autobump.gomod.graph import DependencyGraph
from autobump.gomod.modfile import ModFile
from autobump.updater.chain import (
    CandidateChain,
    CandidateSource,
    ChainTracer,
    namespace_of,
    proximate_step,
)

GO_MOD = """module example.com/app

require (
	github.com/aws/aws-sdk-go-v2 v1.24.0
	github.com/aws/aws-sdk-go-v2/config v1.26.0
	github.com/gin-gonic/gin v1.9.0
)

require (
	github.com/aws/aws-sdk-go-v2/service/s3 v1.47.0 // indirect
	github.com/aws/smithy-go v1.19.0 // indirect
	golang.org/x/net v0.17.0 // indirect
	golang.org/x/text v0.13.0 // indirect
)
"""


@pytest.fixture
def graph():
    return DependencyGraph(ModFile.parse(GO_MOD))


class TestHelpers:
    def test_namespace_of(self):
        assert namespace_of("github.com/aws/aws-sdk-go-v2/service/s3") == "github.com/aws"
        assert namespace_of("golang.org/x/net") == "golang.org/x"

    def test_single_segment_has_no_namespace(self):
        assert namespace_of("gopkg") is None

    def test_proximate_step(self):
        assert proximate_step(["example.com/app", "github.com/gin-gonic/gin", "golang.org/x/net"]) == [
            "github.com/gin-gonic/gin"
        ]
        assert proximate_step(["example.com/app"]) == []
        assert proximate_step([]) == []


class TestCandidateChain:
    def test_trace_first_then_direct_namespace(self, graph):
        chain = CandidateChain(
            "github.com/aws/smithy-go", graph, ["github.com/aws/aws-sdk-go-v2/config/internal/ini"],
        )
        candidates = list(chain)
        assert [c.module for c in candidates] == [
            "github.com/aws/aws-sdk-go-v2/config",
            "github.com/aws/aws-sdk-go-v2",
        ]
        assert candidates[0].source == CandidateSource.TRACE
        assert candidates[0].raw_path == "github.com/aws/aws-sdk-go-v2/config/internal/ini"
        assert candidates[1].source == CandidateSource.NAMESPACE

    def test_namespace_falls_back_to_indirect(self, graph):
        chain = CandidateChain("golang.org/x/net", graph, [])
        assert [c.module for c in chain] == ["golang.org/x/text"]

    def test_trace_duplicate_of_namespace_is_dropped(self, graph):
        chain = CandidateChain("github.com/aws/smithy-go", graph, ["github.com/aws/aws-sdk-go-v2"])
        candidates = list(chain)
        assert [c.module for c in candidates] == [
            "github.com/aws/aws-sdk-go-v2",
            "github.com/aws/aws-sdk-go-v2/config",
        ]
        assert [c.source for c in candidates] == [CandidateSource.TRACE, CandidateSource.NAMESPACE]

    def test_unknown_trace_path_kept_raw(self, graph):
        chain = CandidateChain("golang.org/x/net", graph, ["example.org/unlisted/pkg"])
        assert [c.module for c in chain][0] == "example.org/unlisted/pkg"

    def test_package_and_root_excluded(self, graph):
        chain = CandidateChain("golang.org/x/net", graph, ["example.com/app"])
        assert "example.com/app" not in [c.module for c in chain]
        assert "golang.org/x/net" not in [c.module for c in chain]

    def test_restartable(self, graph):
        chain = CandidateChain("github.com/aws/smithy-go", graph, [])
        assert list(chain) == list(chain)

    def test_lazy(self, graph):
        chain = CandidateChain("github.com/aws/smithy-go", graph, ["github.com/gin-gonic/gin"])
        first = next(iter(chain))
        assert first.module == "github.com/gin-gonic/gin"

    def test_single_segment_package_has_no_namespace_candidates(self, graph):
        assert list(CandidateChain("gopkg", graph, [])) == []


class TestChainTracer:
    @pytest.mark.asyncio
    async def test_trace_uses_proximate_step(self, graph):
        toolchain = FakeToolchain(why=["example.com/app", "github.com/gin-gonic/gin", "golang.org/x/net"])
        chain = await ChainTracer(toolchain).trace("/src", "golang.org/x/net", graph)
        candidates = list(chain)
        assert candidates[0].module == "github.com/gin-gonic/gin"
        assert candidates[0].source == CandidateSource.TRACE
        assert toolchain.why_calls == ["golang.org/x/net"]

    @pytest.mark.asyncio
    async def test_oracle_failure_means_no_trace(self, graph):
        toolchain = FakeToolchain(why_error=True)
        tracer = ChainTracer(toolchain)
        assert await tracer.explicit_trace("/src", "golang.org/x/net") == []
        chain = await tracer.trace("/src", "golang.org/x/net", graph)
        assert [c.source for c in chain] == [CandidateSource.NAMESPACE]
