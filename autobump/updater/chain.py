"""Chain tracing: which declared dependencies pull a vulnerable module in.

Two sources, in order of preference:

1. The explicit trace from `go mod why -m`: the first entry after the main
   module is the proximate dependency that introduces the chain.
2. A namespace fallback: modules under the same ``host/org`` prefix, direct
   ones first, indirect ones only when no direct one matches. Sibling modules
   of one organization are usually released and fixed together.

Raw paths from either source are resolved to their owning declared module and
de-duplicated, trace candidates first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Iterator, Protocol

from autobump.errors import ToolchainError
from autobump.gomod.graph import DependencyGraph

logger = logging.getLogger(__name__)


class ChainOracle(Protocol):
    def why(self, module_dir: str | Path, package: str) -> Awaitable[list[str]]: ...


class CandidateSource(str, Enum):
    TRACE = "trace"
    NAMESPACE = "namespace"


@dataclass(frozen=True)
class ChainCandidate:
    module: str
    source: CandidateSource
    raw_path: str = ""


def namespace_of(path: str) -> str | None:
    """First two path segments (``host/org``), None for single-segment paths."""
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return None
    return "/".join(parts[:2])


def proximate_step(chain: list[str]) -> list[str]:
    """The entry right after the main module, if the chain has one."""
    return chain[1:2]


class CandidateChain:
    """Ordered, de-duplicated candidates for one vulnerable module.

    Iterating is lazy (namespace matching only runs once the trace candidates
    are exhausted) and restartable (each iteration starts over).
    """

    def __init__(self, package: str, graph: DependencyGraph, trace_paths: list[str]) -> None:
        self.package = package
        self.graph = graph
        self.trace_paths = list(trace_paths)

    def _resolve(self, raw: str) -> str | None:
        module = self.graph.owning_module(raw) or raw
        if module in (self.package, self.graph.module_path):
            return None
        return module

    def _namespace_paths(self) -> Iterator[str]:
        namespace = namespace_of(self.package)
        if not namespace:
            return

        def siblings(deps):
            return [
                d.path for d in deps
                if d.path != self.package and namespace_of(d.path) == namespace
            ]

        direct = siblings(self.graph.direct)
        if direct:
            yield from direct
            return
        yield from siblings(self.graph.indirect)

    def __iter__(self) -> Iterator[ChainCandidate]:
        seen: set[str] = set()

        for raw in self.trace_paths:
            module = self._resolve(raw)
            if module and module not in seen:
                seen.add(module)
                yield ChainCandidate(module=module, source=CandidateSource.TRACE, raw_path=raw)

        for raw in self._namespace_paths():
            module = self._resolve(raw)
            if module and module not in seen:
                seen.add(module)
                yield ChainCandidate(module=module, source=CandidateSource.NAMESPACE, raw_path=raw)


class ChainTracer:
    """Builds candidate chains using the `why` oracle and the dependency graph."""

    def __init__(self, oracle: ChainOracle) -> None:
        self.oracle = oracle

    async def explicit_trace(self, module_dir: str | Path, package: str) -> list[str]:
        """Proximate chain step from the oracle; empty when the oracle fails or has no chain."""
        try:
            chain = await self.oracle.why(module_dir, package)
        except ToolchainError as e:
            logger.info("dependency trace for %s unavailable: %s", package, e)
            return []
        if not chain:
            logger.info("no dependency chain reported for %s", package)
        return proximate_step(chain)

    async def trace(self, module_dir: str | Path, package: str, graph: DependencyGraph) -> CandidateChain:
        trace_paths = await self.explicit_trace(module_dir, package)
        return CandidateChain(package, graph, trace_paths)
