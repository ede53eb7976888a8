"""Read-only view of a module's declared requirements and resolved graph."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Protocol

from autobump.errors import ToolchainError
from autobump.gomod.modfile import ModFile, module_dir
from autobump.gomod.versions import compare_versions, is_special, strip_major_suffix
from autobump.models import Dependency, GraphEdge

logger = logging.getLogger(__name__)


class GraphOracle(Protocol):
    def graph(self, module_dir: str | Path) -> Awaitable[list[GraphEdge]]: ...


class DependencyGraph:
    """Direct/indirect requirements of one go.mod plus its `go mod graph` edges.

    Major-version variants (``example.com/lib`` and ``example.com/lib/v2``)
    are distinct modules for exact lookups and share a family for grouping.
    """

    def __init__(self, modfile: ModFile, edges: list[GraphEdge] | None = None) -> None:
        self.modfile = modfile
        self.edges: list[GraphEdge] = list(edges or [])

    @classmethod
    async def load(cls, go_mod_path: str | Path, graph_oracle: GraphOracle | None = None) -> "DependencyGraph":
        """Parse go.mod and, when an oracle is given, the resolved graph.

        A failing graph oracle leaves the graph without edges.
        """
        modfile = ModFile.load(go_mod_path)
        edges: list[GraphEdge] = []
        if graph_oracle is not None:
            try:
                edges = await graph_oracle.graph(module_dir(go_mod_path))
            except ToolchainError as e:
                logger.warning("could not load module graph for %s: %s", go_mod_path, e)
        return cls(modfile, edges)

    @property
    def module_path(self) -> str:
        return self.modfile.module_path

    @property
    def direct(self) -> list[Dependency]:
        return self.modfile.direct

    @property
    def indirect(self) -> list[Dependency]:
        return self.modfile.indirect

    def declares(self, path: str) -> bool:
        return self.modfile.get(path) is not None

    def is_direct(self, path: str) -> bool:
        return self.modfile.is_direct(path)

    def version(self, path: str) -> str:
        """Declared version of an exact module path, "" when not required."""
        return self.modfile.get_version(path)

    def family(self, path: str) -> list[Dependency]:
        """Declared requirements sharing the base module path of ``path``."""
        base = strip_major_suffix(path)
        return [d for d in self.modfile.requires if strip_major_suffix(d.path) == base]

    def owning_module(self, import_path: str) -> str | None:
        """Longest declared module path that is ``import_path`` or a parent of it."""
        best: str | None = None
        for dep in self.modfile.requires:
            if import_path == dep.path or import_path.startswith(dep.path + "/"):
                if best is None or len(dep.path) > len(best):
                    best = dep.path
        return best

    def fix_bearing_version(self, module: str, package: str, fixed_version: str) -> str | None:
        """Lowest graph version of ``module`` above its declared version that
        requires ``package`` at ``fixed_version`` or later."""
        if is_special(fixed_version):
            return None
        current = self.version(module)
        best: str | None = None
        for edge in self.edges:
            if edge.from_module.path != module or edge.to_module.path != package:
                continue
            candidate = edge.from_module.version
            if not candidate or is_special(candidate):
                continue
            if current and compare_versions(candidate, current) <= 0:
                continue
            if compare_versions(edge.to_module.version, fixed_version) < 0:
                continue
            if best is None or compare_versions(candidate, best) < 0:
                best = candidate
        return best

