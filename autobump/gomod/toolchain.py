"""Go toolchain collaborator: `go mod why`, `go mod graph`, `go get`, `go mod tidy`."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from autobump.errors import ToolchainError
from autobump.gomod.versions import normalize_version
from autobump.models import GraphEdge, ModuleVersion

logger = logging.getLogger(__name__)


async def run_command(
    args: list[str],
    cwd: str | Path | None = None,
    timeout_seconds: float = 600,
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr).

    Raises ToolchainError only when the command cannot be started or times out;
    a non-zero exit status is returned to the caller.
    """
    logger.debug("running %s in %s", " ".join(args), cwd or ".")
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise ToolchainError(args, None, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ToolchainError(args, None, f"timed out after {timeout_seconds}s")

    return process.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace")


def parse_module_version(token: str) -> ModuleVersion:
    """Parse ``module@version`` (or a bare ``module``)."""
    path, sep, version = token.rpartition("@")
    if not sep:
        return ModuleVersion(path=token)
    return ModuleVersion(path=path, version=version)


def parse_mod_graph(output: str) -> list[GraphEdge]:
    """Parse `go mod graph` output into edges; malformed lines are skipped."""
    edges: list[GraphEdge] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != 2:
            continue
        edges.append(GraphEdge(
            from_module=parse_module_version(parts[0]),
            to_module=parse_module_version(parts[1]),
        ))
    return edges


def parse_mod_why(output: str) -> list[str]:
    """Parse `go mod why -m` output into the chain of paths.

    The result starts with the main module and ends with the queried path.
    Comment lines (``# path``) are dropped. When Go reports that the main
    module does not need the path (a parenthesised line), the chain is empty.
    """
    chain: list[str] = []
    for raw in output.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("("):
            return []
        chain.append(line)
    return chain


class GoToolchain:
    """Runs the go command inside a module directory.

    Implements the chain oracle (`why`), the graph oracle (`graph`) and the
    manifest mutator (`update`, `tidy`) used by the resolver.
    """

    def __init__(self, go_command: str = "go", timeout_seconds: float = 600) -> None:
        self.go_command = go_command
        self.timeout_seconds = timeout_seconds

    async def _go(self, module_dir: str | Path, *args: str) -> str:
        cmd = [self.go_command, *args]
        returncode, stdout, stderr = await run_command(cmd, cwd=module_dir, timeout_seconds=self.timeout_seconds)
        if returncode != 0:
            raise ToolchainError(cmd, returncode, stderr)
        return stdout

    async def why_raw(self, module_dir: str | Path, package: str) -> str:
        return await self._go(module_dir, "mod", "why", "-m", package)

    async def why(self, module_dir: str | Path, package: str) -> list[str]:
        return parse_mod_why(await self.why_raw(module_dir, package))

    async def graph(self, module_dir: str | Path) -> list[GraphEdge]:
        return parse_mod_graph(await self._go(module_dir, "mod", "graph"))

    async def update(self, module_dir: str | Path, package: str, version: str) -> None:
        target = f"{package}@{normalize_version(version)}"
        logger.debug("go get %s", target)
        await self._go(module_dir, "get", target)

    async def tidy(self, module_dir: str | Path) -> None:
        await self._go(module_dir, "mod", "tidy")
