"""Exception types shared across autobump."""

from __future__ import annotations


class AutobumpError(Exception):
    """Base class for all autobump errors."""


class ConfigError(AutobumpError):
    """Raised when a configuration file cannot be read or parsed."""


class ScanError(AutobumpError):
    """Raised when the scanner could not run at all for a manifest."""


class ToolchainError(AutobumpError):
    """Raised when an external toolchain command fails."""

    def __init__(self, command: list[str], returncode: int | None, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f"exit code {returncode}" if returncode is not None else "could not be started"
        message = f"{' '.join(command)} failed ({detail})"
        if stderr:
            message += f": {stderr.strip()[:500]}"
        super().__init__(message)


class MajorVersionBlocked(AutobumpError):
    """Raised when an update requires a major version bump that policy forbids."""

    def __init__(self, module: str, current: str, target: str) -> None:
        self.module = module
        self.current = current
        self.target = target
        super().__init__(
            f"major version bump required for {module} ({current} -> {target}), "
            "use --allow-major to permit"
        )