"""Read-only go.mod parser."""

from __future__ import annotations

import re
from pathlib import Path

from autobump.errors import AutobumpError
from autobump.models import Dependency

_INDIRECT_COMMENT = re.compile(r"//\s*indirect\b")


class ModFileError(AutobumpError):
    """Raised when a go.mod file cannot be read or parsed."""


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"`":
        return token[1:-1]
    return token


def _parse_require_line(line: str, source: str, lineno: int) -> Dependency:
    code, _, comment = line.partition("//")
    fields = code.split()
    if len(fields) != 2:
        raise ModFileError(f"{source}:{lineno}: malformed require line: {line.strip()!r}")
    indirect = bool(_INDIRECT_COMMENT.search("//" + comment)) if comment else False
    return Dependency(path=_unquote(fields[0]), version=_unquote(fields[1]), direct=not indirect)


class ModFile:
    """Module path and requirements declared in one go.mod."""

    def __init__(self, path: str, module_path: str, requires: list[Dependency]) -> None:
        self.path = path
        self.module_path = module_path
        self.requires = requires

    @classmethod
    def parse(cls, text: str, source: str = "go.mod") -> "ModFile":
        module_path = ""
        requires: list[Dependency] = []
        block: str | None = None

        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("//"):
                continue

            if block is not None:
                if line == ")":
                    block = None
                elif block == "require":
                    requires.append(_parse_require_line(line, source, lineno))
                continue

            keyword, _, rest = line.partition(" ")
            rest = rest.strip()
            if keyword == "module":
                module_path = _unquote(rest.split("//")[0].strip())
            elif rest.startswith("("):
                block = keyword
            elif keyword == "require":
                requires.append(_parse_require_line(rest, source, lineno))

        if block is not None:
            raise ModFileError(f"{source}: unterminated {block} block")

        return cls(path=source, module_path=module_path, requires=requires)

    @classmethod
    def load(cls, go_mod_path: str | Path) -> "ModFile":
        try:
            text = Path(go_mod_path).read_text()
        except OSError as e:
            raise ModFileError(f"failed to read {go_mod_path}: {e}") from e
        return cls.parse(text, source=str(go_mod_path))

    @property
    def direct(self) -> list[Dependency]:
        return [d for d in self.requires if d.direct]

    @property
    def indirect(self) -> list[Dependency]:
        return [d for d in self.requires if not d.direct]

    def get(self, module_path: str) -> Dependency | None:
        for dep in self.requires:
            if dep.path == module_path:
                return dep
        return None

    def get_version(self, module_path: str) -> str:
        dep = self.get(module_path)
        return dep.version if dep else ""

    def is_direct(self, module_path: str) -> bool:
        dep = self.get(module_path)
        return dep is not None and dep.direct


def module_dir(go_mod_path: str | Path) -> Path:
    """Directory containing the go.mod file."""
    return Path(go_mod_path).parent
