"""Version policy for Go module versions.

Go module versions are semver strings with a mandatory ``v`` prefix
(``v1.2.3``, ``v0.0.0-20210101000000-abcdef123456``, ``v2.0.0+incompatible``).
Scanners frequently report them without the prefix.
"""

from __future__ import annotations

import re

LATEST = "latest"
VERSION_MARKER = "v"

_LEADING_INT = re.compile(r"\d+")
_MAJOR_SUFFIX = re.compile(r"^v(\d+)$")


def is_special(version: str) -> bool:
    """True for versions that never take part in version comparisons."""
    return version in ("", LATEST)


def normalize_version(version: str) -> str:
    """Add the ``v`` prefix to bare semver strings ("1.2.3" -> "v1.2.3").

    "latest", "" and already-prefixed or non-numeric versions are returned unchanged.
    """
    if is_special(version):
        return version
    if version[0].isdigit():
        return VERSION_MARKER + version
    return version


def _strip_marker(version: str) -> str:
    if version and not version[0].isdigit():
        return version[1:]
    return version


def extract_major(version: str) -> int:
    """Leading numeric component of a version, 0 when there is none."""
    match = _LEADING_INT.match(_strip_marker(version))
    return int(match.group()) if match else 0


def is_major_bump(old: str, new: str) -> bool:
    """True iff ``new`` has a strictly greater major component than ``old``.

    Callers must special-case "latest" and "" before asking.
    """
    return extract_major(new) > extract_major(old)


def _split(version: str) -> tuple[list[int], str]:
    """Split into numeric core and pre-release; build metadata is dropped."""
    core = _strip_marker(version).split("+", 1)[0]
    core, _, prerelease = core.partition("-")
    numbers = []
    for part in core.split("."):
        match = _LEADING_INT.match(part)
        numbers.append(int(match.group()) if match else 0)
    while len(numbers) < 3:
        numbers.append(0)
    return numbers, prerelease


def _compare_prerelease(a: str, b: str) -> int:
    # A release sorts after any of its pre-releases.
    if a == b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    for x, y in zip(a.split("."), b.split(".")):
        if x == y:
            continue
        if x.isdigit() and y.isdigit():
            return -1 if int(x) < int(y) else 1
        if x.isdigit():
            return -1
        if y.isdigit():
            return 1
        return -1 if x < y else 1
    return (len(a.split(".")) > len(b.split("."))) - (len(a.split(".")) < len(b.split(".")))


def compare_versions(a: str, b: str) -> int:
    """Semver ordering of two versions: -1, 0 or 1."""
    a_core, a_pre = _split(a)
    b_core, b_pre = _split(b)
    if a_core != b_core:
        return -1 if a_core < b_core else 1
    return _compare_prerelease(a_pre, b_pre)


def strip_major_suffix(path: str) -> str:
    """Base module path without a ``/vN`` (N >= 2) suffix.

    ``github.com/foo/bar/v3`` -> ``github.com/foo/bar``. ``/v1`` and ``/v0``
    are not major-version suffixes in Go and are left alone.
    """
    head, sep, last = path.rpartition("/")
    if not sep:
        return path
    match = _MAJOR_SUFFIX.match(last)
    if match and int(match.group(1)) >= 2:
        return head
    return path
