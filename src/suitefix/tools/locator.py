"""Map compiler diagnostics back to the generated test methods that contain them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from ..errors import RemovalError

# Generated suites declare their tests as public no-argument ``test*`` methods.
TEST_METHOD_RE = re.compile(r"public\s+void\s+(?P<name>test\w*)\s*\(\s*\)")
SOURCE_SUFFIX = ".java"


@dataclass(frozen=True, slots=True)
class MethodLocation:
    """Test method declaration found in a source file (1-based line)."""

    name: str
    line: int


def class_name_for_path(path: Path, root: Path) -> str:
    """Derive ``org.foo.BarTest`` from ``<root>/org/foo/BarTest.java``."""

    relative = path.resolve().relative_to(root.resolve())
    parts = list(relative.parts)
    if not parts or not parts[-1].endswith(SOURCE_SUFFIX):
        raise ValueError(f"Not a Java source file: {path}")
    parts[-1] = parts[-1][: -len(SOURCE_SUFFIX)]
    return ".".join(parts)


def path_for_class_name(class_name: str, root: Path) -> Path:
    """Inverse of :func:`class_name_for_path`."""

    return root.joinpath(*class_name.split(".")).with_suffix(SOURCE_SUFFIX)


def iter_test_methods(lines: Iterable[str]) -> Iterator[MethodLocation]:
    for index, text in enumerate(lines, start=1):
        match = TEST_METHOD_RE.search(text)
        if match:
            yield MethodLocation(name=match.group("name"), line=index)


def enclosing_test_method(lines: Iterable[str], line_number: int) -> MethodLocation | None:
    """Return the last test declaration at or before ``line_number``."""

    found: MethodLocation | None = None
    for location in iter_test_methods(lines):
        if location.line > line_number:
            break
        found = location
    return found


def locate_test_method(path: Path, line_number: int) -> MethodLocation | None:
    """Find the test method enclosing ``line_number`` of ``path``.

    ``None`` means the line precedes every test declaration (imports, class
    header, supertype), so the whole file is at fault.
    """

    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            return enclosing_test_method(handle, line_number)
    except OSError as error:
        raise RemovalError(
            f"Cannot read {path.name} to locate line {line_number}: {error}",
            details={"path": path.as_posix(), "line": line_number},
        ) from error


__all__ = [
    "MethodLocation",
    "SOURCE_SUFFIX",
    "TEST_METHOD_RE",
    "class_name_for_path",
    "enclosing_test_method",
    "iter_test_methods",
    "locate_test_method",
    "path_for_class_name",
]
