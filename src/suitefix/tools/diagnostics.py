"""Parsers turning raw compiler and runner output into structured diagnostics.

Parsers are plain functions looked up by name so that other build tools can be
supported through configuration without touching the repair engine.
"""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, Iterable, List

from ..errors import ConfigError
from ..structured import MARKER, SEPARATOR, CompileDiagnostic, RunDiagnostic, TestId

CompileParser = Callable[[str, Path], List[CompileDiagnostic]]
RunParser = Callable[[str], RunDiagnostic]

DEFAULT_COMPILER_TAG = "javac"

# e.g. "\tat org.foo.BarTest.test09(BarTest.java:42)"
_FRAME_RE = re.compile(
    r"^\s*at\s+(?P<class>[\w$.]+)\.(?P<method>[\w$<>]+)\((?P<file>[\w$]+\.java):(?P<line>\d+)\)"
)


def compile_error_pattern(tool_tag: str = DEFAULT_COMPILER_TAG) -> re.Pattern[str]:
    """Build the ``<tool-tag> <path>:<line>: error: <message>`` pattern.

    With the default tag it matches ant output such as
    ``    [javac] /tmp/suite/org/foo/BarTest.java:42: error: cannot find symbol``.
    """

    prefix = rf"{re.escape(tool_tag)}\]?\s+" if tool_tag else r"^\s*"
    return re.compile(
        prefix + r'"?(?P<path>[^"\s].*?\.java)"?:(?P<line>\d+):\s*error:?\s*(?P<message>.*)$'
    )


def parse_compile_log(
    text: str,
    root: Path,
    *,
    tool_tag: str = DEFAULT_COMPILER_TAG,
) -> list[CompileDiagnostic]:
    """Extract error diagnostics from compiler output.

    Relative paths are resolved against ``root``.  Warnings and continuation
    lines are ignored; duplicate (path, line, message) triples are dropped.
    """

    pattern = compile_error_pattern(tool_tag)
    diagnostics: list[CompileDiagnostic] = []
    seen: set[tuple[Path, int, str]] = set()
    for raw_line in text.splitlines():
        match = pattern.search(raw_line)
        if match is None:
            continue
        path = Path(match.group("path").strip().strip('"'))
        if not path.is_absolute():
            path = root / path
        line = int(match.group("line"))
        message = match.group("message").strip()
        key = (path, line, message)
        if key in seen:
            continue
        seen.add(key)
        diagnostics.append(CompileDiagnostic(path=path, line=line, message=message))
    return diagnostics


def parse_failing_tests(text: str) -> RunDiagnostic:
    """Parse a failing-tests report.

    The report lists one header per failure, ``--- org.foo.BarTest::test09``
    for a method or ``--- org.foo.BarTest`` for a class-level failure, each
    followed by the failure message and stack trace.  Frames of the failing
    method inside its own class become line hints.
    """

    classes: set[str] = set()
    methods: set[TestId] = set()
    hints: Dict[TestId, set[int]] = defaultdict(set)
    current: TestId | None = None
    marker = MARKER.strip()

    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped.startswith(marker + " ") or stripped == marker:
            name = stripped[len(marker):].strip()
            current = None
            if not name:
                continue
            if SEPARATOR in name:
                current = TestId.parse(name)
                methods.add(current)
            else:
                classes.add(name)
            continue

        if current is None:
            continue
        frame = _FRAME_RE.match(raw_line)
        if frame and frame.group("class") == current.class_name and frame.group("method") == current.method_name:
            hints[current].add(int(frame.group("line")))

    return RunDiagnostic(
        failing_classes=frozenset(classes),
        failing_methods=frozenset(methods),
        line_hints={test_id: tuple(sorted(lines)) for test_id, lines in hints.items()},
    )


def _javac_parser(tool_tag: str) -> CompileParser:
    def _parse(text: str, root: Path) -> list[CompileDiagnostic]:
        return parse_compile_log(text, root, tool_tag=tool_tag)

    return _parse


_COMPILE_PARSERS: Dict[str, Callable[[str], CompileParser]] = {
    "javac": _javac_parser,
}
_RUN_PARSERS: Dict[str, RunParser] = {
    "failing-tests": parse_failing_tests,
}


def register_compile_parser(name: str, factory: Callable[[str], CompileParser]) -> None:
    """Register a compile parser factory taking the configured tool tag."""
    _COMPILE_PARSERS[name] = factory


def register_run_parser(name: str, parser: RunParser) -> None:
    _RUN_PARSERS[name] = parser


def get_compile_parser(name: str, *, tool_tag: str = DEFAULT_COMPILER_TAG) -> CompileParser:
    try:
        factory = _COMPILE_PARSERS[name]
    except KeyError as error:
        raise ConfigError(
            f"Unknown compile parser: {name}",
            details={"available": sorted(_COMPILE_PARSERS)},
        ) from error
    return factory(tool_tag)


def get_run_parser(name: str) -> RunParser:
    try:
        return _RUN_PARSERS[name]
    except KeyError as error:
        raise ConfigError(
            f"Unknown run parser: {name}",
            details={"available": sorted(_RUN_PARSERS)},
        ) from error


def available_parsers() -> dict[str, Iterable[str]]:
    return {"compile": sorted(_COMPILE_PARSERS), "run": sorted(_RUN_PARSERS)}


__all__ = [
    "CompileParser",
    "DEFAULT_COMPILER_TAG",
    "RunParser",
    "available_parsers",
    "compile_error_pattern",
    "get_compile_parser",
    "get_run_parser",
    "parse_compile_log",
    "parse_failing_tests",
    "register_compile_parser",
    "register_run_parser",
]
