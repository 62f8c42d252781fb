from __future__ import annotations

import os
import subprocess
import sys
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from suitefix.tools.commands import CommandResult  # noqa: E402
from suitefix.tools.toolchain import RunReport  # noqa: E402


def java_source(
    class_name: str,
    methods: Mapping[str, Sequence[str]],
    *,
    extends: str | None = None,
    imports: Sequence[str] = ("org.junit.Test", "static org.junit.Assert.*"),
) -> str:
    """Render a generated-looking JUnit class with one ``@Test`` method per entry."""

    package, _, simple_name = class_name.rpartition(".")
    lines: List[str] = []
    if package:
        lines.extend([f"package {package};", ""])
    lines.extend(f"import {item};" for item in imports)
    lines.append("")
    header = f"public class {simple_name}"
    if extends:
        header += f" extends {extends}"
    lines.extend([header + " {", ""])
    for name, body in methods.items():
        lines.append("  @Test")
        lines.append(f"  public void {name}() throws Throwable {{")
        lines.extend(f"    {statement}" for statement in body)
        lines.append("  }")
        lines.append("")
    lines.append("}")
    return "\n".join(lines) + "\n"


@dataclass(slots=True)
class JavaSuite:
    """Directory of generated test sources laid out by package."""

    root: Path

    def path(self, class_name: str) -> Path:
        return self.root.joinpath(*class_name.split(".")).with_suffix(".java")

    def write(self, class_name: str, source: str) -> Path:
        path = self.path(class_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    def add_class(self, class_name: str, methods: Mapping[str, Sequence[str]], **kwargs) -> Path:
        return self.write(class_name, java_source(class_name, methods, **kwargs))

    def read(self, class_name: str) -> str:
        return self.path(class_name).read_text(encoding="utf-8")

    def line_of(self, class_name: str, needle: str) -> int:
        for number, text in enumerate(self.read(class_name).splitlines(), start=1):
            if needle in text:
                return number
        raise AssertionError(f"{needle!r} not found in {class_name}")

    def pack(self, archive_path: Path) -> Path:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive_path, "w:bz2") as handle:
            for entry in sorted(self.root.iterdir()):
                handle.add(entry, arcname=entry.name)
        return archive_path


@pytest.fixture()
def java_suite(tmp_path: Path) -> JavaSuite:
    root = tmp_path / "suite"
    root.mkdir()
    return JavaSuite(root=root)


def _result(command: str, status: str, exit_code: int | None, stdout: str = "") -> CommandResult:
    return CommandResult(command=[command], status=status, exit_code=exit_code, stdout=stdout, stderr="")  # type: ignore[arg-type]


@dataclass
class ScriptedToolchain:
    """Toolchain replaying canned compiler output and failing-test reports.

    ``compiles`` entries are ``None`` for a passing compile or compiler output
    for a failing one; ``{root}`` is replaced with the suite directory.
    ``runs`` entries are report texts or complete :class:`CommandResult`
    objects.  Exhausted scripts keep passing with an empty report.
    """

    compiles: List[str | None] = field(default_factory=list)
    runs: List[str | CommandResult] = field(default_factory=list)
    calls: List[str] = field(default_factory=list)

    def checkout(self) -> CommandResult | None:
        self.calls.append("checkout")
        return None

    def compile(self, suite_dir: Path) -> CommandResult:
        self.calls.append("compile")
        output = self.compiles.pop(0) if self.compiles else None
        if output is None:
            return _result("compile", "passed", 0)
        return _result("compile", "failed", 1, output.format(root=suite_dir.as_posix()))

    def run(self, suite_dir: Path) -> RunReport:
        self.calls.append("run")
        entry = self.runs.pop(0) if self.runs else ""
        if isinstance(entry, CommandResult):
            return RunReport(result=entry)
        return RunReport(result=_result("run", "passed", 0), report_text=entry)

    @property
    def compile_count(self) -> int:
        return self.calls.count("compile")

    @property
    def run_count(self) -> int:
        return self.calls.count("run")


@pytest.fixture()
def scripted_toolchain() -> type[ScriptedToolchain]:
    return ScriptedToolchain


@pytest.fixture()
def failed_command() -> CommandResult:
    return _result("run", "failed", 1, "BUILD FAILED")


def run_cli(*args: str, cwd: Path) -> subprocess.CompletedProcess[str]:
    """Invoke ``python -m suitefix.cli`` with ``src`` on the path."""

    env = os.environ.copy()
    pythonpath = str(SRC)
    if env.get("PYTHONPATH"):
        pythonpath = os.pathsep.join([pythonpath, env["PYTHONPATH"]])
    env["PYTHONPATH"] = pythonpath

    command = [sys.executable, "-m", "suitefix.cli", *args]
    return subprocess.run(  # noqa: S603 - command constructed from known values
        command,
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )


@pytest.fixture()
def cli():
    return run_cli
