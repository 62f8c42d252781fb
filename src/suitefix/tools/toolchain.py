"""Checkout, compile and run commands for the program version under test.

The commands are templates taken from configuration.  Placeholders such as
``{suite_dir}`` or ``{report}`` are filled in per invocation; unknown
placeholders render as empty strings.  The defaults drive the Defects4J ant
targets for generated tests.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol, Sequence

from ..errors import ConfigError
from .commands import CommandResult, run_command
from .diagnostics import DEFAULT_COMPILER_TAG

DEFAULT_CHECKOUT_COMMAND: tuple[str, ...] = (
    "defects4j",
    "checkout",
    "-p",
    "{project_id}",
    "-v",
    "{version_id}",
    "-w",
    "{checkout_dir}",
)
DEFAULT_COMPILE_COMMAND: tuple[str, ...] = (
    "ant",
    "-f",
    "{checkout_dir}/build.xml",
    "compile.gen.tests",
    "-Dd4j.dir.src.tests={suite_dir}",
)
DEFAULT_RUN_COMMAND: tuple[str, ...] = (
    "ant",
    "-f",
    "{checkout_dir}/build.xml",
    "run.gen.tests",
    "-Dd4j.dir.src.tests={suite_dir}",
    "-Dd4j.test.include={include}",
    "-DOUTFILE={report}",
)
DEFAULT_TIMEOUT = 1800.0


@dataclass(slots=True)
class RunReport:
    """Runner invocation plus the failing-tests report it produced."""

    result: CommandResult
    report_text: str = ""
    report_path: Path | None = None


class SuiteToolchain(Protocol):
    """Check out, compile and run a suite's working copy; every call blocks until done."""

    def checkout(self) -> CommandResult | None:
        ...

    def compile(self, suite_dir: Path) -> CommandResult:
        ...

    def run(self, suite_dir: Path) -> RunReport:
        ...


class _SafeDict(dict):
    """`str.format_map` helper that tolerates missing keys."""

    def __missing__(self, key: str) -> str:
        return ""


def _coerce_command(value: Any, *, name: str, default: Sequence[str] | None) -> tuple[str, ...] | None:
    if value is None:
        return tuple(default) if default is not None else None
    if isinstance(value, str):
        parts = shlex.split(value)
    elif isinstance(value, Sequence):
        parts = [str(item) for item in value]
    else:
        raise ConfigError(f"toolchain.{name} must be a string or a list of arguments")
    if not parts:
        return None
    return tuple(parts)


@dataclass(slots=True)
class ToolchainSettings:
    """Command templates and parser selection for one build system."""

    checkout: tuple[str, ...] | None = DEFAULT_CHECKOUT_COMMAND
    compile: tuple[str, ...] = DEFAULT_COMPILE_COMMAND
    run: tuple[str, ...] = DEFAULT_RUN_COMMAND
    timeout: float | None = DEFAULT_TIMEOUT
    compile_parser: str = "javac"
    compiler_tag: str = DEFAULT_COMPILER_TAG
    run_parser: str = "failing-tests"
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, section: Mapping[str, Any] | None) -> "ToolchainSettings":
        section = section or {}
        if not isinstance(section, Mapping):
            raise ConfigError("toolchain section must be a mapping")

        checkout = _coerce_command(section.get("checkout"), name="checkout", default=DEFAULT_CHECKOUT_COMMAND)
        if "checkout" in section and not section.get("checkout"):
            checkout = None
        compile_cmd = _coerce_command(section.get("compile"), name="compile", default=DEFAULT_COMPILE_COMMAND)
        run_cmd = _coerce_command(section.get("run"), name="run", default=DEFAULT_RUN_COMMAND)
        if compile_cmd is None or run_cmd is None:
            raise ConfigError("toolchain.compile and toolchain.run must not be empty")

        timeout_value = section.get("timeout", DEFAULT_TIMEOUT)
        timeout: float | None
        if timeout_value is None:
            timeout = None
        elif isinstance(timeout_value, (int, float)) and timeout_value > 0:
            timeout = float(timeout_value)
        else:
            raise ConfigError(f"toolchain.timeout must be a positive number, got {timeout_value!r}")

        env_value = section.get("env") or {}
        if not isinstance(env_value, Mapping):
            raise ConfigError("toolchain.env must be a mapping")

        return cls(
            checkout=checkout,
            compile=compile_cmd,
            run=run_cmd,
            timeout=timeout,
            compile_parser=str(section.get("compile_parser") or "javac"),
            compiler_tag=str(section.get("compiler_tag", DEFAULT_COMPILER_TAG) or ""),
            run_parser=str(section.get("run_parser") or "failing-tests"),
            env={str(key): str(value) for key, value in env_value.items()},
        )


class CommandToolchain:
    """:class:`SuiteToolchain` that shells out to the configured commands."""

    def __init__(
        self,
        settings: ToolchainSettings,
        *,
        work_dir: Path,
        context: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.work_dir = Path(work_dir)
        self.checkout_dir = self.work_dir / "checkout"
        self.compile_log = self.work_dir / "comp_tests.log"
        self.report_path = self.work_dir / "run_tests.log"
        self._context: Dict[str, str] = {
            "work_dir": self.work_dir.as_posix(),
            "checkout_dir": self.checkout_dir.as_posix(),
            "compile_log": self.compile_log.as_posix(),
            "report": self.report_path.as_posix(),
        }
        self._context.update({key: str(value) for key, value in (context or {}).items()})

    def render(self, template: Sequence[str], **extra: str) -> list[str]:
        values = _SafeDict({**self._context, **extra})
        return [part.format_map(values) for part in template]

    def _execute(self, template: Sequence[str], **extra: str) -> CommandResult:
        command = self.render(template, **extra)
        return run_command(
            command,
            cwd=self.work_dir,
            env=self.settings.env or None,
            timeout=self.settings.timeout,
        )

    def checkout(self) -> CommandResult | None:
        """Check out the program version; ``None`` when no checkout is configured."""
        if not self.settings.checkout:
            return None
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return self._execute(self.settings.checkout)

    def compile(self, suite_dir: Path) -> CommandResult:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.compile_log.write_text("", encoding="utf-8")
        result = self._execute(self.settings.compile, suite_dir=suite_dir.as_posix())
        logged = self.compile_log.read_text(encoding="utf-8", errors="replace")
        if logged.strip():
            result.stdout = "\n".join(part for part in (result.stdout, logged) if part)
        return result

    def run(self, suite_dir: Path) -> RunReport:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.report_path.write_text("", encoding="utf-8")
        result = self._execute(self.settings.run, suite_dir=suite_dir.as_posix())
        text = ""
        if self.report_path.exists():
            text = self.report_path.read_text(encoding="utf-8", errors="replace")
        return RunReport(result=result, report_text=text, report_path=self.report_path)


__all__ = [
    "CommandToolchain",
    "DEFAULT_CHECKOUT_COMMAND",
    "DEFAULT_COMPILE_COMMAND",
    "DEFAULT_RUN_COMMAND",
    "RunReport",
    "SuiteToolchain",
    "ToolchainSettings",
]
