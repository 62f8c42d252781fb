"""Synchronous execution of external compiler, runner and checkout commands."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Literal, Mapping, Sequence

CommandStatus = Literal["passed", "failed", "crashed"]


@dataclass(slots=True)
class CommandResult:
    """Outcome of one external command.

    ``crashed`` means the command could not be executed at all (missing
    executable, OS error, timeout) and is distinct from ``failed``, a normal
    nonzero exit.
    """

    command: List[str]
    status: CommandStatus
    exit_code: int | None
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.status == "passed"

    @property
    def crashed(self) -> bool:
        return self.status == "crashed"

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def short_message(self) -> str:
        label = " ".join(self.command[:3]) if self.command else "(empty command)"
        if self.status == "passed":
            return f"{label}: passed"
        fallback = self.stderr.strip() or self.stdout.strip()
        snippet = fallback.splitlines()[-1] if fallback else f"exit code {self.exit_code}"
        return f"{label}: {self.status} ({snippet})"


def _is_available(executable: str, *, cwd: Path | None, env: Mapping[str, str] | None) -> bool:
    """Resolve bare names on PATH and relative paths against ``cwd``."""

    if os.sep in executable or (os.altsep and os.altsep in executable):
        candidate = Path(executable)
        if not candidate.is_absolute() and cwd is not None:
            candidate = Path(cwd) / candidate
        return candidate.exists()
    return shutil.which(executable, path=(env or os.environ).get("PATH")) is not None


def run_command(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``command`` to completion, capturing stdout and stderr."""

    argv = [str(part) for part in command]
    if not argv:
        return CommandResult(command=argv, status="crashed", exit_code=None, stdout="", stderr="Empty command")

    executable = argv[0]
    if not _is_available(executable, cwd=cwd, env=env):
        return CommandResult(
            command=argv,
            status="crashed",
            exit_code=None,
            stdout="",
            stderr=f"Executable not available: {executable}",
        )

    merged_env = None
    if env:
        merged_env = os.environ.copy()
        merged_env.update({str(key): str(value) for key, value in env.items()})

    try:
        process = subprocess.run(  # noqa: S603  # command is sourced from the toolchain config
            argv,
            cwd=cwd,
            env=merged_env,
            check=False,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as error:
        stdout = error.stdout.decode("utf-8", errors="replace") if isinstance(error.stdout, bytes) else (error.stdout or "")
        return CommandResult(
            command=argv,
            status="crashed",
            exit_code=None,
            stdout=stdout,
            stderr=f"Timed out after {timeout} seconds",
        )
    except OSError as error:
        return CommandResult(command=argv, status="crashed", exit_code=None, stdout="", stderr=str(error))

    status: CommandStatus = "passed" if process.returncode == 0 else "failed"
    return CommandResult(
        command=argv,
        status=status,
        exit_code=process.returncode,
        stdout=process.stdout,
        stderr=process.stderr,
    )


__all__ = ["CommandResult", "CommandStatus", "run_command"]
