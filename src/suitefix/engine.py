"""Convergence loop alternating between compiling, running and pruning a suite.

A suite is declared fixed only after ``runs`` consecutive clean runs.  Any
removal triggered by a failing test invalidates the clean runs seen so far and
restarts the count; removals triggered by compiler errors neither count as nor
forfeit a clean run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence

from .errors import DiagnosticFormatError, RemovalError, RepairError, ToolchainError
from .resolvers import CompileFailureResolver, RunFailureResolver
from .structured import RunDiagnostic
from .tools.commands import CommandResult
from .tools.diagnostics import CompileParser, RunParser, parse_compile_log, parse_failing_tests
from .tools.removal import RemovalExecutor
from .tools.suite_logs import SuiteLogs
from .tools.toolchain import SuiteToolchain

LOGGER = logging.getLogger(__name__)

DEFAULT_RUNS = 5


class RepairState(str, Enum):
    """States of the per-suite convergence loop."""

    COMPILING = "compiling"
    RUNNING = "running"
    PRUNING = "pruning"
    CONVERGED = "converged"
    UNEXECUTABLE = "unexecutable"
    HAS_CLASS_FAILURES = "has-class-failures"
    ABORTED = "aborted"


class RepairOutcome(str, Enum):
    """Terminal outcome recorded for a suite."""

    CONVERGED = "converged"
    UNEXECUTABLE = "unexecutable"
    HAS_CLASS_FAILURES = "has-class-failures"
    ABORTED = "aborted"


@dataclass(slots=True)
class RepairSession:
    """Mutable state of one suite under repair, owned by :class:`RepairEngine`."""

    suite: str
    work_dir: Path
    runs: int = DEFAULT_RUNS
    remaining_clean_runs: int = -1
    changed: bool = False
    removed_uncompilable_methods: int = 0
    removed_uncompilable_classes: int = 0
    removed_failing_methods: int = 0
    patched_failing_methods: int = 0
    outcome: RepairOutcome | None = None
    state: RepairState = RepairState.COMPILING
    history: List[RepairState] = field(default_factory=list)
    compile_attempts: int = 0
    run_attempts: int = 0
    failing_classes: tuple[str, ...] = ()
    report_path: Path | None = None
    check_results: Dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.runs < 1:
            raise ValueError("runs must be at least 1")
        if self.remaining_clean_runs < 0:
            self.remaining_clean_runs = self.runs

    def transition(self, state: RepairState) -> None:
        self.state = state
        self.history.append(state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "suite": self.suite,
            "outcome": self.outcome.value if self.outcome else None,
            "changed": self.changed,
            "removed_uncompilable_methods": self.removed_uncompilable_methods,
            "removed_uncompilable_classes": self.removed_uncompilable_classes,
            "removed_failing_methods": self.removed_failing_methods,
            "patched_failing_methods": self.patched_failing_methods,
            "compile_attempts": self.compile_attempts,
            "run_attempts": self.run_attempts,
            "failing_classes": list(self.failing_classes),
        }


class ConvergenceCheck(Protocol):
    """Extra stability criterion evaluated once a suite has converged.

    Per-test isolated execution is expected to plug in here.  Verdicts are
    recorded in :attr:`RepairSession.check_results`; they do not change the
    outcome.
    """

    name: str

    def verify(self, session: RepairSession) -> bool:
        ...


class RepairEngine:
    """Drive one suite's working copy to a stable, passing state."""

    def __init__(
        self,
        toolchain: SuiteToolchain,
        executor: RemovalExecutor,
        *,
        runs: int = DEFAULT_RUNS,
        compile_parser: CompileParser = parse_compile_log,
        run_parser: RunParser = parse_failing_tests,
        checks: Sequence[ConvergenceCheck] = (),
        logs: SuiteLogs | None = None,
    ) -> None:
        self.toolchain = toolchain
        self.executor = executor
        self.runs = runs
        self.compile_parser = compile_parser
        self.run_parser = run_parser
        self.checks = tuple(checks)
        self.logs = logs or SuiteLogs(None)
        self.compile_resolver = CompileFailureResolver(executor.root, executor)
        self.run_resolver = RunFailureResolver(executor)

    def new_session(self, suite: str) -> RepairSession:
        return RepairSession(suite=suite, work_dir=self.executor.root, runs=self.runs)

    def repair(self, session: RepairSession) -> RepairSession:
        """Run the loop to a terminal outcome; fatal errors propagate with suite context."""

        try:
            self._converge(session)
        except RepairError as error:
            session.outcome = RepairOutcome.ABORTED
            session.transition(RepairState.ABORTED)
            raise error.with_suite(session.suite)

        if session.outcome is RepairOutcome.CONVERGED:
            for check in self.checks:
                verdict = bool(check.verify(session))
                session.check_results[check.name] = verdict
                LOGGER.info("%s: convergence check %s -> %s", session.suite, check.name, verdict)
        return session

    def _converge(self, session: RepairSession) -> None:
        while session.remaining_clean_runs > 0:
            session.transition(RepairState.COMPILING)
            session.compile_attempts += 1
            compiled = self.toolchain.compile(session.work_dir)
            if compiled.crashed:
                raise ToolchainError(
                    f"Compiler could not be executed: {compiled.short_message()}",
                    details={"command": compiled.command, "stderr": compiled.stderr},
                )
            if not compiled.ok:
                self._prune_uncompilable(session, compiled)
                continue

            session.transition(RepairState.RUNNING)
            session.run_attempts += 1
            run = self.toolchain.run(session.work_dir)
            session.report_path = run.report_path
            if not run.result.ok:
                self.logs.log_text("summary", f" - Tests not executable: {session.suite}", run.result.output)
                self._finish(session, RepairOutcome.UNEXECUTABLE, RepairState.UNEXECUTABLE)
                return

            diagnostic = self.run_parser(run.report_text)
            if diagnostic.clean:
                session.remaining_clean_runs -= 1
                LOGGER.debug(
                    "%s: clean run, %d more required", session.suite, session.remaining_clean_runs
                )
                continue

            if self._prune_failing(session, diagnostic, run.report_text):
                continue
            return

        self._finish(session, RepairOutcome.CONVERGED, RepairState.CONVERGED)

    def _prune_uncompilable(self, session: RepairSession, compiled: CommandResult) -> None:
        session.transition(RepairState.PRUNING)
        output = compiled.output
        self.logs.log_text("compile", f"- Compilation issues: {session.suite}", output)
        diagnostics = self.compile_parser(output, session.work_dir)
        if not diagnostics:
            raise DiagnosticFormatError(
                "Compilation failed but no compiler errors could be parsed",
                details={"command": compiled.command, "exit_code": compiled.exit_code},
            )

        self.logs.log_msg("summary", f" - Removing uncompilable test method(s): {session.suite}")
        resolution = self.compile_resolver.resolve(diagnostics)
        for class_name in resolution.quarantined:
            self.logs.log_msg("summary", class_name)
        if resolution.batch:
            self.logs.log_text(
                "summary",
                f"  - Removing {len(resolution.batch)} uncompilable test method(s):",
                resolution.batch.to_text(),
            )
        if resolution.changes == 0:
            raise RemovalError(
                "Compiler errors did not map to any removable test artifact",
                details={
                    "diagnostics": [f"{item.path}:{item.line}" for item in diagnostics[:10]],
                    "ignored": len(resolution.ignored),
                },
            )

        session.removed_uncompilable_methods += resolution.removed_methods
        session.removed_uncompilable_classes += resolution.removed_classes
        session.changed = True

    def _prune_failing(self, session: RepairSession, diagnostic: RunDiagnostic, report_text: str) -> bool:
        """Return ``True`` when the loop should continue after pruning."""

        if not diagnostic.failing_classes:
            session.transition(RepairState.PRUNING)
        resolution = self.run_resolver.resolve(diagnostic, report_path=session.report_path)

        if resolution.directive == "class-failures":
            session.failing_classes = resolution.failing_classes
            self.logs.log_msg("summary", f" - Failing test classes: {session.suite}")
            self.logs.log_msg("summary", "\n".join(resolution.failing_classes))
            self.logs.log_msg("summary", "Failing test classes are NOT automatically removed!")
            self.logs.log_text("summary", "Stack traces:", report_text)
            self._finish(session, RepairOutcome.HAS_CLASS_FAILURES, RepairState.HAS_CLASS_FAILURES)
            return False

        count = len(diagnostic.failing_methods)
        self.logs.log_text("run", f"{count} broken test method(s): {session.suite}", report_text)
        self.logs.log_msg("summary", f" - Removing {count} broken test method(s): {session.suite}")
        self.logs.log_msg("summary", "\n".join(str(test_id) for test_id in sorted(diagnostic.failing_methods)))
        if resolution.changes == 0:
            raise RemovalError(
                "Failing test methods were already removed; the runner reports stale results",
                details={"methods": [str(test_id) for test_id in sorted(diagnostic.failing_methods)]},
            )

        session.removed_failing_methods += resolution.removed_methods
        session.patched_failing_methods += resolution.patched_methods
        session.changed = True
        session.remaining_clean_runs = session.runs
        return True

    def _finish(self, session: RepairSession, outcome: RepairOutcome, state: RepairState) -> None:
        session.outcome = outcome
        session.transition(state)
        LOGGER.info(
            "%s: %s after %d compile(s) and %d run(s)",
            session.suite,
            outcome.value,
            session.compile_attempts,
            session.run_attempts,
        )


__all__ = [
    "ConvergenceCheck",
    "DEFAULT_RUNS",
    "RepairEngine",
    "RepairOutcome",
    "RepairSession",
    "RepairState",
]
