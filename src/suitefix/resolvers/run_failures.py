"""Turn a failing-test report into method removals, or refuse to touch the suite."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ..structured import RemovalBatch, RunDiagnostic
from ..tools.removal import RemovalExecutor

RunDirective = Literal["clean", "pruned", "class-failures"]


@dataclass(slots=True)
class RunResolution:
    """Outcome of resolving one run of the suite."""

    directive: RunDirective
    batch: RemovalBatch | None = None
    removed_methods: int = 0
    patched_methods: int = 0
    failing_classes: tuple[str, ...] = ()
    report_path: Path | None = None

    @property
    def changes(self) -> int:
        return self.removed_methods + self.patched_methods


class RunFailureResolver:
    """Prune failing test methods; never remove failing test classes.

    A class-level failure usually points at a configuration or environment
    problem, so the suite is handed back for manual triage instead.
    """

    def __init__(self, executor: RemovalExecutor) -> None:
        self.executor = executor

    def resolve(self, diagnostic: RunDiagnostic, *, report_path: Path | None = None) -> RunResolution:
        if diagnostic.failing_classes:
            return RunResolution(
                directive="class-failures",
                failing_classes=tuple(sorted(diagnostic.failing_classes)),
                report_path=report_path,
            )
        if not diagnostic.failing_methods:
            return RunResolution(directive="clean", report_path=report_path)

        batch = RemovalBatch()
        for test_id in sorted(diagnostic.failing_methods):
            batch.add_method(test_id, diagnostic.line_hints.get(test_id, ()))
        report = self.executor.apply(batch)
        return RunResolution(
            directive="pruned",
            batch=batch,
            removed_methods=len(report.removed_methods),
            patched_methods=len(report.patched_methods),
            report_path=report_path,
        )


__all__ = ["RunDirective", "RunFailureResolver", "RunResolution"]
