"""Decide, per compiler error, whether to drop one test method or the whole class."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..structured import CompileDiagnostic, RemovalBatch, TestId
from ..tools.locator import MethodLocation, class_name_for_path, locate_test_method
from ..tools.removal import RemovalExecutor, RemovalReport

LOGGER = logging.getLogger(__name__)

Locator = Callable[[Path, int], Optional[MethodLocation]]


@dataclass(slots=True)
class CompileResolution:
    """Removals triggered by one failed compilation."""

    batch: RemovalBatch
    removed_methods: int = 0
    removed_classes: int = 0
    quarantined: List[str] = field(default_factory=list)
    ignored: List[CompileDiagnostic] = field(default_factory=list)

    @property
    def changes(self) -> int:
        return self.removed_methods + self.removed_classes


class CompileFailureResolver:
    """Attribute compiler errors to test methods and prune them.

    An error located after a ``public void test*()`` declaration is charged to
    the closest preceding test method.  An error before any declaration (bad
    import, broken supertype, malformed class) makes the whole file
    unrecoverable: it is quarantined immediately and any method requests
    already queued for it are dropped.
    """

    def __init__(
        self,
        root: Path,
        executor: RemovalExecutor,
        *,
        locate: Locator = locate_test_method,
    ) -> None:
        self.root = Path(root)
        self.executor = executor
        self._locate = locate

    def resolve(self, diagnostics: Sequence[CompileDiagnostic]) -> CompileResolution:
        batch = RemovalBatch()
        resolution = CompileResolution(batch=batch)

        for diagnostic in diagnostics:
            try:
                class_name = class_name_for_path(diagnostic.path, self.root)
            except ValueError:
                LOGGER.debug("Ignoring diagnostic outside the suite: %s", diagnostic.path)
                resolution.ignored.append(diagnostic)
                continue

            # Quarantined earlier in this batch.
            if not diagnostic.path.exists():
                continue

            location = self._locate(diagnostic.path, diagnostic.line)
            if location is None:
                if self.executor.quarantine(class_name):
                    resolution.quarantined.append(class_name)
                    resolution.removed_classes += 1
                dropped = batch.discard_class(class_name)
                LOGGER.info(
                    "Quarantined %s (error at line %d precedes every test method; %d queued method(s) dropped)",
                    class_name,
                    diagnostic.line,
                    dropped,
                )
                continue

            batch.add_method(TestId(class_name, location.name))

        if batch:
            report = self.executor.apply(batch)
        else:
            report = RemovalReport()
        resolution.removed_methods = len(report.removed_methods)
        return resolution


__all__ = ["CompileFailureResolver", "CompileResolution", "Locator"]
