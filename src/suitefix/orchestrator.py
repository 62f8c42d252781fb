"""Batch orchestration: fix every matching suite archive of a project."""

from __future__ import annotations

import json
import logging
import shutil
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import RepairSettings
from .engine import ConvergenceCheck, RepairEngine, RepairOutcome, RepairSession
from .errors import RepairError, ToolchainError
from .results import FixRecord, NullResultSink, ResultSink, ResultStore
from .tools.archives import SuiteArchive, discover_archives, extract_archive, replace_archive
from .tools.diagnostics import get_compile_parser, get_run_parser
from .tools.removal import RemovalExecutor
from .tools.suite_logs import SuiteLogs
from .tools.toolchain import CommandToolchain, SuiteToolchain
from .utils.slug import suite_slug

LOGGER = logging.getLogger(__name__)

ToolchainFactory = Callable[[Path, Mapping[str, str]], SuiteToolchain]

SEPARATOR_LINE = "-" * 80


@dataclass(slots=True)
class SuiteResult:
    """What happened to one archive during a batch."""

    archive: SuiteArchive
    session: Optional[RepairSession] = None
    skipped: bool = False
    rewritten: bool = False
    backup_path: Optional[Path] = None

    @property
    def outcome(self) -> Optional[RepairOutcome]:
        return self.session.outcome if self.session else None

    @property
    def status(self) -> str:
        if self.skipped:
            return "skipped"
        if self.outcome is RepairOutcome.CONVERGED:
            return "fixed" if self.session and self.session.changed else "clean"
        if self.outcome is RepairOutcome.HAS_CLASS_FAILURES:
            return "class-failures"
        if self.outcome is RepairOutcome.UNEXECUTABLE:
            return "unexecutable"
        return "aborted"


@dataclass(slots=True)
class BatchSummary:
    """Per-status view over every archive the batch touched."""

    results: List[SuiteResult] = field(default_factory=list)

    def _names(self, status: str) -> List[str]:
        return [item.archive.name for item in self.results if item.status == status]

    @property
    def fixed(self) -> List[str]:
        return self._names("fixed")

    @property
    def clean(self) -> List[str]:
        return self._names("clean")

    @property
    def class_failures(self) -> List[str]:
        return self._names("class-failures")

    @property
    def unexecutable(self) -> List[str]:
        return self._names("unexecutable")

    @property
    def skipped(self) -> List[str]:
        return self._names("skipped")

    def counts(self) -> Dict[str, int]:
        return {
            "fixed": len(self.fixed),
            "clean": len(self.clean),
            "class-failures": len(self.class_failures),
            "unexecutable": len(self.unexecutable),
            "skipped": len(self.skipped),
        }

    def format_summary(self) -> str:
        lines = [f"Processed {len(self.results)} test archive(s)"]
        for status, names in (
            ("Fixed", self.fixed),
            ("Already clean", self.clean),
            ("Failing test classes", self.class_failures),
            ("Not executable", self.unexecutable),
            ("Skipped (results exist)", self.skipped),
        ):
            lines.append(f"- {status}: {len(names)}")
            lines.extend(f"    {name}" for name in names)
        return "\n".join(lines)


def _default_toolchain_factory(settings: RepairSettings) -> ToolchainFactory:
    def _build(work_dir: Path, context: Mapping[str, str]) -> SuiteToolchain:
        return CommandToolchain(settings.toolchain, work_dir=work_dir, context=context)

    return _build


class SuiteOrchestrator:
    """Run the repair engine over every matching archive in the suite directory.

    Each archive gets a private work directory under ``tmp_dir``; nothing but
    the results sink and the log files is shared between suites.  The first
    fatal error stops the batch and propagates with the suite name attached.
    """

    def __init__(
        self,
        settings: RepairSettings,
        *,
        sink: ResultSink | None = None,
        logs: SuiteLogs | None = None,
        toolchain_factory: ToolchainFactory | None = None,
        checks: Sequence[ConvergenceCheck] = (),
    ) -> None:
        self.settings = settings
        self._owns_sink = sink is None
        if sink is None:
            sink = ResultStore(settings.results_path) if settings.log_results else NullResultSink()
        self.sink = sink
        self._owns_logs = logs is None
        self.logs = logs or SuiteLogs(settings.logs_path)
        self.toolchain_factory = toolchain_factory or _default_toolchain_factory(settings)
        self.checks = tuple(checks)
        self.compile_parser = get_compile_parser(
            settings.toolchain.compile_parser, tool_tag=settings.toolchain.compiler_tag
        )
        self.run_parser = get_run_parser(settings.toolchain.run_parser)

    def close(self) -> None:
        if self._owns_sink:
            self.sink.close()
        if self._owns_logs:
            self.logs.close()

    def __enter__(self) -> "SuiteOrchestrator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def discover(self) -> List[SuiteArchive]:
        return discover_archives(
            self.settings.suite_dir,
            self.settings.project_id,
            version_id=self.settings.version_id,
            source=self.settings.source,
        )

    def run(self, archives: Iterable[SuiteArchive] | None = None) -> BatchSummary:
        """Fix ``archives`` (default: everything discovered) and summarise the batch."""

        archive_list = list(archives) if archives is not None else self.discover()
        summary = BatchSummary()
        self.logs.log_time("> Start time")
        self.logs.log_msg("summary", f"- Found {len(archive_list)} test archive(s)")
        try:
            pending: List[SuiteArchive] = []
            for archive in archive_list:
                if self.sink.has_result(archive.project_id, archive.version_id, archive.source, archive.test_id):
                    self.logs.log_msg(
                        "summary", f" - Skipping {archive.name} since results already exist in database!"
                    )
                    LOGGER.info("Skipping %s: results already recorded", archive.name)
                    summary.results.append(SuiteResult(archive=archive, skipped=True))
                else:
                    pending.append(archive)

            if self.settings.jobs <= 1 or len(pending) <= 1:
                for archive in pending:
                    summary.results.append(self.fix_suite(archive))
            else:
                summary.results.extend(self._run_parallel(pending))
        finally:
            self.logs.log_time("> End time")
        return summary

    def _run_parallel(self, archives: List[SuiteArchive]) -> List[SuiteResult]:
        with ThreadPoolExecutor(max_workers=self.settings.jobs, thread_name_prefix="suitefix") as pool:
            futures: Dict[Future[SuiteResult], SuiteArchive] = {
                pool.submit(self.fix_suite, archive): archive for archive in archives
            }
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                error = future.exception()
                if error is not None:
                    for pending in not_done:
                        pending.cancel()
                    raise error
        return [future.result() for future in futures]

    def fix_suite(self, archive: SuiteArchive) -> SuiteResult:
        """Check out, extract, repair and write back one archive."""

        settings = self.settings
        work_dir = settings.tmp_dir / suite_slug(archive.name)
        if work_dir.exists():
            shutil.rmtree(work_dir)
        work_dir.mkdir(parents=True)
        LOGGER.info("%s\n%s\n%s", SEPARATOR_LINE, archive.name, SEPARATOR_LINE)

        try:
            return self._fix_in(archive, work_dir)
        except RepairError as error:
            raise error.with_suite(archive.name)
        finally:
            if settings.debug:
                LOGGER.info("Keeping work directory %s", work_dir)
            else:
                shutil.rmtree(work_dir, ignore_errors=True)

    def _fix_in(self, archive: SuiteArchive, work_dir: Path) -> SuiteResult:
        settings = self.settings
        context = {
            "project_id": archive.project_id,
            "version_id": archive.version_id,
            "source": archive.source,
            "test_id": archive.test_id,
            "include": settings.include,
        }
        toolchain = self.toolchain_factory(work_dir, context)

        checkout = toolchain.checkout()
        if checkout is not None and not checkout.ok:
            raise ToolchainError(
                f"Checkout of {archive.project_id}-{archive.version_id} failed: {checkout.short_message()}",
                details={"command": checkout.command, "exit_code": checkout.exit_code},
            )

        suite_dir = extract_archive(archive, work_dir / "suite")
        executor = RemovalExecutor(
            suite_dir,
            strategy=settings.strategy,
            batch_path=work_dir / "removal_batch.txt",
        )
        engine = RepairEngine(
            toolchain,
            executor,
            runs=settings.runs,
            compile_parser=self.compile_parser,
            run_parser=self.run_parser,
            checks=self.checks,
            logs=self.logs,
        )
        session = engine.repair(engine.new_session(archive.name))
        LOGGER.debug("Session for %s: %s", archive.name, json.dumps(session.to_dict(), sort_keys=True))

        result = SuiteResult(archive=archive, session=session)
        if session.outcome is RepairOutcome.CONVERGED and session.changed:
            result.backup_path = replace_archive(archive, suite_dir)
            result.rewritten = True
            LOGGER.info("Rewrote %s", archive.path)

        self.sink.append(
            FixRecord(
                project_id=archive.project_id,
                version_id=archive.version_id,
                test_suite=archive.source,
                test_id=archive.test_id,
                outcome=session.outcome.value if session.outcome else RepairOutcome.ABORTED.value,
                num_uncompilable_tests=session.removed_uncompilable_methods,
                num_uncompilable_test_classes=session.removed_uncompilable_classes,
                num_failing_tests=session.removed_failing_methods + session.patched_failing_methods,
            )
        )
        self._log_counts(session)
        return result

    def _log_counts(self, session: RepairSession) -> None:
        compile_log = self.logs.paths.get("compile")
        run_log = self.logs.paths.get("run")

        def _see(path: Optional[Path], count: int) -> str:
            if count > 0 and path is not None:
                return f" (see {path} file for more information)"
            return ""

        self.logs.log_msg(
            "summary",
            f"Number of uncompilable test classes: {session.removed_uncompilable_classes}"
            + _see(compile_log, session.removed_uncompilable_classes),
        )
        self.logs.log_msg(
            "summary",
            f"Number of uncompilable tests: {session.removed_uncompilable_methods}"
            + _see(compile_log, session.removed_uncompilable_methods),
        )
        failing = session.removed_failing_methods + session.patched_failing_methods
        self.logs.log_msg("summary", f"Number of failing tests: {failing}" + _see(run_log, failing))


__all__ = ["BatchSummary", "SuiteOrchestrator", "SuiteResult", "ToolchainFactory"]
