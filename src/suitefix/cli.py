"""CLI commands for fixing generated test suites."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .config import (
    DEFAULT_CONFIG_NAME,
    RepairSettings,
    copy_config_template,
    load_config,
    write_config,
)
from .errors import ConfigError, RepairError
from .orchestrator import BatchSummary, SuiteOrchestrator
from .results import DEFAULT_DB_NAME, ResultStore

APP_HELP = "Remove uncompilable and failing tests from generated test suites."

app = typer.Typer(help=APP_HELP)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_optional_config(config_path: Path) -> Dict[str, Any]:
    """Load ``config_path`` when it exists; CLI options alone are enough otherwise."""
    if not config_path.exists():
        return {}
    try:
        return load_config(config_path)
    except ConfigError as error:
        typer.echo(f"Invalid configuration: {error}", err=True)
        raise typer.Exit(code=1) from error


def _resolve_results_path(config: Dict[str, Any], config_path: Path, suite_dir: Optional[str]) -> Path:
    """Resolve the results database from ``paths.db_path`` or the suite directory."""

    if suite_dir is None:
        paths_cfg = config.get("paths") or {}
        db_value = paths_cfg.get("db_path")
        if isinstance(db_value, str) and db_value.strip():
            candidate = Path(db_value.strip())
            if not candidate.is_absolute():
                candidate = (config_path.parent / candidate).resolve()
            return candidate
        project_cfg = config.get("project") or {}
        suite_value = str(project_cfg.get("suite_dir") or ".")
        root = Path(suite_value)
        if not root.is_absolute():
            root = (config_path.parent / root).resolve()
    else:
        root = Path(suite_dir).resolve()
    return root / DEFAULT_DB_NAME


def _report_fatal(error: RepairError) -> None:
    suite = error.suite or "batch"
    typer.echo(f"Fatal error while fixing {suite}: {error.message}", err=True)
    for key, value in error.details.items():
        typer.echo(f"  {key}: {value}", err=True)


def _render_summary(summary: BatchSummary) -> None:
    typer.echo(summary.format_summary())


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file to create.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing configuration file.",
    ),
) -> None:
    """Write the default configuration template."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path, copy_config_template())
    typer.echo(f"Created configuration at {config_path}.")


@app.command()
def fix(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project id, e.g. Lang."),
    suite_dir: Optional[str] = typer.Option(
        None, "--suite-dir", "-d", help="Directory holding the test suite archives."
    ),
    version: Optional[str] = typer.Option(None, "--version", "-v", help="Only fix suites of this version id."),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Only fix suites from this generator."),
    include: Optional[str] = typer.Option(
        None, "--include", "-f", help="Pattern selecting test classes to run, e.g. '*Test.java'."
    ),
    tmp_dir: Optional[str] = typer.Option(None, "--tmp-dir", "-t", help="Root of the per-suite work directories."),
    assertions: bool = typer.Option(
        False,
        "--assertions",
        "-A",
        help="Comment out failing assertions instead of removing whole test methods.",
    ),
    debug: bool = typer.Option(False, "--debug", "-D", help="Verbose logging; keep work directories."),
    log_results: bool = typer.Option(
        False, "--log-results", "-L", help="Record per-suite results in the results database."
    ),
    runs: Optional[int] = typer.Option(None, "--runs", help="Consecutive clean runs required per suite."),
    jobs: Optional[int] = typer.Option(None, "--jobs", help="Number of suites fixed in parallel."),
) -> None:
    """Fix every matching test suite archive."""
    _configure_logging(debug)
    config_path = Path(config)
    config_data = _load_optional_config(config_path)

    overrides: Dict[str, Any] = {
        "project_id": project,
        "suite_dir": suite_dir,
        "version_id": version,
        "source": source,
        "include": include,
        "tmp_dir": tmp_dir,
        "runs": runs,
        "jobs": jobs,
        "strategy": "assertions" if assertions else None,
        "debug": True if debug else None,
        "log_results": True if log_results else None,
    }

    try:
        settings = RepairSettings.from_config(
            config_data,
            base_dir=config_path.parent,
            overrides=overrides,
        )
    except ConfigError as error:
        typer.echo(f"Invalid configuration: {error}", err=True)
        raise typer.Exit(code=1) from error

    try:
        with SuiteOrchestrator(settings) as orchestrator:
            summary = orchestrator.run()
    except RepairError as error:
        _report_fatal(error)
        raise typer.Exit(code=1) from error

    _render_summary(summary)


@app.command()
def results(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
    suite_dir: Optional[str] = typer.Option(
        None, "--suite-dir", "-d", help="Directory holding the results database."
    ),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Only list records of this project."),
) -> None:
    """List stored per-suite results records."""
    config_path = Path(config)
    config_data = _load_optional_config(config_path)
    db_path = _resolve_results_path(config_data, config_path, suite_dir)
    if not db_path.exists():
        typer.echo(f"No results database at {db_path}.")
        return

    try:
        with ResultStore(db_path) as store:
            records = store.list_results(project_id=project)
    except RepairError as error:
        _report_fatal(error)
        raise typer.Exit(code=1) from error

    if not records:
        typer.echo("No results recorded.")
        return
    for record in records:
        typer.echo(
            f"{record.project_id}-{record.version_id}-{record.test_suite}.{record.test_id}: "
            f"{record.outcome} | uncompilable tests {record.num_uncompilable_tests} | "
            f"uncompilable classes {record.num_uncompilable_test_classes} | "
            f"failing tests {record.num_failing_tests}"
        )


if __name__ == "__main__":
    app()
