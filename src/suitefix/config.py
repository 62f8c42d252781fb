"""Configuration loading and validation for the suitefix CLI."""

from __future__ import annotations

import copy
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .engine import DEFAULT_RUNS
from .errors import ConfigError
from .results.store import DEFAULT_DB_NAME
from .tools.removal import REMOVAL_STRATEGIES, RemovalStrategy
from .tools.toolchain import (
    DEFAULT_CHECKOUT_COMMAND,
    DEFAULT_COMPILE_COMMAND,
    DEFAULT_RUN_COMMAND,
    DEFAULT_TIMEOUT,
    ToolchainSettings,
)

DEFAULT_CONFIG_NAME = "config.yaml"
DEFAULT_INCLUDE = "*.java"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "project": {
        "project_id": "",
        "suite_dir": "suites",
        "version_id": None,
        "source": None,
        "include": DEFAULT_INCLUDE,
    },
    "repair": {
        "runs": DEFAULT_RUNS,
        "strategy": "method",
        "debug": False,
        "jobs": 1,
    },
    "paths": {
        "tmp_dir": None,
        "db_path": None,
        "log_dir": None,
    },
    "results": {
        "enabled": False,
    },
    "toolchain": {
        "timeout": int(DEFAULT_TIMEOUT),
        "compile_parser": "javac",
        "compiler_tag": "javac",
        "run_parser": "failing-tests",
        "checkout": list(DEFAULT_CHECKOUT_COMMAND),
        "compile": list(DEFAULT_COMPILE_COMMAND),
        "run": list(DEFAULT_RUN_COMMAND),
    },
}


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return data


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _resolve_path(value: Any, base_dir: Path) -> Optional[Path]:
    text = _optional_str(value)
    if text is None:
        return None
    path = Path(text).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def _positive_int(value: Any, *, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from error
    if number < 1:
        raise ConfigError(f"{name} must be at least 1, got {number}")
    return number


@dataclass(slots=True)
class RepairSettings:
    """Validated settings for one ``suitefix fix`` batch."""

    project_id: str
    suite_dir: Path
    version_id: Optional[str] = None
    source: Optional[str] = None
    include: str = DEFAULT_INCLUDE
    runs: int = DEFAULT_RUNS
    strategy: RemovalStrategy = "method"
    debug: bool = False
    jobs: int = 1
    tmp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "suitefix")
    db_path: Optional[Path] = None
    log_dir: Optional[Path] = None
    log_results: bool = False
    toolchain: ToolchainSettings = field(default_factory=ToolchainSettings)

    @property
    def results_path(self) -> Path:
        return self.db_path or self.suite_dir / DEFAULT_DB_NAME

    @property
    def logs_path(self) -> Path:
        return self.log_dir or self.suite_dir

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        base_dir: Path | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> "RepairSettings":
        """Build settings from a config mapping; non-``None`` overrides win.

        Relative paths in the file are resolved against ``base_dir`` (the
        config file's directory); override paths against the working directory.
        """

        base = (base_dir or Path.cwd()).resolve()
        cwd = Path.cwd().resolve()
        overrides = {key: value for key, value in (overrides or {}).items() if value is not None}

        project = _section(config, "project")
        repair = _section(config, "repair")
        paths = _section(config, "paths")
        results = _section(config, "results")

        def pick(key: str, section: Mapping[str, Any], default: Any = None) -> tuple[Any, Path]:
            if key in overrides:
                return overrides[key], cwd
            return section.get(key, default), base

        project_value, _ = pick("project_id", project)
        project_id = _optional_str(project_value)
        if not project_id:
            raise ConfigError("A project id is required (project.project_id or --project).")

        suite_value, suite_base = pick("suite_dir", project)
        suite_dir = _resolve_path(suite_value, suite_base)
        if suite_dir is None:
            raise ConfigError("A suite directory is required (project.suite_dir or --suite-dir).")

        version_value, _ = pick("version_id", project)
        source_value, _ = pick("source", project)
        include_value, _ = pick("include", project, DEFAULT_INCLUDE)

        runs_value, _ = pick("runs", repair, DEFAULT_RUNS)
        jobs_value, _ = pick("jobs", repair, 1)
        strategy_value, _ = pick("strategy", repair, "method")
        strategy = str(strategy_value or "method").strip()
        if strategy not in REMOVAL_STRATEGIES:
            raise ConfigError(
                f"Unknown removal strategy {strategy!r}; expected one of {', '.join(REMOVAL_STRATEGIES)}"
            )
        debug_value, _ = pick("debug", repair, False)

        tmp_value, tmp_base = pick("tmp_dir", paths)
        tmp_dir = _resolve_path(tmp_value, tmp_base) or Path(tempfile.gettempdir()) / "suitefix"
        db_value, db_base = pick("db_path", paths)
        log_value, log_base = pick("log_dir", paths)
        results_value, _ = pick("log_results", {"log_results": results.get("enabled", False)})

        return cls(
            project_id=project_id,
            suite_dir=suite_dir,
            version_id=_optional_str(version_value),
            source=_optional_str(source_value),
            include=_optional_str(include_value) or DEFAULT_INCLUDE,
            runs=_positive_int(runs_value, name="repair.runs"),
            strategy=strategy,  # type: ignore[arg-type]
            debug=bool(debug_value),
            jobs=_positive_int(jobs_value, name="repair.jobs"),
            tmp_dir=tmp_dir,
            db_path=_resolve_path(db_value, db_base),
            log_dir=_resolve_path(log_value, log_base),
            log_results=bool(results_value),
            toolchain=ToolchainSettings.from_config(_section(config, "toolchain")),
        )


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "RepairSettings",
    "copy_config_template",
    "load_config",
    "write_config",
]
