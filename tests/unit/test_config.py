from __future__ import annotations

from pathlib import Path

import pytest

from suitefix.config import (
    RepairSettings,
    copy_config_template,
    load_config,
    write_config,
)
from suitefix.errors import ConfigError


def test_template_round_trips_through_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    template = copy_config_template()
    template["project"]["project_id"] = "Lang"

    write_config(config_path, template)

    assert load_config(config_path) == template


def test_settings_resolve_paths_relative_to_config(tmp_path: Path) -> None:
    config = copy_config_template()
    config["project"].update({"project_id": "Lang", "suite_dir": "suites", "version_id": "11f"})
    config["paths"]["tmp_dir"] = "work"

    settings = RepairSettings.from_config(config, base_dir=tmp_path)

    assert settings.project_id == "Lang"
    assert settings.version_id == "11f"
    assert settings.suite_dir == (tmp_path / "suites").resolve()
    assert settings.tmp_dir == (tmp_path / "work").resolve()
    assert settings.results_path == settings.suite_dir / "suitefix.sqlite"
    assert settings.logs_path == settings.suite_dir
    assert settings.runs == 5
    assert settings.strategy == "method"
    assert settings.log_results is False


def test_overrides_win_over_file_values(tmp_path: Path) -> None:
    config = {"project": {"project_id": "Lang", "suite_dir": "suites"}, "repair": {"runs": 5}}

    settings = RepairSettings.from_config(
        config,
        base_dir=tmp_path,
        overrides={"project_id": "Chart", "runs": 2, "strategy": "assertions", "log_results": True, "source": None},
    )

    assert settings.project_id == "Chart"
    assert settings.runs == 2
    assert settings.strategy == "assertions"
    assert settings.log_results is True
    assert settings.source is None


@pytest.mark.parametrize(
    "config",
    [
        {"project": {"suite_dir": "suites"}},
        {"project": {"project_id": "Lang", "suite_dir": "suites"}, "repair": {"runs": 0}},
        {"project": {"project_id": "Lang", "suite_dir": "suites"}, "repair": {"runs": "many"}},
        {"project": {"project_id": "Lang", "suite_dir": "suites"}, "repair": {"strategy": "delete-everything"}},
        {"project": {"project_id": "Lang", "suite_dir": "suites"}, "repair": {"jobs": 0}},
        {"project": {"project_id": "Lang", "suite_dir": "suites"}, "toolchain": {"timeout": "soon"}},
        {"project": ["Lang"]},
    ],
)
def test_invalid_settings_raise_config_error(config, tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        RepairSettings.from_config(config, base_dir=tmp_path)


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("project: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(broken)

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(scalar)
