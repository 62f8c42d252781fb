from __future__ import annotations

import sys
from pathlib import Path

import pytest

from suitefix.errors import ConfigError
from suitefix.tools.commands import run_command
from suitefix.tools.toolchain import CommandToolchain, ToolchainSettings


def test_run_command_distinguishes_failed_from_crashed(tmp_path: Path) -> None:
    passed = run_command([sys.executable, "-c", "print('ok')"], cwd=tmp_path)
    failed = run_command([sys.executable, "-c", "import sys; sys.exit(3)"], cwd=tmp_path)
    missing = run_command(["definitely-not-a-real-tool-4711"], cwd=tmp_path)

    assert passed.ok and passed.stdout.strip() == "ok"
    assert failed.status == "failed" and failed.exit_code == 3
    assert missing.crashed and missing.exit_code is None


@pytest.mark.skipif(sys.platform == "win32", reason="shell script wrapper")
def test_run_command_resolves_relative_executable_against_cwd(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    wrapper = project / "gradlew"
    wrapper.write_text("#!/bin/sh\necho wrapped\n", encoding="utf-8")
    wrapper.chmod(0o755)

    result = run_command(["./gradlew"], cwd=project)
    elsewhere = run_command(["./gradlew"], cwd=tmp_path)

    assert result.ok and result.stdout.strip() == "wrapped"
    assert elsewhere.crashed


def test_run_command_times_out_as_crash(tmp_path: Path) -> None:
    result = run_command([sys.executable, "-c", "import time; time.sleep(5)"], cwd=tmp_path, timeout=0.5)

    assert result.crashed
    assert "Timed out" in result.stderr


def test_settings_from_config_accepts_strings_and_disables_checkout() -> None:
    settings = ToolchainSettings.from_config(
        {"checkout": [], "compile": "ant -f build.xml compile.gen.tests", "timeout": 60}
    )

    assert settings.checkout is None
    assert settings.compile == ("ant", "-f", "build.xml", "compile.gen.tests")
    assert settings.timeout == 60.0
    assert settings.run[0] == "ant"


@pytest.mark.parametrize(
    "section",
    [{"timeout": -1}, {"compile": []}, {"run": 42}, {"env": ["A=1"]}],
)
def test_settings_from_config_rejects_bad_values(section) -> None:
    with pytest.raises(ConfigError):
        ToolchainSettings.from_config(section)


def test_command_toolchain_renders_placeholders_and_reads_report(tmp_path: Path) -> None:
    write_report = (
        "import pathlib, sys; "
        "pathlib.Path(sys.argv[2]).write_text('--- org.ex.FooTest::test1\\n' + sys.argv[1] + '\\n')"
    )
    settings = ToolchainSettings(
        checkout=None,
        compile=(sys.executable, "-c", "print('compiled {project_id}')"),
        run=(sys.executable, "-c", write_report, "{include}", "{report}"),
    )
    toolchain = CommandToolchain(
        settings,
        work_dir=tmp_path / "work",
        context={"project_id": "Lang", "include": "*Test.java"},
    )
    suite_dir = tmp_path / "work" / "suite"

    assert toolchain.checkout() is None
    compiled = toolchain.compile(suite_dir)
    report = toolchain.run(suite_dir)

    assert compiled.ok
    assert compiled.stdout.strip() == "compiled Lang"
    assert report.result.ok
    assert report.report_path == tmp_path / "work" / "run_tests.log"
    assert report.report_text.splitlines() == ["--- org.ex.FooTest::test1", "*Test.java"]
    assert toolchain.render(["{unknown}-{suite_dir}"], suite_dir="s") == ["-s"]
