from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from suitefix.errors import ConfigError
from suitefix.structured import TestId
from suitefix.tools.diagnostics import (
    available_parsers,
    get_compile_parser,
    get_run_parser,
    parse_compile_log,
    parse_failing_tests,
    register_compile_parser,
)


def test_parse_compile_log_extracts_errors_and_skips_warnings(tmp_path: Path) -> None:
    log = textwrap.dedent(
        f"""
        compile.gen.tests:
            [javac] Compiling 3 source files to {tmp_path}/build
            [javac] {tmp_path}/org/ex/FooTest.java:42: error: cannot find symbol
            [javac]     foo.bar();
            [javac]        ^
            [javac] {tmp_path}/org/ex/FooTest.java:42: error: cannot find symbol
            [javac] {tmp_path}/org/ex/BarTest.java:5: warning: [deprecation] Baz is deprecated
            [javac] org/ex/BarTest.java:7: error: incompatible types
            [javac] 2 errors
        BUILD FAILED
        """
    )

    diagnostics = parse_compile_log(log, tmp_path)

    assert [(item.path, item.line) for item in diagnostics] == [
        (tmp_path / "org/ex/FooTest.java", 42),
        (tmp_path / "org/ex/BarTest.java", 7),
    ]
    assert diagnostics[0].message == "cannot find symbol"


def test_parse_compile_log_honours_custom_tool_tag(tmp_path: Path) -> None:
    log = "[ecj] /suite/org/ex/FooTest.java:3: error: syntax error\n[javac] /suite/org/ex/X.java:4: error: nope\n"

    diagnostics = parse_compile_log(log, tmp_path, tool_tag="ecj")

    assert [(item.path.as_posix(), item.line) for item in diagnostics] == [("/suite/org/ex/FooTest.java", 3)]


def test_parse_failing_tests_splits_methods_and_classes() -> None:
    report = textwrap.dedent(
        """
        --- org.ex.FooTest::test3
        java.lang.AssertionError: expected:<1> but was:<2>
        \tat org.junit.Assert.fail(Assert.java:88)
        \tat org.ex.FooTest.test3(FooTest.java:57)
        \tat org.ex.FooTest.helper(FooTest.java:90)
        --- org.ex.FooTest::test9
        java.lang.NullPointerException
        \tat org.ex.Foo.compute(Foo.java:12)
        --- org.ex.BarTest
        java.lang.ExceptionInInitializerError
        """
    )

    diagnostic = parse_failing_tests(report)

    assert diagnostic.failing_methods == {TestId("org.ex.FooTest", "test3"), TestId("org.ex.FooTest", "test9")}
    assert diagnostic.failing_classes == {"org.ex.BarTest"}
    assert diagnostic.line_hints == {TestId("org.ex.FooTest", "test3"): (57,)}
    assert not diagnostic.clean


def test_parse_failing_tests_empty_report_is_clean() -> None:
    assert parse_failing_tests("").clean
    assert parse_failing_tests("BUILD SUCCESSFUL\n").clean


def test_parser_registry_lookup_and_errors(tmp_path: Path) -> None:
    def factory(tool_tag: str):
        return lambda text, root: []

    register_compile_parser("silent", factory)

    assert get_compile_parser("silent")("anything", tmp_path) == []
    assert get_run_parser("failing-tests") is parse_failing_tests
    assert "silent" in available_parsers()["compile"]
    with pytest.raises(ConfigError):
        get_compile_parser("gradle")
    with pytest.raises(ConfigError):
        get_run_parser("surefire")
