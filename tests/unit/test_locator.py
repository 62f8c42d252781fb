from __future__ import annotations

from pathlib import Path

import pytest

from suitefix.errors import RemovalError
from suitefix.tools.locator import (
    class_name_for_path,
    enclosing_test_method,
    locate_test_method,
    path_for_class_name,
)


def test_class_name_round_trips_with_path(tmp_path: Path) -> None:
    path = tmp_path / "org" / "ex" / "FooTest.java"

    assert class_name_for_path(path, tmp_path) == "org.ex.FooTest"
    assert path_for_class_name("org.ex.FooTest", tmp_path) == path


def test_class_name_rejects_foreign_paths(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        class_name_for_path(Path("/elsewhere/org/ex/FooTest.java"), tmp_path / "suite")
    with pytest.raises(ValueError):
        class_name_for_path(tmp_path / "org" / "ex" / "notes.txt", tmp_path)


def test_enclosing_method_picks_closest_preceding_declaration() -> None:
    lines = [
        "public class FooTest {",  # 1
        "  @Test",  # 2
        "  public void test0() throws Throwable {",  # 3
        "    int x = 1;",  # 4
        "  }",  # 5
        "  public void test1() {",  # 6
        "    foo();",  # 7
        "  }",  # 8
        "  public void helper(int value) {",  # 9
        "  }",  # 10
    ]

    assert enclosing_test_method(lines, 1) is None
    assert enclosing_test_method(lines, 3).name == "test0"
    assert enclosing_test_method(lines, 5).name == "test0"
    assert enclosing_test_method(lines, 7).name == "test1"
    # Non-test helpers are not declarations of interest.
    assert enclosing_test_method(lines, 10).name == "test1"


def test_locate_test_method_reads_the_file(java_suite) -> None:
    path = java_suite.add_class("org.ex.FooTest", {"test0": ["int a = 0;"], "test1": ["int b = 1;", "b++;"]})
    declaration = java_suite.line_of("org.ex.FooTest", "public void test1")

    location = locate_test_method(path, declaration + 2)

    assert location is not None
    assert (location.name, location.line) == ("test1", declaration)
    assert locate_test_method(path, 5) is None


def test_locate_test_method_reports_unreadable_source(tmp_path: Path) -> None:
    missing = tmp_path / "org" / "ex" / "GoneTest.java"

    with pytest.raises(RemovalError) as excinfo:
        locate_test_method(missing, 3)

    assert excinfo.value.details == {"path": missing.as_posix(), "line": 3}
