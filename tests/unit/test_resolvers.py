from __future__ import annotations

from pathlib import Path

from suitefix.resolvers import CompileFailureResolver, RunFailureResolver
from suitefix.structured import CompileDiagnostic, RunDiagnostic, TestId
from suitefix.tools.removal import RemovalExecutor


def _diagnostic(path: Path, line: int) -> CompileDiagnostic:
    return CompileDiagnostic(path=path, line=line, message="cannot find symbol")


def test_compile_errors_are_charged_to_enclosing_methods(java_suite) -> None:
    path = java_suite.add_class(
        "org.ex.FooTest",
        {"test0": ["int a = 0;"], "test1": ["int b = 1;", "b.call();"], "test2": ["int c = 2;"]},
    )
    line = java_suite.line_of("org.ex.FooTest", "b.call();")
    executor = RemovalExecutor(java_suite.root)
    resolver = CompileFailureResolver(java_suite.root, executor)

    resolution = resolver.resolve([_diagnostic(path, line), _diagnostic(path, line + 1)])

    assert resolution.batch.to_lines() == ["--- org.ex.FooTest::test1"]
    assert resolution.removed_methods == 1
    assert resolution.removed_classes == 0
    assert "test1" not in java_suite.read("org.ex.FooTest")


def test_error_before_any_method_quarantines_class_and_drops_its_methods(java_suite) -> None:
    path = java_suite.add_class("org.ex.BarTest", {"test0": ["x();"], "test1": ["y();"]})
    executor = RemovalExecutor(java_suite.root)
    resolver = CompileFailureResolver(java_suite.root, executor)
    method_line = java_suite.line_of("org.ex.BarTest", "x();")

    resolution = resolver.resolve(
        [_diagnostic(path, method_line), _diagnostic(path, 3), _diagnostic(path, method_line)]
    )

    assert resolution.quarantined == ["org.ex.BarTest"]
    assert resolution.removed_classes == 1
    assert resolution.removed_methods == 0
    assert not resolution.batch
    assert path.with_name("BarTest.java.broken").exists()


def test_diagnostics_outside_the_suite_are_ignored(java_suite, tmp_path) -> None:
    executor = RemovalExecutor(java_suite.root)
    resolver = CompileFailureResolver(java_suite.root, executor)

    resolution = resolver.resolve([_diagnostic(tmp_path / "checkout" / "src" / "Foo.java", 10)])

    assert resolution.changes == 0
    assert len(resolution.ignored) == 1


def test_run_resolver_prunes_failing_methods(java_suite) -> None:
    java_suite.add_class("org.ex.FooTest", {"test0": ["a();"], "test1": ["b();"]})
    resolver = RunFailureResolver(RemovalExecutor(java_suite.root))

    resolution = resolver.resolve(RunDiagnostic(failing_methods=frozenset({TestId("org.ex.FooTest", "test1")})))

    assert resolution.directive == "pruned"
    assert resolution.removed_methods == 1
    assert "test1" not in java_suite.read("org.ex.FooTest")


def test_run_resolver_never_removes_failing_classes(java_suite) -> None:
    java_suite.add_class("org.ex.FooTest", {"test0": ["a();"]})
    before = java_suite.read("org.ex.FooTest")
    resolver = RunFailureResolver(RemovalExecutor(java_suite.root))
    diagnostic = RunDiagnostic(
        failing_classes=frozenset({"org.ex.FooTest"}),
        failing_methods=frozenset({TestId("org.ex.FooTest", "test0")}),
    )

    resolution = resolver.resolve(diagnostic)

    assert resolution.directive == "class-failures"
    assert resolution.failing_classes == ("org.ex.FooTest",)
    assert resolution.changes == 0
    assert java_suite.read("org.ex.FooTest") == before


def test_run_resolver_reports_clean_runs(java_suite) -> None:
    resolver = RunFailureResolver(RemovalExecutor(java_suite.root))

    assert resolver.resolve(RunDiagnostic()).directive == "clean"
