"""Typed payloads shared by the parser, resolvers and removal executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Mapping

MARKER = "--- "
SEPARATOR = "::"


@dataclass(frozen=True, slots=True, order=True)
class TestId:
    """Canonical ``qualifiedClassName::methodName`` identifier."""

    __test__ = False  # keep pytest from collecting the class

    class_name: str
    method_name: str

    def __str__(self) -> str:
        return f"{self.class_name}{SEPARATOR}{self.method_name}"

    def marker(self) -> str:
        """Return the log form, e.g. ``--- org.foo.BarTest::test09``."""
        return f"{MARKER}{self}"

    @classmethod
    def parse(cls, value: str) -> "TestId":
        text = value.strip()
        if text.startswith(MARKER.strip()):
            text = text[len(MARKER.strip()):].strip()
        class_name, sep, method_name = text.partition(SEPARATOR)
        if not sep or not class_name or not method_name:
            raise ValueError(f"Not a canonical test identifier: {value!r}")
        return cls(class_name=class_name.strip(), method_name=method_name.strip())


@dataclass(frozen=True, slots=True)
class CompileDiagnostic:
    """Single compiler error attributed to a source file and 1-based line."""

    path: Path
    line: int
    message: str


@dataclass(frozen=True, slots=True)
class RunDiagnostic:
    """Failing test classes and methods reported by one run of the suite.

    ``line_hints`` maps a failing method to the lines of its own source file
    that appear in the failure's stack trace.  Only the assertion-level removal
    strategy consults it.
    """

    failing_classes: frozenset[str] = frozenset()
    failing_methods: frozenset[TestId] = frozenset()
    line_hints: Mapping[TestId, tuple[int, ...]] = field(default_factory=dict)

    @property
    def clean(self) -> bool:
        return not self.failing_classes and not self.failing_methods


@dataclass(frozen=True, slots=True)
class RemovalRequest:
    """Request to drop one test method, or a whole class when ``method_name`` is ``None``."""

    class_name: str
    method_name: str | None = None
    lines: tuple[int, ...] = ()

    @property
    def is_class(self) -> bool:
        return self.method_name is None

    @property
    def key(self) -> str:
        if self.method_name is None:
            return self.class_name
        return f"{self.class_name}{SEPARATOR}{self.method_name}"

    @property
    def test_id(self) -> TestId | None:
        if self.method_name is None:
            return None
        return TestId(self.class_name, self.method_name)

    def marker(self) -> str:
        return f"{MARKER}{self.key}"

    @classmethod
    def for_method(cls, test_id: TestId, lines: Iterable[int] = ()) -> "RemovalRequest":
        return cls(test_id.class_name, test_id.method_name, tuple(sorted(set(lines))))

    @classmethod
    def for_class(cls, class_name: str) -> "RemovalRequest":
        return cls(class_name)


class RemovalBatch:
    """Ordered, deduplicated collection of removal requests.

    A class-level request subsumes the method-level requests of that class:
    adding it cancels pending method requests, and method requests for a class
    already slated for removal are ignored.
    """

    def __init__(self, requests: Iterable[RemovalRequest] = ()) -> None:
        self._requests: dict[str, RemovalRequest] = {}
        for request in requests:
            self.add(request)

    def add(self, request: RemovalRequest) -> bool:
        """Add ``request``; return ``False`` when it was already covered."""
        if request.is_class:
            if request.key in self._requests:
                return False
            self.discard_class(request.class_name)
            self._requests[request.key] = request
            return True

        if request.class_name in self._requests:
            return False
        existing = self._requests.get(request.key)
        if existing is not None:
            if request.lines and not set(request.lines) <= set(existing.lines):
                merged = tuple(sorted(set(existing.lines) | set(request.lines)))
                self._requests[request.key] = RemovalRequest(
                    request.class_name, request.method_name, merged
                )
            return False
        self._requests[request.key] = request
        return True

    def add_method(self, test_id: TestId, lines: Iterable[int] = ()) -> bool:
        return self.add(RemovalRequest.for_method(test_id, lines))

    def add_class(self, class_name: str) -> bool:
        return self.add(RemovalRequest.for_class(class_name))

    def discard_class(self, class_name: str) -> int:
        """Drop pending method requests for ``class_name``; return how many were dropped."""
        prefix = f"{class_name}{SEPARATOR}"
        doomed = [key for key in self._requests if key.startswith(prefix)]
        for key in doomed:
            del self._requests[key]
        return len(doomed)

    def methods(self) -> list[RemovalRequest]:
        return [request for request in self._requests.values() if not request.is_class]

    def classes(self) -> list[RemovalRequest]:
        return [request for request in self._requests.values() if request.is_class]

    def to_lines(self) -> list[str]:
        return [request.marker() for request in self._requests.values()]

    def to_text(self) -> str:
        return "\n".join(self.to_lines())

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "RemovalBatch":
        batch = cls()
        for raw in lines:
            text = raw.strip()
            if not text:
                continue
            if text.startswith(MARKER.strip()):
                text = text[len(MARKER.strip()):].strip()
            if SEPARATOR in text:
                batch.add_method(TestId.parse(text))
            else:
                batch.add_class(text)
        return batch

    def __contains__(self, item: object) -> bool:
        if isinstance(item, (TestId, str)):
            return str(item) in self._requests
        if isinstance(item, RemovalRequest):
            return item.key in self._requests
        return False

    def __iter__(self) -> Iterator[RemovalRequest]:
        return iter(list(self._requests.values()))

    def __len__(self) -> int:
        return len(self._requests)

    def __bool__(self) -> bool:
        return bool(self._requests)

    def __repr__(self) -> str:
        return f"RemovalBatch({self.to_lines()!r})"


__all__ = [
    "CompileDiagnostic",
    "MARKER",
    "RemovalBatch",
    "RemovalRequest",
    "RunDiagnostic",
    "SEPARATOR",
    "TestId",
]
