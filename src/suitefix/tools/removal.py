"""Removal executor: the single place where test sources are edited or quarantined."""

from __future__ import annotations

import json
import logging
import os
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal

import tree_sitter_java as ts_java
from tree_sitter import Language, Node, Parser

from ..errors import RemovalError
from ..structured import RemovalBatch, RemovalRequest, TestId
from .locator import path_for_class_name

RemovalStrategy = Literal["method", "assertions"]
REMOVAL_STRATEGIES: tuple[str, ...] = ("method", "assertions")
QUARANTINE_SUFFIX = ".broken"

JAVA_LANGUAGE = Language(ts_java.language())

TELEMETRY_LOGGER = logging.getLogger("suitefix.telemetry")

_ASSERTION_RE = re.compile(rb"^(?:org\.junit\.)?(?:Assert\.)?assert\w*\s*\(")


@dataclass(slots=True)
class RemovalReport:
    """What one call to :meth:`RemovalExecutor.apply` changed on disk."""

    removed_methods: List[TestId] = field(default_factory=list)
    patched_methods: List[TestId] = field(default_factory=list)
    quarantined: List[str] = field(default_factory=list)
    already_removed: List[str] = field(default_factory=list)

    @property
    def changes(self) -> int:
        return len(self.removed_methods) + len(self.patched_methods) + len(self.quarantined)

    def merge(self, other: "RemovalReport") -> None:
        self.removed_methods.extend(other.removed_methods)
        self.patched_methods.extend(other.patched_methods)
        self.quarantined.extend(other.quarantined)
        self.already_removed.extend(other.already_removed)


@dataclass(frozen=True, slots=True)
class MethodSpan:
    """Source range of a method declaration, annotations and body included.

    Rows and columns are 0-based; columns count bytes, as tree-sitter does.
    """

    start_row: int
    start_column: int
    end_row: int
    end_column: int

    def contains_line(self, line: int) -> bool:
        return self.start_row < line <= self.end_row + 1


def _emit_removal_event(event: str, **fields: Any) -> None:
    payload: Dict[str, Any] = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
    for key, value in fields.items():
        if isinstance(value, Path):
            value = value.as_posix()
        elif isinstance(value, (list, tuple, set)):
            value = [str(item) for item in value]
        payload[key] = value
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), default=str))


def _walk(node: Node):
    yield node
    for child in node.children:
        yield from _walk(child)


def find_method_span(source: bytes, method_name: str, *, parser: Parser | None = None) -> MethodSpan | None:
    """Locate the first no-argument method ``method_name`` declared in ``source``.

    The span is the ``method_declaration`` node, so annotations (including
    multi-line ones) and comments between them and the signature are part of
    it.  Returns ``None`` when no such declaration exists.
    """

    tree = (parser or Parser(JAVA_LANGUAGE)).parse(source)
    wanted = method_name.encode("utf-8")
    for node in _walk(tree.root_node):
        if node.type != "method_declaration":
            continue
        name = node.child_by_field_name("name")
        if name is None or source[name.start_byte : name.end_byte] != wanted:
            continue
        parameters = node.child_by_field_name("parameters")
        if parameters is not None and parameters.named_child_count:
            continue
        if node.child_by_field_name("body") is None:
            raise RemovalError(
                f"Test method {method_name} has no body",
                details={"method": method_name, "line": node.start_point[0] + 1},
            )
        return MethodSpan(
            start_row=node.start_point[0],
            start_column=node.start_point[1],
            end_row=node.end_point[0],
            end_column=node.end_point[1],
        )
    return None


def comment_out_assertions(lines: List[bytes], span: MethodSpan, hints: tuple[int, ...]) -> int:
    """Comment out single-line assertions at the hinted 1-based lines inside ``span``."""

    patched = 0
    for hint in hints:
        if not span.contains_line(hint):
            continue
        index = hint - 1
        text = lines[index]
        stripped = text.strip()
        if not _ASSERTION_RE.match(stripped) or not stripped.endswith(b";"):
            continue
        indent = text[: len(text) - len(text.lstrip())]
        newline = text[len(text.rstrip(b"\r\n")) :]
        lines[index] = indent + b"// " + stripped + newline
        patched += 1
    return patched


def delete_span(lines: List[bytes], span: MethodSpan) -> None:
    """Cut ``span`` out of ``lines``, dropping lines it leaves blank."""

    first, last = span.start_row, span.end_row
    prefix = lines[first][: span.start_column]
    suffix = lines[last][span.end_column :]
    if prefix.strip() or suffix.strip():
        body = suffix.rstrip(b"\r\n")
        newline = suffix[len(body) :]
        head = prefix.rstrip() if prefix.strip() else prefix
        tail = body.lstrip()
        separator = b" " if prefix.strip() and tail else b""
        lines[first : last + 1] = [head + separator + tail + newline]
        return

    if (
        first > 0
        and last + 1 < len(lines)
        and not lines[first - 1].strip()
        and not lines[last + 1].strip()
    ):
        last += 1
    del lines[first : last + 1]


class RemovalExecutor:
    """Delete test methods and quarantine test classes inside one working copy.

    The executor remembers everything it removed, so re-submitting a canonical
    name is a no-op.  A request for an artifact it never removed and cannot
    find raises :class:`RemovalError`, since that means the locator and the
    executor disagree about the state of the working copy.  Sources are edited
    as bytes, so files in any encoding survive untouched outside the cut.
    """

    def __init__(
        self,
        root: Path,
        *,
        strategy: RemovalStrategy = "method",
        batch_path: Path | None = None,
    ) -> None:
        if strategy not in REMOVAL_STRATEGIES:
            raise ValueError(f"Unknown removal strategy: {strategy}")
        self.root = Path(root)
        self.strategy: RemovalStrategy = strategy
        self.batch_path = batch_path
        self._parser = Parser(JAVA_LANGUAGE)
        self._removed: set[str] = set()
        self._patched: set[str] = set()
        self._quarantined: set[str] = set()

    def is_removed(self, request: RemovalRequest) -> bool:
        return request.class_name in self._quarantined or request.key in self._removed

    def is_quarantined(self, class_name: str) -> bool:
        return class_name in self._quarantined

    def quarantine(self, class_name: str) -> bool:
        """Rename the class's source to ``*.java.broken``; ``False`` if already done."""

        if self.is_quarantined(class_name):
            return False
        path = path_for_class_name(class_name, self.root)
        target = path.with_name(path.name + QUARANTINE_SUFFIX)
        if not path.exists():
            if target.exists():
                self._quarantined.add(class_name)
                return False
            raise RemovalError(
                f"Cannot quarantine {class_name}: source file not found",
                details={"class": class_name, "path": path.as_posix()},
            )
        try:
            os.replace(path, target)
        except OSError as error:
            raise RemovalError(
                f"Cannot quarantine {class_name}: {error}",
                details={"class": class_name, "path": path.as_posix()},
            ) from error
        self._quarantined.add(class_name)
        _emit_removal_event("quarantine", class_name=class_name, path=target)
        return True

    def apply(self, batch: RemovalBatch) -> RemovalReport:
        """Apply every request of ``batch`` and flush the edits to disk."""

        report = RemovalReport()
        if not batch:
            return report
        if self.batch_path is not None:
            self.batch_path.parent.mkdir(parents=True, exist_ok=True)
            with self.batch_path.open("a", encoding="utf-8") as handle:
                handle.write(batch.to_text() + "\n")

        for request in batch.classes():
            if self.quarantine(request.class_name):
                report.quarantined.append(request.class_name)
            else:
                report.already_removed.append(request.key)

        per_class: Dict[str, List[RemovalRequest]] = defaultdict(list)
        for request in batch.methods():
            if self.is_removed(request):
                report.already_removed.append(request.key)
                continue
            per_class[request.class_name].append(request)

        for class_name, requests in per_class.items():
            report.merge(self._patch_class(class_name, requests))

        _emit_removal_event(
            "apply",
            strategy=self.strategy,
            removed=report.removed_methods,
            patched=report.patched_methods,
            quarantined=report.quarantined,
            already_removed=report.already_removed,
        )
        return report

    def _patch_class(self, class_name: str, requests: List[RemovalRequest]) -> RemovalReport:
        report = RemovalReport()
        path = path_for_class_name(class_name, self.root)
        if not path.exists():
            raise RemovalError(
                f"Cannot remove tests from {class_name}: source file not found",
                details={"path": path.as_posix(), "requests": [request.key for request in requests]},
            )
        try:
            source = path.read_bytes()
        except OSError as error:
            raise RemovalError(
                f"Cannot read source of {class_name}: {error}",
                details={"path": path.as_posix()},
            ) from error
        lines = source.splitlines(keepends=True)

        spans: list[MethodSpan] = []
        for request in requests:
            test_id = request.test_id
            if test_id is None:
                continue
            try:
                span = find_method_span(source, test_id.method_name, parser=self._parser)
            except RemovalError as error:
                error.details.setdefault("class", class_name)
                raise
            if span is None:
                raise RemovalError(
                    f"Cannot locate test method {test_id}",
                    details={"path": path.as_posix(), "method": test_id.method_name},
                )
            # A method that fails again after its assertions were patched is removed.
            if self.strategy == "assertions" and request.lines and request.key not in self._patched:
                if comment_out_assertions(lines, span, request.lines):
                    self._patched.add(request.key)
                    report.patched_methods.append(test_id)
                    continue
            spans.append(span)
            report.removed_methods.append(test_id)
            self._removed.add(request.key)

        for span in sorted(spans, key=lambda item: (item.start_row, item.start_column), reverse=True):
            delete_span(lines, span)

        try:
            path.write_bytes(b"".join(lines))
        except OSError as error:
            raise RemovalError(
                f"Cannot write patched source for {class_name}: {error}",
                details={"path": path.as_posix()},
            ) from error
        return report


__all__ = [
    "JAVA_LANGUAGE",
    "MethodSpan",
    "QUARANTINE_SUFFIX",
    "REMOVAL_STRATEGIES",
    "RemovalExecutor",
    "RemovalReport",
    "RemovalStrategy",
    "comment_out_assertions",
    "delete_span",
    "find_method_span",
]
