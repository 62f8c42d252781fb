"""Fatal error taxonomy for the repair batch.

Expected failure shapes (a method that does not compile, a failing test, a
suite the harness cannot execute) are returned as data by the resolvers and the
engine.  The exceptions below are reserved for invariant violations: the
components disagree about the state of the working copy, a diagnostic could not
be understood, or an external collaborator (archive, results sink) failed.
Any of them aborts the whole batch.
"""

from __future__ import annotations

from typing import Any, Mapping


class RepairError(RuntimeError):
    """Base class for errors that halt the entire batch run."""

    def __init__(
        self,
        message: str,
        *,
        suite: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suite = suite
        self.details: dict[str, Any] = dict(details or {})

    def with_suite(self, suite: str) -> "RepairError":
        """Attach the offending suite name if it is not already known."""
        if self.suite is None:
            self.suite = suite
        return self

    def __str__(self) -> str:
        if self.suite:
            return f"[{self.suite}] {self.message}"
        return self.message


class ConfigError(RepairError):
    """Raised when the configuration file holds unusable values."""


class DiagnosticFormatError(RepairError):
    """Raised when tool output does not match the expected diagnostic grammar."""


class RemovalError(RepairError):
    """Raised when a requested artifact cannot be located or patched."""


class ToolchainError(RepairError):
    """Raised when the compiler or checkout tooling crashes outright."""


class ArchiveError(RepairError):
    """Raised when a suite archive cannot be extracted, backed up or rewritten."""


class ResultsSinkError(RepairError):
    """Raised when a results record cannot be appended."""


__all__ = [
    "ArchiveError",
    "ConfigError",
    "DiagnosticFormatError",
    "RemovalError",
    "RepairError",
    "ResultsSinkError",
    "ToolchainError",
]
