"""Typed records written to the results sink."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class FixRecord(BaseModel):
    """Outcome of fixing one suite archive, written once at suite end."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    project_id: str
    version_id: str
    test_suite: str
    test_id: str = "1"
    outcome: str
    num_uncompilable_tests: int = Field(default=0, ge=0)
    num_uncompilable_test_classes: int = Field(default=0, ge=0)
    num_failing_tests: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (self.project_id, self.version_id, self.test_suite, self.test_id)
