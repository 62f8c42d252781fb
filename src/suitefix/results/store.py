"""Results sinks: a no-op default and a SQLite table of per-suite fix records."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Protocol

from ..errors import ResultsSinkError
from .schema import FixRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_NAME = "suitefix.sqlite"


class ResultSink(Protocol):
    """Destination for :class:`FixRecord` rows."""

    def has_result(self, project_id: str, version_id: str, test_suite: str, test_id: str) -> bool:
        ...

    def append(self, record: FixRecord) -> None:
        ...

    def close(self) -> None:
        ...


class NullResultSink:
    """Sink used when result logging is disabled."""

    def has_result(self, project_id: str, version_id: str, test_suite: str, test_id: str) -> bool:
        return False

    def append(self, record: FixRecord) -> None:
        LOGGER.debug("Result logging disabled; dropping record for %s", record.key)

    def close(self) -> None:
        return None

    def __enter__(self) -> "NullResultSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _as_iso(timestamp: datetime) -> str:
    """Serialise a timestamp to a timezone-aware ISO 8601 string."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


class ResultStore:
    """SQLite-backed ``fix`` table.

    Appends are single transactions serialised by a lock, so suites finishing
    concurrently on worker threads each land as one complete row.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path).resolve()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
                str(self.db_path), check_same_thread=False
            )
        except (OSError, sqlite3.Error) as error:
            raise ResultsSinkError(f"Cannot open results database {self.db_path}: {error}") from error
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._bootstrap()

    def close(self) -> None:
        if getattr(self, "_conn", None) is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def __enter__(self) -> "ResultStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _bootstrap(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS fix (
                project_id TEXT NOT NULL,
                version_id TEXT NOT NULL,
                test_suite TEXT NOT NULL,
                test_id TEXT NOT NULL,
                outcome TEXT NOT NULL,
                num_uncompilable_tests INTEGER NOT NULL DEFAULT 0,
                num_uncompilable_test_classes INTEGER NOT NULL DEFAULT 0,
                num_failing_tests INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_fix_suite
                ON fix(project_id, test_suite, version_id, test_id);
            """
        )
        self._conn.commit()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def has_result(self, project_id: str, version_id: str, test_suite: str, test_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                """
                SELECT 1 FROM fix
                WHERE project_id = ? AND test_suite = ? AND version_id = ? AND test_id = ?
                LIMIT 1
                """,
                (project_id, test_suite, version_id, test_id),
            )
            return cursor.fetchone() is not None

    def append(self, record: FixRecord) -> None:
        try:
            with self._transaction():
                self._conn.execute(
                    """
                    INSERT INTO fix (
                        project_id, version_id, test_suite, test_id, outcome,
                        num_uncompilable_tests, num_uncompilable_test_classes,
                        num_failing_tests, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.project_id,
                        record.version_id,
                        record.test_suite,
                        record.test_id,
                        record.outcome,
                        record.num_uncompilable_tests,
                        record.num_uncompilable_test_classes,
                        record.num_failing_tests,
                        _as_iso(record.created_at),
                    ),
                )
        except sqlite3.Error as error:
            raise ResultsSinkError(
                f"Cannot append results record: {error}",
                details={"record": list(record.key)},
            ) from error

    def list_results(self, *, project_id: str | None = None) -> List[FixRecord]:
        query = "SELECT * FROM fix"
        params: list[str] = []
        if project_id:
            query += " WHERE project_id = ?"
            params.append(project_id)
        query += " ORDER BY created_at ASC, rowid ASC"
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [
            FixRecord(
                project_id=row["project_id"],
                version_id=row["version_id"],
                test_suite=row["test_suite"],
                test_id=row["test_id"],
                outcome=row["outcome"],
                num_uncompilable_tests=row["num_uncompilable_tests"],
                num_uncompilable_test_classes=row["num_uncompilable_test_classes"],
                num_failing_tests=row["num_failing_tests"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


__all__ = ["DEFAULT_DB_NAME", "NullResultSink", "ResultSink", "ResultStore"]
