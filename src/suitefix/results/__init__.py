"""Per-suite results records and the sinks that persist them."""

from .schema import FixRecord, utc_now
from .store import DEFAULT_DB_NAME, NullResultSink, ResultSink, ResultStore

__all__ = [
    "DEFAULT_DB_NAME",
    "FixRecord",
    "NullResultSink",
    "ResultSink",
    "ResultStore",
    "utc_now",
]
