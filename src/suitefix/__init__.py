"""Stabilize automatically generated Java test suites by pruning broken tests."""

from .engine import RepairEngine, RepairOutcome, RepairSession, RepairState
from .errors import RepairError
from .orchestrator import BatchSummary, SuiteOrchestrator

__version__ = "0.1.0"

__all__ = [
    "BatchSummary",
    "RepairEngine",
    "RepairError",
    "RepairOutcome",
    "RepairSession",
    "RepairState",
    "SuiteOrchestrator",
    "__version__",
]
