"""Tool integrations used by the repair engine and the batch orchestrator."""

from .archives import SuiteArchive, discover_archives, extract_archive, replace_archive
from .commands import CommandResult, CommandStatus, run_command
from .diagnostics import get_compile_parser, get_run_parser, parse_compile_log, parse_failing_tests
from .locator import MethodLocation, class_name_for_path, locate_test_method
from .removal import REMOVAL_STRATEGIES, RemovalExecutor, RemovalReport
from .suite_logs import SuiteLogs
from .toolchain import CommandToolchain, RunReport, SuiteToolchain, ToolchainSettings

__all__ = [
    "CommandResult",
    "CommandStatus",
    "CommandToolchain",
    "MethodLocation",
    "REMOVAL_STRATEGIES",
    "RemovalExecutor",
    "RemovalReport",
    "RunReport",
    "SuiteArchive",
    "SuiteLogs",
    "SuiteToolchain",
    "ToolchainSettings",
    "class_name_for_path",
    "discover_archives",
    "extract_archive",
    "get_compile_parser",
    "get_run_parser",
    "locate_test_method",
    "parse_compile_log",
    "parse_failing_tests",
    "replace_archive",
    "run_command",
]
