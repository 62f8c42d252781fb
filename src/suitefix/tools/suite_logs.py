"""Per-batch compile, run and summary log files kept next to the suite archives."""

from __future__ import annotations

import itertools
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Literal

Channel = Literal["compile", "run", "summary"]
CHANNELS: tuple[Channel, ...] = ("compile", "run", "summary")
LOG_PREFIX = "fix_test_suite"

_COUNTER = itertools.count()

_NULL_LOGGER = logging.getLogger("suitefix.suite_logs.null")
_NULL_LOGGER.propagate = False
_NULL_LOGGER.addHandler(logging.NullHandler())


class SuiteLogs:
    """Append-only log files ``fix_test_suite.{compile,run,summary}.log``.

    Each channel is a dedicated, non-propagating :mod:`logging` logger with a
    file handler, so concurrent suites can write to the same files safely.
    Without a log directory every channel discards its records.
    """

    def __init__(self, log_dir: Path | None, *, prefix: str = LOG_PREFIX) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.paths: Dict[str, Path] = {}
        self._loggers: Dict[str, logging.Logger] = {}
        if self.log_dir is None:
            self._loggers = {channel: _NULL_LOGGER for channel in CHANNELS}
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        instance = next(_COUNTER)
        for channel in CHANNELS:
            logger = logging.getLogger(f"suitefix.suite_logs.{instance}.{channel}")
            logger.propagate = False
            logger.setLevel(logging.INFO)
            path = self.log_dir / f"{prefix}.{channel}.log"
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(handler)
            self.paths[channel] = path
            self._loggers[channel] = logger

    def log_msg(self, channel: Channel, message: str) -> None:
        self._loggers[channel].info(message)

    def log_text(self, channel: Channel, message: str, text: str) -> None:
        """Write ``message`` followed by a block of tool output."""
        body = text.rstrip("\n")
        self._loggers[channel].info(f"{message}\n{body}" if body else message)

    def log_file(self, channel: Channel, message: str, path: Path) -> None:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            text = f"(unable to read {path})"
        self.log_text(channel, message, text)

    def log_time(self, message: str) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S %Z")
        self.log_msg("summary", f"{message}: {stamp}")

    def close(self) -> None:
        if self.log_dir is None:
            return
        for logger in self._loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()

    def __enter__(self) -> "SuiteLogs":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["CHANNELS", "Channel", "LOG_PREFIX", "SuiteLogs"]
