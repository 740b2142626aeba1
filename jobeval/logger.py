"""
Structured logging for JobEval.

One process-wide StructuredLogger writes to stdout and to a daily file
under ``logs/``. Keyword arguments passed to the log methods are appended
to the message as JSON. The ETL also counts downloads and API calls per
data source on it so a long BLS/O*NET run can be audited from the summary
printed at the end.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _handler(handler: logging.Handler, fmt: str, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


@dataclass
class SourceStats:
    attempts: int = 0
    successes: int = 0

    def as_dict(self) -> dict:
        stats = {"attempts": self.attempts, "successes": self.successes}
        if self.attempts:
            stats["success_rate"] = round(self.successes / self.attempts, 3)
        return stats


@dataclass
class PipelineMetrics:
    """Counters for one ETL run (bls, bls-api, onet, github)."""

    api_calls: int = 0
    downloads_attempted: int = 0
    downloads_successful: int = 0
    downloads_failed: int = 0
    errors_by_type: Dict[str, int] = field(default_factory=dict)
    sources: Dict[str, SourceStats] = field(default_factory=dict)

    @property
    def overall_rate(self) -> float:
        if not self.downloads_attempted:
            return 0.0
        return round(self.downloads_successful / self.downloads_attempted * 100, 1)

    def as_dict(self) -> dict:
        return {
            "api_calls": self.api_calls,
            "downloads_attempted": self.downloads_attempted,
            "downloads_successful": self.downloads_successful,
            "downloads_failed": self.downloads_failed,
            "errors_by_type": dict(self.errors_by_type),
            "source_success_rate": {name: s.as_dict() for name, s in self.sources.items()},
        }


class StructuredLogger:
    """
    Console and daily-file logger with JSON context and pipeline metrics.

    Args:
        name: Logger name, also the log file prefix
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: logs/)
        enable_file: Write ``{name}_YYYYMMDD.log``
        enable_console: Write to stdout
    """

    def __init__(
        self,
        name: str = "jobeval",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        self.logger = logging.getLogger(name)
        self.logger.handlers.clear()
        self.metrics = PipelineMetrics()
        self._console: Optional[logging.Handler] = None

        if enable_console:
            self._console = _handler(logging.StreamHandler(sys.stdout), CONSOLE_FORMAT, _level(level))
            self.logger.addHandler(self._console)

        if enable_file:
            log_dir = Path(log_dir) if log_dir is not None else Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"{name}_{datetime.now():%Y%m%d}.log"
            # the file handler never filters; the logger level decides
            self.logger.addHandler(
                _handler(logging.FileHandler(log_file, encoding="utf-8"), FILE_FORMAT, logging.DEBUG)
            )

        self.set_level(level)

    def set_level(self, level: str) -> None:
        """Change the logger and console level (JOBEVAL_LOG_LEVEL)."""
        self.logger.setLevel(_level(level))
        if self._console is not None:
            self._console.setLevel(_level(level))

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, context)

    def critical(self, message: str, **context):
        self._log(logging.CRITICAL, message, context)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    def record_api_call(self):
        self.metrics.api_calls += 1

    def record_download_attempt(self, source: str):
        """Count a fetch against a data source."""
        self.metrics.downloads_attempted += 1
        self.metrics.sources.setdefault(source, SourceStats()).attempts += 1

    def record_download_success(self, source: str):
        self.metrics.downloads_successful += 1
        if source in self.metrics.sources:
            self.metrics.sources[source].successes += 1

    def record_download_failure(self, source: str, error_type: str):
        """Count a failed fetch, keyed by exception or HTTP status."""
        self.metrics.downloads_failed += 1
        errors = self.metrics.errors_by_type
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Snapshot of the counters with per-source success rates."""
        return self.metrics.as_dict()

    def log_metrics_summary(self):
        m = self.metrics
        self.info("=== Data Pipeline Metrics ===")
        self.info(f"API Calls: {m.api_calls}")
        self.info(f"Downloads: {m.downloads_successful}/{m.downloads_attempted} ({m.overall_rate}% success)")

        if m.sources:
            self.info("Source Success Rates:")
            for source, stats in m.sources.items():
                rate = stats.as_dict().get("success_rate", 0) * 100
                self.info(f"  {source}: {stats.successes}/{stats.attempts} ({rate:.1f}%)")

        if m.errors_by_type:
            self.info("Error Types:")
            for error_type, count in m.errors_by_type.items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "jobeval", level: str = "INFO", **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Arguments only apply to the first call; use ``set_level`` afterwards.
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Drop the process-wide logger (used by tests)."""
    global _global_logger
    _global_logger = None
