"""
Logging setup for deployed-changes.

All components log through loguru. Console output goes to stderr so that the
report on stdout stays clean for piping; an optional rotating file sink keeps
a structured record of each run.
"""

import os
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from .telemetry import SERVICE_NAME, SERVICE_VERSION, get_telemetry_manager

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> - "
    "<level>{message}</level>"
)
CONSOLE_FORMAT_STRUCTURED = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[component]} | {message}"
)


class LoggingManager:
    """Owns the loguru sinks and the run-level log helpers."""

    def __init__(self, service_name: str = SERVICE_NAME):
        """
        Initialize logging manager.

        Args:
            service_name: Name stamped on every record and used for the log file
        """
        self.service_name = service_name
        self.telemetry_manager = get_telemetry_manager()
        self._configured = False

    def configure_logging(
        self,
        level: str = "INFO",
        enable_file_logging: bool = False,
        log_file_path: Path | None = None,
        structured_format: bool = True,
        force: bool = False,
    ) -> None:
        """
        Replace the default loguru handler with this tool's sinks.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            enable_file_logging: Also write a rotating log file
            log_file_path: Path for the log file (logs/<service>.log if None)
            structured_format: Show bound extras on the console and serialize
                file records as JSON
            force: Reconfigure even if logging was already configured
        """
        if self._configured and not force:
            return

        logger.remove()
        # Records logged outside get_logger() still need a component
        logger.configure(
            extra={
                "component": self.service_name,
                "service_name": self.service_name,
                "version": SERVICE_VERSION,
            }
        )

        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT_STRUCTURED if structured_format else CONSOLE_FORMAT,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

        if enable_file_logging:
            self._add_file_sink(level, log_file_path, structured_format)

        self._configured = True
        logger.debug(
            "Logging configured",
            level=level,
            file_logging=enable_file_logging,
            structured=structured_format,
        )

    def _add_file_sink(
        self, level: str, log_file_path: Path | None, serialize: bool
    ) -> None:
        if log_file_path is None:
            log_file_path = Path.cwd() / "logs" / f"{self.service_name}.log"
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(log_file_path),
            format=FILE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
            enqueue=True,
            serialize=serialize,
        )

    def get_logger(self, name: str) -> Any:
        """Logger bound to a component name (usually __name__)."""
        return logger.bind(component=name)

    def log_operation_start(self, operation: str, **kwargs) -> None:
        """Log the start of an operation with context."""
        logger.info("Operation started: {operation}", operation=operation, **kwargs)

    def log_operation_complete(self, operation: str, duration: float, **kwargs) -> None:
        """Log the completion of an operation with its duration."""
        logger.info(
            "Operation completed: {operation} in {duration_seconds}s",
            operation=operation,
            duration_seconds=round(duration, 3),
            **kwargs,
        )

    def log_operation_error(self, operation: str, error: Exception, **kwargs) -> None:
        """Log an operation that ended in an unexpected exception."""
        logger.error(
            "Operation failed: {operation}: {error_message}",
            operation=operation,
            error_type=type(error).__name__,
            error_message=str(error),
            **kwargs,
        )

    def log_skipped_input(self, line_number: int, line: str, reason: str) -> None:
        """Log an input line dropped before it reached the scheduler."""
        logger.warning(
            "Skipping input line {line_number}: {reason}",
            line_number=line_number,
            line=line,
            reason=reason,
        )


_logging_manager: LoggingManager | None = None


def get_logging_manager() -> LoggingManager:
    """Get or create the process-wide logging manager."""
    global _logging_manager
    if _logging_manager is None:
        _logging_manager = LoggingManager()
    return _logging_manager


def configure_logging(
    level: str | None = None,
    structured: bool = False,
    enable_file_logging: bool | None = None,
    force: bool = False,
) -> None:
    """
    Configure logging from arguments, falling back to the environment.

    Args:
        level: Logging level (default: LOG_LEVEL env var, then INFO)
        structured: Show bound extras on the console
        enable_file_logging: Write a log file (default: ENABLE_FILE_LOGGING env var)
        force: Reconfigure even if already configured
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    if enable_file_logging is None:
        enable_file_logging = (
            os.getenv("ENABLE_FILE_LOGGING", "false").lower() == "true"
        )

    get_logging_manager().configure_logging(
        level=level,
        structured_format=structured,
        enable_file_logging=enable_file_logging,
        force=force,
    )


def get_logger(name: str) -> Any:
    """Logger for the given component name."""
    return get_logging_manager().get_logger(name)
