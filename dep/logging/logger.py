"""
Logging setup for dep.

Provides structured logging with:
- Component-specific context (graph, materializer, merge, stash, ...)
- Optional rotating file sinks
- A console sink on stderr so command output on stdout stays clean
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from loguru import logger

# Records emitted before initialize_logging() still need a component field.
logger.configure(extra={"component": "system"})


def _stderr_sink(message: Any) -> None:
    # Resolve sys.stderr per write; the CLI test runner swaps it between calls.
    sys.stderr.write(message)


class DepLogger:
    """
    Configures loguru sinks for dep.

    Features:
    - Structured logging with context
    - Log rotation and retention for file sinks
    - Separate error log
    """

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        rotation: str = "10 MB",
        retention: str = "1 month",
        level: str = "WARNING",
        format_string: Optional[str] = None,
        enable_file_logging: bool = False,
        enable_console_logging: bool = True,
    ):
        """
        Initialize the dep logger.

        Args:
            log_dir: Directory for log files
            rotation: When to rotate log files
            retention: How long to keep old logs
            level: Default log level
            format_string: Custom format string
            enable_file_logging: Whether to log to files
            enable_console_logging: Whether to log to stderr
        """
        self.log_dir = log_dir or Path("logs")
        self.rotation = rotation
        self.retention = retention
        self.level = level

        self.format_string = format_string or (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[component]}</cyan> | "
            "<level>{message}</level>"
        )

        # Remove default handler
        logger.remove()

        if enable_console_logging:
            logger.add(
                _stderr_sink,
                format=self.format_string,
                level=level,
                colorize=True,
            )

        if enable_file_logging:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._add_file_handlers()

        self.logger = logger.bind(component="system")

    def _add_file_handlers(self) -> None:
        """Add the main and error file sinks."""
        logger.add(
            self.log_dir / "dep.log",
            format=self.format_string,
            level=self.level,
            rotation=self.rotation,
            retention=self.retention,
        )

        # Error log (ERROR and above only)
        logger.add(
            self.log_dir / "errors.log",
            format=self.format_string,
            level="ERROR",
            rotation=self.rotation,
            retention=self.retention,
        )

    def get_logger(self, component: str) -> Any:
        """Get a logger bound to a specific component."""
        return logger.bind(component=component)


def get_dep_logger(component: str = "system") -> Any:
    """
    Get a component-specific logger.

    Args:
        component: Component name

    Returns:
        Logger instance

    Example:
        >>> log = get_dep_logger("graph")
        >>> log.info("Created branch", branch="feature")
    """
    return logger.bind(component=component)


def log_repository_operation(logger_instance: Any, operation: str, **kwargs: Any) -> None:
    """
    Log a repository operation.

    Args:
        logger_instance: Logger to use
        operation: Operation name (e.g., "commit", "checkout_complete")
        **kwargs: Additional context
    """
    logger_instance.debug(
        f"Repository operation: {operation}",
        operation=operation,
        timestamp=datetime.utcnow().isoformat(),
        **kwargs,
    )


# Global logger instance
_dep_logger: Optional[DepLogger] = None


def initialize_logging(
    log_dir: Optional[Path] = None, level: str = "WARNING", **kwargs: Any
) -> DepLogger:
    """
    Initialize the dep logging system.

    This should be called once at application startup.

    Args:
        log_dir: Directory for log files
        level: Default log level
        **kwargs: Additional configuration for DepLogger

    Returns:
        Configured DepLogger instance
    """
    global _dep_logger
    _dep_logger = DepLogger(log_dir=log_dir, level=level, **kwargs)
    return _dep_logger


def get_logger_instance() -> Optional[DepLogger]:
    """Get the global logger instance."""
    return _dep_logger
