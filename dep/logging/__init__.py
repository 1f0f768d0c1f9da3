"""
Logging infrastructure for dep.

Provides component-bound loguru loggers and operation tracking decorators.
"""

from .logger import (
    DepLogger,
    get_dep_logger,
    initialize_logging,
    get_logger_instance,
    log_repository_operation,
)

from .decorators import (
    track_repository_operation,
    performance_monitor,
)

__all__ = [
    # Logger
    "DepLogger",
    "get_dep_logger",
    "initialize_logging",
    "get_logger_instance",
    "log_repository_operation",
    # Decorators
    "track_repository_operation",
    "performance_monitor",
]
