"""
Decorators for automatic logging of repository operations.

These decorators enable traceability without cluttering business logic.
"""

import functools
import inspect
import time
from datetime import datetime
from typing import Any, Callable

from .logger import get_dep_logger, log_repository_operation


def track_repository_operation(operation_type: str) -> Callable:
    """
    Decorator to track repository operations.

    Logs start, completion, and failure of commits, checkouts, merges, etc.

    Args:
        operation_type: Type of operation (e.g., "commit", "merge")

    Example:
        >>> @track_repository_operation("commit")
        ... def commit(self, message: str) -> Commit:
        ...     ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log = get_dep_logger("graph")

            sig = inspect.signature(func)
            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()

            operation_id = datetime.utcnow().timestamp()
            log_repository_operation(
                log,
                operation=operation_type,
                operation_id=operation_id,
                function=func.__name__,
                arguments={
                    k: str(v)[:100]
                    for k, v in bound_args.arguments.items()
                    if k != "self"
                },
            )

            try:
                result = func(*args, **kwargs)

                log_repository_operation(
                    log,
                    operation=f"{operation_type}_complete",
                    operation_id=operation_id,
                    function=func.__name__,
                    success=True,
                )

                return result

            except Exception as e:
                log_repository_operation(
                    log,
                    operation=f"{operation_type}_error",
                    operation_id=operation_id,
                    function=func.__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                    success=False,
                )
                raise

        return wrapper

    return decorator


def performance_monitor(threshold_ms: float = 1000.0) -> Callable:
    """
    Decorator to monitor function performance.

    Logs warning if execution exceeds threshold.

    Args:
        threshold_ms: Warning threshold in milliseconds

    Example:
        >>> @performance_monitor(threshold_ms=500)
        ... def materialize(storage, branch, target_hash):
        ...     ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log = get_dep_logger("system")
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
            except Exception:
                elapsed_ms = (time.time() - start_time) * 1000
                log.debug(
                    f"Function failed: {func.__name__}",
                    function=func.__name__,
                    elapsed_ms=elapsed_ms,
                )
                raise

            elapsed_ms = (time.time() - start_time) * 1000
            if elapsed_ms > threshold_ms:
                log.warning(
                    f"Performance threshold exceeded: {func.__name__}",
                    function=func.__name__,
                    elapsed_ms=elapsed_ms,
                    threshold_ms=threshold_ms,
                )
            else:
                log.debug(
                    f"Function executed: {func.__name__}",
                    function=func.__name__,
                    elapsed_ms=elapsed_ms,
                )

            return result

        return wrapper

    return decorator
