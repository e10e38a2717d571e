"""Structured logging utilities for Meeting Anchor application.

This module provides key=value structured logging with contextual
information, redaction of meeting details and simple timing metrics.
"""

import functools
import logging
import time
from contextlib import contextmanager
from typing import Any

from .logging_config import LoggerMixin, is_sensitive_data_redaction_enabled

# Values under these keys are shortened or hidden unless redaction is disabled.
SENSITIVE_KEYS = frozenset({"title", "location", "event_title", "password", "token", "secret", "credential"})


class StructuredLogger(LoggerMixin):
    """Logger that appends `key=value` context to every message."""

    def __init__(self, context: dict[str, Any] | None = None):
        """Initialize structured logger with optional context.

        Args:
            context: Default context to include in all log messages
        """
        self._context = context or {}
        self._performance_metrics: dict[str, dict[str, float]] = {}

    def _format_message(self, message: str, **kwargs) -> str:
        full_context = {**self._context, **kwargs}
        redacted_context = (
            self._redact_sensitive_data(full_context) if is_sensitive_data_redaction_enabled() else full_context
        )

        if redacted_context:
            context_str = " | ".join([f"{k}={v}" for k, v in redacted_context.items()])
            return f"{message} | {context_str}"
        return message

    def _redact_sensitive_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Redact meeting details from log data.

        Args:
            data: Dictionary containing log data

        Returns:
            Dictionary with sensitive data shortened or replaced
        """
        redacted = {}
        for key, value in data.items():
            if key.lower() in SENSITIVE_KEYS:
                if isinstance(value, str) and len(value) > 10:
                    redacted[key] = f"{value[:3]}...{value[-3:]} (len={len(value)})"
                else:
                    redacted[key] = "[REDACTED]"
            elif isinstance(value, str) and len(value) > 100:
                redacted[key] = f"{value[:50]}...{value[-20:]} (len={len(value)})"
            else:
                redacted[key] = value
        return redacted

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs) -> None:
        self.logger.exception(self._format_message(message, **kwargs))

    @contextmanager
    def context(self, **kwargs):
        """Temporary context manager for logging with additional context.

        Args:
            **kwargs: Temporary context data
        """
        original_context = self._context.copy()
        self._context.update(kwargs)
        try:
            yield self
        finally:
            self._context = original_context

    def log_performance(self, operation: str, duration: float, **kwargs) -> None:
        """Record a duration for an operation and log it at debug level.

        Args:
            operation: Name of the operation
            duration: Duration in seconds
            **kwargs: Additional performance context
        """
        metrics = self._performance_metrics.setdefault(
            operation,
            {"count": 0, "total_duration": 0.0, "min_duration": float("inf"), "max_duration": 0.0},
        )
        metrics["count"] += 1
        metrics["total_duration"] += duration
        metrics["min_duration"] = min(metrics["min_duration"], duration)
        metrics["max_duration"] = max(metrics["max_duration"], duration)

        self.debug(
            f"Performance: {operation}",
            duration_s=f"{duration:.3f}",
            avg_duration_s=f"{metrics['total_duration'] / metrics['count']:.3f}",
            count=metrics["count"],
            **kwargs,
        )

    def get_performance_stats(self) -> dict[str, dict[str, int | float]]:
        """Get performance statistics.

        Returns:
            Dictionary of performance metrics by operation
        """
        return {
            operation: {
                "count": metrics["count"],
                "total_duration": metrics["total_duration"],
                "avg_duration": metrics["total_duration"] / metrics["count"],
                "min_duration": metrics["min_duration"],
                "max_duration": metrics["max_duration"],
            }
            for operation, metrics in self._performance_metrics.items()
        }


def timed_operation(operation_name: str, logger: StructuredLogger | None = None):
    """Decorator to automatically log operation timing.

    Uses the `structured_logger` of the decorated method's instance when
    no logger is given.

    Args:
        operation_name: Name of the operation for logging
        logger: Optional logger instance.

    Returns:
        Decorated function
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            actual_logger = logger
            if actual_logger is None and args and hasattr(args[0], "structured_logger"):
                actual_logger = args[0].structured_logger
            elif actual_logger is None:
                actual_logger = StructuredLogger()

            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                actual_logger.log_performance(
                    operation_name, time.perf_counter() - start_time, function=func.__name__, success=False, error=str(e)
                )
                raise
            actual_logger.log_performance(
                operation_name, time.perf_counter() - start_time, function=func.__name__, success=True
            )
            return result

        return wrapper

    return decorator


class EnhancedLoggerMixin(LoggerMixin):
    """Logger mixin with structured logging capabilities."""

    _structured_logger: StructuredLogger | None = None

    @property
    def structured_logger(self) -> StructuredLogger:
        """Get structured logger instance for this class.

        Returns:
            StructuredLogger instance with class context
        """
        if self._structured_logger is None:
            self._structured_logger = StructuredLogger({"component": self.__class__.__name__})
            self._structured_logger._logger = self.logger
        return self._structured_logger

    def log_state_change(self, old_state: Any, new_state: Any, **kwargs) -> None:
        """Log state changes.

        Args:
            old_state: Previous state
            new_state: New state
            **kwargs: Additional context
        """
        self.structured_logger.info("State change", old_state=str(old_state), new_state=str(new_state), **kwargs)

    def log_error_with_context(self, error: Exception, operation: str, **kwargs) -> None:
        """Log error with contextual information.

        Args:
            error: Exception that occurred
            operation: Operation that failed
            **kwargs: Additional context
        """
        self.structured_logger.error(
            f"Operation failed: {operation}",
            operation=operation,
            error_type=type(error).__name__,
            error_message=str(error),
            **kwargs,
        )


def get_structured_logger(name: str, context: dict[str, Any] | None = None) -> StructuredLogger:
    """Get a structured logger bound to the named standard logger.

    Args:
        name: Logger name (typically __name__)
        context: Default context for the logger

    Returns:
        StructuredLogger instance
    """
    logger = StructuredLogger(context)
    logger._logger = logging.getLogger(name)
    return logger
