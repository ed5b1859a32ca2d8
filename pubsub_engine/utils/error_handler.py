"""
Structured error handling utility with correlation IDs and context tracking.

This module provides error tracking and structured logging used by the
scenario runner and the message fan-out publisher.
"""

import logging
import threading
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List

from ..exceptions import (
    BaseEngineException, ErrorSeverity, ErrorCategory,
    create_correlation_id, log_exception
)


@dataclass
class ErrorMetrics:
    """Error metrics for monitoring."""
    total_errors: int = 0
    errors_by_category: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    errors_by_severity: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    errors_by_type: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    last_error_time: Optional[datetime] = None


class ErrorTracker:
    """
    Thread-safe error tracking and metrics collection.

    Keeps a bounded history of error records and aggregate counts by
    category, severity and exception type.
    """

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._lock = threading.Lock()
        self.error_history: deque = deque(maxlen=max_history)
        self.metrics = ErrorMetrics()

    def track_error(
        self,
        exception: Exception,
        correlation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Track an error occurrence.

        Args:
            exception: The exception that occurred
            correlation_id: Optional correlation ID for tracking
            context: Additional context information

        Returns:
            str: Correlation ID for the tracked error
        """
        correlation_id = correlation_id or create_correlation_id()
        timestamp = datetime.now(timezone.utc)

        if isinstance(exception, BaseEngineException):
            category = exception.category.value
            severity = exception.severity.value
        else:
            category = ErrorCategory.SERVICE_ERROR.value
            severity = ErrorSeverity.MEDIUM.value

        error_record = {
            'correlation_id': correlation_id,
            'timestamp': timestamp,
            'error_type': type(exception).__name__,
            'message': str(exception),
            'context': context or {},
            'category': category,
            'severity': severity,
            'traceback': None if isinstance(exception, BaseEngineException) else ''.join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
        }

        with self._lock:
            self.error_history.append(error_record)
            self.metrics.total_errors += 1
            self.metrics.errors_by_category[category] += 1
            self.metrics.errors_by_severity[severity] += 1
            self.metrics.errors_by_type[error_record['error_type']] += 1
            self.metrics.last_error_time = timestamp

        return correlation_id

    def get_metrics(self) -> Dict[str, Any]:
        """Get current error metrics."""
        with self._lock:
            return {
                'total_errors': self.metrics.total_errors,
                'errors_by_category': dict(self.metrics.errors_by_category),
                'errors_by_severity': dict(self.metrics.errors_by_severity),
                'errors_by_type': dict(self.metrics.errors_by_type),
                'last_error_time': self.metrics.last_error_time.isoformat() if self.metrics.last_error_time else None
            }

    def get_recent_errors(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent error records with ISO timestamps."""
        with self._lock:
            errors = [dict(error) for error in list(self.error_history)[-limit:]]
        for error in errors:
            if isinstance(error.get('timestamp'), datetime):
                error['timestamp'] = error['timestamp'].isoformat()
        return errors

    def reset(self):
        """Clear history and counters."""
        with self._lock:
            self.error_history.clear()
            self.metrics = ErrorMetrics()


class StructuredLogger:
    """
    Logging wrapper with correlation IDs and a task-local context.

    The context lives in a ContextVar so concurrent scenario runs on one
    event loop each see their own values.
    """

    def __init__(self, name: str, error_tracker: Optional[ErrorTracker] = None):
        self.logger = logging.getLogger(name)
        self.error_tracker = error_tracker or error_tracker_instance
        self._context: ContextVar[Dict[str, Any]] = ContextVar(f"log_context:{name}", default={})

    def get_context(self) -> Dict[str, Any]:
        return self._context.get()

    @contextmanager
    def context(self, **context):
        """Context manager for temporary logging context."""
        token = self._context.set({**self._context.get(), **context})
        try:
            yield
        finally:
            self._context.reset(token)

    def _log(
        self,
        level: int,
        message: str,
        correlation_id: Optional[str] = None,
        extra_context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None
    ):
        """Internal structured logging method."""
        correlation_id = correlation_id or create_correlation_id()

        context = dict(self.get_context())
        if extra_context:
            context.update(extra_context)

        log_data = {
            'correlation_id': correlation_id,
            'context': context
        }

        if exception is not None:
            self.error_tracker.track_error(
                exception=exception,
                correlation_id=correlation_id,
                context=context
            )

        self.logger.log(level, message, extra=log_data, exc_info=exception)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, exception: Exception, **kwargs):
        """Log exception with full context and tracking."""
        correlation_id = kwargs.get('correlation_id') or create_correlation_id()
        context = dict(self.get_context())
        if kwargs.get('extra_context'):
            context.update(kwargs['extra_context'])

        self.logger.debug(message, extra={'correlation_id': correlation_id, 'context': context})
        log_exception(
            logger=self.logger,
            exception=exception,
            correlation_id=correlation_id,
            extra_context=context
        )
        self.error_tracker.track_error(
            exception=exception,
            correlation_id=correlation_id,
            context=context
        )


# Shared tracker used by every StructuredLogger unless one is passed in
error_tracker_instance = ErrorTracker()


def get_error_metrics() -> Dict[str, Any]:
    """Get error metrics from the shared tracker."""
    return error_tracker_instance.get_metrics()


def get_recent_errors(limit: int = 50) -> List[Dict[str, Any]]:
    """Get recent errors from the shared tracker."""
    return error_tracker_instance.get_recent_errors(limit)
