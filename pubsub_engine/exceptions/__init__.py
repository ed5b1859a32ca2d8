"""
Centralized exception hierarchy for the Pub/Sub load-test engine.

This module provides the exception types raised while building an engine,
compiling scenario steps and publishing messages, with correlation IDs and
context for structured logging.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for classification and alerting."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories for different types of errors."""
    VALIDATION_ERROR = "validation_error"
    DATA_ERROR = "data_error"
    SERVICE_ERROR = "service_error"
    CONFIGURATION_ERROR = "configuration_error"


class BaseEngineException(Exception):
    """
    Base exception class for all engine errors.

    Provides structured error handling with correlation IDs, context tracking,
    and severity classification for better monitoring and debugging.
    """

    def __init__(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.SERVICE_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        """
        Initialize base exception with error context.

        Args:
            message: Technical error message for logging
            correlation_id: Unique identifier for error tracking
            category: Error category for classification
            severity: Error severity level for alerting
            context: Additional context data
            original_exception: Original exception that caused this error
        """
        super().__init__(message)

        self.message = message
        self.correlation_id = correlation_id or create_correlation_id()
        self.category = category
        self.severity = severity
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        if original_exception:
            self.context['original_error'] = {
                'type': type(original_exception).__name__,
                'message': str(original_exception)
            }

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and monitoring."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'correlation_id': self.correlation_id,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': self.context,
            'timestamp': self.timestamp.isoformat(),
            'original_exception': str(self.original_exception) if self.original_exception else None
        }

    def log_error(self, logger: logging.Logger, extra_context: Optional[Dict[str, Any]] = None):
        """Log error with structured format and correlation ID."""
        context = self.context.copy()
        if extra_context:
            context.update(extra_context)

        log_data = {
            'correlation_id': self.correlation_id,
            'error_category': self.category.value,
            'error_severity': self.severity.value,
            'context': context
        }

        if self.severity == ErrorSeverity.CRITICAL:
            logger.critical(f"CRITICAL ERROR: {self.message}", extra=log_data)
        elif self.severity == ErrorSeverity.HIGH:
            logger.error(f"HIGH SEVERITY: {self.message}", extra=log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning(f"MEDIUM SEVERITY: {self.message}", extra=log_data)
        else:
            logger.info(f"LOW SEVERITY: {self.message}", extra=log_data)


class ConfigurationException(BaseEngineException):
    """Configuration and environment errors."""

    def __init__(self, message: str, config_key: str, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION_ERROR,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )
        self.config_key = config_key
        self.context.update({'config_key': config_key})


class ScriptLoadException(BaseEngineException):
    """Load-test script could not be read or parsed."""

    def __init__(self, message: str, path: str, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION_ERROR,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )
        self.path = path
        self.context.update({'path': path})


class ValidationException(BaseEngineException):
    """Step definition and input validation errors."""

    def __init__(self, message: str, field: str, value: Any = None, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION_ERROR,
            severity=ErrorSeverity.LOW,
            **kwargs
        )
        self.field = field
        self.value = value
        self.context.update({
            'field': field,
            'value': str(value) if value is not None else None
        })


class MissingTemplateException(ValidationException):
    """A message step was declared without a JSON template."""

    def __init__(self, message: str = "json must be set", **kwargs):
        super().__init__(message=message, field='message.json', **kwargs)


class TemplateRenderException(BaseEngineException):
    """Rendering a message template against the scenario context failed."""

    def __init__(self, message: str, template: Any = None, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.DATA_ERROR,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )
        self.template = template
        if template is not None:
            self.context.update({'template': str(template)[:256]})


def create_correlation_id() -> str:
    """Generate a unique correlation ID for error tracking."""
    return str(uuid.uuid4())


def log_exception(
    logger: logging.Logger,
    exception: Exception,
    correlation_id: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None
):
    """
    Log any exception with structured format and correlation tracking.

    Args:
        logger: Logger instance to use
        exception: Exception to log
        correlation_id: Optional correlation ID for tracking
        extra_context: Additional context data
    """
    correlation_id = correlation_id or create_correlation_id()
    context = extra_context or {}

    if isinstance(exception, BaseEngineException):
        exception.log_error(logger, context)
    else:
        log_data = {
            'correlation_id': correlation_id,
            'error_type': type(exception).__name__,
            'context': context
        }
        logger.error(f"Unhandled exception: {str(exception)}", extra=log_data, exc_info=exception)


__all__ = [
    'ErrorSeverity',
    'ErrorCategory',
    'BaseEngineException',
    'ConfigurationException',
    'ScriptLoadException',
    'ValidationException',
    'MissingTemplateException',
    'TemplateRenderException',
    'create_correlation_id',
    'log_exception'
]
