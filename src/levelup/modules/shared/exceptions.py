"""
Domain exceptions for the LevelUp progression engine.

Purpose
-------
Define the structured exception hierarchy raised by services and stores.
Callers (API handlers, workers) translate these into responses; the
`is_retryable` flag tells them whether retrying the same request is safe.

Design Notes
------------
- All domain exceptions inherit from `LevelupDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: structured context
  - `severity`: `ErrorSeverity` for logging/alerting
  - `is_retryable`: whether the operation can be retried as-is
  - `error_code`: short, stable identifier
- Duplicate badge claims and replayed XP award keys are successful no-ops,
  not errors, so there is no exception for them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class LevelupDomainException(Exception):
    """
    Base exception for all LevelUp domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class StoreUnavailableError(LevelupDomainException):
    """
    Raised when a backing store cannot complete a read or write.

    Wraps connection failures, timeouts and driver errors. The caller sees
    the operation as not applied and may retry it; XP awards are safe to
    retry because they carry an idempotency key.

    Args:
        operation: Store operation that failed (e.g. "increment_xp")
        reason: Underlying error description
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Store unavailable during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
            error_code="STORE_UNAVAILABLE",
        )


class NotFoundError(LevelupDomainException):
    """
    Raised when a requested entity does not exist.

    Args:
        resource_type: Type of resource (e.g. "Badge", "Attempt")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(LevelupDomainException):
    """
    Raised when caller input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidOperationError(LevelupDomainException):
    """
    Raised when an action is not allowed in the entity's current state.

    Example:
        >>> raise InvalidOperationError(
        ...     "save_answers",
        ...     "Attempt is already completed"
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: BaseException) -> bool:
    """True if the exception is a domain error flagged as retryable."""
    if isinstance(exc, LevelupDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    if isinstance(exc, LevelupDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
