"""Exception hierarchy for govlens.

This module defines the structured exceptions raised by the delegation
integrity and analytics engine. Every error carries a severity, a category
and an optional context describing the component and operation that failed.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    REGISTRY = "registry"
    RANGE = "range"
    COMPLEXITY = "complexity"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "metadata": self.metadata,
        }


class GovLensError(Exception):
    """Base exception for all govlens errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.metadata = metadata or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.category != ErrorCategory.SYSTEM:
            parts.append(f"Category: {self.category.value}")

        return " | ".join(parts)


class ValidationError(GovLensError):
    """Validation error."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class ConfigurationError(GovLensError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class RegistryError(GovLensError):
    """A read through a registry interface failed."""

    def __init__(self, message: str, registry: Optional[str] = None, **kwargs):
        kwargs.setdefault("category", ErrorCategory.REGISTRY)
        super().__init__(message, **kwargs)
        self.registry = registry

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"registry": self.registry})
        return data


class NotFoundError(RegistryError):
    """The requested id or address does not exist in the registry."""

    def __init__(self, message: str, key: Optional[Any] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.LOW)
        super().__init__(message, **kwargs)
        self.key = key

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"key": str(self.key) if self.key is not None else None})
        return data


class RegistryUnavailableError(GovLensError):
    """A required registry collaborator was never configured."""

    def __init__(self, registry: str, **kwargs):
        super().__init__(
            f"{registry} registry is not configured",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.registry = registry


class InvalidRangeError(ValidationError):
    """A window or page request violates size or ordering bounds."""

    def __init__(
        self,
        message: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
        limit: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.RANGE, **kwargs)
        self.start = start
        self.end = end
        self.limit = limit

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"start": self.start, "end": self.end, "limit": self.limit})
        return data


class TooComplexError(GovLensError):
    """The graph around a node is too large for online analysis.

    This is distinct from a negative answer: the caller must treat the
    outcome as unknown.
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        estimate: Optional[int] = None,
        threshold: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            category=ErrorCategory.COMPLEXITY,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.address = address
        self.estimate = estimate
        self.threshold = threshold

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "address": self.address,
                "estimate": self.estimate,
                "threshold": self.threshold,
            }
        )
        return data


class DelegationRejectedError(ValidationError):
    """A delegation reached the blocking warning level."""

    def __init__(
        self,
        message: str,
        delegator: Optional[str] = None,
        delegatee: Optional[str] = None,
        warning_level: int = 3,
        **kwargs,
    ):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, **kwargs)
        self.delegator = delegator
        self.delegatee = delegatee
        self.warning_level = warning_level

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "delegator": self.delegator,
                "delegatee": self.delegatee,
                "warning_level": self.warning_level,
            }
        )
        return data


# Convenience functions for common error patterns
def create_validation_error(
    field: str, value: Any, expected: Any, message: Optional[str] = None
) -> ValidationError:
    """Create a validation error."""
    if message is None:
        message = f"Invalid value for field '{field}': expected {expected}, got {value}"

    return ValidationError(message=message, field=field, value=value, expected=expected)


def create_window_error(
    start: int, end: int, max_window: int, message: Optional[str] = None
) -> InvalidRangeError:
    """Create an invalid range error for an id window."""
    if message is None:
        message = (
            f"Invalid id window [{start}, {end}]: ids must be non-negative, "
            f"ordered, and span at most {max_window} entries"
        )

    return InvalidRangeError(message, start=start, end=end, limit=max_window)
