"""govlens error handling.

This module exposes the exception hierarchy used throughout the delegation
integrity and analytics engine.
"""

from .exceptions import (
    ConfigurationError,
    DelegationRejectedError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    GovLensError,
    InvalidRangeError,
    NotFoundError,
    RegistryError,
    RegistryUnavailableError,
    TooComplexError,
    ValidationError,
    create_validation_error,
    create_window_error,
)

__all__ = [
    "GovLensError",
    "ValidationError",
    "ConfigurationError",
    "RegistryError",
    "NotFoundError",
    "RegistryUnavailableError",
    "InvalidRangeError",
    "TooComplexError",
    "DelegationRejectedError",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "create_validation_error",
    "create_window_error",
]
